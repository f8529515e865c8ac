from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from apps.common.choices import LifecycleStatus
from apps.common.constants import PREFECTURES
from apps.merchants.models import Merchant

from .models import Genre, Scene, Shop

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def flatten_serializer_errors(errors, prefix: str = "") -> dict[str, str]:
    """First message per dotted path, e.g. ``{"sceneIds.1": "..."}``."""
    flattened: dict[str, str] = {}
    if isinstance(errors, dict):
        for key, value in errors.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            flattened.update(flatten_serializer_errors(value, path))
    elif isinstance(errors, (list, tuple)):
        if errors and all(not isinstance(item, (dict, list)) for item in errors):
            flattened[prefix] = str(errors[0])
        else:
            for index, item in enumerate(errors):
                if item:
                    flattened.update(flatten_serializer_errors(item, f"{prefix}.{index}" if prefix else str(index)))
    elif errors:
        flattened[prefix] = str(errors)
    return flattened


class GenreSerializer(serializers.ModelSerializer):
    sortOrder = serializers.IntegerField(source="sort_order", read_only=True)

    class Meta:
        model = Genre
        fields = ("id", "name", "sortOrder")


class SceneSerializer(serializers.ModelSerializer):
    sortOrder = serializers.IntegerField(source="sort_order", read_only=True)

    class Meta:
        model = Scene
        fields = ("id", "name", "sortOrder")


class ShopListSerializer(serializers.ModelSerializer):
    merchantId = serializers.UUIDField(source="merchant_id", read_only=True)
    merchantName = serializers.CharField(source="merchant.name", read_only=True)
    nameKana = serializers.CharField(source="name_kana", read_only=True)
    postalCode = serializers.CharField(source="postal_code", read_only=True)
    accountEmail = serializers.CharField(source="account_email", read_only=True)
    statusLabel = serializers.CharField(source="get_status_display", read_only=True)
    genreName = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Shop
        fields = (
            "id",
            "merchantId",
            "merchantName",
            "name",
            "nameKana",
            "postalCode",
            "address",
            "accountEmail",
            "phone",
            "status",
            "statusLabel",
            "genreName",
            "createdAt",
            "updatedAt",
        )
        read_only_fields = fields

    def get_genreName(self, obj: Shop) -> str:
        return obj.genre.name if obj.genre_id else ""


class ShopDetailSerializer(ShopListSerializer):
    genreId = serializers.UUIDField(source="genre_id", read_only=True, allow_null=True)
    sceneIds = serializers.SerializerMethodField()
    customSceneText = serializers.CharField(source="custom_scene_text", read_only=True)
    smokingType = serializers.CharField(source="smoking_type", read_only=True)
    homepageUrl = serializers.CharField(source="homepage_url", read_only=True)
    couponUsageStart = serializers.CharField(source="coupon_usage_start", read_only=True)
    couponUsageEnd = serializers.CharField(source="coupon_usage_end", read_only=True)
    couponUsageDays = serializers.CharField(source="coupon_usage_days", read_only=True)
    paymentSaicoin = serializers.BooleanField(source="payment_saicoin", read_only=True)
    paymentTamapon = serializers.BooleanField(source="payment_tamapon", read_only=True)
    paymentCash = serializers.BooleanField(source="payment_cash", read_only=True)
    paymentCredit = serializers.JSONField(source="payment_credit", read_only=True)
    paymentCode = serializers.JSONField(source="payment_code", read_only=True)
    contactName = serializers.CharField(source="contact_name", read_only=True)
    contactPhone = serializers.CharField(source="contact_phone", read_only=True)
    contactEmail = serializers.CharField(source="contact_email", read_only=True)
    hasAccount = serializers.SerializerMethodField()

    class Meta(ShopListSerializer.Meta):
        fields = ShopListSerializer.Meta.fields + (
            "genreId",
            "sceneIds",
            "customSceneText",
            "prefecture",
            "city",
            "address1",
            "address2",
            "latitude",
            "longitude",
            "area",
            "description",
            "details",
            "holidays",
            "smokingType",
            "homepageUrl",
            "couponUsageStart",
            "couponUsageEnd",
            "couponUsageDays",
            "paymentSaicoin",
            "paymentTamapon",
            "paymentCash",
            "paymentCredit",
            "paymentCode",
            "services",
            "contactName",
            "contactPhone",
            "contactEmail",
            "images",
            "hasAccount",
        )
        read_only_fields = fields

    def get_sceneIds(self, obj: Shop) -> list[str]:
        return [str(scene.id) for scene in obj.scenes.all()]

    def get_hasAccount(self, obj: Shop) -> bool:
        return obj.linked_account is not None


class ShopUpsertSerializer(serializers.Serializer):
    """Schema check for create/update bodies, after the form rules passed."""

    merchantId = serializers.UUIDField()
    genreId = serializers.UUIDField()
    sceneIds = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    customSceneText = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    name = serializers.CharField(max_length=100)
    nameKana = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    phone = serializers.CharField(max_length=20)
    postalCode = serializers.RegexField(r"^[0-9]{7}$")
    prefecture = serializers.ChoiceField(choices=PREFECTURES)
    city = serializers.CharField(max_length=100)
    address1 = serializers.CharField(max_length=255)
    address2 = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    address = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    area = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    description = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    details = serializers.CharField(max_length=1000, required=False, allow_blank=True, default="")
    holidays = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    smokingType = serializers.ChoiceField(choices=Shop.SmokingType.choices)
    homepageUrl = serializers.URLField(max_length=500, required=False, allow_blank=True, default="")
    couponUsageStart = serializers.RegexField(TIME_PATTERN, required=False, allow_null=True, default=None)
    couponUsageEnd = serializers.RegexField(TIME_PATTERN, required=False, allow_null=True, default=None)
    couponUsageDays = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    paymentSaicoin = serializers.BooleanField(required=False, default=False)
    paymentTamapon = serializers.BooleanField(required=False, default=False)
    paymentCash = serializers.BooleanField(required=False, default=True)
    paymentCredit = serializers.JSONField(required=False, allow_null=True, default=None)
    paymentCode = serializers.JSONField(required=False, allow_null=True, default=None)
    services = serializers.JSONField(required=False, allow_null=True, default=None)
    contactName = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    contactPhone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    contactEmail = serializers.EmailField(max_length=255, required=False, allow_blank=True, default="")
    status = serializers.ChoiceField(choices=LifecycleStatus.choices, required=False, default=LifecycleStatus.REGISTERING)
    accountEmail = serializers.EmailField(max_length=255, required=False, allow_blank=True)
    passwordHash = serializers.CharField(required=False, allow_blank=True, write_only=True)

    def validate_merchantId(self, value):
        if not Merchant.objects.filter(id=value).exists():
            raise serializers.ValidationError("事業者が見つかりません")
        return value

    def validate_genreId(self, value):
        if not Genre.objects.filter(id=value).exists():
            raise serializers.ValidationError("ジャンルが見つかりません")
        return value

    def validate_sceneIds(self, value):
        unique_ids = list(dict.fromkeys(value))
        found = set(Scene.objects.filter(id__in=unique_ids).values_list("id", flat=True))
        missing = [str(scene_id) for scene_id in unique_ids if scene_id not in found]
        if missing:
            raise serializers.ValidationError("利用シーンが見つかりません")
        return unique_ids

    def validate_paymentCredit(self, value):
        return _validate_payment_blob(value, "brands")

    def validate_paymentCode(self, value):
        return _validate_payment_blob(value, "services")

    def validate_services(self, value):
        if value is None:
            return None
        if not isinstance(value, dict) or not all(isinstance(flag, bool) for flag in value.values()):
            raise serializers.ValidationError("サービス情報の形式が正しくありません")
        return value

    def to_model_fields(self) -> dict:
        data = self.validated_data
        return {
            "merchant_id": data["merchantId"],
            "genre_id": data["genreId"],
            "custom_scene_text": data["customSceneText"],
            "name": data["name"],
            "name_kana": data["nameKana"],
            "phone": data["phone"],
            "postal_code": data["postalCode"],
            "prefecture": data["prefecture"],
            "city": data["city"],
            "address1": data["address1"],
            "address2": data["address2"],
            "address": data["address"]
            or Shop.join_address(data["prefecture"], data["city"], data["address1"], data["address2"]),
            "latitude": Decimal(str(round(data["latitude"], 6))),
            "longitude": Decimal(str(round(data["longitude"], 6))),
            "area": data["area"],
            "description": data["description"],
            "details": data["details"],
            "holidays": data["holidays"],
            "smoking_type": data["smokingType"],
            "homepage_url": data["homepageUrl"],
            "coupon_usage_start": data["couponUsageStart"] or "",
            "coupon_usage_end": data["couponUsageEnd"] or "",
            "coupon_usage_days": data["couponUsageDays"],
            "payment_saicoin": data["paymentSaicoin"],
            "payment_tamapon": data["paymentTamapon"],
            "payment_cash": data["paymentCash"],
            "payment_credit": data["paymentCredit"],
            "payment_code": data["paymentCode"],
            "services": data["services"],
            "contact_name": data["contactName"],
            "contact_phone": data["contactPhone"],
            "contact_email": data["contactEmail"],
            "status": data["status"],
        }


def _validate_payment_blob(value, list_key: str):
    if value is None:
        return None
    if not isinstance(value, dict) or not isinstance(value.get(list_key, []), list):
        raise serializers.ValidationError("決済情報の形式が正しくありません")
    return value


class ShopStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=LifecycleStatus.choices)


class ShopBulkStatusSerializer(serializers.Serializer):
    shopIds = serializers.ListField(child=serializers.UUIDField(), allow_empty=False, max_length=500)
    status = serializers.ChoiceField(choices=LifecycleStatus.choices)
    idempotency_key = serializers.CharField(max_length=64, required=False, allow_blank=True)


class ShopFieldValidationSerializer(serializers.Serializer):
    field = serializers.CharField(max_length=50)
    values = serializers.DictField()
    shopId = serializers.UUIDField(required=False, allow_null=True, default=None)
