from __future__ import annotations

from rest_framework import serializers

from apps.shops.models import Shop

from .models import Coupon, CouponUsage


class CouponSerializer(serializers.ModelSerializer):
    shopId = serializers.UUIDField(source="shop_id", read_only=True)
    shopName = serializers.CharField(source="shop.name", read_only=True)
    merchantId = serializers.UUIDField(source="shop.merchant_id", read_only=True)
    merchantName = serializers.CharField(source="shop.merchant.name", read_only=True)
    imageUrl = serializers.CharField(source="image_url", read_only=True)
    statusLabel = serializers.CharField(source="get_status_display", read_only=True)
    isPublic = serializers.BooleanField(source="is_public", read_only=True)
    publicLabel = serializers.CharField(source="public_label", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Coupon
        fields = (
            "id",
            "shopId",
            "shopName",
            "merchantId",
            "merchantName",
            "title",
            "description",
            "conditions",
            "imageUrl",
            "status",
            "statusLabel",
            "isPublic",
            "publicLabel",
            "createdAt",
            "updatedAt",
        )
        read_only_fields = fields


class CouponWriteSerializer(serializers.Serializer):
    shopId = serializers.UUIDField()
    title = serializers.CharField(max_length=100)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    conditions = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    imageUrl = serializers.URLField(max_length=500, required=False, allow_blank=True, default="")
    isPublic = serializers.BooleanField(required=False, default=False)

    FIELD_MAP = {
        "shopId": "shop_id",
        "title": "title",
        "description": "description",
        "conditions": "conditions",
        "imageUrl": "image_url",
        "isPublic": "is_public",
    }

    def validate_shopId(self, value):
        shops = self.context.get("shops", Shop.objects.all())
        if not shops.filter(id=value).exists():
            raise serializers.ValidationError("店舗が見つかりません")
        return value

    def to_model_fields(self) -> dict:
        return {self.FIELD_MAP[key]: value for key, value in self.validated_data.items()}


class CouponStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Coupon.Status.choices, required=False)
    isPublic = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("変更する項目を指定してください")
        return attrs


class CouponUsageSerializer(serializers.ModelSerializer):
    usageId = serializers.CharField(source="id", read_only=True)
    couponId = serializers.UUIDField(source="coupon_id", read_only=True)
    couponName = serializers.CharField(source="coupon.title", read_only=True)
    shopId = serializers.UUIDField(source="shop_id", read_only=True)
    shopName = serializers.CharField(source="shop.name", read_only=True)
    memberId = serializers.UUIDField(source="member_id", read_only=True, allow_null=True)
    nickname = serializers.SerializerMethodField()
    email = serializers.SerializerMethodField()
    gender = serializers.SerializerMethodField()
    genderLabel = serializers.SerializerMethodField()
    birthDate = serializers.SerializerMethodField()
    address = serializers.SerializerMethodField()
    usedAt = serializers.DateTimeField(source="used_at", read_only=True)

    class Meta:
        model = CouponUsage
        fields = (
            "usageId",
            "couponId",
            "couponName",
            "shopId",
            "shopName",
            "memberId",
            "nickname",
            "email",
            "gender",
            "genderLabel",
            "birthDate",
            "address",
            "usedAt",
        )
        read_only_fields = fields

    def get_nickname(self, obj: CouponUsage) -> str:
        return obj.member.nickname if obj.member_id else ""

    def get_email(self, obj: CouponUsage) -> str:
        return obj.member.email if obj.member_id else ""

    def get_gender(self, obj: CouponUsage) -> int | None:
        return obj.member.gender if obj.member_id else None

    def get_genderLabel(self, obj: CouponUsage) -> str:
        return obj.member.get_gender_display() if obj.member_id else "未回答"

    def get_birthDate(self, obj: CouponUsage) -> str | None:
        if not obj.member_id or obj.member.birth_date is None:
            return None
        return obj.member.birth_date.isoformat()

    def get_address(self, obj: CouponUsage) -> str:
        return obj.member.full_address if obj.member_id else ""
