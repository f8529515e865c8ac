from __future__ import annotations

from rest_framework import serializers

from apps.accounts.models import User
from apps.common.choices import LifecycleStatus
from apps.common.constants import PREFECTURES
from apps.shops.form_rules import is_valid_kana, is_valid_phone

from .models import Merchant

ACCOUNT_STATUS_LABELS = dict(User.Status.choices)


class MerchantListSerializer(serializers.ModelSerializer):
    nameKana = serializers.CharField(source="name_kana", read_only=True)
    representativeName = serializers.CharField(source="representative_name", read_only=True)
    representativeNameKana = serializers.CharField(source="representative_name_kana", read_only=True)
    representativePhone = serializers.CharField(source="representative_phone", read_only=True)
    postalCode = serializers.CharField(source="postal_code", read_only=True)
    address = serializers.SerializerMethodField()
    statusLabel = serializers.CharField(source="get_status_display", read_only=True)
    contractStatus = serializers.CharField(source="contract_status", read_only=True)
    contractStatusLabel = serializers.CharField(source="get_contract_status_display", read_only=True)
    accountStatus = serializers.CharField(source="account_status", read_only=True)
    accountStatusLabel = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Merchant
        fields = (
            "id",
            "name",
            "nameKana",
            "representativeName",
            "representativeNameKana",
            "representativePhone",
            "phone",
            "email",
            "postalCode",
            "prefecture",
            "city",
            "address1",
            "address2",
            "address",
            "status",
            "statusLabel",
            "contractStatus",
            "contractStatusLabel",
            "accountStatus",
            "accountStatusLabel",
            "createdAt",
            "updatedAt",
        )
        read_only_fields = fields

    def get_address(self, obj: Merchant) -> str:
        return "".join(part for part in (obj.prefecture, obj.city, obj.address1, obj.address2) if part)

    def get_accountStatusLabel(self, obj: Merchant) -> str:
        return ACCOUNT_STATUS_LABELS.get(obj.account_status, ACCOUNT_STATUS_LABELS[User.Status.INACTIVE])


class MerchantDetailSerializer(MerchantListSerializer):
    representativeNameLast = serializers.CharField(source="representative_name_last", read_only=True)
    representativeNameFirst = serializers.CharField(source="representative_name_first", read_only=True)
    representativeNameLastKana = serializers.CharField(source="representative_name_last_kana", read_only=True)
    representativeNameFirstKana = serializers.CharField(source="representative_name_first_kana", read_only=True)
    businessType = serializers.CharField(source="business_type", read_only=True)
    accountEmail = serializers.SerializerMethodField()
    shopCount = serializers.SerializerMethodField()

    class Meta(MerchantListSerializer.Meta):
        fields = MerchantListSerializer.Meta.fields + (
            "representativeNameLast",
            "representativeNameFirst",
            "representativeNameLastKana",
            "representativeNameFirstKana",
            "businessType",
            "website",
            "accountEmail",
            "shopCount",
        )
        read_only_fields = fields

    def get_accountEmail(self, obj: Merchant) -> str:
        account = obj.linked_account
        return account.email if account else ""

    def get_shopCount(self, obj: Merchant) -> int:
        return obj.shops.count()


class MerchantWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    nameKana = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    representativeNameLast = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    representativeNameFirst = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    representativeNameLastKana = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    representativeNameFirstKana = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    representativePhone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    email = serializers.EmailField(max_length=255)
    postalCode = serializers.RegexField(r"^[0-9]{7}$", required=False, allow_blank=True, default="")
    prefecture = serializers.ChoiceField(choices=PREFECTURES, required=False, allow_blank=True, default="")
    city = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    address1 = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    address2 = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    businessType = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    website = serializers.URLField(max_length=500, required=False, allow_blank=True, default="")
    status = serializers.ChoiceField(choices=LifecycleStatus.choices, required=False)
    contractStatus = serializers.ChoiceField(choices=Merchant.ContractStatus.choices, required=False)

    FIELD_MAP = {
        "name": "name",
        "nameKana": "name_kana",
        "representativeNameLast": "representative_name_last",
        "representativeNameFirst": "representative_name_first",
        "representativeNameLastKana": "representative_name_last_kana",
        "representativeNameFirstKana": "representative_name_first_kana",
        "representativePhone": "representative_phone",
        "phone": "phone",
        "email": "email",
        "postalCode": "postal_code",
        "prefecture": "prefecture",
        "city": "city",
        "address1": "address1",
        "address2": "address2",
        "businessType": "business_type",
        "website": "website",
        "status": "status",
        "contractStatus": "contract_status",
    }

    def _validate_kana(self, value: str) -> str:
        if value and not is_valid_kana(value):
            raise serializers.ValidationError("全角カタカナで入力してください")
        return value

    def validate_nameKana(self, value):
        return self._validate_kana(value)

    def validate_representativeNameLastKana(self, value):
        return self._validate_kana(value)

    def validate_representativeNameFirstKana(self, value):
        return self._validate_kana(value)

    def _validate_phone(self, value: str) -> str:
        if value and not is_valid_phone(value):
            raise serializers.ValidationError("有効な電話番号を入力してください（10-11桁の数字）")
        return value

    def validate_phone(self, value):
        return self._validate_phone(value)

    def validate_representativePhone(self, value):
        return self._validate_phone(value)

    def to_model_fields(self) -> dict:
        return {self.FIELD_MAP[key]: value for key, value in self.validated_data.items() if key in self.FIELD_MAP}


class MerchantStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=LifecycleStatus.choices, required=False)
    contractStatus = serializers.ChoiceField(choices=Merchant.ContractStatus.choices, required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("変更するステータスを指定してください")
        return attrs


class MerchantIssueAccountsSerializer(serializers.Serializer):
    merchantIds = serializers.ListField(child=serializers.UUIDField(), allow_empty=False, max_length=200)
    idempotency_key = serializers.CharField(max_length=64, required=False, allow_blank=True)
