from __future__ import annotations

from django.contrib.auth import authenticate
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from .admin_security import get_console_permissions, get_console_role
from .models import AuditLog, User


class AccountMeSerializer(serializers.ModelSerializer):
    displayName = serializers.CharField(source="display_name", read_only=True)
    accountType = serializers.CharField(source="account_type", read_only=True)
    role = serializers.SerializerMethodField()
    merchantId = serializers.UUIDField(source="merchant_id", read_only=True, allow_null=True)
    shopId = serializers.UUIDField(source="shop_id", read_only=True, allow_null=True)
    permissions = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = User
        fields = (
            "id",
            "email",
            "displayName",
            "accountType",
            "role",
            "status",
            "merchantId",
            "shopId",
            "permissions",
            "createdAt",
        )
        read_only_fields = fields

    def get_role(self, obj: User) -> str:
        return get_console_role(obj)

    def get_permissions(self, obj: User) -> list[str]:
        return sorted(get_console_permissions(obj))


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        user = authenticate(
            request=self.context.get("request"),
            email=attrs.get("email"),
            password=attrs.get("password"),
        )
        if not user:
            raise serializers.ValidationError("メールアドレスまたはパスワードが正しくありません。")
        if user.status != User.Status.ACTIVE:
            raise serializers.ValidationError("このアカウントは現在利用できません。")
        attrs["user"] = user
        return attrs


class TokenRefreshRequestSerializer(serializers.Serializer):
    refresh = serializers.CharField()


class LogoutSerializer(serializers.Serializer):
    refresh = serializers.CharField()


class AuditLogSerializer(serializers.ModelSerializer):
    actorEmail = serializers.SerializerMethodField()
    actorRole = serializers.CharField(source="actor_role")
    targetType = serializers.CharField(source="target_type")
    targetId = serializers.CharField(source="target_id")
    occurredAt = serializers.DateTimeField(source="occurred_at")
    metadata = serializers.JSONField(source="metadata_json")
    before = serializers.JSONField(source="before_json")
    after = serializers.JSONField(source="after_json")
    errorCode = serializers.CharField(source="error_code")

    class Meta:
        model = AuditLog
        fields = (
            "id",
            "occurredAt",
            "actorEmail",
            "actorRole",
            "action",
            "targetType",
            "targetId",
            "before",
            "after",
            "metadata",
            "result",
            "errorCode",
        )
        read_only_fields = fields

    def get_actorEmail(self, obj: AuditLog) -> str:
        return obj.actor.email if obj.actor else ""


def _check_password(value: str) -> str:
    try:
        validate_password(value)
    except DjangoValidationError as exc:
        raise serializers.ValidationError("パスワードは8文字以上で入力してください") from exc
    return value


_PASSWORD_SET_REQUIRED = {"required": "トークンとパスワードが必要です", "blank": "トークンとパスワードが必要です"}


class PasswordSetSerializer(serializers.Serializer):
    token = serializers.CharField(error_messages=_PASSWORD_SET_REQUIRED)
    password = serializers.CharField(write_only=True, trim_whitespace=False, error_messages=_PASSWORD_SET_REQUIRED)

    def validate_password(self, value):
        return _check_password(value)


class AdminAccountSerializer(serializers.ModelSerializer):
    displayName = serializers.CharField(source="display_name", read_only=True)
    role = serializers.CharField(source="admin_role", read_only=True)
    roleLabel = serializers.CharField(source="get_admin_role_display", read_only=True)
    statusLabel = serializers.CharField(source="get_status_display", read_only=True)
    lastLoginAt = serializers.DateTimeField(source="last_login", read_only=True)
    registrationSentAt = serializers.DateTimeField(source="registration_sent_at", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = User
        fields = (
            "id",
            "email",
            "displayName",
            "role",
            "roleLabel",
            "status",
            "statusLabel",
            "lastLoginAt",
            "registrationSentAt",
            "createdAt",
            "updatedAt",
        )
        read_only_fields = fields


class AdminAccountCreateSerializer(serializers.Serializer):
    """Without a password the account stays pending until the mailed link is used."""

    email = serializers.EmailField(max_length=255)
    displayName = serializers.CharField(max_length=100)
    role = serializers.ChoiceField(choices=User.AdminRole.choices)
    password = serializers.CharField(required=False, allow_blank=True, write_only=True, trim_whitespace=False)

    def validate_password(self, value):
        return _check_password(value) if value else value


class AdminAccountUpdateSerializer(serializers.Serializer):
    email = serializers.EmailField(max_length=255, required=False)
    displayName = serializers.CharField(max_length=100, required=False)
    role = serializers.ChoiceField(choices=User.AdminRole.choices, required=False)
    status = serializers.ChoiceField(
        choices=[User.Status.ACTIVE.value, User.Status.SUSPENDED.value],
        required=False,
    )

    def to_model_fields(self) -> dict:
        mapping = {"email": "email", "displayName": "display_name", "role": "admin_role", "status": "status"}
        return {mapping[key]: value for key, value in self.validated_data.items()}
