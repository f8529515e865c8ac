from __future__ import annotations

import hashlib
import json
import logging
from typing import Any

from django.db import IntegrityError, transaction
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import BasePermission
from rest_framework.response import Response

from .models import AuditLog, IdempotencyRecord, User

logger = logging.getLogger(__name__)


class ConsoleRole:
    SYSADMIN = User.AdminRole.SYSADMIN.value
    OPERATOR = User.AdminRole.OPERATOR.value
    VIEWER = User.AdminRole.VIEWER.value
    MERCHANT = User.AccountType.MERCHANT.value
    SHOP = User.AccountType.SHOP.value


class ConsolePermission:
    MERCHANT_VIEW = "MERCHANT_VIEW"
    MERCHANT_UPDATE = "MERCHANT_UPDATE"
    MERCHANT_STATUS_UPDATE = "MERCHANT_STATUS_UPDATE"
    MERCHANT_ACCOUNT_ISSUE = "MERCHANT_ACCOUNT_ISSUE"
    SHOP_VIEW = "SHOP_VIEW"
    SHOP_UPDATE = "SHOP_UPDATE"
    SHOP_STATUS_UPDATE = "SHOP_STATUS_UPDATE"
    COUPON_VIEW = "COUPON_VIEW"
    COUPON_UPDATE = "COUPON_UPDATE"
    COUPON_STATUS_UPDATE = "COUPON_STATUS_UPDATE"
    COUPON_USAGE_VIEW = "COUPON_USAGE_VIEW"
    USER_VIEW = "USER_VIEW"
    MASTER_VIEW = "MASTER_VIEW"
    UPLOAD = "UPLOAD"
    AUDIT_LOG_VIEW = "AUDIT_LOG_VIEW"
    ADMIN_ACCOUNT_MANAGE = "ADMIN_ACCOUNT_MANAGE"
    PII_FULL_VIEW = "PII_FULL_VIEW"
    PII_EXPORT = "PII_EXPORT"
    COUPON_USAGE_PII_VIEW = "COUPON_USAGE_PII_VIEW"


_P = ConsolePermission

ROLE_PERMISSION_MATRIX: dict[str, set[str]] = {
    ConsoleRole.SYSADMIN: {
        value for key, value in vars(ConsolePermission).items() if key.isupper()
    },
    ConsoleRole.OPERATOR: {
        _P.MERCHANT_VIEW,
        _P.MERCHANT_UPDATE,
        _P.MERCHANT_STATUS_UPDATE,
        _P.MERCHANT_ACCOUNT_ISSUE,
        _P.SHOP_VIEW,
        _P.SHOP_UPDATE,
        _P.SHOP_STATUS_UPDATE,
        _P.COUPON_VIEW,
        _P.COUPON_UPDATE,
        _P.COUPON_STATUS_UPDATE,
        _P.COUPON_USAGE_VIEW,
        _P.USER_VIEW,
        _P.MASTER_VIEW,
        _P.UPLOAD,
    },
    ConsoleRole.VIEWER: {
        _P.MERCHANT_VIEW,
        _P.SHOP_VIEW,
        _P.COUPON_VIEW,
        _P.COUPON_USAGE_VIEW,
        _P.USER_VIEW,
        _P.MASTER_VIEW,
        _P.PII_FULL_VIEW,
    },
    ConsoleRole.MERCHANT: {
        _P.MERCHANT_VIEW,
        _P.MERCHANT_UPDATE,
        _P.SHOP_VIEW,
        _P.SHOP_UPDATE,
        _P.COUPON_VIEW,
        _P.COUPON_UPDATE,
        _P.COUPON_USAGE_VIEW,
        _P.MASTER_VIEW,
        _P.UPLOAD,
        _P.PII_FULL_VIEW,
        _P.PII_EXPORT,
    },
    ConsoleRole.SHOP: {
        _P.SHOP_VIEW,
        _P.SHOP_UPDATE,
        _P.COUPON_VIEW,
        _P.COUPON_UPDATE,
        _P.COUPON_USAGE_VIEW,
        _P.MASTER_VIEW,
        _P.UPLOAD,
    },
}


def get_console_role(user: User | None) -> str:
    if not user or not getattr(user, "is_authenticated", False):
        return ""
    if getattr(user, "is_superuser", False):
        return ConsoleRole.SYSADMIN
    account_type = getattr(user, "account_type", "")
    if account_type == User.AccountType.MERCHANT:
        return ConsoleRole.MERCHANT
    if account_type == User.AccountType.SHOP:
        return ConsoleRole.SHOP
    return getattr(user, "admin_role", "") or ConsoleRole.VIEWER


def get_console_permissions(user: User | None) -> set[str]:
    role = get_console_role(user)
    if not role:
        return set()
    if getattr(user, "status", User.Status.ACTIVE) == User.Status.SUSPENDED:
        return set()
    return set(ROLE_PERMISSION_MATRIX.get(role, set()))


def has_console_permission(user: User | None, permission: str) -> bool:
    return permission in get_console_permissions(user)


class ConsoleRBACPermission(BasePermission):
    message = "管理権限がありません。"

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = getattr(view, "required_permissions", None)
        if not required:
            return False

        required_for_method = required.get(request.method)
        if required_for_method is None:
            # HEAD is answered by the GET handler.
            if request.method == "HEAD":
                required_for_method = required.get("GET")
            if required_for_method is None:
                return False

        if isinstance(required_for_method, str):
            required_permissions = {required_for_method}
        else:
            required_permissions = set(required_for_method)

        missing = required_permissions - get_console_permissions(user)
        if missing:
            self.message = "この操作を行う権限がありません。"
            return False
        return True


def get_client_ip(request) -> str:
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()
    return str(request.META.get("REMOTE_ADDR") or "")


def log_audit_event(
    request,
    *,
    action: str,
    target_type: str = "",
    target_id: str = "",
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
    metadata: dict[str, Any] | None = None,
    result: str = AuditLog.Result.SUCCESS,
    error_code: str = "",
    idempotency_key: str = "",
    actor: User | None = None,
) -> None:
    user = actor
    if user is None and request is not None and getattr(request, "user", None) and request.user.is_authenticated:
        user = request.user
    try:
        with transaction.atomic():
            AuditLog.objects.create(
                actor=user,
                actor_role=get_console_role(user) if user else "",
                action=action,
                target_type=target_type,
                target_id=str(target_id or ""),
                request_id=str(request.headers.get("X-Request-Id", "")) if request else "",
                idempotency_key=idempotency_key,
                ip=(get_client_ip(request) or None) if request else None,
                user_agent=str(request.headers.get("User-Agent", "")) if request else "",
                before_json=before or {},
                after_json=after or {},
                metadata_json=metadata or {},
                result=result,
                error_code=error_code,
            )
    except Exception:
        # Audit logging must not break operational APIs.
        logger.exception("audit log write failed for %s", action)


def _stable_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, sort_keys=True, separators=(",", ":"), default=str)


def build_request_hash(payload: dict[str, Any]) -> str:
    return hashlib.sha256(_stable_json(payload).encode("utf-8")).hexdigest()


def extract_idempotency_key(request, payload: dict[str, Any]) -> str:
    body_key = payload.get("idempotency_key") or payload.get("idempotencyKey")
    header_key = request.headers.get("Idempotency-Key")
    return str(body_key or header_key or "").strip()


def get_idempotent_replay_response(*, key: str, action: str, request_hash: str) -> Response | None:
    if not key:
        return None

    record = IdempotencyRecord.objects.filter(key=key).first()
    if not record:
        return None

    if record.action != action:
        raise ValidationError({"idempotency_key": "このキーは別の操作で使用済みです。"})
    if record.request_hash != request_hash:
        raise ValidationError({"idempotency_key": "同じキーで異なるリクエスト内容は送信できません。"})
    return Response(record.response_body, status=record.response_status_code)


def save_idempotent_response(*, request, key: str, action: str, request_hash: str, response: Response) -> None:
    if not key:
        return

    user = request.user if request and getattr(request, "user", None) and request.user.is_authenticated else None
    try:
        IdempotencyRecord.objects.get_or_create(
            key=key,
            defaults={
                "action": action,
                "actor": user,
                "request_hash": request_hash,
                "response_status_code": int(response.status_code),
                "response_body": response.data if isinstance(response.data, dict) else {},
            },
        )
    except IntegrityError:
        return


def scope_queryset(queryset, user: User | None, *, merchant_field: str, shop_field: str | None = None):
    """Narrow ``queryset`` to what a merchant or shop account may see."""
    role = get_console_role(user)
    if role == ConsoleRole.MERCHANT:
        if not user.merchant_id:
            return queryset.none()
        return queryset.filter(**{merchant_field: user.merchant_id})
    if role == ConsoleRole.SHOP:
        if not shop_field or not user.shop_id:
            return queryset.none()
        return queryset.filter(**{shop_field: user.shop_id})
    return queryset


def copy_for_audit(instance, fields: tuple[str, ...]) -> dict[str, Any]:
    return {field: getattr(instance, field, None) for field in fields}
