from __future__ import annotations

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.views import APIView

from apps.accounts.admin_security import (
    ConsolePermission,
    ConsoleRBACPermission,
    copy_for_audit,
    log_audit_event,
    scope_queryset,
)
from apps.common.csv_export import (
    build_csv_content,
    build_csv_filename,
    collect_export_rows,
    csv_response,
    format_csv_datetime,
)
from apps.common.response import success_response
from apps.common.search import SearchForm, build_list_response
from apps.shops.models import Shop

from .filters import (
    COUPON_SEARCH_DEFAULTS,
    COUPON_USAGE_PII_POLICY,
    USAGE_SEARCH_DEFAULTS,
    coupon_matcher,
    filter_coupons,
    filter_usages,
    normalize_usage_params,
    usage_matcher,
)
from .models import Coupon, CouponUsage
from .serializers import CouponSerializer, CouponStatusUpdateSerializer, CouponUsageSerializer, CouponWriteSerializer

COUPON_STATUS_TRANSITIONS: dict[str, set[str]] = {
    Coupon.Status.PENDING: {Coupon.Status.APPROVED, Coupon.Status.SUSPENDED},
    Coupon.Status.APPROVED: {Coupon.Status.SUSPENDED},
    Coupon.Status.SUSPENDED: {Coupon.Status.APPROVED},
}

COUPON_CSV_COLUMNS = [
    ("merchantName", "事業者名"),
    ("shopName", "店舗名"),
    ("title", "クーポン名"),
    ("statusLabel", "承認ステータス"),
    ("publicLabel", "公開ステータス"),
    ("createdAt", "作成日時"),
    ("updatedAt", "更新日時"),
]

USAGE_CSV_COLUMNS = [
    ("usageId", "クーポン利用ID"),
    ("couponId", "クーポンID"),
    ("couponName", "クーポン名"),
    ("shopName", "店舗名"),
    ("email", "メールアドレス"),
    ("nickname", "ニックネーム"),
    ("genderLabel", "性別"),
    ("birthDate", "生年月日"),
    ("address", "住所"),
    ("usedAt", "利用日時"),
]

_COUPON_COLUMN_KEYS = {"couponId", "couponName"}


def _assert_transition(current: str, next_value: str) -> None:
    if current == next_value:
        return
    if next_value not in COUPON_STATUS_TRANSITIONS.get(current, set()):
        raise ValidationError({"status": f"このステータスには変更できません。（{current} → {next_value}）"})


def _coupon_queryset(user):
    queryset = Coupon.objects.select_related("shop", "shop__merchant")
    return scope_queryset(queryset, user, merchant_field="shop__merchant_id", shop_field="shop_id")


def _usage_queryset(user):
    queryset = CouponUsage.objects.select_related("coupon", "shop", "member")
    return scope_queryset(queryset, user, merchant_field="shop__merchant_id", shop_field="shop_id")


def _writable_shops(user):
    return scope_queryset(Shop.objects.all(), user, merchant_field="merchant_id", shop_field="id")


class CouponListCreateAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {
        "GET": {ConsolePermission.COUPON_VIEW},
        "POST": {ConsolePermission.COUPON_UPDATE},
    }

    def get(self, request, *args, **kwargs):
        form = SearchForm.from_params(COUPON_SEARCH_DEFAULTS, request.query_params)
        queryset = filter_coupons(_coupon_queryset(request.user), form.applied).order_by("-created_at", "id")
        return build_list_response(
            request,
            form=form,
            queryset=queryset,
            serialize=lambda coupon: CouponSerializer(coupon).data,
            version_fields=("updated_at", "shop__updated_at", "shop__merchant__updated_at"),
        )

    def post(self, request, *args, **kwargs):
        serializer = CouponWriteSerializer(data=request.data, context={"shops": _writable_shops(request.user)})
        serializer.is_valid(raise_exception=True)
        coupon = Coupon.objects.create(**serializer.to_model_fields())
        if coupon.is_public and coupon.status != Coupon.Status.APPROVED:
            # Publication waits for approval.
            coupon.is_public = False
            coupon.save(update_fields=["is_public", "updated_at"])
        log_audit_event(
            request,
            action="COUPON_CREATE",
            target_type="Coupon",
            target_id=str(coupon.id),
            after=copy_for_audit(coupon, ("title", "status", "is_public")),
        )
        coupon = _coupon_queryset(request.user).get(id=coupon.id)
        return success_response(
            CouponSerializer(coupon).data,
            message="クーポンを作成しました",
            status_code=status.HTTP_201_CREATED,
        )


class CouponDetailAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {
        "GET": {ConsolePermission.COUPON_VIEW},
        "PATCH": {ConsolePermission.COUPON_UPDATE},
        "PUT": {ConsolePermission.COUPON_UPDATE},
    }

    def get(self, request, coupon_id, *args, **kwargs):
        coupon = get_object_or_404(_coupon_queryset(request.user), id=coupon_id)
        return success_response(CouponSerializer(coupon).data)

    def put(self, request, coupon_id, *args, **kwargs):
        return self._update(request, coupon_id, partial=False)

    def patch(self, request, coupon_id, *args, **kwargs):
        return self._update(request, coupon_id, partial=True)

    def _update(self, request, coupon_id, *, partial: bool):
        serializer = CouponWriteSerializer(
            data=request.data,
            partial=partial,
            context={"shops": _writable_shops(request.user)},
        )
        serializer.is_valid(raise_exception=True)
        fields = serializer.to_model_fields()

        with transaction.atomic():
            coupon = get_object_or_404(
                scope_queryset(
                    Coupon.objects.select_for_update(),
                    request.user,
                    merchant_field="shop__merchant_id",
                    shop_field="shop_id",
                ),
                id=coupon_id,
            )
            before = copy_for_audit(coupon, ("title", "status", "is_public"))
            if fields.get("is_public") and coupon.status != Coupon.Status.APPROVED:
                raise ValidationError({"isPublic": "承認済みのクーポンのみ公開できます。"})
            for name, value in fields.items():
                setattr(coupon, name, value)
            coupon.save()

        log_audit_event(
            request,
            action="COUPON_UPDATE",
            target_type="Coupon",
            target_id=str(coupon.id),
            before=before,
            after=copy_for_audit(coupon, ("title", "status", "is_public")),
        )
        coupon = _coupon_queryset(request.user).get(id=coupon.id)
        return success_response(CouponSerializer(coupon).data, message="クーポンを更新しました")


class CouponStatusAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"PATCH": {ConsolePermission.COUPON_STATUS_UPDATE}}

    def patch(self, request, coupon_id, *args, **kwargs):
        serializer = CouponStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payload = serializer.validated_data

        with transaction.atomic():
            coupon = get_object_or_404(
                scope_queryset(
                    Coupon.objects.select_for_update(),
                    request.user,
                    merchant_field="shop__merchant_id",
                    shop_field="shop_id",
                ),
                id=coupon_id,
            )
            before = copy_for_audit(coupon, ("status", "is_public"))
            if "status" in payload:
                _assert_transition(coupon.status, payload["status"])
                coupon.status = payload["status"]
            if "isPublic" in payload:
                if payload["isPublic"] and coupon.status != Coupon.Status.APPROVED:
                    raise ValidationError({"isPublic": "承認済みのクーポンのみ公開できます。"})
                coupon.is_public = payload["isPublic"]
            if coupon.status == Coupon.Status.SUSPENDED:
                coupon.is_public = False
            coupon.save(update_fields=["status", "is_public", "updated_at"])

        log_audit_event(
            request,
            action="COUPON_STATUS_UPDATE",
            target_type="Coupon",
            target_id=str(coupon.id),
            before=before,
            after=copy_for_audit(coupon, ("status", "is_public")),
        )
        return success_response(
            {
                "id": str(coupon.id),
                "status": coupon.status,
                "previousStatus": before["status"],
                "isPublic": coupon.is_public,
                "previousIsPublic": before["is_public"],
            },
            message="ステータスを更新しました",
        )


class CouponExportAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"GET": {ConsolePermission.COUPON_VIEW}}

    def get(self, request, *args, **kwargs):
        form = SearchForm.from_params(COUPON_SEARCH_DEFAULTS, request.query_params)
        queryset = filter_coupons(_coupon_queryset(request.user), form.applied).order_by("-created_at", "id")

        def serialize(coupon: Coupon) -> dict:
            return {
                "merchantName": coupon.shop.merchant.name,
                "shopName": coupon.shop.name,
                "title": coupon.title,
                "statusLabel": coupon.get_status_display(),
                "publicLabel": coupon.public_label,
                "createdAt": format_csv_datetime(coupon.created_at),
                "updatedAt": format_csv_datetime(coupon.updated_at),
            }

        rows = collect_export_rows(queryset, serialize=serialize, matches=coupon_matcher(form.applied), label="coupons")
        columns = COUPON_CSV_COLUMNS
        if not request.user.is_admin_account:
            columns = [column for column in columns if column[0] != "merchantName"]
        return csv_response(build_csv_content(columns, rows), build_csv_filename("coupons"))


class CouponUsageHistoryAPIView(APIView):
    """Usage history search; criteria come in the body so PII filters stay out of URLs."""

    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"POST": {ConsolePermission.COUPON_USAGE_VIEW}}
    export = False

    def post(self, request, coupon_id=None, *args, **kwargs):
        coupon = None
        queryset = _usage_queryset(request.user)
        if coupon_id is not None:
            coupon = get_object_or_404(_coupon_queryset(request.user), id=coupon_id)
            queryset = queryset.filter(coupon=coupon)

        form = SearchForm.from_params(
            USAGE_SEARCH_DEFAULTS,
            normalize_usage_params(request.data),
            user=request.user,
            pii_policy=COUPON_USAGE_PII_POLICY,
        )
        queryset = filter_usages(queryset, form.applied).order_by("-used_at", "-id")
        if self.export:
            return self._export(request, form, queryset, coupon)

        extra = {"coupon": {"id": str(coupon.id), "title": coupon.title}} if coupon else None
        return build_list_response(
            request,
            form=form,
            queryset=queryset,
            serialize=lambda usage: dict(CouponUsageSerializer(usage).data),
            pii_policy=COUPON_USAGE_PII_POLICY,
            audit_target="CouponUsage",
            version_fields=("used_at", "coupon__updated_at", "shop__updated_at", "member__updated_at"),
            extra=extra,
        )

    def _export(self, request, form, queryset, coupon):
        def serialize(usage: CouponUsage) -> dict:
            row = dict(CouponUsageSerializer(usage).data)
            row["birthDate"] = format_csv_datetime(usage.member.birth_date) if usage.member_id else ""
            row["usedAt"] = format_csv_datetime(usage.used_at)
            return row

        rows = collect_export_rows(
            queryset,
            serialize=serialize,
            matches=usage_matcher(form.applied),
            label="coupon usages",
        )
        columns = COUPON_USAGE_PII_POLICY.columns(USAGE_CSV_COLUMNS, request.user)
        if coupon is not None:
            columns = [column for column in columns if column[0] not in _COUPON_COLUMN_KEYS]
        if COUPON_USAGE_PII_POLICY.allows(request.user):
            log_audit_event(
                request,
                action="PII_EXPORT",
                target_type="CouponUsage",
                metadata={"endpoint": request.path, "count": len(rows)},
            )
        else:
            rows = COUPON_USAGE_PII_POLICY.strip_rows(rows, request.user)
        prefix = "coupon_usage_history" if coupon is None else f"coupon_usage_history_{coupon.id}"
        return csv_response(build_csv_content(columns, rows), build_csv_filename(prefix))
