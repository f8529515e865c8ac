from __future__ import annotations

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.views import APIView

from apps.accounts.admin_security import (
    ConsolePermission,
    ConsoleRBACPermission,
    ConsoleRole,
    build_request_hash,
    copy_for_audit,
    extract_idempotency_key,
    get_console_role,
    get_idempotent_replay_response,
    log_audit_event,
    save_idempotent_response,
    scope_queryset,
)
from apps.accounts.models import AuditLog, User
from apps.common.csv_export import (
    build_csv_content,
    build_csv_filename,
    collect_export_rows,
    csv_response,
    format_csv_datetime,
)
from apps.common.response import error_response, success_response
from apps.common.search import PiiPolicy, SearchForm, build_list_response

from .filters import MERCHANT_PII_POLICY, MERCHANT_SEARCH_DEFAULTS, filter_merchants, merchant_matcher
from .models import Merchant
from .serializers import (
    MerchantDetailSerializer,
    MerchantIssueAccountsSerializer,
    MerchantListSerializer,
    MerchantStatusUpdateSerializer,
    MerchantWriteSerializer,
)
from .services import issue_merchant_account, send_registration_mail

MERCHANT_CSV_COLUMNS = [
    ("name", "事業者名"),
    ("nameKana", "事業者名（カナ）"),
    ("representativeName", "代表者名"),
    ("representativeNameKana", "代表者名（カナ）"),
    ("representativePhone", "電話番号"),
    ("email", "メールアドレス"),
    ("postalCode", "郵便番号"),
    ("prefecture", "都道府県"),
    ("city", "市区町村"),
    ("address1", "番地"),
    ("address2", "建物名・部屋番号"),
    ("accountStatusLabel", "アカウント発行"),
    ("contractStatusLabel", "契約ステータス"),
    ("createdAt", "登録日"),
]

MERCHANT_EXPORT_PII_POLICY = PiiPolicy(
    filter_fields=MERCHANT_PII_POLICY.filter_fields,
    output_fields=MERCHANT_PII_POLICY.output_fields,
    permission=ConsolePermission.PII_EXPORT,
)

_AUDIT_FIELDS = ("name", "email", "status", "contract_status")


def _merchant_queryset(user):
    queryset = Merchant.objects.select_related("account")
    return scope_queryset(queryset, user, merchant_field="id", shop_field="shops__id")


def _get_scoped_merchant(request, merchant_id) -> Merchant:
    return get_object_or_404(_merchant_queryset(request.user), id=merchant_id)


def _detail_payload(request, merchant: Merchant) -> dict:
    data = MerchantDetailSerializer(merchant).data
    if MERCHANT_PII_POLICY.allows(request.user):
        log_audit_event(
            request,
            action="PII_FULL_VIEW",
            target_type="Merchant",
            target_id=str(merchant.id),
            metadata={"endpoint": request.path},
        )
        return data
    return MERCHANT_PII_POLICY.strip_row(dict(data), request.user)


def _require_admin_account(user) -> None:
    if not user.is_admin_account:
        raise PermissionDenied("この操作を行う権限がありません。")


class MerchantListCreateAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {
        "GET": {ConsolePermission.MERCHANT_VIEW},
        "POST": {ConsolePermission.MERCHANT_UPDATE},
    }

    def get(self, request, *args, **kwargs):
        form = SearchForm.from_params(
            MERCHANT_SEARCH_DEFAULTS,
            request.query_params,
            user=request.user,
            pii_policy=MERCHANT_PII_POLICY,
        )
        queryset = filter_merchants(_merchant_queryset(request.user), form.applied).order_by("-created_at", "id")
        return build_list_response(
            request,
            form=form,
            queryset=queryset,
            serialize=lambda merchant: dict(MerchantListSerializer(merchant).data),
            pii_policy=MERCHANT_PII_POLICY,
            audit_target="Merchant",
            version_fields=("updated_at", "account__updated_at"),
        )

    def post(self, request, *args, **kwargs):
        _require_admin_account(request.user)
        serializer = MerchantWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        merchant = Merchant.objects.create(**serializer.to_model_fields())
        log_audit_event(
            request,
            action="MERCHANT_CREATE",
            target_type="Merchant",
            target_id=str(merchant.id),
            after=copy_for_audit(merchant, _AUDIT_FIELDS),
        )
        return success_response(
            _detail_payload(request, merchant),
            message="事業者を登録しました",
            status_code=status.HTTP_201_CREATED,
        )


class MerchantMeAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"GET": {ConsolePermission.MERCHANT_VIEW}}

    def get(self, request, *args, **kwargs):
        if get_console_role(request.user) != ConsoleRole.MERCHANT or not request.user.merchant_id:
            return error_response(
                "MERCHANT_NOT_LINKED",
                "事業者アカウントではありません",
                status_code=status.HTTP_404_NOT_FOUND,
            )
        return success_response(_detail_payload(request, _get_scoped_merchant(request, request.user.merchant_id)))


class MerchantDetailAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {
        "GET": {ConsolePermission.MERCHANT_VIEW},
        "PUT": {ConsolePermission.MERCHANT_UPDATE},
        "PATCH": {ConsolePermission.MERCHANT_UPDATE},
    }

    def get(self, request, merchant_id, *args, **kwargs):
        return success_response(_detail_payload(request, _get_scoped_merchant(request, merchant_id)))

    def put(self, request, merchant_id, *args, **kwargs):
        return self._update(request, merchant_id, partial=False)

    def patch(self, request, merchant_id, *args, **kwargs):
        return self._update(request, merchant_id, partial=True)

    def _update(self, request, merchant_id, *, partial: bool):
        serializer = MerchantWriteSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        fields = serializer.to_model_fields()
        if not request.user.is_admin_account:
            # Lifecycle and contract changes stay with the platform side.
            fields.pop("status", None)
            fields.pop("contract_status", None)

        with transaction.atomic():
            merchant = get_object_or_404(
                scope_queryset(Merchant.objects.select_for_update(), request.user, merchant_field="id"),
                id=merchant_id,
            )
            before = copy_for_audit(merchant, _AUDIT_FIELDS)
            for name, value in fields.items():
                setattr(merchant, name, value)
            merchant.save()

        log_audit_event(
            request,
            action="MERCHANT_UPDATE",
            target_type="Merchant",
            target_id=str(merchant.id),
            before=before,
            after=copy_for_audit(merchant, _AUDIT_FIELDS),
        )
        return success_response(
            _detail_payload(request, _get_scoped_merchant(request, merchant.id)),
            message="事業者情報を更新しました",
        )


class MerchantStatusAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"PATCH": {ConsolePermission.MERCHANT_STATUS_UPDATE}}

    def patch(self, request, merchant_id, *args, **kwargs):
        serializer = MerchantStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payload = serializer.validated_data

        with transaction.atomic():
            merchant = get_object_or_404(Merchant.objects.select_for_update(), id=merchant_id)
            before = copy_for_audit(merchant, ("status", "contract_status"))
            if "status" in payload:
                merchant.status = payload["status"]
            if "contractStatus" in payload:
                merchant.contract_status = payload["contractStatus"]
            merchant.save(update_fields=["status", "contract_status", "updated_at"])

        log_audit_event(
            request,
            action="MERCHANT_STATUS_UPDATE",
            target_type="Merchant",
            target_id=str(merchant.id),
            before=before,
            after=copy_for_audit(merchant, ("status", "contract_status")),
        )
        return success_response(
            {
                "id": str(merchant.id),
                "status": merchant.status,
                "previousStatus": before["status"],
                "contractStatus": merchant.contract_status,
                "previousContractStatus": before["contract_status"],
            },
            message="ステータスを更新しました",
        )


class MerchantIssueAccountsAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"POST": {ConsolePermission.MERCHANT_ACCOUNT_ISSUE}}

    def post(self, request, *args, **kwargs):
        serializer = MerchantIssueAccountsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payload = serializer.validated_data
        merchant_ids = list(dict.fromkeys(payload["merchantIds"]))
        idempotency_key = extract_idempotency_key(request, payload)
        request_hash = build_request_hash({"merchantIds": sorted(str(merchant_id) for merchant_id in merchant_ids)})
        replay_response = get_idempotent_replay_response(
            key=idempotency_key,
            action="admin.merchants.issue_accounts",
            request_hash=request_hash,
        )
        if replay_response is not None:
            return replay_response

        merchants = {
            merchant.id: merchant
            for merchant in Merchant.objects.select_related("account").filter(id__in=merchant_ids)
        }
        results = []
        for merchant_id in merchant_ids:
            merchant = merchants.get(merchant_id)
            if merchant is None:
                results.append(
                    {"merchantId": str(merchant_id), "issued": False, "reason": "事業者が見つかりません", "mailSent": False}
                )
                continue
            result = issue_merchant_account(merchant)
            log_audit_event(
                request,
                action="MERCHANT_ACCOUNT_ISSUE",
                target_type="Merchant",
                target_id=str(merchant.id),
                metadata=result.as_dict(),
                result=AuditLog.Result.SUCCESS if result.issued else AuditLog.Result.FAIL,
                error_code="" if result.issued else "NOT_ISSUED",
                idempotency_key=idempotency_key,
            )
            results.append(result.as_dict())

        issued_count = sum(1 for row in results if row["issued"])
        response = success_response(
            {
                "results": results,
                "issuedCount": issued_count,
                "failedCount": len(results) - issued_count,
            },
            message=f"{issued_count}件のアカウントを発行しました",
        )
        save_idempotent_response(
            request=request,
            key=idempotency_key,
            action="admin.merchants.issue_accounts",
            request_hash=request_hash,
            response=response,
        )
        return response


class MerchantResendRegistrationAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"POST": {ConsolePermission.MERCHANT_ACCOUNT_ISSUE}}

    def post(self, request, merchant_id, *args, **kwargs):
        merchant = get_object_or_404(Merchant.objects.select_related("account"), id=merchant_id)
        account = merchant.linked_account
        if account is None:
            return error_response(
                "ACCOUNT_NOT_ISSUED",
                "アカウントが発行されていません",
                status_code=status.HTTP_409_CONFLICT,
            )
        if account.status == User.Status.ACTIVE:
            return error_response(
                "ACCOUNT_ALREADY_ACTIVE",
                "アカウントは登録済みです",
                status_code=status.HTTP_409_CONFLICT,
            )
        if not send_registration_mail(account, merchant):
            return error_response(
                "MAIL_SEND_FAILED",
                "登録メールの送信に失敗しました",
                status_code=status.HTTP_502_BAD_GATEWAY,
            )
        log_audit_event(
            request,
            action="MERCHANT_REGISTRATION_RESEND",
            target_type="Merchant",
            target_id=str(merchant.id),
        )
        return success_response(
            {"merchantId": str(merchant.id), "sentAt": account.registration_sent_at},
            message="登録メールを再送しました",
        )


class MerchantExportAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"GET": {ConsolePermission.MERCHANT_VIEW}}

    def get(self, request, *args, **kwargs):
        form = SearchForm.from_params(
            MERCHANT_SEARCH_DEFAULTS,
            request.query_params,
            user=request.user,
            pii_policy=MERCHANT_PII_POLICY,
        )
        queryset = filter_merchants(_merchant_queryset(request.user), form.applied).order_by("-created_at", "id")

        def serialize(merchant: Merchant) -> dict:
            row = dict(MerchantListSerializer(merchant).data)
            row["createdAt"] = format_csv_datetime(merchant.created_at)
            return row

        rows = collect_export_rows(
            queryset,
            serialize=serialize,
            matches=merchant_matcher(form.applied),
            label="merchants",
        )
        columns = MERCHANT_EXPORT_PII_POLICY.columns(MERCHANT_CSV_COLUMNS, request.user)
        if MERCHANT_EXPORT_PII_POLICY.allows(request.user):
            log_audit_event(
                request,
                action="PII_EXPORT",
                target_type="Merchant",
                metadata={"endpoint": request.path, "count": len(rows)},
            )
        else:
            rows = MERCHANT_EXPORT_PII_POLICY.strip_rows(rows, request.user)
        return csv_response(build_csv_content(columns, rows), build_csv_filename("merchants"))


class MerchantOptionsAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"GET": {ConsolePermission.MERCHANT_VIEW}}

    def get(self, request, *args, **kwargs):
        queryset = scope_queryset(Merchant.objects.all(), request.user, merchant_field="id", shop_field="shops__id")
        q = request.query_params.get("q", "").strip()
        if q:
            queryset = queryset.filter(name__icontains=q) | queryset.filter(name_kana__icontains=q)
        rows = queryset.order_by("name").values("id", "name")[:50]
        return success_response([{"id": str(row["id"]), "name": row["name"]} for row in rows])
