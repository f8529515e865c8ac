from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework.views import APIView

from apps.accounts.admin_security import ConsolePermission, ConsoleRBACPermission, log_audit_event, scope_queryset
from apps.common.csv_export import (
    build_csv_content,
    build_csv_filename,
    collect_export_rows,
    csv_response,
    format_csv_datetime,
)
from apps.common.response import success_response
from apps.common.search import SearchForm, build_list_response

from .filters import (
    MEMBER_EXPORT_PII_POLICY,
    MEMBER_PII_POLICY,
    MEMBER_SEARCH_DEFAULTS,
    filter_members,
    member_matcher,
)
from .models import Member
from .serializers import MemberSerializer

MEMBER_CSV_COLUMNS = [
    ("nickname", "ニックネーム"),
    ("postalCode", "郵便番号"),
    ("prefecture", "都道府県"),
    ("city", "市区町村"),
    ("address", "住所"),
    ("birthDate", "生年月日"),
    ("genderLabel", "性別"),
    ("saitamaAppId", "さいこいんアプリID"),
    ("rankLabel", "ランク"),
    ("registeredAt", "登録日"),
]


def _member_queryset(user):
    queryset = Member.objects.select_related("registered_store")
    return scope_queryset(
        queryset,
        user,
        merchant_field="registered_store__merchant_id",
        shop_field="registered_store_id",
    )


def _member_search_form(request) -> SearchForm:
    return SearchForm.from_params(
        MEMBER_SEARCH_DEFAULTS,
        request.query_params,
        user=request.user,
        pii_policy=MEMBER_PII_POLICY,
    )


class MemberListAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"GET": {ConsolePermission.USER_VIEW}}

    def get(self, request, *args, **kwargs):
        form = _member_search_form(request)
        queryset = filter_members(_member_queryset(request.user), form.applied).order_by("-registered_at", "id")
        return build_list_response(
            request,
            form=form,
            queryset=queryset,
            serialize=lambda member: dict(MemberSerializer(member).data),
            pii_policy=MEMBER_PII_POLICY,
            audit_target="Member",
            version_fields=("updated_at", "registered_store__updated_at"),
        )


class MemberDetailAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"GET": {ConsolePermission.USER_VIEW}}

    def get(self, request, member_id, *args, **kwargs):
        member = get_object_or_404(_member_queryset(request.user), id=member_id)
        data = dict(MemberSerializer(member).data)
        if MEMBER_PII_POLICY.allows(request.user):
            log_audit_event(
                request,
                action="PII_FULL_VIEW",
                target_type="Member",
                target_id=str(member.id),
                metadata={"endpoint": request.path},
            )
        else:
            data = MEMBER_PII_POLICY.strip_row(data, request.user)
        return success_response(data)


class MemberExportAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"GET": {ConsolePermission.USER_VIEW}}

    def get(self, request, *args, **kwargs):
        form = _member_search_form(request)
        queryset = filter_members(_member_queryset(request.user), form.applied).order_by("-registered_at", "id")

        def serialize(member: Member) -> dict:
            row = dict(MemberSerializer(member).data)
            row["birthDate"] = format_csv_datetime(member.birth_date)
            row["registeredAt"] = format_csv_datetime(member.registered_at)
            return row

        rows = collect_export_rows(queryset, serialize=serialize, matches=member_matcher(form.applied), label="members")
        columns = MEMBER_EXPORT_PII_POLICY.columns(MEMBER_CSV_COLUMNS, request.user)
        if MEMBER_EXPORT_PII_POLICY.allows(request.user):
            log_audit_event(
                request,
                action="PII_EXPORT",
                target_type="Member",
                metadata={"endpoint": request.path, "count": len(rows)},
            )
        else:
            rows = MEMBER_EXPORT_PII_POLICY.strip_rows(rows, request.user)
        return csv_response(build_csv_content(columns, rows), build_csv_filename("users"))
