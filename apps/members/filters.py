from __future__ import annotations

from datetime import timedelta

from apps.accounts.admin_security import ConsolePermission
from apps.common.search import PiiPolicy, contains_text, parse_date_param

MEMBER_SEARCH_DEFAULTS = {
    "nickname": "",
    "postalCode": "",
    "prefecture": "",
    "city": "",
    "address": "",
    "birthDate": "",
    "gender": "",
    "saitamaAppId": "",
    "ranks": [],
    "registeredDateStart": "",
    "registeredDateEnd": "",
}

_PII_FIELDS = (
    "email",
    "postalCode",
    "prefecture",
    "city",
    "address",
    "birthDate",
    "gender",
    "genderLabel",
    "saitamaAppId",
)

MEMBER_PII_POLICY = PiiPolicy(
    filter_fields=("postalCode", "prefecture", "city", "address", "birthDate", "gender", "saitamaAppId"),
    output_fields=_PII_FIELDS,
)

MEMBER_EXPORT_PII_POLICY = PiiPolicy(
    filter_fields=MEMBER_PII_POLICY.filter_fields,
    output_fields=_PII_FIELDS,
    permission=ConsolePermission.PII_EXPORT,
)


def filter_members(queryset, criteria: dict):
    if criteria.get("nickname"):
        queryset = queryset.filter(nickname__icontains=criteria["nickname"])
    if criteria.get("postalCode"):
        queryset = queryset.filter(postal_code__icontains=criteria["postalCode"].replace("-", ""))
    if criteria.get("prefecture"):
        queryset = queryset.filter(prefecture=criteria["prefecture"])
    if criteria.get("city"):
        queryset = queryset.filter(city__icontains=criteria["city"])
    if criteria.get("address"):
        queryset = queryset.filter(address__icontains=criteria["address"])
    birth_date = parse_date_param(criteria.get("birthDate"))
    if birth_date:
        queryset = queryset.filter(birth_date=birth_date)
    gender = criteria.get("gender", "")
    if gender.isdigit():
        queryset = queryset.filter(gender=int(gender))
    if criteria.get("saitamaAppId"):
        queryset = queryset.filter(saitama_app_id__icontains=criteria["saitamaAppId"])
    ranks = [int(rank) for rank in criteria.get("ranks") or [] if str(rank).isdigit()]
    if ranks:
        queryset = queryset.filter(rank__in=ranks)
    start = parse_date_param(criteria.get("registeredDateStart"))
    end = parse_date_param(criteria.get("registeredDateEnd"))
    if start:
        queryset = queryset.filter(registered_at__date__gte=start)
    if end:
        queryset = queryset.filter(registered_at__date__lt=end + timedelta(days=1))
    return queryset


def member_matcher(criteria: dict):
    ranks = {int(rank) for rank in criteria.get("ranks") or [] if str(rank).isdigit()}

    def matches(member) -> bool:
        if ranks and member.rank not in ranks:
            return False
        return contains_text(member.nickname, criteria.get("nickname", ""))

    return matches
