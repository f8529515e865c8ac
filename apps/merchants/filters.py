from __future__ import annotations

from datetime import timedelta

from django.db.models import Q

from apps.accounts.admin_security import ConsolePermission
from apps.accounts.models import User
from apps.common.search import PiiPolicy, contains_text, parse_date_param

MERCHANT_SEARCH_DEFAULTS = {
    "keyword": "",
    "merchantName": "",
    "merchantNameKana": "",
    "representativeName": "",
    "representativeNameKana": "",
    "phone": "",
    "email": "",
    "address": "",
    "postalCode": "",
    "prefecture": "",
    "accountStatuses": [],
    "contractStatus": "",
    "status": "",
    "accountNotIssued": False,
    "createdAtFrom": "",
    "createdAtTo": "",
}

MERCHANT_PII_POLICY = PiiPolicy(
    filter_fields=(
        "representativeName",
        "representativeNameKana",
        "phone",
        "email",
        "address",
        "postalCode",
        "prefecture",
    ),
    output_fields=(
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
    ),
    permission=ConsolePermission.PII_FULL_VIEW,
)


def _name_query(last_field: str, first_field: str, value: str) -> Q:
    parts = value.replace("\u3000", " ").split()
    if len(parts) >= 2:
        return Q(**{f"{last_field}__icontains": parts[0], f"{first_field}__icontains": parts[1]})
    return Q(**{f"{last_field}__icontains": value}) | Q(**{f"{first_field}__icontains": value})


def filter_merchants(queryset, criteria: dict):
    keyword = criteria.get("keyword")
    if keyword:
        queryset = queryset.filter(Q(name__icontains=keyword) | Q(name_kana__icontains=keyword))
    if criteria.get("merchantName"):
        queryset = queryset.filter(name__icontains=criteria["merchantName"])
    if criteria.get("merchantNameKana"):
        queryset = queryset.filter(name_kana__icontains=criteria["merchantNameKana"])
    if criteria.get("representativeName"):
        queryset = queryset.filter(
            _name_query("representative_name_last", "representative_name_first", criteria["representativeName"])
        )
    if criteria.get("representativeNameKana"):
        queryset = queryset.filter(
            _name_query(
                "representative_name_last_kana",
                "representative_name_first_kana",
                criteria["representativeNameKana"],
            )
        )
    if criteria.get("phone"):
        phone = criteria["phone"]
        queryset = queryset.filter(Q(phone__icontains=phone) | Q(representative_phone__icontains=phone))
    if criteria.get("email"):
        queryset = queryset.filter(email__icontains=criteria["email"])
    if criteria.get("address"):
        address = criteria["address"]
        queryset = queryset.filter(
            Q(city__icontains=address) | Q(address1__icontains=address) | Q(address2__icontains=address)
        )
    if criteria.get("postalCode"):
        queryset = queryset.filter(postal_code__icontains=criteria["postalCode"])
    if criteria.get("prefecture"):
        queryset = queryset.filter(prefecture=criteria["prefecture"])

    account_statuses = criteria.get("accountStatuses") or []
    if account_statuses:
        condition = Q(account__status__in=account_statuses)
        if User.Status.INACTIVE in account_statuses:
            condition |= Q(account__isnull=True)
        queryset = queryset.filter(condition)
    if criteria.get("accountNotIssued"):
        queryset = queryset.filter(Q(account__isnull=True) | ~Q(account__status=User.Status.ACTIVE))

    if criteria.get("contractStatus"):
        queryset = queryset.filter(contract_status=criteria["contractStatus"])
    if criteria.get("status"):
        queryset = queryset.filter(status=criteria["status"])

    created_from = parse_date_param(criteria.get("createdAtFrom"))
    created_to = parse_date_param(criteria.get("createdAtTo"))
    if created_from:
        queryset = queryset.filter(created_at__date__gte=created_from)
    if created_to:
        queryset = queryset.filter(created_at__date__lt=created_to + timedelta(days=1))
    return queryset


def merchant_matcher(criteria: dict):
    def matches(merchant) -> bool:
        if criteria.get("contractStatus") and merchant.contract_status != criteria["contractStatus"]:
            return False
        if criteria.get("prefecture") and merchant.prefecture != criteria["prefecture"]:
            return False
        statuses = criteria.get("accountStatuses") or []
        if statuses and merchant.account_status not in statuses:
            return False
        if criteria.get("accountNotIssued") and merchant.account_status == User.Status.ACTIVE:
            return False
        return contains_text(merchant.name, criteria.get("merchantName", "")) and contains_text(
            merchant.name_kana, criteria.get("merchantNameKana", "")
        )

    return matches
