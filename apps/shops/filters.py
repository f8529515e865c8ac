from __future__ import annotations

from datetime import timedelta

from django.db.models import Q

from apps.common.search import contains_text, parse_date_param

SHOP_SEARCH_DEFAULTS = {
    "keyword": "",
    "merchantId": "",
    "merchantName": "",
    "merchantNameKana": "",
    "name": "",
    "nameKana": "",
    "phone": "",
    "accountEmail": "",
    "postalCode": "",
    "prefecture": "",
    "address": "",
    "status": "",
    "createdAtFrom": "",
    "createdAtTo": "",
    "updatedAtFrom": "",
    "updatedAtTo": "",
}

_TEXT_LOOKUPS = {
    "merchantName": "merchant__name",
    "merchantNameKana": "merchant__name_kana",
    "name": "name",
    "nameKana": "name_kana",
    "phone": "phone",
    "accountEmail": "account__email",
    "postalCode": "postal_code",
    "address": "address",
}


def _date_range(queryset, field: str, start, end):
    start_date = parse_date_param(start)
    end_date = parse_date_param(end)
    if start_date:
        queryset = queryset.filter(**{f"{field}__date__gte": start_date})
    if end_date:
        queryset = queryset.filter(**{f"{field}__date__lt": end_date + timedelta(days=1)})
    return queryset


def filter_shops(queryset, criteria: dict):
    keyword = criteria.get("keyword")
    if keyword:
        queryset = queryset.filter(
            Q(name__icontains=keyword)
            | Q(name_kana__icontains=keyword)
            | Q(merchant__name__icontains=keyword)
            | Q(address__icontains=keyword)
        )
    if criteria.get("merchantId"):
        queryset = queryset.filter(merchant_id=criteria["merchantId"])
    for key, lookup in _TEXT_LOOKUPS.items():
        if criteria.get(key):
            queryset = queryset.filter(**{f"{lookup}__icontains": criteria[key]})
    if criteria.get("prefecture"):
        queryset = queryset.filter(prefecture=criteria["prefecture"])
    if criteria.get("status"):
        queryset = queryset.filter(status=criteria["status"])
    queryset = _date_range(queryset, "created_at", criteria.get("createdAtFrom"), criteria.get("createdAtTo"))
    queryset = _date_range(queryset, "updated_at", criteria.get("updatedAtFrom"), criteria.get("updatedAtTo"))
    return queryset


def shop_matcher(criteria: dict):
    """Python-side re-check of the text and choice criteria for exports."""

    def matches(shop) -> bool:
        if criteria.get("prefecture") and shop.prefecture != criteria["prefecture"]:
            return False
        if criteria.get("status") and shop.status != criteria["status"]:
            return False
        return all(
            contains_text(value, criteria.get(key, ""))
            for key, value in (
                ("merchantName", shop.merchant.name),
                ("merchantNameKana", shop.merchant.name_kana),
                ("name", shop.name),
                ("nameKana", shop.name_kana),
                ("phone", shop.phone),
                ("accountEmail", shop.account_email),
                ("postalCode", shop.postal_code),
                ("address", shop.address),
            )
        )

    return matches
