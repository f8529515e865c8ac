from __future__ import annotations

from django.db.models import Q

from apps.accounts.admin_security import ConsolePermission
from apps.common.search import PiiPolicy, contains_text, parse_date_param

from .models import Coupon

COUPON_SEARCH_DEFAULTS = {
    "merchantId": "",
    "shopId": "",
    "merchantName": "",
    "shopName": "",
    "couponName": "",
    "status": "all",
    "isPublic": "all",
}

USAGE_SEARCH_DEFAULTS = {
    "usageId": "",
    "couponId": "",
    "couponName": "",
    "shopName": "",
    "nickname": "",
    "email": "",
    "gender": "",
    "birthDate": "",
    "address": "",
    "usedAtStart": "",
    "usedAtEnd": "",
}

# Older clients send the usage date range under these names.
USAGE_PARAM_ALIASES = {"usedDateStart": "usedAtStart", "usedDateEnd": "usedAtEnd"}

COUPON_USAGE_PII_POLICY = PiiPolicy(
    filter_fields=("nickname", "email", "gender", "birthDate", "address"),
    output_fields=("memberId", "nickname", "email", "gender", "genderLabel", "birthDate", "address"),
    permission=ConsolePermission.COUPON_USAGE_PII_VIEW,
)


def normalize_usage_params(params) -> dict:
    values = dict(params.items()) if hasattr(params, "items") else {}
    for alias, key in USAGE_PARAM_ALIASES.items():
        if values.get(alias) and not values.get(key):
            values[key] = values[alias]
    return values


def filter_coupons(queryset, criteria: dict):
    if criteria.get("merchantId"):
        queryset = queryset.filter(shop__merchant_id=criteria["merchantId"])
    if criteria.get("shopId"):
        queryset = queryset.filter(shop_id=criteria["shopId"])
    if criteria.get("merchantName"):
        queryset = queryset.filter(shop__merchant__name__icontains=criteria["merchantName"])
    if criteria.get("shopName"):
        queryset = queryset.filter(shop__name__icontains=criteria["shopName"])
    if criteria.get("couponName"):
        queryset = queryset.filter(title__icontains=criteria["couponName"])
    if criteria.get("status") in Coupon.Status.values:
        queryset = queryset.filter(status=criteria["status"])
    if criteria.get("isPublic") == "public":
        queryset = queryset.filter(is_public=True)
    elif criteria.get("isPublic") == "private":
        queryset = queryset.filter(is_public=False)
    return queryset


def coupon_matcher(criteria: dict):
    def matches(coupon) -> bool:
        if criteria.get("status") in Coupon.Status.values and coupon.status != criteria["status"]:
            return False
        if criteria.get("isPublic") == "public" and not coupon.is_public:
            return False
        if criteria.get("isPublic") == "private" and coupon.is_public:
            return False
        return (
            contains_text(coupon.shop.merchant.name, criteria.get("merchantName", ""))
            and contains_text(coupon.shop.name, criteria.get("shopName", ""))
            and contains_text(coupon.title, criteria.get("couponName", ""))
        )

    return matches


def filter_usages(queryset, criteria: dict):
    usage_id = criteria.get("usageId", "")
    if usage_id:
        queryset = queryset.filter(id=int(usage_id)) if usage_id.isdigit() else queryset.none()
    if criteria.get("couponId"):
        queryset = queryset.filter(coupon__id__icontains=criteria["couponId"])
    if criteria.get("couponName"):
        queryset = queryset.filter(coupon__title__icontains=criteria["couponName"])
    if criteria.get("shopName"):
        queryset = queryset.filter(shop__name__icontains=criteria["shopName"])
    if criteria.get("nickname"):
        queryset = queryset.filter(member__nickname__icontains=criteria["nickname"])
    if criteria.get("email"):
        queryset = queryset.filter(member__email__icontains=criteria["email"])
    gender = criteria.get("gender", "")
    if gender and gender.isdigit():
        queryset = queryset.filter(member__gender=int(gender))
    birth_date = parse_date_param(criteria.get("birthDate"))
    if birth_date:
        queryset = queryset.filter(member__birth_date=birth_date)
    if criteria.get("address"):
        address = criteria["address"]
        queryset = queryset.filter(
            Q(member__prefecture__icontains=address)
            | Q(member__city__icontains=address)
            | Q(member__address__icontains=address)
        )
    used_start = parse_date_param(criteria.get("usedAtStart"))
    used_end = parse_date_param(criteria.get("usedAtEnd"))
    if used_start:
        queryset = queryset.filter(used_at__date__gte=used_start)
    if used_end:
        queryset = queryset.filter(used_at__date__lte=used_end)
    return queryset


def usage_matcher(criteria: dict):
    def matches(usage) -> bool:
        return contains_text(usage.coupon.title, criteria.get("couponName", "")) and contains_text(
            usage.shop.name, criteria.get("shopName", "")
        )

    return matches
