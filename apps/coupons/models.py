from __future__ import annotations

import uuid

from django.db import models
from django.utils import timezone


class Coupon(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "承認待ち"
        APPROVED = "approved", "承認済み"
        SUSPENDED = "suspended", "停止中"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shop = models.ForeignKey("shops.Shop", on_delete=models.PROTECT, related_name="coupons")
    title = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    conditions = models.TextField(blank=True)
    image_url = models.URLField(max_length=500, blank=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    is_public = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["shop", "created_at"], name="coupons_shop_created_idx"),
            models.Index(fields=["status", "is_public"], name="coupons_status_public_idx"),
        ]

    def __str__(self) -> str:
        return self.title

    @property
    def public_label(self) -> str:
        return "公開中" if self.is_public else "非公開"


class CouponUsage(models.Model):
    coupon = models.ForeignKey(Coupon, on_delete=models.PROTECT, related_name="usages")
    shop = models.ForeignKey("shops.Shop", on_delete=models.PROTECT, related_name="coupon_usages")
    member = models.ForeignKey(
        "members.Member",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="coupon_usages",
    )
    used_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-used_at", "-id"]
        indexes = [
            models.Index(fields=["coupon", "used_at"], name="coupon_usage_coupon_used_idx"),
            models.Index(fields=["shop", "used_at"], name="coupon_usage_shop_used_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.coupon_id}@{self.used_at:%Y-%m-%d %H:%M}"
