from __future__ import annotations

import uuid

from django.core.validators import MaxLengthValidator
from django.db import models

from apps.common.choices import LifecycleStatus


class Genre(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=50, unique=True)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "name"]

    def __str__(self) -> str:
        return self.name


class Scene(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=50, unique=True)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "name"]

    def __str__(self) -> str:
        return self.name


class Shop(models.Model):
    class SmokingType(models.TextChoices):
        NON_SMOKING = "non_smoking", "禁煙"
        SEPARATED = "separated", "分煙"
        SMOKING_ALLOWED = "smoking_allowed", "喫煙可"
        ELECTRONIC_ONLY = "electronic_only", "電子のみ"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    merchant = models.ForeignKey("merchants.Merchant", on_delete=models.PROTECT, related_name="shops")
    genre = models.ForeignKey(Genre, null=True, blank=True, on_delete=models.SET_NULL, related_name="shops")
    scenes = models.ManyToManyField(Scene, blank=True, related_name="shops")
    custom_scene_text = models.CharField(max_length=100, blank=True)

    name = models.CharField(max_length=100)
    name_kana = models.CharField(max_length=100, blank=True)
    phone = models.CharField(max_length=20)
    postal_code = models.CharField(max_length=7)
    prefecture = models.CharField(max_length=10)
    city = models.CharField(max_length=100)
    address1 = models.CharField(max_length=255)
    address2 = models.CharField(max_length=255, blank=True)
    address = models.CharField(max_length=500, blank=True)
    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    area = models.CharField(max_length=50, blank=True)

    description = models.TextField(blank=True, validators=[MaxLengthValidator(500)])
    details = models.TextField(blank=True, validators=[MaxLengthValidator(1000)])
    holidays = models.CharField(max_length=255, blank=True)
    smoking_type = models.CharField(max_length=20, choices=SmokingType.choices, blank=True)
    homepage_url = models.URLField(max_length=500, blank=True)
    coupon_usage_start = models.CharField(max_length=5, blank=True)
    coupon_usage_end = models.CharField(max_length=5, blank=True)
    coupon_usage_days = models.CharField(max_length=100, blank=True)

    payment_saicoin = models.BooleanField(default=False)
    payment_tamapon = models.BooleanField(default=False)
    payment_cash = models.BooleanField(default=True)
    payment_credit = models.JSONField(null=True, blank=True)
    payment_code = models.JSONField(null=True, blank=True)
    services = models.JSONField(null=True, blank=True)

    contact_name = models.CharField(max_length=100, blank=True)
    contact_phone = models.CharField(max_length=20, blank=True)
    contact_email = models.EmailField(max_length=255, blank=True)

    images = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=40, choices=LifecycleStatus.choices, default=LifecycleStatus.REGISTERING)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["merchant", "created_at"], name="shops_merchant_created_idx"),
            models.Index(fields=["status", "created_at"], name="shops_status_created_idx"),
        ]

    def __str__(self) -> str:
        return self.name

    @staticmethod
    def join_address(prefecture: str, city: str, address1: str, address2: str = "") -> str:
        return "".join(part for part in (prefecture, city, address1, address2) if part)

    @property
    def linked_account(self):
        return getattr(self, "account", None)

    @property
    def account_email(self) -> str:
        account = self.linked_account
        return account.email if account else ""
