from __future__ import annotations

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models

from .managers import UserManager


class User(AbstractUser):
    """Console login account.

    One model covers platform admins, merchant accounts and shop accounts. A
    merchant account is tied to its merchant and a shop account to its shop;
    the reverse accessors are ``merchant.account`` and ``shop.account``.
    """

    class AccountType(models.TextChoices):
        ADMIN = "admin", "管理者"
        MERCHANT = "merchant", "事業者"
        SHOP = "shop", "店舗"

    class AdminRole(models.TextChoices):
        SYSADMIN = "sysadmin", "システム管理者"
        OPERATOR = "operator", "オペレーター"
        VIEWER = "viewer", "閲覧者"

    class Status(models.TextChoices):
        INACTIVE = "inactive", "未発行"
        PENDING = "pending", "承認待ち"
        ACTIVE = "active", "発行済み"
        SUSPENDED = "suspended", "停止中"

    username = models.CharField(max_length=150, unique=True, blank=True)
    email = models.EmailField(max_length=255, unique=True)
    display_name = models.CharField(max_length=100, blank=True)
    account_type = models.CharField(max_length=16, choices=AccountType.choices, default=AccountType.ADMIN)
    admin_role = models.CharField(max_length=16, choices=AdminRole.choices, blank=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)
    merchant = models.OneToOneField(
        "merchants.Merchant",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="account",
    )
    shop = models.OneToOneField(
        "shops.Shop",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="account",
    )
    registration_sent_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS: list[str] = []

    objects = UserManager()

    def __str__(self) -> str:
        return self.email

    @property
    def is_admin_account(self) -> bool:
        return self.account_type == self.AccountType.ADMIN

    @property
    def is_merchant_account(self) -> bool:
        return self.account_type == self.AccountType.MERCHANT

    @property
    def is_shop_account(self) -> bool:
        return self.account_type == self.AccountType.SHOP


class AuditLog(models.Model):
    class Result(models.TextChoices):
        SUCCESS = "SUCCESS", "SUCCESS"
        FAIL = "FAIL", "FAIL"

    occurred_at = models.DateTimeField(auto_now_add=True)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="audit_logs",
    )
    actor_role = models.CharField(max_length=24, blank=True)
    action = models.CharField(max_length=120)
    target_type = models.CharField(max_length=80, blank=True)
    target_id = models.CharField(max_length=120, blank=True)
    request_id = models.CharField(max_length=120, blank=True)
    idempotency_key = models.CharField(max_length=64, blank=True)
    ip = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    before_json = models.JSONField(default=dict, blank=True)
    after_json = models.JSONField(default=dict, blank=True)
    metadata_json = models.JSONField(default=dict, blank=True)
    result = models.CharField(max_length=10, choices=Result.choices, default=Result.SUCCESS)
    error_code = models.CharField(max_length=80, blank=True)

    class Meta:
        ordering = ["-occurred_at", "-id"]
        indexes = [
            models.Index(fields=["occurred_at"], name="accounts_audit_occurred_idx"),
            models.Index(fields=["action", "occurred_at"], name="accounts_audit_action_idx"),
            models.Index(fields=["target_type", "target_id"], name="accounts_audit_target_idx"),
        ]


class IdempotencyRecord(models.Model):
    key = models.CharField(max_length=64, unique=True)
    action = models.CharField(max_length=120)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="idempotency_records",
    )
    request_hash = models.CharField(max_length=64)
    response_status_code = models.PositiveIntegerField(default=200)
    response_body = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
