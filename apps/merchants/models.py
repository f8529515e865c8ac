from __future__ import annotations

import uuid

from django.db import models

from apps.common.choices import LifecycleStatus


class Merchant(models.Model):
    class ContractStatus(models.TextChoices):
        ACTIVE = "active", "契約中"
        INACTIVE = "inactive", "未契約"
        TERMINATED = "terminated", "解約済み"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    name_kana = models.CharField(max_length=100, blank=True)
    representative_name_last = models.CharField(max_length=50, blank=True)
    representative_name_first = models.CharField(max_length=50, blank=True)
    representative_name_last_kana = models.CharField(max_length=50, blank=True)
    representative_name_first_kana = models.CharField(max_length=50, blank=True)
    representative_phone = models.CharField(max_length=20, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(max_length=255)
    postal_code = models.CharField(max_length=7, blank=True)
    prefecture = models.CharField(max_length=10, blank=True)
    city = models.CharField(max_length=100, blank=True)
    address1 = models.CharField(max_length=255, blank=True)
    address2 = models.CharField(max_length=255, blank=True)
    business_type = models.CharField(max_length=100, blank=True)
    website = models.URLField(max_length=500, blank=True)
    status = models.CharField(max_length=40, choices=LifecycleStatus.choices, default=LifecycleStatus.REGISTERING)
    contract_status = models.CharField(max_length=16, choices=ContractStatus.choices, default=ContractStatus.INACTIVE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="merchants_status_created_idx"),
            models.Index(fields=["contract_status"], name="merchants_contract_idx"),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def representative_name(self) -> str:
        return f"{self.representative_name_last} {self.representative_name_first}".strip()

    @property
    def representative_name_kana(self) -> str:
        return f"{self.representative_name_last_kana} {self.representative_name_first_kana}".strip()

    @property
    def linked_account(self):
        return getattr(self, "account", None)

    @property
    def account_status(self) -> str:
        """Status of the linked console account; ``inactive`` when none was issued."""
        account = self.linked_account
        return account.status if account else "inactive"
