from __future__ import annotations

import uuid

from django.db import models
from django.utils import timezone


class Member(models.Model):
    """End user of the Saicoin app, as seen from the console."""

    class Gender(models.IntegerChoices):
        MALE = 1, "男性"
        FEMALE = 2, "女性"
        UNANSWERED = 3, "未回答"

    class Rank(models.IntegerChoices):
        BRONZE = 1, "ブロンズ"
        SILVER = 2, "シルバー"
        GOLD = 3, "ゴールド"
        DIAMOND = 4, "ダイヤモンド"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    nickname = models.CharField(max_length=50)
    email = models.EmailField(max_length=255, blank=True)
    saitama_app_id = models.CharField(max_length=50, blank=True)
    postal_code = models.CharField(max_length=7, blank=True)
    prefecture = models.CharField(max_length=10, blank=True)
    city = models.CharField(max_length=100, blank=True)
    address = models.CharField(max_length=255, blank=True)
    birth_date = models.DateField(null=True, blank=True)
    gender = models.PositiveSmallIntegerField(choices=Gender.choices, default=Gender.UNANSWERED)
    rank = models.PositiveSmallIntegerField(choices=Rank.choices, default=Rank.BRONZE)
    registered_store = models.ForeignKey(
        "shops.Shop",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="registered_members",
    )
    registered_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-registered_at"]
        indexes = [
            models.Index(fields=["rank", "registered_at"], name="members_rank_registered_idx"),
            models.Index(fields=["registered_store", "registered_at"], name="members_store_registered_idx"),
        ]

    def __str__(self) -> str:
        return self.nickname

    @property
    def full_address(self) -> str:
        return "".join(part for part in (self.prefecture, self.city, self.address) if part)
