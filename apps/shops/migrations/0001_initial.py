import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models

from apps.common.choices import LifecycleStatus


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("merchants", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Genre",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=50, unique=True)),
                ("sort_order", models.PositiveIntegerField(default=0)),
            ],
            options={"ordering": ["sort_order", "name"]},
        ),
        migrations.CreateModel(
            name="Scene",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=50, unique=True)),
                ("sort_order", models.PositiveIntegerField(default=0)),
            ],
            options={"ordering": ["sort_order", "name"]},
        ),
        migrations.CreateModel(
            name="Shop",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "merchant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="shops",
                        to="merchants.merchant",
                    ),
                ),
                (
                    "genre",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="shops",
                        to="shops.genre",
                    ),
                ),
                ("scenes", models.ManyToManyField(blank=True, related_name="shops", to="shops.scene")),
                ("custom_scene_text", models.CharField(blank=True, max_length=100)),
                ("name", models.CharField(max_length=100)),
                ("name_kana", models.CharField(blank=True, max_length=100)),
                ("phone", models.CharField(max_length=20)),
                ("postal_code", models.CharField(max_length=7)),
                ("prefecture", models.CharField(max_length=10)),
                ("city", models.CharField(max_length=100)),
                ("address1", models.CharField(max_length=255)),
                ("address2", models.CharField(blank=True, max_length=255)),
                ("address", models.CharField(blank=True, max_length=500)),
                ("latitude", models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ("longitude", models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ("area", models.CharField(blank=True, max_length=50)),
                (
                    "description",
                    models.TextField(blank=True, validators=[django.core.validators.MaxLengthValidator(500)]),
                ),
                (
                    "details",
                    models.TextField(blank=True, validators=[django.core.validators.MaxLengthValidator(1000)]),
                ),
                ("holidays", models.CharField(blank=True, max_length=255)),
                (
                    "smoking_type",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("non_smoking", "禁煙"),
                            ("separated", "分煙"),
                            ("smoking_allowed", "喫煙可"),
                            ("electronic_only", "電子のみ"),
                        ],
                        max_length=20,
                    ),
                ),
                ("homepage_url", models.URLField(blank=True, max_length=500)),
                ("coupon_usage_start", models.CharField(blank=True, max_length=5)),
                ("coupon_usage_end", models.CharField(blank=True, max_length=5)),
                ("coupon_usage_days", models.CharField(blank=True, max_length=100)),
                ("payment_saicoin", models.BooleanField(default=False)),
                ("payment_tamapon", models.BooleanField(default=False)),
                ("payment_cash", models.BooleanField(default=True)),
                ("payment_credit", models.JSONField(blank=True, null=True)),
                ("payment_code", models.JSONField(blank=True, null=True)),
                ("services", models.JSONField(blank=True, null=True)),
                ("contact_name", models.CharField(blank=True, max_length=100)),
                ("contact_phone", models.CharField(blank=True, max_length=20)),
                ("contact_email", models.EmailField(blank=True, max_length=255)),
                ("images", models.JSONField(blank=True, default=list)),
                (
                    "status",
                    models.CharField(choices=LifecycleStatus.choices, default="registering", max_length=40),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["merchant", "created_at"], name="shops_merchant_created_idx"),
                    models.Index(fields=["status", "created_at"], name="shops_status_created_idx"),
                ],
            },
        ),
    ]
