import uuid

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Merchant",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=100)),
                ("name_kana", models.CharField(blank=True, max_length=100)),
                ("representative_name_last", models.CharField(blank=True, max_length=50)),
                ("representative_name_first", models.CharField(blank=True, max_length=50)),
                ("representative_name_last_kana", models.CharField(blank=True, max_length=50)),
                ("representative_name_first_kana", models.CharField(blank=True, max_length=50)),
                ("representative_phone", models.CharField(blank=True, max_length=20)),
                ("phone", models.CharField(blank=True, max_length=20)),
                ("email", models.EmailField(max_length=255)),
                ("postal_code", models.CharField(blank=True, max_length=7)),
                ("prefecture", models.CharField(blank=True, max_length=10)),
                ("city", models.CharField(blank=True, max_length=100)),
                ("address1", models.CharField(blank=True, max_length=255)),
                ("address2", models.CharField(blank=True, max_length=255)),
                ("business_type", models.CharField(blank=True, max_length=100)),
                ("website", models.URLField(blank=True, max_length=500)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("registering", "登録中"),
                            ("collection_requested", "情報収集依頼済み"),
                            ("approval_pending", "承認待ち"),
                            ("promotional_materials_preparing", "宣材準備中"),
                            ("promotional_materials_shipping", "宣材発送中"),
                            ("operating", "営業中"),
                            ("suspended", "停止中"),
                            ("terminated", "終了"),
                        ],
                        default="registering",
                        max_length=40,
                    ),
                ),
                (
                    "contract_status",
                    models.CharField(
                        choices=[("active", "契約中"), ("inactive", "未契約"), ("terminated", "解約済み")],
                        default="inactive",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="merchants_status_created_idx"),
                    models.Index(fields=["contract_status"], name="merchants_contract_idx"),
                ],
            },
        ),
    ]
