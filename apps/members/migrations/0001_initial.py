import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("shops", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Member",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("nickname", models.CharField(max_length=50)),
                ("email", models.EmailField(blank=True, max_length=255)),
                ("saitama_app_id", models.CharField(blank=True, max_length=50)),
                ("postal_code", models.CharField(blank=True, max_length=7)),
                ("prefecture", models.CharField(blank=True, max_length=10)),
                ("city", models.CharField(blank=True, max_length=100)),
                ("address", models.CharField(blank=True, max_length=255)),
                ("birth_date", models.DateField(blank=True, null=True)),
                (
                    "gender",
                    models.PositiveSmallIntegerField(choices=[(1, "男性"), (2, "女性"), (3, "未回答")], default=3),
                ),
                (
                    "rank",
                    models.PositiveSmallIntegerField(
                        choices=[(1, "ブロンズ"), (2, "シルバー"), (3, "ゴールド"), (4, "ダイヤモンド")],
                        default=1,
                    ),
                ),
                ("registered_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "registered_store",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="registered_members",
                        to="shops.shop",
                    ),
                ),
            ],
            options={
                "ordering": ["-registered_at"],
                "indexes": [
                    models.Index(fields=["rank", "registered_at"], name="members_rank_registered_idx"),
                    models.Index(fields=["registered_store", "registered_at"], name="members_store_registered_idx"),
                ],
            },
        ),
    ]
