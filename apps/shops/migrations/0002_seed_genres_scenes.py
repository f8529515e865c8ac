from __future__ import annotations

from django.db import migrations

GENRE_SEED_NAMES = (
    "居酒屋",
    "レストラン",
    "カフェ",
    "ファストフード",
    "ラーメン店",
    "焼肉店",
    "寿司店",
    "イタリアン",
    "フレンチ",
    "中華料理",
    "その他",
)

SCENE_SEED_NAMES = (
    "一人で",
    "友人・知人と",
    "家族・子供と",
    "デート",
    "接待・会食",
    "宴会・飲み会",
    "その他",
)


def seed_reference_data(apps, schema_editor):
    del schema_editor
    Genre = apps.get_model("shops", "Genre")
    Scene = apps.get_model("shops", "Scene")

    for index, name in enumerate(GENRE_SEED_NAMES, start=1):
        Genre.objects.get_or_create(name=name, defaults={"sort_order": index * 10})
    for index, name in enumerate(SCENE_SEED_NAMES, start=1):
        Scene.objects.get_or_create(name=name, defaults={"sort_order": index * 10})


def unseed_reference_data(apps, schema_editor):
    del schema_editor
    Genre = apps.get_model("shops", "Genre")
    Scene = apps.get_model("shops", "Scene")

    Genre.objects.filter(name__in=GENRE_SEED_NAMES, shops__isnull=True).delete()
    Scene.objects.filter(name__in=SCENE_SEED_NAMES, shops__isnull=True).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("shops", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_reference_data, unseed_reference_data),
    ]
