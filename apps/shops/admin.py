from django.contrib import admin

from .models import Genre, Scene, Shop


@admin.register(Genre)
class GenreAdmin(admin.ModelAdmin):
    list_display = ("name", "sort_order")
    ordering = ("sort_order", "name")


@admin.register(Scene)
class SceneAdmin(admin.ModelAdmin):
    list_display = ("name", "sort_order")
    ordering = ("sort_order", "name")


@admin.register(Shop)
class ShopAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "merchant", "prefecture", "status", "created_at")
    list_filter = ("status", "prefecture", "smoking_type")
    search_fields = ("name", "name_kana", "merchant__name", "phone", "address")
    autocomplete_fields = ("merchant",)
    filter_horizontal = ("scenes",)
    readonly_fields = ("created_at", "updated_at")
