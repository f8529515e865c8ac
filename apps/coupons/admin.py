from django.contrib import admin

from .models import Coupon, CouponUsage


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "shop", "status", "is_public", "created_at")
    list_filter = ("status", "is_public")
    search_fields = ("title", "shop__name")
    readonly_fields = ("created_at", "updated_at")


@admin.register(CouponUsage)
class CouponUsageAdmin(admin.ModelAdmin):
    list_display = ("id", "coupon", "shop", "member", "used_at")
    list_filter = ("used_at",)
    search_fields = ("coupon__title", "shop__name")
    raw_id_fields = ("coupon", "shop", "member")
