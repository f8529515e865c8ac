from django.contrib import admin

from .models import Merchant


@admin.register(Merchant)
class MerchantAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "email", "status", "contract_status", "created_at")
    list_filter = ("status", "contract_status", "prefecture")
    search_fields = ("name", "name_kana", "email", "phone")
    readonly_fields = ("created_at", "updated_at")
