from django.contrib import admin

from .models import Member


@admin.register(Member)
class MemberAdmin(admin.ModelAdmin):
    list_display = ("id", "nickname", "rank", "gender", "registered_store", "registered_at")
    list_filter = ("rank", "gender", "prefecture")
    search_fields = ("nickname", "email", "saitama_app_id")
    raw_id_fields = ("registered_store",)
