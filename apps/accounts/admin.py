from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import AuditLog, IdempotencyRecord, User


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    model = User
    list_display = ("id", "email", "account_type", "admin_role", "status", "merchant", "shop", "created_at")
    list_filter = ("account_type", "admin_role", "status", "is_staff")
    search_fields = ("email", "display_name")
    ordering = ("-created_at",)
    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Account", {"fields": ("username", "display_name", "account_type", "admin_role", "status", "merchant", "shop")}),
        (
            "Permissions",
            {
                "fields": (
                    "is_active",
                    "is_staff",
                    "is_superuser",
                    "groups",
                    "user_permissions",
                )
            },
        ),
        ("Important dates", {"fields": ("last_login", "registration_sent_at", "date_joined", "created_at", "updated_at")}),
    )
    add_fieldsets = (
        (None, {"classes": ("wide",), "fields": ("email", "account_type", "admin_role", "password1", "password2")}),
    )
    readonly_fields = ("created_at", "updated_at", "date_joined", "last_login")


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("id", "occurred_at", "actor", "actor_role", "action", "target_type", "target_id", "result")
    list_filter = ("action", "result", "target_type")
    search_fields = ("actor__email", "target_id", "request_id")


@admin.register(IdempotencyRecord)
class IdempotencyRecordAdmin(admin.ModelAdmin):
    list_display = ("id", "key", "action", "actor", "response_status_code", "created_at")
    search_fields = ("key", "action")
