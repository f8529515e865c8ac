from django.urls import path

from .views import (
    AdminAccountDetailAPIView,
    AdminAccountListCreateAPIView,
    AuditLogListAPIView,
    LoginAPIView,
    LogoutAPIView,
    MeAPIView,
    PasswordSetAPIView,
    PasswordTokenVerifyAPIView,
    RefreshAPIView,
)

urlpatterns = [
    path("auth/login", LoginAPIView.as_view(), name="auth-login"),
    path("auth/refresh", RefreshAPIView.as_view(), name="auth-refresh"),
    path("auth/logout", LogoutAPIView.as_view(), name="auth-logout"),
    path("password/verify-token", PasswordTokenVerifyAPIView.as_view(), name="password-verify-token"),
    path("password/set-password", PasswordSetAPIView.as_view(), name="password-set-password"),
    path("me", MeAPIView.as_view(), name="me"),
    path("admin/admins", AdminAccountListCreateAPIView.as_view(), name="admin-accounts"),
    path("admin/admins/<int:account_id>", AdminAccountDetailAPIView.as_view(), name="admin-account-detail"),
    path("admin/audit-logs", AuditLogListAPIView.as_view(), name="admin-audit-logs"),
]
