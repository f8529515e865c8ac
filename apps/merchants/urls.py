from django.urls import path

from .views import (
    MerchantDetailAPIView,
    MerchantExportAPIView,
    MerchantIssueAccountsAPIView,
    MerchantListCreateAPIView,
    MerchantMeAPIView,
    MerchantOptionsAPIView,
    MerchantResendRegistrationAPIView,
    MerchantStatusAPIView,
)

urlpatterns = [
    path("admin/merchants", MerchantListCreateAPIView.as_view(), name="admin-merchants"),
    path("admin/merchants/me", MerchantMeAPIView.as_view(), name="admin-merchants-me"),
    path("admin/merchants/export", MerchantExportAPIView.as_view(), name="admin-merchants-export"),
    path("admin/merchants/options", MerchantOptionsAPIView.as_view(), name="admin-merchants-options"),
    path("admin/merchants/issue-accounts", MerchantIssueAccountsAPIView.as_view(), name="admin-merchants-issue-accounts"),
    path("admin/merchants/<uuid:merchant_id>", MerchantDetailAPIView.as_view(), name="admin-merchant-detail"),
    path("admin/merchants/<uuid:merchant_id>/status", MerchantStatusAPIView.as_view(), name="admin-merchant-status"),
    path(
        "admin/merchants/<uuid:merchant_id>/resend-registration",
        MerchantResendRegistrationAPIView.as_view(),
        name="admin-merchant-resend-registration",
    ),
]
