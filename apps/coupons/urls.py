from django.urls import path

from .views import (
    CouponDetailAPIView,
    CouponExportAPIView,
    CouponListCreateAPIView,
    CouponStatusAPIView,
    CouponUsageHistoryAPIView,
)

urlpatterns = [
    path("admin/coupons", CouponListCreateAPIView.as_view(), name="admin-coupons"),
    path("admin/coupons/export", CouponExportAPIView.as_view(), name="admin-coupons-export"),
    path("admin/coupons/<uuid:coupon_id>", CouponDetailAPIView.as_view(), name="admin-coupon-detail"),
    path("admin/coupons/<uuid:coupon_id>/status", CouponStatusAPIView.as_view(), name="admin-coupon-status"),
    path(
        "admin/coupons/<uuid:coupon_id>/usage-history",
        CouponUsageHistoryAPIView.as_view(),
        name="admin-coupon-usage-history",
    ),
    path(
        "admin/coupons/<uuid:coupon_id>/usage-history/export",
        CouponUsageHistoryAPIView.as_view(export=True),
        name="admin-coupon-usage-history-export",
    ),
    path("admin/coupon-usage-history", CouponUsageHistoryAPIView.as_view(), name="admin-coupon-usage-history-all"),
    path(
        "admin/coupon-usage-history/export",
        CouponUsageHistoryAPIView.as_view(export=True),
        name="admin-coupon-usage-history-all-export",
    ),
]
