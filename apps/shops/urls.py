from django.urls import path

from .views import (
    GenreListAPIView,
    SceneListAPIView,
    ShopBulkStatusAPIView,
    ShopConfirmAPIView,
    ShopConfirmDataAPIView,
    ShopDetailAPIView,
    ShopExportAPIView,
    ShopFormContextAPIView,
    ShopListAPIView,
    ShopOptionsAPIView,
    ShopStatusAPIView,
    ShopValidateFieldAPIView,
)

urlpatterns = [
    path("admin/shops", ShopListAPIView.as_view(), name="admin-shops"),
    path("admin/shops/export", ShopExportAPIView.as_view(), name="admin-shops-export"),
    path("admin/shops/options", ShopOptionsAPIView.as_view(), name="admin-shops-options"),
    path("admin/shops/form-context", ShopFormContextAPIView.as_view(), name="admin-shops-form-context"),
    path("admin/shops/validate-field", ShopValidateFieldAPIView.as_view(), name="admin-shops-validate-field"),
    path("admin/shops/bulk-status", ShopBulkStatusAPIView.as_view(), name="admin-shops-bulk-status"),
    path("admin/shops/confirm-data", ShopConfirmDataAPIView.as_view(), name="admin-shops-confirm-data"),
    path("admin/shops/confirm", ShopConfirmAPIView.as_view(), name="admin-shops-confirm"),
    path("admin/shops/<uuid:shop_id>", ShopDetailAPIView.as_view(), name="admin-shop-detail"),
    path("admin/shops/<uuid:shop_id>/status", ShopStatusAPIView.as_view(), name="admin-shop-status"),
    path(
        "admin/shops/<uuid:shop_id>/confirm-data",
        ShopConfirmDataAPIView.as_view(),
        name="admin-shop-confirm-data",
    ),
    path("admin/shops/<uuid:shop_id>/confirm", ShopConfirmAPIView.as_view(), name="admin-shop-confirm"),
    path("admin/genres", GenreListAPIView.as_view(), name="admin-genres"),
    path("admin/scenes", SceneListAPIView.as_view(), name="admin-scenes"),
]
