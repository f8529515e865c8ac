from django.urls import include, path

urlpatterns = [
    path("", include("apps.common.urls")),
    path("", include("apps.accounts.urls")),
    path("", include("apps.merchants.urls")),
    path("", include("apps.shops.urls")),
    path("", include("apps.coupons.urls")),
    path("", include("apps.members.urls")),
]
