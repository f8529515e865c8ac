from django.urls import path

from .views import AddressSearchAPIView, UploadAPIView

urlpatterns = [
    path("upload", UploadAPIView.as_view(), name="upload"),
    path("admin/address-search", AddressSearchAPIView.as_view(), name="address-search"),
]
