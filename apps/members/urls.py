from django.urls import path

from .views import MemberDetailAPIView, MemberExportAPIView, MemberListAPIView

urlpatterns = [
    path("admin/users", MemberListAPIView.as_view(), name="admin-users"),
    path("admin/users/export", MemberExportAPIView.as_view(), name="admin-users-export"),
    path("admin/users/<uuid:member_id>", MemberDetailAPIView.as_view(), name="admin-user-detail"),
]
