from __future__ import annotations

from django.contrib.auth import login as django_login
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.tokens import RefreshToken

from apps.common.exceptions import ConflictError
from apps.common.pagination import clamp_page_number, clamp_page_size, paginate
from apps.common.response import error_response, success_response

from .admin_security import (
    ConsolePermission,
    ConsoleRBACPermission,
    copy_for_audit,
    get_console_role,
    log_audit_event,
)
from .models import AuditLog, User
from .serializers import (
    AccountMeSerializer,
    AdminAccountCreateSerializer,
    AdminAccountSerializer,
    AdminAccountUpdateSerializer,
    AuditLogSerializer,
    LoginSerializer,
    LogoutSerializer,
    PasswordSetSerializer,
    TokenRefreshRequestSerializer,
)
from .services import activate_account, resolve_setup_token, send_setup_mail

INVALID_SETUP_TOKEN_MESSAGE = "トークンが無効または期限切れです"
_ADMIN_AUDIT_FIELDS = ("email", "display_name", "admin_role", "status")


def issue_tokens_for_user(user) -> dict:
    refresh = RefreshToken.for_user(user)
    return {
        "access": str(refresh.access_token),
        "refresh": str(refresh),
    }


class LoginAPIView(APIView):
    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data["user"]
        # The session carries staged shop form data between requests.
        django_login(request, user)
        log_audit_event(
            request,
            action="CONSOLE_LOGIN",
            target_type="Account",
            target_id=str(user.id),
            metadata={"role": get_console_role(user)},
            actor=user,
        )
        return success_response(
            {
                "user": AccountMeSerializer(user).data,
                "tokens": issue_tokens_for_user(user),
            },
            message="ログインしました",
        )


class RefreshAPIView(APIView):
    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        request_serializer = TokenRefreshRequestSerializer(data=request.data)
        request_serializer.is_valid(raise_exception=True)
        serializer = TokenRefreshSerializer(data=request_serializer.validated_data)
        try:
            serializer.is_valid(raise_exception=True)
        except TokenError as exc:
            raise InvalidToken(exc.args[0]) from exc
        return success_response(serializer.validated_data, message="トークンを更新しました")


class LogoutAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = LogoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        refresh_token = serializer.validated_data["refresh"]
        try:
            RefreshToken(refresh_token).blacklist()
        except TokenError as exc:
            raise AuthenticationFailed("リフレッシュトークンが無効です。") from exc

        log_audit_event(
            request,
            action="CONSOLE_LOGOUT",
            target_type="Account",
            target_id=str(request.user.id),
            metadata={"role": get_console_role(request.user)},
        )
        request.session.flush()
        return success_response(message="ログアウトしました")


class MeAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        return success_response(AccountMeSerializer(request.user).data)


class PasswordTokenVerifyAPIView(APIView):
    authentication_classes: list = []
    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):
        raw_token = str(request.query_params.get("token", "")).strip()
        if not raw_token:
            return error_response("VALIDATION_ERROR", "トークンが正しくありません")
        account = resolve_setup_token(raw_token)
        if account is None:
            return error_response("INVALID_TOKEN", INVALID_SETUP_TOKEN_MESSAGE)
        return success_response({"valid": True, "accountType": account.account_type, "email": account.email})


class PasswordSetAPIView(APIView):
    authentication_classes: list = []
    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = PasswordSetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        account = activate_account(serializer.validated_data["token"], serializer.validated_data["password"])
        if account is None:
            return error_response("INVALID_TOKEN", INVALID_SETUP_TOKEN_MESSAGE)
        log_audit_event(
            request,
            action="ACCOUNT_ACTIVATE",
            target_type="Account",
            target_id=str(account.id),
            metadata={"accountType": account.account_type},
            actor=account,
        )
        return success_response(
            {"accountType": account.account_type, "email": account.email},
            message="パスワードを設定しました",
        )


class AuditLogListAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"GET": {ConsolePermission.AUDIT_LOG_VIEW}}

    def get(self, request, *args, **kwargs):
        queryset = AuditLog.objects.select_related("actor").order_by("-occurred_at", "-id")

        action = request.query_params.get("action", "").strip()
        if action:
            queryset = queryset.filter(action=action)

        result = request.query_params.get("result", "").strip()
        if result:
            queryset = queryset.filter(result=result)

        target_type = request.query_params.get("targetType", "").strip()
        if target_type:
            queryset = queryset.filter(target_type=target_type)

        target_id = request.query_params.get("targetId", "").strip()
        if target_id:
            queryset = queryset.filter(target_id=target_id)

        q = request.query_params.get("q", "").strip()
        if q:
            queryset = queryset.filter(
                Q(action__icontains=q)
                | Q(target_type__icontains=q)
                | Q(target_id__icontains=q)
                | Q(request_id__icontains=q)
                | Q(actor__email__icontains=q)
            )

        objects, meta = paginate(
            queryset,
            page=clamp_page_number(request.query_params.get("page")),
            page_size=clamp_page_size(request.query_params.get("pageSize")),
        )
        return success_response({**meta, "results": AuditLogSerializer(objects, many=True).data})


def _admin_accounts():
    return User.objects.filter(account_type=User.AccountType.ADMIN)


class AdminAccountListCreateAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {
        "GET": {ConsolePermission.ADMIN_ACCOUNT_MANAGE},
        "POST": {ConsolePermission.ADMIN_ACCOUNT_MANAGE},
    }

    def get(self, request, *args, **kwargs):
        queryset = _admin_accounts().order_by("-created_at", "-id")

        q = request.query_params.get("q", "").strip()
        if q:
            queryset = queryset.filter(Q(email__icontains=q) | Q(display_name__icontains=q))

        role = request.query_params.get("role", "").strip()
        if role:
            queryset = queryset.filter(admin_role=role)

        account_status = request.query_params.get("status", "").strip()
        if account_status:
            queryset = queryset.filter(status=account_status)

        objects, meta = paginate(
            queryset,
            page=clamp_page_number(request.query_params.get("page")),
            page_size=clamp_page_size(request.query_params.get("pageSize")),
        )
        return success_response({**meta, "results": AdminAccountSerializer(objects, many=True).data})

    def post(self, request, *args, **kwargs):
        serializer = AdminAccountCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if User.objects.email_in_use(data["email"]):
            raise ConflictError(field="email")

        password = data.get("password") or None
        try:
            with transaction.atomic():
                account = User.objects.create_user(
                    data["email"],
                    password=password,
                    account_type=User.AccountType.ADMIN,
                    admin_role=data["role"],
                    display_name=data["displayName"],
                    status=User.Status.ACTIVE if password else User.Status.PENDING,
                )
        except IntegrityError as exc:
            raise ConflictError(field="email") from exc

        mail_sent = False
        if not password:
            mail_sent = send_setup_mail(account, addressee=account.display_name)

        log_audit_event(
            request,
            action="ADMIN_ACCOUNT_CREATE",
            target_type="Account",
            target_id=str(account.id),
            after=copy_for_audit(account, _ADMIN_AUDIT_FIELDS),
            metadata={"mailSent": mail_sent},
        )
        return success_response(
            {**AdminAccountSerializer(account).data, "mailSent": mail_sent},
            message="管理者アカウントを登録しました",
            status_code=status.HTTP_201_CREATED,
        )


class AdminAccountDetailAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {
        "GET": {ConsolePermission.ADMIN_ACCOUNT_MANAGE},
        "PATCH": {ConsolePermission.ADMIN_ACCOUNT_MANAGE},
    }

    def get(self, request, account_id, *args, **kwargs):
        return success_response(AdminAccountSerializer(get_object_or_404(_admin_accounts(), pk=account_id)).data)

    def patch(self, request, account_id, *args, **kwargs):
        serializer = AdminAccountUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        fields = serializer.to_model_fields()
        if "email" in fields:
            fields["email"] = User.objects.normalize_email(fields["email"])

        with transaction.atomic():
            account = get_object_or_404(_admin_accounts().select_for_update(), pk=account_id)
            if account.pk == request.user.pk and (
                fields.get("admin_role", account.admin_role) != account.admin_role
                or fields.get("status", account.status) != account.status
            ):
                return error_response("SELF_UPDATE_FORBIDDEN", "自分自身の権限やステータスは変更できません")
            if (
                fields.get("status") == User.Status.ACTIVE
                and account.status != User.Status.ACTIVE
                and not account.has_usable_password()
            ):
                return error_response("PASSWORD_NOT_SET", "パスワード未設定のアカウントは有効化できません")
            if "email" in fields and User.objects.email_in_use(fields["email"], exclude_pk=account.pk):
                raise ConflictError(field="email")

            before = copy_for_audit(account, _ADMIN_AUDIT_FIELDS)
            for name, value in fields.items():
                setattr(account, name, value)
            account.save()

        log_audit_event(
            request,
            action="ADMIN_ACCOUNT_UPDATE",
            target_type="Account",
            target_id=str(account.id),
            before=before,
            after=copy_for_audit(account, _ADMIN_AUDIT_FIELDS),
        )
        return success_response(AdminAccountSerializer(account).data, message="管理者アカウントを更新しました")
