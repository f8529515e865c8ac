from __future__ import annotations

import logging
from smtplib import SMTPException

from django.conf import settings
from django.contrib.auth.tokens import default_token_generator
from django.core.mail import send_mail
from django.db import transaction
from django.utils import timezone
from django.utils.encoding import force_bytes, force_str
from django.utils.http import urlsafe_base64_decode, urlsafe_base64_encode

from .models import User

logger = logging.getLogger(__name__)

SETUP_TOKEN_SEPARATOR = "."
SETUP_MAIL_SUBJECT = "【さいこいん】管理画面アカウント登録のご案内"


def make_setup_token(account: User) -> str:
    """Single-value ``<uidb64>.<token>`` carried by the set-password link.

    The token half comes from ``default_token_generator``, so it stops
    checking out as soon as the password is set.
    """
    uid = urlsafe_base64_encode(force_bytes(account.pk))
    return f"{uid}{SETUP_TOKEN_SEPARATOR}{default_token_generator.make_token(account)}"


def build_setup_url(account: User) -> str:
    return f"{settings.CONSOLE_FRONTEND_ORIGIN}/auth/set-password?token={make_setup_token(account)}"


def resolve_setup_token(raw_token: str, *, for_update: bool = False) -> User | None:
    uid, separator, token = str(raw_token or "").strip().partition(SETUP_TOKEN_SEPARATOR)
    if not separator or not uid or not token:
        return None
    try:
        pk = int(force_str(urlsafe_base64_decode(uid)))
    except (TypeError, ValueError):
        return None

    queryset = User.objects.select_for_update() if for_update else User.objects.all()
    account = queryset.filter(pk=pk).first()
    if account is None or account.status == User.Status.SUSPENDED:
        return None
    if not default_token_generator.check_token(account, token):
        return None
    return account


def activate_account(raw_token: str, password: str) -> User | None:
    """Set the password behind ``raw_token`` and mark the account active."""
    with transaction.atomic():
        account = resolve_setup_token(raw_token, for_update=True)
        if account is None:
            return None
        account.set_password(password)
        account.status = User.Status.ACTIVE
        account.save(update_fields=["password", "status", "updated_at"])
    logger.info("account %s activated", account.pk)
    return account


def send_setup_mail(account: User, *, addressee: str) -> bool:
    """Mail the set-password link; False when the mail backend refused it."""
    body = (
        f"{addressee} 様\n\n"
        "さいこいん管理画面のアカウントを発行しました。\n"
        "以下のURLからパスワードを設定し、登録を完了してください。\n\n"
        f"{build_setup_url(account)}\n"
    )
    try:
        send_mail(
            SETUP_MAIL_SUBJECT,
            body,
            settings.DEFAULT_FROM_EMAIL,
            [account.email],
            fail_silently=False,
        )
    except (SMTPException, OSError) as exc:
        logger.warning("setup mail to account %s failed: %s", account.pk, exc)
        return False
    account.registration_sent_at = timezone.now()
    account.save(update_fields=["registration_sent_at", "updated_at"])
    return True
