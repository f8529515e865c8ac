from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import IntegrityError, transaction

from apps.accounts.models import User
from apps.accounts.services import send_setup_mail

from .models import Merchant

logger = logging.getLogger(__name__)


@dataclass
class IssueResult:
    merchant_id: str
    issued: bool
    reason: str = ""
    mail_sent: bool = False

    def as_dict(self) -> dict:
        return {
            "merchantId": self.merchant_id,
            "issued": self.issued,
            "reason": self.reason,
            "mailSent": self.mail_sent,
        }


def send_registration_mail(account: User, merchant: Merchant) -> bool:
    return send_setup_mail(account, addressee=merchant.name)


def issue_merchant_account(merchant: Merchant) -> IssueResult:
    """Create a pending console account for ``merchant`` and mail its registration link."""
    result = IssueResult(merchant_id=str(merchant.id), issued=False)
    account = merchant.linked_account
    if account is not None and account.status == User.Status.ACTIVE:
        result.reason = "アカウントは発行済みです"
        return result
    if not merchant.email:
        result.reason = "メールアドレスが登録されていません"
        return result

    if account is None:
        if User.objects.email_in_use(merchant.email):
            result.reason = "このメールアドレスは既に使用されています"
            return result
        try:
            with transaction.atomic():
                account = User.objects.create_user(
                    merchant.email,
                    password=None,
                    account_type=User.AccountType.MERCHANT,
                    display_name=merchant.name[:100],
                    status=User.Status.PENDING,
                    merchant=merchant,
                )
        except IntegrityError:
            result.reason = "このメールアドレスは既に使用されています"
            return result
    elif account.status != User.Status.PENDING:
        account.status = User.Status.PENDING
        account.save(update_fields=["status", "updated_at"])

    result.issued = True
    result.mail_sent = send_registration_mail(account, merchant)
    logger.info("merchant %s account issued, mail sent: %s", merchant.id, result.mail_sent)
    return result
