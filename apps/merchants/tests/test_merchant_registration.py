from __future__ import annotations

from smtplib import SMTPException
from unittest.mock import patch

from django.core import mail
from django.test import TestCase
from rest_framework.test import APIClient

from apps.accounts.models import AuditLog, User
from apps.merchants.models import Merchant


class MerchantRegistrationMailTestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.operator = User.objects.create_user(
            email="operator@test.local",
            password="pass1234",
            admin_role=User.AdminRole.OPERATOR,
        )
        self.merchant = Merchant.objects.create(name="浦和フーズ", name_kana="ウラワフーズ", email="urawa@example.com")
        self.client.force_authenticate(user=self.operator)

    def _resend(self):
        return self.client.post(f"/api/admin/merchants/{self.merchant.id}/resend-registration", {}, format="json")

    def test_resend_without_account_is_conflict(self):
        response = self._resend()

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["error"]["code"], "ACCOUNT_NOT_ISSUED")
        self.assertEqual(len(mail.outbox), 0)

    def test_resend_mails_registration_link_for_pending_account(self):
        account = User.objects.create_user(
            "urawa@example.com",
            account_type=User.AccountType.MERCHANT,
            status=User.Status.PENDING,
            merchant=self.merchant,
        )

        response = self._resend()

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["urawa@example.com"])
        self.assertIn("/auth/set-password?token=", mail.outbox[0].body)
        account.refresh_from_db()
        self.assertIsNotNone(account.registration_sent_at)
        self.assertTrue(AuditLog.objects.filter(action="MERCHANT_REGISTRATION_RESEND").exists())

    def test_resend_for_active_account_is_conflict(self):
        User.objects.create_user(
            "urawa@example.com",
            password="pass1234",
            account_type=User.AccountType.MERCHANT,
            status=User.Status.ACTIVE,
            merchant=self.merchant,
        )

        response = self._resend()

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["error"]["code"], "ACCOUNT_ALREADY_ACTIVE")

    def test_mail_backend_failure_is_bad_gateway(self):
        User.objects.create_user(
            "urawa@example.com",
            account_type=User.AccountType.MERCHANT,
            status=User.Status.PENDING,
            merchant=self.merchant,
        )

        with patch("apps.accounts.services.send_mail", side_effect=SMTPException("refused")):
            with self.assertLogs("apps.accounts.services", level="WARNING"):
                response = self._resend()

        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.data["error"]["code"], "MAIL_SEND_FAILED")


class MerchantOptionsTestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.viewer = User.objects.create_user(
            email="viewer@test.local",
            password="pass1234",
            admin_role=User.AdminRole.VIEWER,
        )
        Merchant.objects.create(name="浦和フーズ", name_kana="ウラワフーズ", email="urawa@example.com")
        Merchant.objects.create(name="大宮ダイニング", name_kana="オオミヤダイニング", email="omiya@example.com")

    def test_options_are_light_rows_filtered_by_name_or_kana(self):
        self.client.force_authenticate(user=self.viewer)

        response = self.client.get("/api/admin/merchants/options", {"q": "オオミヤ"})

        self.assertEqual(response.status_code, 200)
        rows = response.data["data"]
        self.assertEqual(len(rows), 1)
        self.assertEqual(set(rows[0]), {"id", "name"})
        self.assertEqual(rows[0]["name"], "大宮ダイニング")
