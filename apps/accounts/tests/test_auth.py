from __future__ import annotations

from django.test import TestCase
from rest_framework.test import APIClient

from apps.accounts.models import AuditLog, User


class ConsoleAuthTestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.operator = User.objects.create_user(
            email="operator@test.local",
            password="pass1234",
            display_name="オペレーター",
            admin_role=User.AdminRole.OPERATOR,
        )

    def _login(self, email="operator@test.local", password="pass1234"):
        return self.client.post("/api/auth/login", {"email": email, "password": password}, format="json")

    def test_login_returns_tokens_and_permissions(self):
        response = self._login()

        self.assertEqual(response.status_code, 200)
        data = response.data["data"]
        self.assertTrue(data["tokens"]["access"])
        self.assertTrue(data["tokens"]["refresh"])
        self.assertEqual(data["user"]["role"], "operator")
        self.assertIn("SHOP_VIEW", data["user"]["permissions"])
        self.assertNotIn("PII_FULL_VIEW", data["user"]["permissions"])
        self.assertTrue(AuditLog.objects.filter(action="CONSOLE_LOGIN", actor=self.operator).exists())

    def test_access_token_authenticates_console_requests(self):
        access = self._login().data["data"]["tokens"]["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")

        response = self.client.get("/api/me")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["email"], "operator@test.local")

    def test_wrong_password_is_rejected(self):
        response = self._login(password="wrong-password")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"]["code"], "VALIDATION_ERROR")

    def test_pending_account_cannot_log_in(self):
        User.objects.create_user(
            email="pending@test.local",
            password="pass1234",
            account_type=User.AccountType.MERCHANT,
            status=User.Status.PENDING,
        )

        response = self._login(email="pending@test.local")

        self.assertEqual(response.status_code, 400)

    def test_refresh_and_logout_blacklists_token(self):
        tokens = self._login().data["data"]["tokens"]

        refreshed = self.client.post("/api/auth/refresh", {"refresh": tokens["refresh"]}, format="json")
        self.assertEqual(refreshed.status_code, 200)
        self.assertTrue(refreshed.data["data"]["access"])

        rotated = refreshed.data["data"]["refresh"]
        replayed = self.client.post("/api/auth/refresh", {"refresh": tokens["refresh"]}, format="json")
        self.assertEqual(replayed.status_code, 401)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {refreshed.data['data']['access']}")
        logout = self.client.post("/api/auth/logout", {"refresh": rotated}, format="json")
        self.assertEqual(logout.status_code, 200)

        self.client.credentials()
        reused = self.client.post("/api/auth/refresh", {"refresh": rotated}, format="json")
        self.assertEqual(reused.status_code, 401)

    def test_unauthenticated_console_request(self):
        response = self.client.get("/api/admin/merchants")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["error"]["code"], "UNAUTHORIZED")
