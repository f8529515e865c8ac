from __future__ import annotations

from django.core import mail
from django.test import TestCase
from rest_framework.test import APIClient

from apps.accounts.models import AuditLog, User


class AdminAccountTestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.sysadmin = User.objects.create_user(
            email="sysadmin@test.local",
            password="pass1234",
            display_name="システム管理者",
            admin_role=User.AdminRole.SYSADMIN,
        )
        self.operator = User.objects.create_user(
            email="operator@test.local",
            password="pass1234",
            display_name="さいたま 太郎",
            admin_role=User.AdminRole.OPERATOR,
        )
        User.objects.create_user(
            "merchant@test.local",
            password="pass1234",
            account_type=User.AccountType.MERCHANT,
        )
        self.client.force_authenticate(user=self.sysadmin)

    def test_list_shows_admin_accounts_only(self):
        response = self.client.get("/api/admin/admins")

        self.assertEqual(response.status_code, 200)
        emails = {row["email"] for row in response.data["data"]["results"]}
        self.assertEqual(emails, {"sysadmin@test.local", "operator@test.local"})

    def test_list_filters_by_keyword_and_role(self):
        by_keyword = self.client.get("/api/admin/admins", {"q": "太郎"})
        by_role = self.client.get("/api/admin/admins", {"role": "sysadmin"})

        self.assertEqual([row["email"] for row in by_keyword.data["data"]["results"]], ["operator@test.local"])
        self.assertEqual([row["email"] for row in by_role.data["data"]["results"]], ["sysadmin@test.local"])

    def test_operator_cannot_manage_admins(self):
        self.client.force_authenticate(user=self.operator)

        self.assertEqual(self.client.get("/api/admin/admins").status_code, 403)
        self.assertEqual(self.client.get(f"/api/admin/admins/{self.sysadmin.id}").status_code, 403)

    def test_create_with_password_is_active(self):
        response = self.client.post(
            "/api/admin/admins",
            {"email": "viewer@test.local", "displayName": "閲覧 花子", "role": "viewer", "password": "viewer123"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["data"]["role"], "viewer")
        self.assertEqual(response.data["data"]["status"], "active")
        self.assertFalse(response.data["data"]["mailSent"])
        account = User.objects.get(email="viewer@test.local")
        self.assertEqual(account.account_type, User.AccountType.ADMIN)
        self.assertTrue(account.check_password("viewer123"))
        self.assertTrue(AuditLog.objects.filter(action="ADMIN_ACCOUNT_CREATE", target_id=str(account.id)).exists())

    def test_create_without_password_mails_setup_link(self):
        response = self.client.post(
            "/api/admin/admins",
            {"email": "new-operator@test.local", "displayName": "新人", "role": "operator"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["data"]["status"], "pending")
        self.assertTrue(response.data["data"]["mailSent"])
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("/auth/set-password?token=", mail.outbox[0].body)
        self.assertFalse(User.objects.get(email="new-operator@test.local").has_usable_password())

    def test_create_rejects_used_email_and_short_password(self):
        conflict = self.client.post(
            "/api/admin/admins",
            {"email": "OPERATOR@test.local", "displayName": "重複", "role": "operator"},
            format="json",
        )
        short = self.client.post(
            "/api/admin/admins",
            {"email": "short@test.local", "displayName": "短い", "role": "operator", "password": "short"},
            format="json",
        )

        self.assertEqual(conflict.status_code, 409)
        self.assertIn("email", conflict.data["error"]["details"])
        self.assertEqual(short.status_code, 400)
        self.assertEqual(short.data["error"]["details"]["password"], "パスワードは8文字以上で入力してください")

    def test_edit_changes_role_and_suspends(self):
        response = self.client.patch(
            f"/api/admin/admins/{self.operator.id}",
            {"role": "viewer", "status": "suspended", "displayName": "さいたま 次郎"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.operator.refresh_from_db()
        self.assertEqual(self.operator.admin_role, User.AdminRole.VIEWER)
        self.assertEqual(self.operator.status, User.Status.SUSPENDED)
        self.assertEqual(self.operator.display_name, "さいたま 次郎")
        audit = AuditLog.objects.get(action="ADMIN_ACCOUNT_UPDATE", target_id=str(self.operator.id))
        self.assertEqual(audit.before_json["admin_role"], "operator")
        self.assertEqual(audit.after_json["status"], "suspended")

    def test_cannot_change_own_role_or_status(self):
        response = self.client.patch(
            f"/api/admin/admins/{self.sysadmin.id}",
            {"role": "operator"},
            format="json",
        )
        rename = self.client.patch(
            f"/api/admin/admins/{self.sysadmin.id}",
            {"displayName": "管理者A"},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"]["code"], "SELF_UPDATE_FORBIDDEN")
        self.assertEqual(rename.status_code, 200)
        self.sysadmin.refresh_from_db()
        self.assertEqual(self.sysadmin.admin_role, User.AdminRole.SYSADMIN)

    def test_pending_account_cannot_be_activated_without_password(self):
        pending = User.objects.create_user(
            "pending-admin@test.local",
            admin_role=User.AdminRole.OPERATOR,
            status=User.Status.PENDING,
        )

        response = self.client.patch(f"/api/admin/admins/{pending.id}", {"status": "active"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"]["code"], "PASSWORD_NOT_SET")

    def test_merchant_account_is_not_an_admin_account(self):
        merchant_account = User.objects.get(email="merchant@test.local")

        self.assertEqual(self.client.get(f"/api/admin/admins/{merchant_account.id}").status_code, 404)
