from __future__ import annotations

from django.test import TestCase
from rest_framework.test import APIClient

from apps.accounts.admin_security import ConsolePermission, get_console_permissions, get_console_role
from apps.accounts.models import AuditLog, IdempotencyRecord, User
from apps.merchants.models import Merchant
from apps.shops.models import Shop


class AdminSecurityTestCase(TestCase):
    def setUp(self):
        self.client = APIClient()

        self.sysadmin = User.objects.create_user(
            email="sysadmin@test.local",
            password="pass1234",
            admin_role=User.AdminRole.SYSADMIN,
        )
        self.operator = User.objects.create_user(
            email="operator@test.local",
            password="pass1234",
            admin_role=User.AdminRole.OPERATOR,
        )
        self.viewer = User.objects.create_user(
            email="viewer@test.local",
            password="pass1234",
            admin_role=User.AdminRole.VIEWER,
        )
        self.merchant = Merchant.objects.create(name="浦和フーズ", email="urawa@example.com")
        self.other_merchant = Merchant.objects.create(name="大宮ダイニング", email="omiya@example.com")
        self.shop = self._create_shop(self.merchant, "浦和本店")
        self.other_shop = self._create_shop(self.other_merchant, "大宮店")

    @staticmethod
    def _create_shop(merchant, name):
        return Shop.objects.create(
            merchant=merchant,
            name=name,
            phone="0481234567",
            postal_code="3300063",
            prefecture="埼玉県",
            city="さいたま市浦和区",
            address1="高砂1-1-1",
        )

    def test_role_matrix(self):
        merchant_user = User.objects.create_user(
            email="merchant@test.local",
            password="pass1234",
            account_type=User.AccountType.MERCHANT,
            merchant=self.merchant,
        )

        self.assertEqual(get_console_role(self.sysadmin), "sysadmin")
        self.assertEqual(get_console_role(merchant_user), "merchant")
        self.assertIn(ConsolePermission.COUPON_USAGE_PII_VIEW, get_console_permissions(self.sysadmin))
        self.assertNotIn(ConsolePermission.PII_FULL_VIEW, get_console_permissions(self.operator))
        self.assertIn(ConsolePermission.PII_FULL_VIEW, get_console_permissions(self.viewer))
        self.assertNotIn(ConsolePermission.PII_EXPORT, get_console_permissions(self.viewer))
        self.assertIn(ConsolePermission.PII_EXPORT, get_console_permissions(merchant_user))
        self.assertIn(ConsolePermission.ADMIN_ACCOUNT_MANAGE, get_console_permissions(self.sysadmin))
        self.assertNotIn(ConsolePermission.ADMIN_ACCOUNT_MANAGE, get_console_permissions(self.operator))

    def test_suspended_account_has_no_permissions(self):
        self.operator.status = User.Status.SUSPENDED
        self.operator.save(update_fields=["status"])
        self.client.force_authenticate(user=self.operator)

        response = self.client.get("/api/admin/shops")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["error"]["code"], "FORBIDDEN")

    def test_viewer_cannot_change_shop_status(self):
        self.client.force_authenticate(user=self.viewer)

        response = self.client.patch(f"/api/admin/shops/{self.shop.id}/status", {"status": "operating"}, format="json")

        self.assertEqual(response.status_code, 403)

    def test_shop_status_update_is_audited(self):
        self.client.force_authenticate(user=self.operator)

        response = self.client.patch(f"/api/admin/shops/{self.shop.id}/status", {"status": "operating"}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["previousStatus"], "registering")
        log = AuditLog.objects.get(action="SHOP_STATUS_UPDATE")
        self.assertEqual(log.actor, self.operator)
        self.assertEqual(log.actor_role, "operator")
        self.assertEqual(log.before_json, {"status": "registering"})
        self.assertEqual(log.after_json, {"status": "operating"})

    def test_bulk_status_is_idempotent(self):
        self.client.force_authenticate(user=self.operator)
        payload = {
            "shopIds": [str(self.shop.id), str(self.other_shop.id)],
            "status": "suspended",
            "idempotency_key": "bulk-suspend-1",
        }

        first = self.client.patch("/api/admin/shops/bulk-status", payload, format="json")
        second = self.client.patch("/api/admin/shops/bulk-status", payload, format="json")

        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.data["data"]["updatedCount"], 2)
        self.assertEqual(first.data, second.data)
        self.assertEqual(AuditLog.objects.filter(action="SHOP_STATUS_UPDATE").count(), 2)
        self.assertEqual(IdempotencyRecord.objects.filter(key="bulk-suspend-1").count(), 1)

    def test_reused_idempotency_key_with_other_payload_is_rejected(self):
        self.client.force_authenticate(user=self.operator)
        self.client.patch(
            "/api/admin/shops/bulk-status",
            {"shopIds": [str(self.shop.id)], "status": "suspended", "idempotency_key": "bulk-2"},
            format="json",
        )

        response = self.client.patch(
            "/api/admin/shops/bulk-status",
            {"shopIds": [str(self.shop.id)], "status": "operating", "idempotency_key": "bulk-2"},
            format="json",
        )

        self.assertEqual(response.status_code, 400)

    def test_merchant_account_cannot_change_shop_status(self):
        merchant_user = User.objects.create_user(
            email="merchant@test.local",
            password="pass1234",
            account_type=User.AccountType.MERCHANT,
            merchant=self.merchant,
        )
        self.client.force_authenticate(user=merchant_user)

        response = self.client.patch(
            f"/api/admin/shops/{self.other_shop.id}/status",
            {"status": "operating"},
            format="json",
        )

        self.assertEqual(response.status_code, 403)

    def test_shop_list_is_scoped_for_merchant_account(self):
        merchant_user = User.objects.create_user(
            email="merchant@test.local",
            password="pass1234",
            account_type=User.AccountType.MERCHANT,
            merchant=self.merchant,
        )
        self.client.force_authenticate(user=merchant_user)

        response = self.client.get("/api/admin/shops")

        self.assertEqual([row["name"] for row in response.data["data"]["results"]], ["浦和本店"])

    def test_audit_log_list_requires_sysadmin(self):
        self.client.force_authenticate(user=self.operator)
        self.client.patch(f"/api/admin/shops/{self.shop.id}/status", {"status": "operating"}, format="json")

        denied = self.client.get("/api/admin/audit-logs")
        self.client.force_authenticate(user=self.sysadmin)
        allowed = self.client.get("/api/admin/audit-logs", {"action": "SHOP_STATUS_UPDATE"})

        self.assertEqual(denied.status_code, 403)
        self.assertEqual(allowed.status_code, 200)
        self.assertEqual(allowed.data["data"]["count"], 1)
        self.assertEqual(allowed.data["data"]["results"][0]["targetId"], str(self.shop.id))
