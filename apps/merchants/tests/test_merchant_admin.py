from __future__ import annotations

import uuid

from django.core import mail
from django.test import TestCase
from rest_framework.test import APIClient

from apps.accounts.models import AuditLog, User
from apps.merchants.models import Merchant

PII_KEYS = {
    "representativeName",
    "representativeNameKana",
    "representativePhone",
    "phone",
    "email",
    "postalCode",
    "prefecture",
    "city",
    "address1",
    "address2",
    "address",
}


class MerchantAdminTestCase(TestCase):
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
        self.urawa = Merchant.objects.create(
            name="浦和フーズ",
            name_kana="ウラワフーズ",
            representative_name_last="山田",
            representative_name_first="太郎",
            email="urawa@example.com",
            prefecture="埼玉県",
            city="さいたま市浦和区",
            contract_status=Merchant.ContractStatus.ACTIVE,
        )
        self.omiya = Merchant.objects.create(
            name="大宮ダイニング",
            email="omiya@example.com",
            prefecture="埼玉県",
            city="さいたま市大宮区",
        )
        self.tokyo = Merchant.objects.create(name="東京商会", email="tokyo@example.com", prefecture="東京都")

    def test_operator_list_has_no_personal_fields(self):
        self.client.force_authenticate(user=self.operator)

        response = self.client.get("/api/admin/merchants")

        self.assertEqual(response.status_code, 200)
        for row in response.data["data"]["results"]:
            self.assertFalse(PII_KEYS & set(row))
            self.assertIn("name", row)

    def test_operator_personal_filters_are_ignored(self):
        self.client.force_authenticate(user=self.operator)

        response = self.client.get("/api/admin/merchants", {"representativeName": "山田"})

        self.assertEqual(response.data["data"]["count"], 3)

    def test_sysadmin_filters_by_representative_full_name(self):
        self.client.force_authenticate(user=self.sysadmin)

        response = self.client.get("/api/admin/merchants", {"representativeName": "山田　太郎"})

        self.assertEqual([row["name"] for row in response.data["data"]["results"]], ["浦和フーズ"])
        self.assertEqual(response.data["data"]["results"][0]["email"], "urawa@example.com")
        self.assertTrue(AuditLog.objects.filter(action="PII_FULL_VIEW", target_type="Merchant").exists())

    def test_csv_rows_match_list_count(self):
        self.client.force_authenticate(user=self.operator)
        params = {"merchantName": "浦和"}

        listed = self.client.get("/api/admin/merchants", params)
        exported = self.client.get("/api/admin/merchants/export", params)

        lines = exported.content.decode("utf-8").lstrip("\ufeff").split("\n")
        self.assertEqual(len(lines) - 1, listed.data["data"]["count"])
        self.assertEqual(lines[0], "事業者名,事業者名（カナ）,アカウント発行,契約ステータス,登録日")

    def test_sysadmin_export_has_every_column(self):
        self.client.force_authenticate(user=self.sysadmin)

        exported = self.client.get("/api/admin/merchants/export")

        header = exported.content.decode("utf-8").lstrip("\ufeff").split("\n")[0]
        self.assertEqual(len(header.split(",")), 14)
        self.assertTrue(AuditLog.objects.filter(action="PII_EXPORT", target_type="Merchant").exists())

    def test_status_update_reports_previous_values(self):
        self.client.force_authenticate(user=self.operator)

        response = self.client.patch(
            f"/api/admin/merchants/{self.omiya.id}/status",
            {"status": "operating", "contractStatus": "active"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.data["data"],
            {
                "id": str(self.omiya.id),
                "status": "operating",
                "previousStatus": "registering",
                "contractStatus": "active",
                "previousContractStatus": "inactive",
            },
        )

    def test_issue_accounts_creates_pending_account_and_mails_link(self):
        self.client.force_authenticate(user=self.operator)
        missing_id = uuid.uuid4()

        response = self.client.post(
            "/api/admin/merchants/issue-accounts",
            {"merchantIds": [str(self.urawa.id), str(missing_id)]},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        data = response.data["data"]
        self.assertEqual(data["issuedCount"], 1)
        self.assertEqual(data["failedCount"], 1)
        self.assertEqual(data["results"][0], {"merchantId": str(self.urawa.id), "issued": True, "reason": "", "mailSent": True})
        self.assertEqual(data["results"][1]["reason"], "事業者が見つかりません")

        account = User.objects.get(merchant=self.urawa)
        self.assertEqual(account.status, User.Status.PENDING)
        self.assertEqual(account.account_type, User.AccountType.MERCHANT)
        self.assertFalse(account.has_usable_password())
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["urawa@example.com"])

    def test_account_issue_invalidates_list_etag(self):
        self.client.force_authenticate(user=self.operator)
        first = self.client.get("/api/admin/merchants")
        rows = {row["id"]: row for row in first.data["data"]["results"]}
        self.assertEqual(rows[str(self.urawa.id)]["accountStatus"], "inactive")

        self.client.post(
            "/api/admin/merchants/issue-accounts",
            {"merchantIds": [str(self.urawa.id)]},
            format="json",
        )
        second = self.client.get("/api/admin/merchants", HTTP_IF_NONE_MATCH=first["ETag"])

        self.assertEqual(second.status_code, 200)
        self.assertNotEqual(second["ETag"], first["ETag"])
        rows = {row["id"]: row for row in second.data["data"]["results"]}
        self.assertEqual(rows[str(self.urawa.id)]["accountStatus"], "pending")

    def test_issue_accounts_replays_same_idempotency_key(self):
        self.client.force_authenticate(user=self.operator)
        payload = {"merchantIds": [str(self.omiya.id)]}

        first = self.client.post(
            "/api/admin/merchants/issue-accounts", payload, format="json", HTTP_IDEMPOTENCY_KEY="issue-omiya-1"
        )
        second = self.client.post(
            "/api/admin/merchants/issue-accounts", payload, format="json", HTTP_IDEMPOTENCY_KEY="issue-omiya-1"
        )

        self.assertEqual(first.data, second.data)
        self.assertEqual(User.objects.filter(merchant=self.omiya).count(), 1)
        self.assertEqual(len(mail.outbox), 1)

    def test_active_account_is_not_reissued(self):
        User.objects.create_user(
            email="urawa@example.com",
            password="pass1234",
            account_type=User.AccountType.MERCHANT,
            merchant=self.urawa,
        )
        self.client.force_authenticate(user=self.operator)

        response = self.client.post(
            "/api/admin/merchants/issue-accounts",
            {"merchantIds": [str(self.urawa.id)]},
            format="json",
        )

        self.assertEqual(response.data["data"]["results"][0]["reason"], "アカウントは発行済みです")
        self.assertEqual(len(mail.outbox), 0)

    def test_merchant_account_sees_only_itself(self):
        merchant_user = User.objects.create_user(
            email="urawa-login@example.com",
            password="pass1234",
            account_type=User.AccountType.MERCHANT,
            merchant=self.urawa,
        )
        self.client.force_authenticate(user=merchant_user)

        listed = self.client.get("/api/admin/merchants")
        me = self.client.get("/api/admin/merchants/me")
        other = self.client.get(f"/api/admin/merchants/{self.tokyo.id}")

        self.assertEqual([row["id"] for row in listed.data["data"]["results"]], [str(self.urawa.id)])
        self.assertEqual(me.data["data"]["name"], "浦和フーズ")
        self.assertEqual(other.status_code, 404)

    def test_merchant_account_cannot_create_merchant(self):
        merchant_user = User.objects.create_user(
            email="urawa-login@example.com",
            password="pass1234",
            account_type=User.AccountType.MERCHANT,
            merchant=self.urawa,
        )
        self.client.force_authenticate(user=merchant_user)

        response = self.client.post("/api/admin/merchants", {"name": "新規", "email": "new@example.com"}, format="json")

        self.assertEqual(response.status_code, 403)
