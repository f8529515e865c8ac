from __future__ import annotations

from datetime import date, datetime, timezone as dt_timezone

from django.test import TestCase
from rest_framework.test import APIClient

from apps.accounts.models import AuditLog, User
from apps.members.models import Member

PII_KEYS = {"email", "postalCode", "prefecture", "city", "address", "birthDate", "gender", "genderLabel", "saitamaAppId"}


class MemberListTestCase(TestCase):
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
        Member.objects.create(
            nickname="たろう",
            email="taro@example.com",
            postal_code="3300063",
            prefecture="埼玉県",
            city="さいたま市浦和区",
            address="高砂1-1",
            birth_date=date(1990, 4, 1),
            gender=Member.Gender.MALE,
            rank=Member.Rank.GOLD,
            registered_at=datetime(2024, 1, 10, 3, 0, tzinfo=dt_timezone.utc),
        )
        Member.objects.create(
            nickname="はなこ",
            email="hanako@example.com",
            prefecture="埼玉県",
            city="川口市",
            gender=Member.Gender.FEMALE,
            rank=Member.Rank.BRONZE,
            registered_at=datetime(2024, 2, 10, 3, 0, tzinfo=dt_timezone.utc),
        )
        Member.objects.create(
            nickname="じろう",
            prefecture="東京都",
            rank=Member.Rank.GOLD,
            registered_at=datetime(2024, 3, 10, 3, 0, tzinfo=dt_timezone.utc),
        )

    def test_operator_never_receives_personal_fields(self):
        self.client.force_authenticate(user=self.operator)

        response = self.client.get("/api/admin/users")

        self.assertEqual(response.status_code, 200)
        rows = response.data["data"]["results"]
        self.assertEqual(len(rows), 3)
        for row in rows:
            self.assertFalse(PII_KEYS & set(row))
            self.assertIn("nickname", row)
            self.assertIn("rankLabel", row)
        self.assertFalse(AuditLog.objects.filter(action="PII_FULL_VIEW").exists())

    def test_operator_personal_filters_are_ignored(self):
        self.client.force_authenticate(user=self.operator)

        response = self.client.get("/api/admin/users", {"prefecture": "東京都"})

        self.assertEqual(response.data["data"]["count"], 3)

    def test_sysadmin_sees_personal_fields_and_is_audited(self):
        self.client.force_authenticate(user=self.sysadmin)

        response = self.client.get("/api/admin/users", {"prefecture": "埼玉県"})

        self.assertEqual(response.data["data"]["count"], 2)
        self.assertEqual(response.data["data"]["results"][0]["email"], "hanako@example.com")
        self.assertTrue(AuditLog.objects.filter(action="PII_FULL_VIEW", target_type="Member").exists())

    def test_rank_and_registered_date_filters(self):
        self.client.force_authenticate(user=self.operator)

        response = self.client.get(
            "/api/admin/users",
            {"ranks": "3", "registeredDateStart": "2024-01-01", "registeredDateEnd": "2024/01/31"},
        )

        rows = response.data["data"]["results"]
        self.assertEqual([row["nickname"] for row in rows], ["たろう"])

    def test_unchanged_list_answers_not_modified(self):
        self.client.force_authenticate(user=self.operator)
        first = self.client.get("/api/admin/users")

        second = self.client.get("/api/admin/users", HTTP_IF_NONE_MATCH=first["ETag"])

        self.assertEqual(second.status_code, 304)

    def test_csv_row_count_matches_list_count(self):
        self.client.force_authenticate(user=self.operator)
        params = {"ranks": "3"}

        listed = self.client.get("/api/admin/users", params)
        exported = self.client.get("/api/admin/users/export", params)

        self.assertEqual(exported.status_code, 200)
        self.assertIn('filename="users_', exported["Content-Disposition"])
        lines = exported.content.decode("utf-8").lstrip("\ufeff").split("\n")
        self.assertEqual(len(lines) - 1, listed.data["data"]["count"])
        self.assertEqual(lines[0], "ニックネーム,ランク,登録日")

    def test_viewer_export_omits_personal_columns(self):
        self.client.force_authenticate(user=self.viewer)

        exported = self.client.get("/api/admin/users/export")

        header = exported.content.decode("utf-8").lstrip("\ufeff").split("\n")[0]
        self.assertEqual(header, "ニックネーム,ランク,登録日")
        self.assertFalse(AuditLog.objects.filter(action="PII_EXPORT").exists())

    def test_sysadmin_export_includes_personal_columns(self):
        self.client.force_authenticate(user=self.sysadmin)

        exported = self.client.get("/api/admin/users/export", {"nickname": "たろう"})

        lines = exported.content.decode("utf-8").lstrip("\ufeff").split("\n")
        self.assertEqual(lines[0].split(",")[4], "住所")
        self.assertIn("1990/04/01", lines[1])
        self.assertTrue(AuditLog.objects.filter(action="PII_EXPORT", target_type="Member").exists())

    def test_detail_strips_personal_fields_for_operator(self):
        member = Member.objects.get(nickname="たろう")
        self.client.force_authenticate(user=self.operator)

        response = self.client.get(f"/api/admin/users/{member.id}")

        self.assertEqual(response.status_code, 200)
        self.assertNotIn("email", response.data["data"])
