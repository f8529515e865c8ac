from __future__ import annotations

from django.test import TestCase
from rest_framework.test import APIClient

from apps.accounts.models import User
from apps.merchants.models import Merchant
from apps.shops.models import Shop


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


class ReferenceDataTestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.operator = User.objects.create_user(
            email="operator@test.local",
            password="pass1234",
            admin_role=User.AdminRole.OPERATOR,
        )

    def test_scene_list_is_seeded_in_sort_order_and_ends_with_other(self):
        self.client.force_authenticate(user=self.operator)
        response = self.client.get("/api/admin/scenes")

        self.assertEqual(response.status_code, 200)
        rows = response.data["data"]
        self.assertEqual(rows[-1]["name"], "その他")
        orders = [row["sortOrder"] for row in rows]
        self.assertEqual(orders, sorted(orders))

    def test_genre_list_returns_seeded_genres(self):
        self.client.force_authenticate(user=self.operator)
        response = self.client.get("/api/admin/genres")

        self.assertEqual(response.status_code, 200)
        names = [row["name"] for row in response.data["data"]]
        self.assertIn("居酒屋", names)
        self.assertIn("その他", names)


class ShopOptionsTestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.operator = User.objects.create_user(
            email="operator@test.local",
            password="pass1234",
            admin_role=User.AdminRole.OPERATOR,
        )
        self.urawa = Merchant.objects.create(name="浦和フーズ", email="urawa@example.com")
        self.omiya = Merchant.objects.create(name="大宮ダイニング", email="omiya@example.com")
        self.urawa_shop = _create_shop(self.urawa, "浦和本店")
        self.omiya_shop = _create_shop(self.omiya, "大宮駅前店")

    def test_options_filter_by_merchant_and_keyword(self):
        self.client.force_authenticate(user=self.operator)

        response = self.client.get("/api/admin/shops/options", {"merchantId": str(self.urawa.id)})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.data["data"],
            [{"id": str(self.urawa_shop.id), "name": "浦和本店", "merchantId": str(self.urawa.id)}],
        )

        response = self.client.get("/api/admin/shops/options", {"q": "駅前"})
        self.assertEqual([row["id"] for row in response.data["data"]], [str(self.omiya_shop.id)])

    def test_merchant_account_only_sees_its_own_shops(self):
        merchant_user = User.objects.create_user(
            email="owner@urawa.example.com",
            password="pass1234",
            account_type=User.AccountType.MERCHANT,
            merchant=self.urawa,
        )
        self.client.force_authenticate(user=merchant_user)

        response = self.client.get("/api/admin/shops/options")

        self.assertEqual([row["name"] for row in response.data["data"]], ["浦和本店"])
