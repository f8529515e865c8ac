from __future__ import annotations

import base64
import shutil
import tempfile
from unittest.mock import patch

from django.db import DatabaseError
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from apps.accounts.models import User
from apps.merchants.models import Merchant
from apps.shops.models import Genre, Scene, Shop

ONE_BY_ONE_GIF = (
    b"GIF89a"
    b"\x01\x00\x01\x00"
    b"\x80"
    b"\x00"
    b"\x00"
    b"\x00\x00\x00"
    b"\xff\xff\xff"
    b"!\xf9\x04\x01\x00\x00\x00\x00"
    b",\x00\x00\x00\x00\x01\x00\x01\x00\x00"
    b"\x02\x02D\x01\x00;"
)
GIF_DATA_URL = "data:image/gif;base64," + base64.b64encode(ONE_BY_ONE_GIF).decode("ascii")


class ShopConfirmFlowTestCase(TestCase):
    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)
        self.client = APIClient()
        self.operator = User.objects.create_user(
            email="operator@test.local",
            password="pass1234",
            admin_role=User.AdminRole.OPERATOR,
        )
        self.client.force_authenticate(user=self.operator)
        self.merchant = Merchant.objects.create(name="さいたま商事", email="merchant@example.com")
        self.genre = Genre.objects.order_by("sort_order").first()
        self.scene = Scene.objects.exclude(name="その他").order_by("sort_order").first()

    def _payload(self, **overrides):
        payload = {
            "merchantId": str(self.merchant.id),
            "genreId": str(self.genre.id),
            "name": "浦和本店",
            "nameKana": "ウラワホンテン",
            "phone": "0481234567",
            "postalCode": "3300063",
            "prefecture": "埼玉県",
            "city": "さいたま市浦和区",
            "address1": "高砂1-1-1",
            "latitude": "35.861",
            "longitude": "139.645",
            "smokingType": "non_smoking",
            "selectedScenes": [str(self.scene.id)],
            "selectedCreditBrands": ["VISA", "その他"],
            "customCreditText": "地域カード",
            "createAccount": True,
            "accountEmail": "urawa@example.com",
            "password": "password123",
        }
        payload.update(overrides)
        return payload

    def _stage(self, **overrides):
        response = self.client.post("/api/admin/shops/confirm-data", self._payload(**overrides), format="json")
        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(response.data["data"]["redirectTo"], "/shops/confirm")
        return response

    def test_staged_data_reads_back_without_plain_password(self):
        self._stage()

        response = self.client.get("/api/admin/shops/confirm-data")

        self.assertEqual(response.status_code, 200)
        data = response.data["data"]
        self.assertEqual(data["name"], "浦和本店")
        self.assertEqual(data["merchantName"], "さいたま商事")
        self.assertEqual(data["genreName"], self.genre.name)
        self.assertEqual(data["sceneNames"], {str(self.scene.id): self.scene.name})
        self.assertEqual(data["paymentCreditJson"], {"brands": ["VISA"], "other": "地域カード"})
        self.assertFalse(data["isEdit"])
        self.assertNotIn("password", data)
        self.assertTrue(data["passwordHash"])

    def test_confirm_creates_shop_account_and_clears_staging(self):
        self._stage()

        with override_settings(MEDIA_ROOT=self.media_root):
            response = self.client.post("/api/admin/shops/confirm", format="json")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["data"]["redirectTo"], "/shops?toast=店舗を作成しました")
        shop = Shop.objects.get(id=response.data["data"]["shopId"])
        self.assertEqual(shop.address, "埼玉県さいたま市浦和区高砂1-1-1")
        self.assertEqual(list(shop.scenes.all()), [self.scene])
        account = User.objects.get(email="urawa@example.com")
        self.assertEqual(account.shop_id, shop.id)
        self.assertTrue(account.check_password("password123"))

        read_back = self.client.get("/api/admin/shops/confirm-data")
        self.assertEqual(read_back.status_code, 404)

    def test_image_failure_keeps_shop_and_retry_does_not_duplicate(self):
        self._stage(imagePreviews=[GIF_DATA_URL])

        with patch("apps.shops.services.save_image_bytes", side_effect=OSError("storage unavailable")):
            with self.assertLogs("apps.shops.services", level="WARNING"):
                response = self.client.post("/api/admin/shops/confirm", format="json")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["warnings"], ["画像1のアップロードに失敗しました"])
        self.assertIsNone(response.data["data"]["redirectTo"])
        self.assertEqual(Shop.objects.count(), 1)

        staged = self.client.get("/api/admin/shops/confirm-data").data["data"]
        self.assertEqual(staged["registeredShopId"], response.data["data"]["shopId"])
        self.assertEqual(len(staged["imagePreviews"]), 1)

        with override_settings(MEDIA_ROOT=self.media_root):
            retry = self.client.post("/api/admin/shops/confirm", format="json")

        self.assertEqual(retry.status_code, 201)
        self.assertNotIn("warnings", retry.data)
        self.assertEqual(Shop.objects.count(), 1)
        self.assertEqual(len(Shop.objects.get().images), 1)

    def test_images_update_failure_is_partial_success_and_retry_resumes(self):
        self._stage(imagePreviews=[GIF_DATA_URL])
        original_save = Shop.save

        def save_without_images(shop, *args, **kwargs):
            if kwargs.get("update_fields") == ["images", "updated_at"]:
                raise DatabaseError("images column is locked")
            return original_save(shop, *args, **kwargs)

        with override_settings(MEDIA_ROOT=self.media_root):
            with patch.object(Shop, "save", save_without_images):
                with self.assertLogs("apps.shops.services", level="WARNING"):
                    response = self.client.post("/api/admin/shops/confirm", format="json")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["warnings"], ["画像情報の更新に失敗しました"])
        self.assertEqual(response.data["data"]["failures"], [{"index": None, "message": "画像情報の更新に失敗しました"}])
        self.assertEqual(Shop.objects.count(), 1)
        self.assertEqual(Shop.objects.get().images, [])

        staged = self.client.get("/api/admin/shops/confirm-data").data["data"]
        self.assertEqual(staged["registeredShopId"], response.data["data"]["shopId"])
        self.assertEqual(len(staged["existingImages"]), 1)
        self.assertEqual(staged["imagePreviews"], [])

        with override_settings(MEDIA_ROOT=self.media_root):
            retry = self.client.post("/api/admin/shops/confirm", format="json")

        self.assertEqual(retry.status_code, 201)
        self.assertNotIn("warnings", retry.data)
        self.assertEqual(Shop.objects.count(), 1)
        self.assertEqual(Shop.objects.get().images, staged["existingImages"])

    def test_email_taken_between_staging_and_confirm_is_conflict(self):
        self._stage()
        User.objects.create_user(email="urawa@example.com", password="pass1234")

        response = self.client.post("/api/admin/shops/confirm", format="json")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["error"]["details"], {"accountEmail": "このメールアドレスは既に使用されています"})
        self.assertFalse(Shop.objects.exists())

    def test_confirm_without_staged_data(self):
        response = self.client.post("/api/admin/shops/confirm", format="json")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["error"]["code"], "CONFIRM_DATA_NOT_FOUND")

    def test_edit_staging_cannot_be_confirmed_as_new(self):
        shop = Shop.objects.create(
            merchant=self.merchant,
            genre=self.genre,
            name="既存店",
            phone="0481234567",
            postal_code="3300063",
            prefecture="埼玉県",
            city="さいたま市浦和区",
            address1="高砂1-1-1",
        )
        response = self.client.post(
            f"/api/admin/shops/{shop.id}/confirm-data",
            self._payload(createAccount=False, password=""),
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["redirectTo"], f"/shops/{shop.id}/confirm")

        mismatch = self.client.post("/api/admin/shops/confirm", format="json")

        self.assertEqual(mismatch.status_code, 409)
        self.assertEqual(mismatch.data["error"]["code"], "CONFIRM_MODE_MISMATCH")
        self.assertEqual(mismatch.data["error"]["redirectTo"], f"/shops/{shop.id}/confirm")

        confirmed = self.client.post(f"/api/admin/shops/{shop.id}/confirm", format="json")
        self.assertEqual(confirmed.status_code, 200)
        shop.refresh_from_db()
        self.assertEqual(shop.name, "浦和本店")
        self.assertEqual(confirmed.data["data"]["redirectTo"], "/shops?toast=店舗を更新しました")
