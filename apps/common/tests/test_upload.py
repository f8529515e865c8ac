from __future__ import annotations

import shutil
import tempfile

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from apps.accounts.models import User

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


class UploadTestCase(TestCase):
    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)
        self.client = APIClient()
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

    def _gif(self, name="shop.gif"):
        return SimpleUploadedFile(name, ONE_BY_ONE_GIF, content_type="image/gif")

    def test_upload_returns_public_url_under_shop_prefix(self):
        self.client.force_authenticate(user=self.operator)
        with override_settings(MEDIA_ROOT=self.media_root):
            response = self.client.post(
                "/api/upload",
                {"image": self._gif(), "type": "shop", "shopId": "shop-1", "merchantId": "merchant-1"},
            )

        self.assertEqual(response.status_code, 201)
        data = response.data["data"]
        self.assertIn("/shops/merchant-1/shop-1/", data["url"])
        self.assertTrue(data["url"].endswith(".gif"))
        self.assertEqual(data["urls"], [data["url"]])

    def test_upload_multiple_files_keeps_order(self):
        self.client.force_authenticate(user=self.operator)
        with override_settings(MEDIA_ROOT=self.media_root):
            response = self.client.post(
                "/api/upload",
                {"image": [self._gif("a.gif"), self._gif("b.gif")], "type": "coupon"},
            )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(len(response.data["data"]["urls"]), 2)
        self.assertIn("/coupons/", response.data["data"]["url"])

    def test_missing_file_is_rejected(self):
        self.client.force_authenticate(user=self.operator)
        response = self.client.post("/api/upload", {"type": "shop"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"]["code"], "NO_FILE")

    def test_unsupported_content_type_is_rejected(self):
        self.client.force_authenticate(user=self.operator)
        response = self.client.post(
            "/api/upload",
            {"image": SimpleUploadedFile("memo.txt", b"hello", content_type="text/plain")},
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"]["code"], "INVALID_UPLOAD")

    @override_settings(MAX_UPLOAD_FILES=1)
    def test_too_many_files_is_rejected(self):
        self.client.force_authenticate(user=self.operator)
        response = self.client.post("/api/upload", {"image": [self._gif("a.gif"), self._gif("b.gif")]})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"]["message"], "ファイル数が多すぎます（最大1件）")

    def test_unknown_upload_type_is_rejected(self):
        self.client.force_authenticate(user=self.operator)
        response = self.client.post("/api/upload", {"image": self._gif(), "type": "avatar"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"]["details"], {"type": "avatar"})

    def test_viewer_cannot_upload(self):
        self.client.force_authenticate(user=self.viewer)
        response = self.client.post("/api/upload", {"image": self._gif()})

        self.assertEqual(response.status_code, 403)
