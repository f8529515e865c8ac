from __future__ import annotations

from django.test import SimpleTestCase, TestCase
from rest_framework.test import APIClient

from apps.accounts.models import User
from apps.merchants.models import Merchant
from apps.shops.form_rules import (
    build_holidays,
    build_payment_credit,
    build_services,
    decompose_holidays,
    decompose_payment,
    validate_shop_form,
)
from apps.shops.models import Genre, Scene, Shop


class ShopFormRulesTestCase(SimpleTestCase):
    def test_other_choices_need_their_free_text(self):
        errors = validate_shop_form(
            {
                "name": "浦和本店",
                "selectedCreditBrands": ["VISA", "その他"],
                "selectedQrBrands": ["その他"],
                "selectedHolidays": ["月曜日", "その他"],
                "selectedScenes": ["scene-other"],
            },
            other_scene_id="scene-other",
        )

        for key in ("customCreditText", "customQrText", "customHolidayText", "customSceneText"):
            self.assertIn(key, errors)

    def test_coupon_usage_time_needs_both_ends(self):
        errors = validate_shop_form({"couponUsageStart": "10:00"})

        self.assertEqual(errors["couponUsageEnd"], "クーポン利用時間の終了時刻を入力してください")
        self.assertNotIn("couponUsageStart", errors)

    def test_merchant_account_does_not_pick_merchant(self):
        self.assertIn("merchantId", validate_shop_form({}))
        self.assertNotIn("merchantId", validate_shop_form({}, is_merchant_account=True))

    def test_password_required_only_when_creating(self):
        form = {"createAccount": True, "accountEmail": "shop@example.com", "password": "short"}

        self.assertEqual(validate_shop_form(form)["password"], "パスワードは8文字以上で入力してください")
        self.assertNotIn("password", validate_shop_form(form, is_edit=True))

    def test_kana_must_be_katakana(self):
        self.assertIn("nameKana", validate_shop_form({"nameKana": "うらわ"}))
        self.assertNotIn("nameKana", validate_shop_form({"nameKana": "ウラワ ホンテン"}))

    def test_selection_folding_and_unfolding(self):
        credit = build_payment_credit(["VISA", "その他"], "地域カード")
        self.assertEqual(credit, {"brands": ["VISA"], "other": "地域カード"})
        self.assertEqual(decompose_payment(credit, "brands"), (["VISA", "その他"], "地域カード"))

        holidays = build_holidays(["月曜日", "その他"], "第3火曜日")
        self.assertEqual(holidays, "月曜日,その他:第3火曜日")
        self.assertEqual(decompose_holidays(holidays), (["月曜日", "その他"], "第3火曜日"))

        self.assertEqual(build_services(["Wi-Fi", "その他"], "充電"), {"Wi-Fi": True, "その他": True})
        self.assertIsNone(build_services([]))

    def test_legacy_comma_separated_credit_text(self):
        self.assertEqual(decompose_payment("VISA,JCB", "brands"), (["VISA", "JCB"], ""))


class ShopConfirmDataValidationTestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.operator = User.objects.create_user(
            email="operator@test.local",
            password="pass1234",
            admin_role=User.AdminRole.OPERATOR,
        )
        self.client.force_authenticate(user=self.operator)
        self.merchant = Merchant.objects.create(name="さいたま商事", email="merchant@example.com")
        self.genre = Genre.objects.order_by("sort_order").first()
        self.other_scene = Scene.objects.get(name="その他")

    def _payload(self, **overrides):
        payload = {
            "merchantId": str(self.merchant.id),
            "genreId": str(self.genre.id),
            "name": "浦和本店",
            "nameKana": "ウラワホンテン",
            "phone": "048-123-4567",
            "postalCode": "3300063",
            "prefecture": "埼玉県",
            "city": "さいたま市浦和区",
            "address1": "高砂1-1-1",
            "latitude": "35.861",
            "longitude": "139.645",
            "smokingType": "non_smoking",
        }
        payload.update(overrides)
        return payload

    def test_blank_name_is_rejected_and_nothing_is_staged(self):
        response = self.client.post("/api/admin/shops/confirm-data", self._payload(name=""), format="json")

        self.assertEqual(response.status_code, 400)
        error = response.data["error"]
        self.assertEqual(error["code"], "VALIDATION_ERROR")
        self.assertEqual(error["details"]["name"], "店舗名は必須です")
        self.assertEqual(error["firstErrorField"], "name")

        read_back = self.client.get("/api/admin/shops/confirm-data")
        self.assertEqual(read_back.status_code, 404)
        self.assertEqual(read_back.data["error"]["code"], "CONFIRM_DATA_NOT_FOUND")
        self.assertEqual(read_back.data["error"]["redirectTo"], "/shops/new")

    def test_other_selections_without_text_report_every_field(self):
        response = self.client.post(
            "/api/admin/shops/confirm-data",
            self._payload(
                selectedCreditBrands=["その他"],
                selectedQrBrands=["その他"],
                selectedHolidays=["その他"],
                selectedScenes=[str(self.other_scene.id)],
            ),
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        details = response.data["error"]["details"]
        for key in ("customCreditText", "customQrText", "customHolidayText", "customSceneText"):
            self.assertIn(key, details)
        self.assertEqual(response.data["error"]["firstErrorField"], "customCreditText")

    def test_email_already_used_by_another_account(self):
        User.objects.create_user(email="taken@example.com", password="pass1234")

        response = self.client.post(
            "/api/admin/shops/confirm-data",
            self._payload(createAccount=True, accountEmail="Taken@example.com", password="password123"),
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"]["details"]["accountEmail"], "このメールアドレスは既に使用されています")

    def test_validate_single_field(self):
        response = self.client.post(
            "/api/admin/shops/validate-field",
            {"field": "phone", "values": self._payload(phone="12345")},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"], {"field": "phone", "error": "有効な電話番号を入力してください（10-11桁の数字）"})

    def test_form_context_for_new_shop(self):
        response = self.client.get("/api/admin/shops/form-context", {"merchantId": str(self.merchant.id)})

        self.assertEqual(response.status_code, 200)
        data = response.data["data"]
        self.assertFalse(data["isEdit"])
        self.assertEqual(data["merchantName"], "さいたま商事")
        self.assertEqual(data["errors"], [])
        self.assertTrue(any(scene["name"] == "その他" for scene in data["scenes"]))
        self.assertEqual(data["formState"]["merchantId"], str(self.merchant.id))
        self.assertEqual(data["fallbackRedirect"], "/shops")

    def test_form_context_reports_missing_shop_without_failing(self):
        response = self.client.get(
            "/api/admin/shops/form-context",
            {"shopId": "00000000-0000-0000-0000-000000000000"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["errors"], [{"source": "shop", "message": "データが見つかりませんでした"}])
        self.assertTrue(response.data["data"]["genres"])

    def test_shop_account_cannot_start_new_shop(self):
        shop = Shop.objects.create(
            merchant=self.merchant,
            name="既存店",
            phone="0481234567",
            postal_code="3300063",
            prefecture="埼玉県",
            city="さいたま市浦和区",
            address1="高砂1-1-1",
        )
        shop_user = User.objects.create_user(
            email="shop@test.local",
            password="pass1234",
            account_type=User.AccountType.SHOP,
            shop=shop,
        )
        self.client.force_authenticate(user=shop_user)

        response = self.client.post("/api/admin/shops/confirm-data", self._payload(), format="json")

        self.assertEqual(response.status_code, 403)
