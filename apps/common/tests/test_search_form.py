from __future__ import annotations

from django.http import QueryDict
from django.test import TestCase

from apps.accounts.models import User
from apps.common.search import PiiPolicy, SearchForm, parse_date_param

DEFAULTS = {"keyword": "", "email": "", "status": [], "publicOnly": False}
POLICY = PiiPolicy(filter_fields={"email"}, output_fields={"email", "address"})


class SearchFormTestCase(TestCase):
    def setUp(self):
        self.operator = User.objects.create_user(
            email="operator@test.local",
            password="pass1234",
            admin_role=User.AdminRole.OPERATOR,
        )
        self.sysadmin = User.objects.create_user(
            email="sysadmin@test.local",
            password="pass1234",
            admin_role=User.AdminRole.SYSADMIN,
        )

    def test_editing_draft_does_not_move_fetch_key(self):
        form = SearchForm(DEFAULTS)
        key = form.fetch_key()

        form.update_draft(keyword="浦和")

        self.assertEqual(form.fetch_key(), key)
        self.assertEqual(form.applied["keyword"], "")

    def test_apply_promotes_draft_and_resets_page(self):
        form = SearchForm(DEFAULTS, page=3)
        form.update_draft(keyword="浦和")

        self.assertTrue(form.apply())
        self.assertEqual(form.applied["keyword"], "浦和")
        self.assertEqual(form.page, 1)
        self.assertFalse(form.apply())

    def test_unknown_draft_field_raises(self):
        form = SearchForm(DEFAULTS)

        with self.assertRaises(KeyError):
            form.update_draft(nickname="x")

    def test_reset_restores_defaults(self):
        form = SearchForm(DEFAULTS)
        form.update_draft(status=["active"])
        form.apply()

        form.reset()

        self.assertEqual(form.applied, DEFAULTS)
        self.assertEqual(form.active_criteria(), {})

    def test_from_params_parses_lists_and_flags(self):
        params = QueryDict("status=active,suspended&status=pending&publicOnly=true&page=2&pageSize=50")

        form = SearchForm.from_params(DEFAULTS, params)

        self.assertEqual(form.applied["status"], ["active", "suspended", "pending"])
        self.assertTrue(form.applied["publicOnly"])
        self.assertEqual(form.page, 2)
        self.assertEqual(form.page_size, 50)

    def test_pii_criteria_are_dropped_without_permission(self):
        params = QueryDict("keyword=abc&email=a@example.com")

        operator_form = SearchForm.from_params(DEFAULTS, params, user=self.operator, pii_policy=POLICY)
        sysadmin_form = SearchForm.from_params(DEFAULTS, params, user=self.sysadmin, pii_policy=POLICY)

        self.assertEqual(operator_form.applied["email"], "")
        self.assertEqual(operator_form.applied["keyword"], "abc")
        self.assertEqual(sysadmin_form.applied["email"], "a@example.com")

    def test_fetch_key_differs_by_role(self):
        form = SearchForm(DEFAULTS)

        self.assertNotEqual(form.fetch_key("operator"), form.fetch_key("sysadmin"))

    def test_pii_policy_strips_rows_and_columns(self):
        row = {"nickname": "たろう", "email": "t@example.com", "address": "高砂1-1"}
        columns = [("nickname", "ニックネーム"), ("email", "メールアドレス")]

        self.assertEqual(POLICY.strip_row(row, self.operator), {"nickname": "たろう"})
        self.assertEqual(POLICY.strip_row(row, self.sysadmin), row)
        self.assertEqual(POLICY.columns(columns, self.operator), [("nickname", "ニックネーム")])

    def test_parse_date_param(self):
        self.assertEqual(str(parse_date_param("2024/02/03")), "2024-02-03")
        self.assertIsNone(parse_date_param("2024-13-40"))
        self.assertIsNone(parse_date_param(""))
