from __future__ import annotations

from datetime import date, datetime, timezone as dt_timezone

from django.test import SimpleTestCase, override_settings

from apps.common.csv_export import (
    CSV_BOM,
    build_csv_content,
    build_csv_filename,
    escape_csv_value,
    format_csv_datetime,
)


@override_settings(TIME_ZONE="Asia/Tokyo", USE_TZ=True)
class CsvExportTestCase(SimpleTestCase):
    def test_content_starts_with_bom_and_header_row(self):
        content = build_csv_content([("name", "店舗名"), ("status", "ステータス")], [{"name": "本店", "status": "営業中"}])

        self.assertTrue(content.startswith(CSV_BOM))
        self.assertEqual(content[len(CSV_BOM):].split("\n"), ["店舗名,ステータス", "本店,営業中"])

    def test_missing_and_none_values_render_empty(self):
        content = build_csv_content([("a", "A"), ("b", "B")], [{"a": None}])

        self.assertEqual(content[len(CSV_BOM):].split("\n")[1], ",")

    def test_values_with_separators_are_quoted(self):
        self.assertEqual(escape_csv_value("a,b"), '"a,b"')
        self.assertEqual(escape_csv_value('say "hi"'), '"say ""hi"""')
        self.assertEqual(escape_csv_value("line1\nline2"), '"line1\nline2"')
        self.assertEqual(escape_csv_value("plain"), "plain")
        self.assertEqual(escape_csv_value(0), "0")

    def test_filename_uses_local_timestamp(self):
        now = datetime(2024, 3, 31, 15, 4, 5, tzinfo=dt_timezone.utc)

        self.assertEqual(build_csv_filename("shops", now), "shops_20240401_000405.csv")

    def test_datetime_and_date_formatting(self):
        self.assertEqual(format_csv_datetime(datetime(2024, 1, 2, 3, 4, tzinfo=dt_timezone.utc)), "2024/01/02 12:04")
        self.assertEqual(format_csv_datetime(date(1990, 5, 6)), "1990/05/06")
        self.assertEqual(format_csv_datetime(None), "")
