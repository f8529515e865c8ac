from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable, Iterable, Iterator

from django.conf import settings
from django.core.paginator import Paginator
from django.http import HttpResponse
from django.utils import timezone

logger = logging.getLogger(__name__)

CSV_BOM = "\ufeff"
_NEEDS_QUOTES = (",", '"', "\r", "\n")


def format_csv_datetime(value) -> str:
    if not value:
        return ""
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.strftime("%Y/%m/%d %H:%M")
    if isinstance(value, date):
        return value.strftime("%Y/%m/%d")
    return str(value)


def escape_csv_value(value: Any) -> str:
    if value is None:
        return ""
    text = str(value)
    if any(char in text for char in _NEEDS_QUOTES):
        return '"' + text.replace('"', '""') + '"'
    return text


def build_csv_content(columns: list[tuple[str, str]], rows: Iterable[dict]) -> str:
    """Render ``(key, header)`` columns over dict rows. BOM prefixed, ``\\n`` separated."""
    lines = [",".join(escape_csv_value(header) for _, header in columns)]
    for row in rows:
        lines.append(",".join(escape_csv_value(row.get(key)) for key, _ in columns))
    return CSV_BOM + "\n".join(lines)


def build_csv_filename(prefix: str, now: datetime | None = None) -> str:
    current = timezone.localtime(now) if now else timezone.localtime()
    return f"{prefix}_{current:%Y%m%d_%H%M%S}.csv"


def iter_queryset_pages(queryset, page_size: int | None = None) -> Iterator[Any]:
    page_size = page_size or int(getattr(settings, "CSV_EXPORT_PAGE_SIZE", 100))
    paginator = Paginator(queryset, page_size)
    for page_number in paginator.page_range:
        yield from paginator.page(page_number).object_list


def collect_export_rows(
    queryset,
    *,
    serialize: Callable[[Any], dict],
    matches: Callable[[Any], bool] | None = None,
    label: str = "",
) -> list[dict]:
    """Walk every page of ``queryset`` and serialize each row.

    ``matches`` re-checks the criteria in Python. A row it rejects is still
    exported, since the queryset is what the list count reports, but the
    disagreement is logged.
    """
    rows: list[dict] = []
    mismatched = 0
    for obj in iter_queryset_pages(queryset):
        if matches is not None and not matches(obj):
            mismatched += 1
        rows.append(serialize(obj))
    if mismatched:
        logger.warning("%s export: %d of %d rows failed the criteria re-check", label or "csv", mismatched, len(rows))
    return rows


def csv_response(content: str, filename: str) -> HttpResponse:
    response = HttpResponse(content, content_type="text/csv; charset=utf-8")
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response
