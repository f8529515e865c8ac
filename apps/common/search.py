"""Search criteria, fetch keys and PII suppression shared by the list endpoints.

A list endpoint keeps two copies of its criteria. The *draft* is what the
operator is still editing; the *applied* copy is what the last search ran
with. Only ``apply()`` moves draft into applied, so editing a filter never
changes the fetch key and never triggers a refetch by itself. Request query
parameters are already an applied search, so views build the form with
``SearchForm.from_params``.
"""

from __future__ import annotations

import copy
import hashlib
import json
from typing import Any, Callable, Iterable

from django.db.models import Count, Max
from django.utils.dateparse import parse_date
from rest_framework import status
from rest_framework.response import Response

from apps.accounts.admin_security import (
    ConsolePermission,
    get_console_role,
    has_console_permission,
    log_audit_event,
)

from .pagination import clamp_page_number, clamp_page_size, paginate
from .response import success_response

TRUE_VALUES = {"1", "true", "on", "yes"}


def _split_values(raw) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = [raw]
    values: list[str] = []
    for item in raw:
        for part in str(item).split(","):
            part = part.strip()
            if part:
                values.append(part)
    return values


def _coerce(params, key: str, default):
    if isinstance(default, list):
        if hasattr(params, "getlist"):
            return _split_values(params.getlist(key))
        return _split_values(params.get(key))
    raw = params.get(key)
    if isinstance(default, bool):
        if raw is None:
            return default
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in TRUE_VALUES
    if raw is None:
        return default
    return str(raw).strip()


def _is_blank(value) -> bool:
    return value in (None, "", [], False)


class PiiPolicy:
    """Declares which filters and output keys of one list are personal data."""

    def __init__(
        self,
        *,
        filter_fields: Iterable[str] = (),
        output_fields: Iterable[str] = (),
        permission: str = ConsolePermission.PII_FULL_VIEW,
    ):
        self.filter_fields = frozenset(filter_fields)
        self.output_fields = frozenset(output_fields)
        self.permission = permission

    def allows(self, user) -> bool:
        return has_console_permission(user, self.permission)

    def strip_criteria(self, criteria: dict, user, defaults: dict) -> dict:
        if self.allows(user):
            return criteria
        cleaned = dict(criteria)
        for key in self.filter_fields:
            if key in cleaned:
                cleaned[key] = copy.deepcopy(defaults.get(key, ""))
        return cleaned

    def strip_row(self, row: dict, user) -> dict:
        if self.allows(user):
            return row
        return {key: value for key, value in row.items() if key not in self.output_fields}

    def strip_rows(self, rows: list[dict], user) -> list[dict]:
        if self.allows(user):
            return rows
        return [self.strip_row(row, user) for row in rows]

    def columns(self, columns: list[tuple[str, str]], user) -> list[tuple[str, str]]:
        """Filter ``(key, header)`` CSV columns."""
        if self.allows(user):
            return columns
        return [(key, header) for key, header in columns if key not in self.output_fields]


class SearchForm:
    """Draft and applied list criteria.

    The list views only build forms through ``from_params``. ``update_draft``,
    ``apply``, ``reset`` and ``active_criteria`` are for API clients that keep a
    form across requests.
    """

    def __init__(self, defaults: dict[str, Any], *, page=1, page_size=None):
        self.defaults = copy.deepcopy(defaults)
        self.draft = copy.deepcopy(defaults)
        self.applied = copy.deepcopy(defaults)
        self.page = clamp_page_number(page)
        self.page_size = clamp_page_size(page_size)

    @classmethod
    def from_params(cls, defaults: dict[str, Any], params, *, user=None, pii_policy: PiiPolicy | None = None):
        form = cls(
            defaults,
            page=params.get("page"),
            page_size=params.get("pageSize") or params.get("limit"),
        )
        values = {key: _coerce(params, key, default) for key, default in defaults.items()}
        if pii_policy is not None:
            values = pii_policy.strip_criteria(values, user, defaults)
        form.draft = copy.deepcopy(values)
        form.applied = values
        return form

    def update_draft(self, **values) -> None:
        unknown = set(values) - set(self.defaults)
        if unknown:
            raise KeyError(f"unknown search fields: {', '.join(sorted(unknown))}")
        self.draft.update(copy.deepcopy(values))

    def apply(self) -> bool:
        """Promote the draft and go back to page 1; True when the fetch key moved."""
        before = self.fetch_key()
        self.applied = copy.deepcopy(self.draft)
        self.page = 1
        return self.fetch_key() != before

    def reset(self) -> None:
        self.draft = copy.deepcopy(self.defaults)
        self.applied = copy.deepcopy(self.defaults)
        self.page = 1

    def active_criteria(self) -> dict[str, Any]:
        return {key: value for key, value in self.applied.items() if not _is_blank(value)}

    def fetch_key(self, role: str = "") -> str:
        payload = {
            "criteria": self.applied,
            "page": self.page,
            "pageSize": self.page_size,
            "role": role,
        }
        encoded = json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def build_list_etag(fetch_key: str, queryset, version_fields: Iterable[str] = ("updated_at",)) -> str:
    """Weak validator for a list page.

    ``version_fields`` names every timestamp the rows are rendered from,
    including ones on related rows such as a linked account.
    """
    version_fields = tuple(version_fields)
    aggregates = {f"v{index}": Max(name) for index, name in enumerate(version_fields)}
    stats = queryset.order_by().aggregate(total=Count("pk", distinct=True), **aggregates)
    versions = [stats[key].isoformat() if stats[key] else "" for key in aggregates]
    source = ":".join([fetch_key, str(stats["total"]), *versions])
    digest = hashlib.sha256(source.encode("utf-8")).hexdigest()
    return f'"{digest[:32]}"'


def is_not_modified(request, etag: str) -> bool:
    if request.method not in ("GET", "HEAD"):
        return False
    header = str(request.headers.get("If-None-Match", "") or "")
    if not header:
        return False
    candidates = {candidate.strip().removeprefix("W/") for candidate in header.split(",")}
    return etag in candidates or "*" in candidates


def build_list_response(
    request,
    *,
    form: SearchForm,
    queryset,
    serialize: Callable[[Any], dict],
    pii_policy: PiiPolicy | None = None,
    audit_target: str = "",
    version_fields: Iterable[str] = ("updated_at",),
    extra: dict | None = None,
) -> Response:
    etag = build_list_etag(form.fetch_key(get_console_role(request.user)), queryset, version_fields)
    if is_not_modified(request, etag):
        return Response(status=status.HTTP_304_NOT_MODIFIED, headers={"ETag": etag})

    objects, meta = paginate(queryset, page=form.page, page_size=form.page_size)
    rows = [serialize(obj) for obj in objects]
    if pii_policy is not None:
        if pii_policy.allows(request.user):
            if rows and audit_target:
                log_audit_event(
                    request,
                    action="PII_FULL_VIEW",
                    target_type=audit_target,
                    metadata={"endpoint": request.path, "count": len(rows)},
                )
        else:
            rows = pii_policy.strip_rows(rows, request.user)

    data = {**meta, "results": rows}
    if extra:
        data.update(extra)
    return success_response(data, headers={"ETag": etag})


def parse_date_param(value):
    """``YYYY-MM-DD`` (or ``YYYY/MM/DD``) to a date; None when blank or malformed."""
    if not value:
        return None
    try:
        return parse_date(str(value).strip().replace("/", "-"))
    except ValueError:
        return None


def contains_text(haystack, needle: str) -> bool:
    if not needle:
        return True
    return needle.casefold() in str(haystack or "").casefold()
