from __future__ import annotations

import logging
from dataclasses import replace

from django.conf import settings

from apps.common.image_utils import PREVIEW_PROFILE, InvalidDataURL, compress_data_url, is_data_url

from .constants import CONFIRM_SESSION_KEY

logger = logging.getLogger(__name__)


def confirm_route(shop_id=None) -> str:
    return f"/shops/{shop_id}/confirm" if shop_id else "/shops/confirm"


def form_route(shop_id=None) -> str:
    return f"/shops/{shop_id}/edit" if shop_id else "/shops/new"


def compress_previews(previews: list[str]) -> list[str]:
    """Shrink data URL previews before they are kept in the session."""
    max_bytes = int(getattr(settings, "SHOP_CONFIRM_PREVIEW_MAX_BYTES", PREVIEW_PROFILE.max_bytes))
    profile = replace(PREVIEW_PROFILE, max_bytes=max_bytes)
    compressed = []
    for preview in previews:
        if not is_data_url(preview):
            compressed.append(preview)
            continue
        try:
            compressed.append(compress_data_url(preview, profile))
        except InvalidDataURL as exc:
            logger.warning("preview kept uncompressed: %s", exc)
            compressed.append(preview)
    return compressed


def stage_confirm_data(request, data: dict) -> None:
    request.session[CONFIRM_SESSION_KEY] = data
    request.session.modified = True


def load_confirm_data(request) -> dict | None:
    data = request.session.get(CONFIRM_SESSION_KEY)
    return data if isinstance(data, dict) else None


def clear_confirm_data(request) -> None:
    if CONFIRM_SESSION_KEY in request.session:
        del request.session[CONFIRM_SESSION_KEY]


def check_confirm_mode(data: dict | None, shop_id=None) -> tuple[str, str] | None:
    """Return ``(error_code, redirect_to)`` when ``data`` cannot be confirmed at this route."""
    if not data:
        return "CONFIRM_DATA_NOT_FOUND", form_route(shop_id)

    staged_shop_id = data.get("shopId") if data.get("isEdit") else None
    if shop_id is None and staged_shop_id:
        return "CONFIRM_MODE_MISMATCH", confirm_route(staged_shop_id)
    if shop_id is not None and str(staged_shop_id or "") != str(shop_id):
        return "CONFIRM_MODE_MISMATCH", confirm_route(staged_shop_id)
    return None
