from __future__ import annotations

import logging

import requests
from django.conf import settings

from .exceptions import UpstreamServiceError

logger = logging.getLogger(__name__)

ADDRESS_SEARCH_FAILED_MESSAGE = "住所検索に失敗しました"


class ZipcloudClient:
    """Postal code lookup against the zipcloud search API."""

    def __init__(self):
        self.api_url = str(getattr(settings, "ZIPCLOUD_API_URL", "https://zipcloud.ibsnet.co.jp/api/search"))
        self.timeout = int(getattr(settings, "ZIPCLOUD_TIMEOUT_SECONDS", 10))

    def search(self, postal_code: str) -> dict | None:
        """Return ``{prefecture, city, address1}`` or None when nothing matched."""
        try:
            response = requests.get(
                self.api_url,
                params={"zipcode": postal_code},
                timeout=self.timeout,
            )
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("zipcloud lookup failed for %s: %s", postal_code, exc)
            raise UpstreamServiceError(ADDRESS_SEARCH_FAILED_MESSAGE) from exc

        if not isinstance(payload, dict):
            logger.warning("zipcloud returned an unexpected payload for %s", postal_code)
            raise UpstreamServiceError(ADDRESS_SEARCH_FAILED_MESSAGE)

        results = payload.get("results") or []
        if payload.get("status") != 200 or not results:
            return None

        first = results[0] or {}
        return {
            "prefecture": first.get("address1") or "",
            "city": first.get("address2") or "",
            "address1": first.get("address3") or "",
        }
