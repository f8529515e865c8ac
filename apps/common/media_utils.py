from __future__ import annotations

from urllib.parse import urljoin

from django.conf import settings
from django.core.files.storage import default_storage


def public_media_url(name: str, *, request=None) -> str:
    """Absolute URL the console can render for an uploaded image.

    Object storage already hands back absolute URLs. Local filesystem names are
    joined onto ``PUBLIC_BACKEND_ORIGIN`` when set, or onto the request host.
    """
    name = str(name or "").strip()
    if not name:
        return ""
    if name.startswith(("http://", "https://", "data:")):
        return name

    url = str(default_storage.url(name) or "")
    if url.startswith(("http://", "https://")):
        return url

    origin = str(getattr(settings, "PUBLIC_BACKEND_ORIGIN", "") or "").rstrip("/")
    if origin:
        return urljoin(f"{origin}/", url.lstrip("/"))
    if request is not None:
        return request.build_absolute_uri(url)
    return url
