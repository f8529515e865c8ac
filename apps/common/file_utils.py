from __future__ import annotations

import uuid
from pathlib import Path

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.utils import timezone

ALLOWED_IMAGE_CONTENT_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
}
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}
UPLOAD_TYPES = {"shop", "coupon"}

TOO_MANY_FILES_MESSAGE = "ファイル数が多すぎます（最大{max_files}件）"
UNSUPPORTED_TYPE_MESSAGE = "許可されていないファイル形式です"
FILE_TOO_LARGE_MESSAGE = "ファイルサイズが大きすぎます（最大{max_size_mb}MB）"


def max_upload_bytes() -> int:
    return int(getattr(settings, "MAX_UPLOAD_IMAGE_SIZE_MB", 10)) * 1024 * 1024


def validate_upload_count(files) -> None:
    max_files = int(getattr(settings, "MAX_UPLOAD_FILES", 5))
    if len(files) > max_files:
        raise ValidationError(TOO_MANY_FILES_MESSAGE.format(max_files=max_files))


def validate_image_file(value) -> None:
    content_type = str(getattr(value, "content_type", "") or "").lower()
    suffix = Path(getattr(value, "name", "") or "").suffix.lower()
    if content_type:
        if content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
            raise ValidationError(UNSUPPORTED_TYPE_MESSAGE)
    elif suffix not in ALLOWED_IMAGE_EXTENSIONS:
        raise ValidationError(UNSUPPORTED_TYPE_MESSAGE)

    if getattr(value, "size", 0) > max_upload_bytes():
        max_size_mb = getattr(settings, "MAX_UPLOAD_IMAGE_SIZE_MB", 10)
        raise ValidationError(FILE_TOO_LARGE_MESSAGE.format(max_size_mb=max_size_mb))


def _generate_upload_path(prefix: str, filename: str, content_type: str = "") -> str:
    suffix = Path(filename).suffix.lower()
    if suffix not in ALLOWED_IMAGE_EXTENSIONS:
        suffix = ALLOWED_IMAGE_CONTENT_TYPES.get(content_type, ".jpg")

    now = timezone.localtime()
    return f"{prefix}/{now:%Y/%m/%d}/{uuid.uuid4().hex}{suffix}"


def build_upload_prefix(upload_type: str, *, shop_id: str = "", merchant_id: str = "") -> str:
    """``shops/<merchant>/<shop>`` style prefix; missing ids are skipped."""
    base = "coupons" if upload_type == "coupon" else "shops"
    parts = [base]
    for value in (merchant_id, shop_id):
        cleaned = Path(str(value or "").strip()).name
        if cleaned and cleaned not in {".", ".."}:
            parts.append(cleaned)
    return "/".join(parts)


def save_image_bytes(prefix: str, filename: str, content: bytes, content_type: str = "") -> str:
    path = _generate_upload_path(prefix, filename, content_type)
    return default_storage.save(path, ContentFile(content))


def save_uploaded_file(prefix: str, upload) -> str:
    content_type = str(getattr(upload, "content_type", "") or "").lower()
    path = _generate_upload_path(prefix, upload.name or "", content_type)
    return default_storage.save(path, upload)
