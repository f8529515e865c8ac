from __future__ import annotations

import base64
import binascii
import io
import logging
import re
from dataclasses import dataclass

from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(?P<params>(;[\w=.-]+)*?)(?P<b64>;base64)?,(?P<body>.*)$", re.DOTALL)


@dataclass(frozen=True)
class CompressionProfile:
    max_bytes: int
    max_width: int
    max_height: int
    initial_quality: float
    min_quality: float
    quality_step: float = 0.1


# Staged previews are kept in the session, so they are squeezed harder.
PREVIEW_PROFILE = CompressionProfile(
    max_bytes=500 * 1024,
    max_width=1280,
    max_height=1280,
    initial_quality=0.7,
    min_quality=0.5,
)
UPLOAD_PROFILE = CompressionProfile(
    max_bytes=int(9.5 * 1024 * 1024),
    max_width=2560,
    max_height=2560,
    initial_quality=0.9,
    min_quality=0.6,
)


class InvalidDataURL(ValueError):
    pass


def is_data_url(value) -> bool:
    return isinstance(value, str) and value.startswith("data:")


def decode_data_url(data_url: str) -> tuple[bytes, str]:
    match = DATA_URL_PATTERN.match(str(data_url or ""))
    if not match:
        raise InvalidDataURL("data URL の形式が正しくありません")
    content_type = (match.group("mime") or "application/octet-stream").lower()
    body = match.group("body")
    if match.group("b64"):
        try:
            return base64.b64decode(body, validate=True), content_type
        except (binascii.Error, ValueError) as exc:
            raise InvalidDataURL("data URL のデコードに失敗しました") from exc
    return body.encode("utf-8"), content_type


def encode_data_url(content: bytes, content_type: str) -> str:
    return f"data:{content_type};base64,{base64.b64encode(content).decode('ascii')}"


def compress_image(content: bytes, content_type: str, profile: CompressionProfile) -> tuple[bytes, str]:
    """Re-encode ``content`` as WebP within ``profile``.

    Returns the original bytes when they are already a small enough WebP, when
    the image cannot be decoded, or when the best attempt is still over the
    limit while the original fits.
    """
    if len(content) <= profile.max_bytes and content_type == "image/webp":
        return content, content_type

    try:
        with Image.open(io.BytesIO(content)) as source:
            img = ImageOps.exif_transpose(source)
            scale = min(1.0, profile.max_width / img.width, profile.max_height / img.height)
            target_size = (max(1, int(img.width * scale)), max(1, int(img.height * scale)))
            if target_size != img.size:
                img = img.resize(target_size, Image.Resampling.LANCZOS)
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA" if "transparency" in img.info or img.mode in ("LA", "PA") else "RGB")

            quality = profile.initial_quality
            encoded = b""
            # Float steps drift below the floor without the epsilon.
            while quality >= profile.min_quality - 1e-9:
                buffer = io.BytesIO()
                img.save(buffer, "WEBP", quality=int(round(quality * 100)))
                encoded = buffer.getvalue()
                if len(encoded) <= profile.max_bytes:
                    break
                quality -= profile.quality_step
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        logger.warning("image compression skipped: %s", exc)
        return content, content_type

    if not encoded:
        return content, content_type
    if len(encoded) > profile.max_bytes and len(content) <= profile.max_bytes:
        return content, content_type
    return encoded, "image/webp"


def compress_data_url(data_url: str, profile: CompressionProfile = PREVIEW_PROFILE) -> str:
    content, content_type = decode_data_url(data_url)
    compressed, compressed_type = compress_image(content, content_type, profile)
    if compressed is content:
        return data_url
    return encode_data_url(compressed, compressed_type)
