from .base import *  # noqa: F403,F401
from django.core.exceptions import ImproperlyConfigured
from urllib.parse import urlparse

DEBUG = True
ALLOWED_HOSTS = ["*"]
CORS_ALLOW_ALL_ORIGINS = True


def _is_local_host(host: str, *extra: str) -> bool:
    return (host or "").strip().lower() in {"", "127.0.0.1", "localhost", *extra}


# Local runs never touch shared DB, Redis or object storage unless opted in.
if DB_ENGINE == "postgresql" and not env_bool("ALLOW_REMOTE_DB_IN_LOCAL", False):
    if not _is_local_host(str(DATABASES["default"].get("HOST", "")), "db"):
        raise ImproperlyConfigured("Remote DB host blocked in local settings. Set ALLOW_REMOTE_DB_IN_LOCAL=true.")

if USE_REDIS_CACHE and not env_bool("ALLOW_REMOTE_REDIS_IN_LOCAL", False):
    if not _is_local_host(urlparse(REDIS_CACHE_URL).hostname or "", "redis"):
        raise ImproperlyConfigured("Remote Redis host blocked in local settings. Set ALLOW_REMOTE_REDIS_IN_LOCAL=true.")

if USE_S3_MEDIA and not env_bool("ALLOW_S3_MEDIA_IN_LOCAL", False):
    raise ImproperlyConfigured("S3 media storage blocked in local settings. Set ALLOW_S3_MEDIA_IN_LOCAL=true.")
