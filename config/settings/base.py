from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Any

BASE_DIR = Path(__file__).resolve().parents[2]

_TRUTHY = {"1", "true", "yes", "y", "on"}


def _read_dotenv(path: Path) -> None:
    """Load ``KEY=VALUE`` lines without overriding the real environment."""
    if not path.is_file():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip().strip("\"'"))


for _name in (".env", ".env.local"):
    _read_dotenv(BASE_DIR / _name)


def env(key: str, default: Any = None) -> Any:
    return os.environ.get(key, default)


def env_bool(key: str, default: bool = False) -> bool:
    raw = env(key)
    if raw is None:
        return default
    return str(raw).strip().lower() in _TRUTHY


def env_list(key: str, default: str = "") -> list[str]:
    return [item.strip() for item in str(env(key, default) or "").split(",") if item.strip()]


def env_int(key: str, default: int) -> int:
    raw = env(key)
    return default if raw in (None, "") else int(raw)


SECRET_KEY = env("DJANGO_SECRET_KEY", "unsafe-local-secret-key-change-me")
DEBUG = env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = env_list("DJANGO_ALLOWED_HOSTS", "127.0.0.1,localhost")

# Where uploaded images are served from and where registration mails point.
PUBLIC_BACKEND_ORIGIN = env("PUBLIC_BACKEND_ORIGIN", "").strip().rstrip("/")
CONSOLE_FRONTEND_ORIGIN = env("CONSOLE_FRONTEND_ORIGIN", "http://localhost:3000").strip().rstrip("/")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "corsheaders",
    "rest_framework",
    "rest_framework_simplejwt.token_blacklist",
    "drf_spectacular",
    "apps.common",
    "apps.accounts",
    "apps.merchants",
    "apps.shops",
    "apps.coupons",
    "apps.members",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"
ASGI_APPLICATION = "config.asgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

# Database

DB_ENGINE = env("DB_ENGINE", "sqlite3")
if DB_ENGINE == "postgresql":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": env("DB_NAME", "saicoin_console"),
            "USER": env("DB_USER", "saicoin"),
            "PASSWORD": env("DB_PASSWORD", "saicoin"),
            "HOST": env("DB_HOST", "127.0.0.1"),
            "PORT": env("DB_PORT", "5432"),
            "CONN_MAX_AGE": env_int("DB_CONN_MAX_AGE", 60),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
AUTH_USER_MODEL = "accounts.User"

# Cache and sessions. Staged shop confirm data lives in the session, so
# multi-process deployments need the Redis backed session cache.

USE_REDIS_CACHE = env_bool("USE_REDIS_CACHE", False)
CACHE_DEFAULT_TTL = env_int("CACHE_DEFAULT_TTL", 300)
REDIS_CACHE_URL = env("REDIS_CACHE_URL", "redis://redis:6379/1")
REDIS_SESSION_URL = env("REDIS_SESSION_URL", "redis://redis:6379/2")
SESSION_COOKIE_AGE = env_int("SESSION_COOKIE_AGE", 60 * 60 * 24)


def _redis_cache(location: str, timeout: int) -> dict[str, Any]:
    return {
        "BACKEND": "django_redis.cache.RedisCache",
        "LOCATION": location,
        "OPTIONS": {"CLIENT_CLASS": "django_redis.client.DefaultClient"},
        "TIMEOUT": timeout,
    }


if USE_REDIS_CACHE:
    CACHES = {
        "default": _redis_cache(REDIS_CACHE_URL, CACHE_DEFAULT_TTL),
        "session": _redis_cache(REDIS_SESSION_URL, SESSION_COOKIE_AGE),
    }
    SESSION_ENGINE = "django.contrib.sessions.backends.cache"
    SESSION_CACHE_ALIAS = "session"
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "saicoin-console",
            "TIMEOUT": CACHE_DEFAULT_TTL,
        }
    }

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator", "OPTIONS": {"min_length": 8}},
]
# Lifetime of the set-password link in registration mails.
PASSWORD_RESET_TIMEOUT = env_int("ACCOUNT_SETUP_TIMEOUT_SECONDS", 60 * 60 * 24 * 3)

LANGUAGE_CODE = "ja"
TIME_ZONE = "Asia/Tokyo"
USE_I18N = True
USE_TZ = True

# Static files and uploaded shop/coupon images

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
MEDIA_URL = "/media/"
MEDIA_ROOT = BASE_DIR / "media"

USE_S3_MEDIA = env_bool("USE_S3_MEDIA", False)
if USE_S3_MEDIA:
    INSTALLED_APPS.append("storages")
    AWS_ACCESS_KEY_ID = env("AWS_ACCESS_KEY_ID", "")
    AWS_SECRET_ACCESS_KEY = env("AWS_SECRET_ACCESS_KEY", "")
    AWS_STORAGE_BUCKET_NAME = env("AWS_STORAGE_BUCKET_NAME", "")
    AWS_S3_REGION_NAME = env("AWS_S3_REGION_NAME", "")
    AWS_S3_ENDPOINT_URL = env("AWS_S3_ENDPOINT_URL", "") or None
    AWS_S3_CUSTOM_DOMAIN = env("AWS_S3_CUSTOM_DOMAIN", "") or None
    AWS_QUERYSTRING_AUTH = env_bool("AWS_QUERYSTRING_AUTH", False)
    AWS_DEFAULT_ACL = None
    AWS_S3_FILE_OVERWRITE = False

    STORAGES = {
        "default": {
            "BACKEND": "storages.backends.s3.S3Storage",
            "OPTIONS": {
                "location": env("AWS_S3_MEDIA_PREFIX", "media").strip("/"),
                "object_parameters": {
                    "CacheControl": env("AWS_S3_MEDIA_CACHE_CONTROL", "public, max-age=31536000, immutable"),
                },
            },
        },
        "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
    }

# API

REST_FRAMEWORK = {
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_AUTHENTICATION_CLASSES": ("rest_framework_simplejwt.authentication.JWTAuthentication",),
    "DEFAULT_PERMISSION_CLASSES": ("rest_framework.permissions.IsAuthenticated",),
    "EXCEPTION_HANDLER": "apps.common.exceptions.custom_exception_handler",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Saicoin Console API",
    "DESCRIPTION": "さいこいん 管理コンソール API (事業者・店舗・クーポン・ユーザー)",
    "VERSION": "1.0.0",
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=env_int("JWT_ACCESS_MINUTES", 30)),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=env_int("JWT_REFRESH_DAYS", 7)),
    "ROTATE_REFRESH_TOKENS": True,
    "BLACKLIST_AFTER_ROTATION": True,
    "UPDATE_LAST_LOGIN": True,
    "AUTH_HEADER_TYPES": ("Bearer",),
}

_LOCAL_CONSOLE_ORIGINS = "http://127.0.0.1:3000,http://localhost:3000"

CORS_ALLOWED_ORIGINS = env_list("CORS_ALLOWED_ORIGINS", _LOCAL_CONSOLE_ORIGINS)
CORS_ALLOW_CREDENTIALS = True
# List ETags and CSV filenames are read by the console.
CORS_EXPOSE_HEADERS = ["ETag", "Content-Disposition"]
CSRF_TRUSTED_ORIGINS = env_list("CSRF_TRUSTED_ORIGINS", _LOCAL_CONSOLE_ORIGINS)

# Console behaviour

LIST_DEFAULT_PAGE_SIZE = env_int("LIST_DEFAULT_PAGE_SIZE", 20)
LIST_MAX_PAGE_SIZE = env_int("LIST_MAX_PAGE_SIZE", 100)
CSV_EXPORT_PAGE_SIZE = env_int("CSV_EXPORT_PAGE_SIZE", 100)

MAX_UPLOAD_IMAGE_SIZE_MB = env_int("MAX_UPLOAD_IMAGE_SIZE_MB", 10)
MAX_UPLOAD_FILES = env_int("MAX_UPLOAD_FILES", 5)
MAX_MULTIPART_BODY_MB = env_int("MAX_MULTIPART_BODY_MB", 60)
SHOP_CONFIRM_PREVIEW_MAX_BYTES = env_int("SHOP_CONFIRM_PREVIEW_MAX_BYTES", 500 * 1024)

# Staged confirm payloads carry base64 image previews in the request body.
DATA_UPLOAD_MAX_MEMORY_SIZE = MAX_MULTIPART_BODY_MB * 1024 * 1024
FILE_UPLOAD_MAX_MEMORY_SIZE = MAX_MULTIPART_BODY_MB * 1024 * 1024

ZIPCLOUD_API_URL = env("ZIPCLOUD_API_URL", "https://zipcloud.ibsnet.co.jp/api/search")
ZIPCLOUD_TIMEOUT_SECONDS = env_int("ZIPCLOUD_TIMEOUT_SECONDS", 10)

EMAIL_BACKEND = env("EMAIL_BACKEND", "django.core.mail.backends.console.EmailBackend")
DEFAULT_FROM_EMAIL = env("DEFAULT_FROM_EMAIL", "no-reply@saicoin.local")

LOG_LEVEL = env("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
    "loggers": {
        "apps": {"handlers": ["console"], "level": env("APP_LOG_LEVEL", LOG_LEVEL), "propagate": False},
        "django.request": {"handlers": ["console"], "level": "WARNING", "propagate": False},
    },
}
