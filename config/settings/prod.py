from .base import *  # noqa: F403,F401
from django.core.exceptions import ImproperlyConfigured

DEBUG = False

SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_SSL_REDIRECT = env_bool("SECURE_SSL_REDIRECT", True)
SECURE_HSTS_SECONDS = 31536000
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_REFERRER_POLICY = "strict-origin-when-cross-origin"
X_FRAME_OPTIONS = "DENY"

# The staged shop confirm flow rides on the session cookie.
SESSION_COOKIE_SECURE = True
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = env("SESSION_COOKIE_SAMESITE", "Lax")
CSRF_COOKIE_SECURE = True
CSRF_COOKIE_SAMESITE = env("CSRF_COOKIE_SAMESITE", "Lax")

EMAIL_BACKEND = env("EMAIL_BACKEND", "django.core.mail.backends.smtp.EmailBackend")
EMAIL_HOST = env("EMAIL_HOST", "")
EMAIL_PORT = env_int("EMAIL_PORT", 587)
EMAIL_HOST_USER = env("EMAIL_HOST_USER", "")
EMAIL_HOST_PASSWORD = env("EMAIL_HOST_PASSWORD", "")
EMAIL_USE_TLS = env_bool("EMAIL_USE_TLS", True)

if CONSOLE_FRONTEND_ORIGIN not in CSRF_TRUSTED_ORIGINS:
    CSRF_TRUSTED_ORIGINS = [*CSRF_TRUSTED_ORIGINS, CONSOLE_FRONTEND_ORIGIN]


def _production_problems() -> list[str]:
    problems = []
    if SECRET_KEY in {"", "unsafe-local-secret-key-change-me"}:
        problems.append("Set a strong DJANGO_SECRET_KEY.")
    if not ALLOWED_HOSTS or all(host in {"127.0.0.1", "localhost"} for host in ALLOWED_HOSTS):
        problems.append("Set DJANGO_ALLOWED_HOSTS to the console API domain.")
    if DB_ENGINE != "postgresql":
        problems.append("Set DB_ENGINE=postgresql.")
    if not USE_REDIS_CACHE:
        problems.append("Set USE_REDIS_CACHE=true so staged shop data survives across workers.")
    if not USE_S3_MEDIA or not AWS_STORAGE_BUCKET_NAME:
        problems.append("Set USE_S3_MEDIA=true and AWS_STORAGE_BUCKET_NAME for shop and coupon images.")
    if not CONSOLE_FRONTEND_ORIGIN.startswith("https://"):
        problems.append("CONSOLE_FRONTEND_ORIGIN must be https; registration mails link to it.")
    return problems


_problems = _production_problems()
if _problems:
    raise ImproperlyConfigured("Production settings are incomplete: " + " ".join(_problems))
