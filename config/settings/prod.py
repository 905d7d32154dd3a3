# config/settings/prod.py
from django.core.exceptions import ImproperlyConfigured

from .base import *  # noqa

DEBUG = False

for _name in ("DJANGO_SECRET_KEY", "DRMP_JWT_SIGNING_KEY", "DRMP_FIELD_ENCRYPTION_KEYS", "DRMP_SEARCH_DIGEST_KEY"):
    if not os.getenv(_name):
        raise ImproperlyConfigured(f"{_name} must be set in production")

CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOWED_ORIGINS = [o.strip() for o in os.getenv("DRMP_CORS_ALLOWED_ORIGINS", "").split(",") if o.strip()]
CORS_ALLOW_CREDENTIALS = True

SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True

SIMPLE_JWT["AUTH_COOKIE_SECURE"] = True
SIMPLE_JWT["AUTH_COOKIE_SAMESITE"] = "Lax"  # keep Lax if same-site via subdomain strategy
