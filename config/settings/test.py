# config/settings/test.py
import secrets
import tempfile

from cryptography.fernet import Fernet

from .base import *  # noqa

DEBUG = False
SECRET_KEY = "test-secret-key"
SIMPLE_JWT["SIGNING_KEY"] = "test-jwt-signing-key"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "drmp-tests",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

DRMP_FIELD_ENCRYPTION_KEYS = [Fernet.generate_key().decode("ascii")]
DRMP_SEARCH_DIGEST_KEY = secrets.token_hex(32)
DRMP_IMPORT_ASYNC = False

MEDIA_ROOT = tempfile.mkdtemp(prefix="drmp-test-media-")

LOGGING["loggers"]["drmp_core"]["level"] = "WARNING"
