# config/settings/base.py
from pathlib import Path
import os
from dotenv import load_dotenv
from datetime import timedelta


BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "unsafe-dev-key")
DEBUG = os.getenv("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = [h.strip() for h in os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",") if h.strip()]

INSTALLED_APPS = [
    # Django
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "corsheaders",
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "django_filters",

    # Domain apps (modular monolith)
    "drmp_core.common.apps.CommonConfig",
    "drmp_core.organizations.apps.OrganizationsConfig",
    "drmp_core.iam.apps.IamConfig",
    "drmp_core.case_packages.apps.CasePackagesConfig",
    "drmp_core.cases.apps.CasesConfig",
]

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]


ROOT_URLCONF = "config.urls"

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
    }
]

WSGI_APPLICATION = "config.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("DB_NAME", "drmp"),
        "USER": os.getenv("DB_USER", "drmp"),
        "PASSWORD": os.getenv("DB_PASSWORD", "drmp"),
        "HOST": os.getenv("DB_HOST", "127.0.0.1"),
        "PORT": os.getenv("DB_PORT", "5432"),
    }
}

# Shared cache: token store, revocation set and import progress live here,
# so every process must point at the same backend.
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.redis.RedisCache",
        "LOCATION": os.getenv("REDIS_URL", "redis://127.0.0.1:6379/0"),
        "KEY_PREFIX": "drmp",
    }
}

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator", "OPTIONS": {"min_length": 6}},
]

LANGUAGE_CODE = "zh-hans"
TIME_ZONE = "Asia/Shanghai"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
MEDIA_ROOT = Path(os.getenv("DRMP_MEDIA_ROOT", BASE_DIR / "media"))
MEDIA_URL = "media/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "drmp_core.iam.auth.CookieOrHeaderJWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",

    # Standard {code, message, data, timestamp} envelope
    "EXCEPTION_HANDLER": "drmp_core.common.api.exceptions.api_exception_handler",

    "DEFAULT_FILTER_BACKENDS": [
        "django_filters.rest_framework.DjangoFilterBackend",
        "rest_framework.filters.OrderingFilter",
        "rest_framework.filters.SearchFilter",
    ],
}

SPECTACULAR_SETTINGS = {
    "TITLE": "DRMP API",
    "DESCRIPTION": "Debt recovery management platform: organizations, users, case packages and cases",
    "VERSION": "0.1.0",

    "COMPONENT_SPLIT_REQUEST": True,
    "SORT_OPERATIONS": True,
    "SORT_OPERATION_PARAMETERS": True,

    # Declared by CookieOrHeaderJWTAuthenticationScheme in drmp_core/iam/openapi.py
    "SECURITY": [
        {"BearerOrCookieJWT": []}
    ],
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(seconds=int(os.getenv("DRMP_ACCESS_TOKEN_SECONDS", "7200"))),
    "REFRESH_TOKEN_LIFETIME": timedelta(seconds=int(os.getenv("DRMP_REFRESH_TOKEN_SECONDS", "604800"))),
    "ROTATE_REFRESH_TOKENS": False,
    "BLACKLIST_AFTER_ROTATION": False,
    "UPDATE_LAST_LOGIN": False,
    "ALGORITHM": "HS256",
    "SIGNING_KEY": os.getenv("DRMP_JWT_SIGNING_KEY") or SECRET_KEY,

    # Cookie settings
    "AUTH_COOKIE": "drmp_access",
    "AUTH_COOKIE_REFRESH": "drmp_refresh",
    "AUTH_COOKIE_SECURE": False,   # set True in production (HTTPS)
    "AUTH_COOKIE_HTTP_ONLY": True,
    "AUTH_COOKIE_SAMESITE": "Lax",
}

# CORS settings
# Development
CORS_ALLOW_ALL_ORIGINS = True  # Only for development!
CORS_ALLOW_CREDENTIALS = True

# ----------------------------
# DRMP
# ----------------------------
# Comma-separated Fernet keys; first encrypts, all decrypt. No default on purpose.
DRMP_FIELD_ENCRYPTION_KEYS = [k for k in os.getenv("DRMP_FIELD_ENCRYPTION_KEYS", "").split(",") if k.strip()]
# HMAC secret for the name/phone lookup digests. Independent of the encryption keys.
DRMP_SEARCH_DIGEST_KEY = os.getenv("DRMP_SEARCH_DIGEST_KEY", "")

DRMP_DEFAULT_PASSWORD = os.getenv("DRMP_DEFAULT_PASSWORD", "123456")
DRMP_DOCUMENT_MAX_FILE_BYTES = int(os.getenv("DRMP_DOCUMENT_MAX_FILE_BYTES", str(10 * 1024 * 1024)))

DRMP_IMPORT_ASYNC = os.getenv("DRMP_IMPORT_ASYNC", "1") == "1"
DRMP_IMPORT_MAX_FILE_BYTES = int(os.getenv("DRMP_IMPORT_MAX_FILE_BYTES", str(100 * 1024 * 1024)))
DRMP_IMPORT_TIMEOUT_SECONDS = int(os.getenv("DRMP_IMPORT_TIMEOUT_SECONDS", "7200"))
DRMP_IMPORT_PROGRESS_TTL = int(os.getenv("DRMP_IMPORT_PROGRESS_TTL", "86400"))

DRMP_EXECUTORS = {
    "import": {
        "MAX_WORKERS": int(os.getenv("DRMP_IMPORT_POOL_MAX_WORKERS", "20")),
        "QUEUE_CAPACITY": int(os.getenv("DRMP_IMPORT_POOL_QUEUE_CAPACITY", "100")),
    },
    "general": {
        "MAX_WORKERS": int(os.getenv("DRMP_GENERAL_POOL_MAX_WORKERS", "50")),
        "QUEUE_CAPACITY": int(os.getenv("DRMP_GENERAL_POOL_QUEUE_CAPACITY", "200")),
    },
}

# ----------------------------
# Logging
# ----------------------------
DRMP_LOG_LEVEL = os.getenv("DRMP_LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "standard"},
    },
    "loggers": {
        "drmp_core": {"handlers": ["console"], "level": DRMP_LOG_LEVEL, "propagate": False},
        "django": {"handlers": ["console"], "level": "WARNING", "propagate": False},
    },
}
