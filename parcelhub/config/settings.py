import os
from pathlib import Path
from datetime import timedelta

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env if present. Values already exported in the shell win over the file.
load_dotenv(BASE_DIR / ".env")

# ======== CRITICAL SECURITY SETTINGS ========
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-insecure-secret")
if SECRET_KEY == "dev-insecure-secret" and os.getenv("ENVIRONMENT") == "production":
    raise ValueError("DJANGO_SECRET_KEY must be set with a secure value in production!")

DEBUG = os.getenv("DJANGO_DEBUG", "0") == "1"
if DEBUG and os.getenv("ENVIRONMENT") == "production":
    raise ValueError("DEBUG mode is not allowed in production! Set DJANGO_DEBUG=0")

ALLOWED_HOSTS = os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",")
if "*" in ALLOWED_HOSTS and os.getenv("ENVIRONMENT") == "production":
    raise ValueError("ALLOWED_HOSTS must be specified in production! Do not use '*'")

LANGUAGE_CODE = os.getenv("DJANGO_LANGUAGE_CODE", "en-us")
TIME_ZONE = os.getenv("DJANGO_TIME_ZONE", "Asia/Kolkata")
USE_I18N = True
USE_TZ = True

API_PREFIX = "/api"


def _env_flag(name: str, default: str = "0") -> bool:
    """Normalize boolean-ish environment flags (1/true/on/y/yes)."""
    value = os.getenv(name, default)
    if value is None:
        return False
    return str(value).strip().lower() in {"1", "true", "yes", "on", "y"}


def _env_seconds(name: str, default: str) -> float:
    return float(os.getenv(name, default))


INSTALLED_APPS = [
    "jazzmin",
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework_simplejwt",
    "corsheaders",
    "drf_spectacular",
    "django_celery_results",
    "django_celery_beat",
    "apps.core",
    "apps.tenancy",
    "apps.users",
    "apps.audit",
    "apps.credits",
    "apps.orders",
    "apps.couriers",
    "apps.shopify",
    "apps.notifications",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "apps.core.middleware.RequestLogMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"

if os.getenv("POSTGRES_DB"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("POSTGRES_DB"),
            "USER": os.getenv("POSTGRES_USER", "parcelhub"),
            "PASSWORD": os.getenv("POSTGRES_PASSWORD", "changeme"),
            "HOST": os.getenv("POSTGRES_HOST", "localhost"),
            "PORT": os.getenv("POSTGRES_PORT", "5432"),
            "OPTIONS": {
                "options": "-c search_path=public,pg_catalog",
            },
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

if os.getenv("REDIS_URL"):
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.redis.RedisCache",
            "LOCATION": os.getenv("REDIS_URL"),
        }
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "parcelhub",
        }
    }

AUTH_USER_MODEL = "users.User"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
        "apps.users.auth.ApiTokenAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "EXCEPTION_HANDLER": "apps.core.exceptions.api_exception_handler",
    "DEFAULT_THROTTLE_RATES": {
        "shopify_webhook": os.getenv("WEBHOOK_THROTTLE_RATE", "120/min"),
    },
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=int(os.getenv("JWT_ACCESS_MIN", "60"))),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=int(os.getenv("JWT_REFRESH_DAYS", "7"))),
    "SIGNING_KEY": os.getenv("JWT_SECRET", SECRET_KEY),
    "AUTH_HEADER_TYPES": ("Bearer",),
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Parcelhub API",
    "DESCRIPTION": "Multi-tenant shipping API under /api",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}

CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOWED_ORIGINS = [
    origin for origin in os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000").split(",") if origin
]
from corsheaders.defaults import default_headers
CORS_ALLOW_HEADERS = list(default_headers) + [
    "x-api-token",
    "x-request-id",
]
CORS_EXPOSE_HEADERS = ["x-request-id"]

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "static"
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

CSRF_TRUSTED_ORIGINS = CORS_ALLOWED_ORIGINS

JAZZMIN_SETTINGS = {
    "site_title": "Parcelhub Admin",
    "site_header": "Parcelhub Admin",
    "site_brand": "Parcelhub",
}

# ============================================================================
# COURIER / MESSAGING / STOREFRONT INTEGRATIONS
# ============================================================================
DELHIVERY_BASE_URL = os.getenv("DELHIVERY_BASE_URL", "https://track.delhivery.com")
# Used when a pickup location carries no key of its own
DELHIVERY_API_KEY = os.getenv("DELHIVERY_API_KEY", "")
DELHIVERY_TIMEOUT = (
    _env_seconds("DELHIVERY_CONNECT_TIMEOUT", "5"),
    _env_seconds("DELHIVERY_READ_TIMEOUT", "20"),
)
DELHIVERY_MAX_RETRIES = int(os.getenv("DELHIVERY_MAX_RETRIES", "3"))
# An in-flight dispatch claim older than this is treated as abandoned
DELHIVERY_DISPATCH_CLAIM_TTL = int(os.getenv("DELHIVERY_DISPATCH_CLAIM_TTL", "300"))
# Orders polled per tenant on each scheduled tracking refresh
TRACKING_REFRESH_LIMIT = int(os.getenv("TRACKING_REFRESH_LIMIT", "200"))
TRACKING_REFRESH_INTERVAL = _env_seconds("TRACKING_REFRESH_INTERVAL", "1800")
TRACKING_REFRESH_MAX_IDS = 100

FAST2SMS_API_KEY = os.getenv("FAST2SMS_API_KEY", "")
FAST2SMS_BASE_URL = os.getenv("FAST2SMS_BASE_URL", "https://www.fast2sms.com/dev/whatsapp")
FAST2SMS_MESSAGE_ID = os.getenv("FAST2SMS_MESSAGE_ID", "4697")
WHATSAPP_TIMEOUT = _env_seconds("WHATSAPP_TIMEOUT", "10")
WHATSAPP_DEFAULT_BRAND = os.getenv("WHATSAPP_DEFAULT_BRAND", "Parcelhub")

SHOPIFY_API_VERSION = os.getenv("SHOPIFY_API_VERSION", "2023-10")
SHOPIFY_TIMEOUT = (
    _env_seconds("SHOPIFY_CONNECT_TIMEOUT", "5"),
    _env_seconds("SHOPIFY_READ_TIMEOUT", "20"),
)
SHOPIFY_DEFAULT_WEIGHT = os.getenv("SHOPIFY_DEFAULT_WEIGHT", "0.5")

# Credits charged per feature unless a tenant has its own CreditCost row
CREDIT_COSTS = {
    "ORDER": int(os.getenv("CREDIT_COST_ORDER", "1")),
    "WHATSAPP": int(os.getenv("CREDIT_COST_WHATSAPP", "1")),
    "IMAGE_PROCESSING": int(os.getenv("CREDIT_COST_IMAGE_PROCESSING", "2")),
    "TEXT_PROCESSING": int(os.getenv("CREDIT_COST_TEXT_PROCESSING", "1")),
}

AUDIT_LOG_RETENTION_DAYS = int(os.getenv("AUDIT_LOG_RETENTION_DAYS", "90"))

# ============================================================================
# CELERY CONFIGURATION
# ============================================================================
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = 'django-db'
CELERY_CACHE_BACKEND = 'default'
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 5 * 60
CELERY_TASK_SOFT_TIME_LIMIT = 4 * 60
CELERY_TASK_ALWAYS_EAGER = _env_flag("CELERY_TASK_ALWAYS_EAGER", "0")
CELERY_TASK_EAGER_PROPAGATES = True

# Celery Beat (Periodic Tasks)
CELERY_BEAT_SCHEDULER = 'django_celery_beat.schedulers:DatabaseScheduler'
CELERY_BEAT_SCHEDULE = {
    'purge-audit-logs': {
        'task': 'apps.audit.tasks.purge_audit_logs',
        'schedule': timedelta(days=1),
    },
    'refresh-courier-tracking': {
        'task': 'apps.couriers.tasks.refresh_tracking_batch',
        'schedule': timedelta(seconds=TRACKING_REFRESH_INTERVAL),
    },
}

# ============================================================================
# CRITICAL SECURITY SETTINGS FOR PRODUCTION
# ============================================================================
if not DEBUG and os.getenv("ENVIRONMENT") == "production":
    SECURE_SSL_REDIRECT = True
    SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
    SECURE_HSTS_SECONDS = 31536000  # 1 year
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True

SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'SAMEORIGIN'

CSRF_COOKIE_SECURE = not DEBUG
CSRF_COOKIE_HTTPONLY = True
CSRF_COOKIE_SAMESITE = 'Lax'

SESSION_COOKIE_SECURE = not DEBUG
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = 'Lax'
SESSION_COOKIE_AGE = 86400  # 24 hours

AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
        'OPTIONS': {
            'min_length': 8,
        }
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

LOG_DIR = BASE_DIR / 'logs'

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {name} {process:d} {thread:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {asctime} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
        'security_file': {
            'level': 'WARNING',
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': LOG_DIR / 'security.log',
            'maxBytes': 1024 * 1024 * 10,  # 10MB
            'backupCount': 5,
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'django.security': {
            'handlers': ['security_file', 'console'],
            'level': 'WARNING',
            'propagate': False,
        },
        'django.request': {
            'handlers': ['security_file', 'console'],
            'level': 'ERROR',
            'propagate': False,
        },
        'audit': {
            'handlers': ['security_file', 'console'],
            'level': 'INFO',
            'propagate': False,
        },
        'request': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'apps': {
            'handlers': ['console'],
            'level': os.getenv('APP_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}

LOG_DIR.mkdir(exist_ok=True)
