"""
Test settings.

Runs against an in-memory sqlite database with eager Celery so post-commit
tasks execute inline, and never talks to a real courier, messaging or
storefront endpoint.
"""

from .settings import *  # noqa: F401,F403

DEBUG = False
ALLOWED_HOSTS = ['*']

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'parcelhub-tests',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

DELHIVERY_BASE_URL = 'https://delhivery.test'
DELHIVERY_API_KEY = 'test-delhivery-key'
FAST2SMS_BASE_URL = 'https://fast2sms.test/dev/whatsapp'
FAST2SMS_API_KEY = 'test-fast2sms-key'

REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    'DEFAULT_THROTTLE_RATES': {'shopify_webhook': '1000/min'},
}

# Keep test output quiet
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {'null': {'class': 'logging.NullHandler'}},
    'root': {'handlers': ['null']},
}
