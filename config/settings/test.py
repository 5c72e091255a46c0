from .base import *  # noqa
from .base import REST_FRAMEWORK as BASE_REST_FRAMEWORK

DEBUG = False
SECRET_KEY = "test-secret-key"

# DATABASE_ENGINE=postgres runs the suite against the Postgres settings from base,
# which the threaded admission tests need.
if DB_ENGINE.lower() != "postgres":  # noqa: F405
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": ":memory:",
        }
    }

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}

PAGSEGURO_BASE_URL = "https://ws.gateway.test"
PAGSEGURO_EMAIL = "shop@example.com"
PAGSEGURO_TOKEN = "SECRET-TOKEN"
PAGSEGURO_NOTIFICATION_URL = ""
PAGSEGURO_REDIRECT_URL = ""

# Relax throttling for tests to reduce flakiness
REST_FRAMEWORK = {**BASE_REST_FRAMEWORK}
REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {
    **BASE_REST_FRAMEWORK.get("DEFAULT_THROTTLE_RATES", {}),
    "user": "10000/min",
    "anon": "10000/min",
    "inventory": "10000/min",
    "pricing": "10000/min",
    "orders": "10000/min",
    "orders_write": "10000/min",
    "payments": "10000/min",
}
