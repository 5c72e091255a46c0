from decimal import Decimal
from pathlib import Path

from decouple import Csv, config

BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Core security
SECRET_KEY = config("SECRET_KEY", default="dev-secret-key-change-me")

# Hosts and CORS
ALLOWED_HOSTS = config("ALLOWED_HOSTS", default="localhost,127.0.0.1", cast=Csv())
CORS_ALLOW_ALL_ORIGINS = config("CORS_ALLOW_ALL_ORIGINS", default=True, cast=bool)
CORS_ALLOWED_ORIGINS = config("CORS_ALLOWED_ORIGINS", default="", cast=Csv())
CSRF_TRUSTED_ORIGINS = config("CSRF_TRUSTED_ORIGINS", default="", cast=Csv())

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party
    "rest_framework",
    "django_filters",
    "drf_spectacular",
    "corsheaders",
    # Local
    "catalog",
    "inventory",
    "promotions",
    "pricing",
    "orders",
    "payments",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
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
        "DIRS": [BASE_DIR / "templates"],
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
ASGI_APPLICATION = "config.asgi.application"

# Database
DB_ENGINE = config("DATABASE_ENGINE", default="sqlite")
if DB_ENGINE.lower() == "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": config("DATABASE_NAME", default="postgres"),
            "USER": config("DATABASE_USER", default="postgres"),
            "PASSWORD": config("DATABASE_PASSWORD", default=""),
            "HOST": config("DATABASE_HOST", default="localhost"),
            "PORT": config("DATABASE_PORT", default="5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

LANGUAGE_CODE = "pt-br"
TIME_ZONE = "America/Sao_Paulo"
USE_I18N = True
USE_TZ = True

# Static files
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage",
    },
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Email (dev defaults to console backend; override via env for SMTP)
EMAIL_BACKEND = config(
    "EMAIL_BACKEND",
    default="django.core.mail.backends.console.EmailBackend",
)
EMAIL_HOST = config("EMAIL_HOST", default="")
EMAIL_PORT = config("EMAIL_PORT", default=587, cast=int)
EMAIL_HOST_USER = config("EMAIL_HOST_USER", default="")
EMAIL_HOST_PASSWORD = config("EMAIL_HOST_PASSWORD", default="")
EMAIL_USE_TLS = config("EMAIL_USE_TLS", default=True, cast=bool)
EMAIL_USE_SSL = config("EMAIL_USE_SSL", default=False, cast=bool)
DEFAULT_FROM_EMAIL = config("DEFAULT_FROM_EMAIL", default="MeuPetZen <noreply@example.com>")
FRONTEND_URL = config("FRONTEND_URL", default="http://localhost:3000")

# Stock reservations
RESERVATION_TTL_MINUTES = config("RESERVATION_TTL_MINUTES", default=30, cast=int)
# Charges the processor accepted but has not settled keep their stock this long
PENDING_PAYMENT_HOLD_HOURS = {
    "credit_card": config("CARD_REVIEW_HOLD_HOURS", default=48, cast=int),
    "pix": config("PIX_HOLD_HOURS", default=24, cast=int),
    "boleto": config("BOLETO_HOLD_HOURS", default=96, cast=int),
}

# Shipping (flat national rate plus weight surcharge)
SHIPPING_BASE_RATE = config("SHIPPING_BASE_RATE", default="15.00", cast=Decimal)
SHIPPING_PER_KG_RATE = config("SHIPPING_PER_KG_RATE", default="5.00", cast=Decimal)
SHIPPING_INCLUDED_WEIGHT_KG = config("SHIPPING_INCLUDED_WEIGHT_KG", default="1.0", cast=Decimal)
SHIPPING_FREE_THRESHOLD = config("SHIPPING_FREE_THRESHOLD", default="150.00", cast=Decimal)

# Promotions
LOYALTY_POINT_VALUE = config("LOYALTY_POINT_VALUE", default="0.10", cast=Decimal)
GIFT_CARD_PREFIX = config("GIFT_CARD_PREFIX", default="MPZEN")
GIFT_CARD_VALIDITY_DAYS = config("GIFT_CARD_VALIDITY_DAYS", default=365, cast=int)

# Payment processor
PAGSEGURO_BASE_URL = config("PAGSEGURO_BASE_URL", default="https://ws.sandbox.pagseguro.uol.com.br")
PAGSEGURO_EMAIL = config("PAGSEGURO_EMAIL", default="")
PAGSEGURO_TOKEN = config("PAGSEGURO_TOKEN", default="")
PAGSEGURO_NOTIFICATION_URL = config("PAGSEGURO_NOTIFICATION_URL", default="")
PAGSEGURO_REDIRECT_URL = config("PAGSEGURO_REDIRECT_URL", default="")
PAGSEGURO_TIMEOUT_SECONDS = config("PAGSEGURO_TIMEOUT_SECONDS", default=15.0, cast=float)
PAGSEGURO_EFT_BANK = config("PAGSEGURO_EFT_BANK", default="itau")

# Affiliate catalog query API (signed requests)
AFFILIATE_API_URL = config("AFFILIATE_API_URL", default="https://api-sg.aliexpress.com/sync")
AFFILIATE_APP_KEY = config("AFFILIATE_APP_KEY", default="")
AFFILIATE_APP_SECRET = config("AFFILIATE_APP_SECRET", default="")

# DRF + Spectacular
REST_FRAMEWORK = {
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.AllowAny",
    ],
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 20,
    "DEFAULT_FILTER_BACKENDS": [
        "django_filters.rest_framework.DjangoFilterBackend",
        "rest_framework.filters.OrderingFilter",
    ],
    "DEFAULT_THROTTLE_CLASSES": [
        "rest_framework.throttling.ScopedRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
        "rest_framework.throttling.AnonRateThrottle",
    ],
    "DEFAULT_THROTTLE_RATES": {
        # Global throttles
        "user": "100/min",
        "anon": "30/min",
        # Scoped throttles; reads > writes
        "inventory": "120/min",
        "pricing": "60/min",
        "orders": "60/min",
        "orders_write": "20/min",
        "payments": "20/min",
    },
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Storefront Core API",
    "DESCRIPTION": "Stock reservations, pricing, orders and payment settlement",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}
