"""
PATH: backend/settings/base.py

BASE SETTINGS (shared by dev + prod)

Operational maturity:
- Throttling (redeem / quote / webhook scopes)
- Sentry (optional): error visibility in production
- STORE_CREDIT: every money threshold and anti-abuse limit lives in ONE dict
- PAYMENTS / NOTIFICATIONS: webhook secret + outbound notification hook
"""

from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

import environ
from corsheaders.defaults import default_headers, default_methods

# -----------------------------------------
# BASE DIRECTORY
# -----------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# -----------------------------------------
# TEST MODE DETECTION
# -----------------------------------------
TESTING = "test" in sys.argv or "pytest" in sys.modules

# -----------------------------------------
# ENV (django-environ)
# -----------------------------------------
env = environ.Env(
    DEBUG=(bool, True),
    SECRET_KEY=(str, ""),
    TIME_ZONE=(str, "UTC"),
    ALLOWED_HOSTS=(list, ["localhost", "127.0.0.1"]),
    CORS_ALLOWED_ORIGINS=(list, ["http://localhost:5173"]),
    CSRF_TRUSTED_ORIGINS=(list, ["http://localhost:5173"]),
    DATABASE_URL=(str, f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
    # Payment processor webhook (HMAC-SHA512 over the raw body)
    PAYMENT_WEBHOOK_SECRET=(str, ""),
    PAYMENT_CURRENCY=(str, "eur"),
    # Quote sealing (HMAC-SHA256 over the sc_ metadata, empty = SECRET_KEY)
    QUOTE_SEAL_SECRET=(str, ""),
    # Reverse proxies in front of the app (X-Forwarded-For hops to trust)
    TRUSTED_PROXY_COUNT=(int, 0),
    # Fire-and-forget notification hook (empty = disabled)
    NOTIFICATION_WEBHOOK_URL=(str, ""),
    NOTIFICATION_TIMEOUT_SECONDS=(int, 5),
    # Throttling
    THROTTLE_ANON_RATE=(str, "60/min"),
    THROTTLE_USER_RATE=(str, "600/min"),
    THROTTLE_GIFTCARD_REDEEM_RATE=(str, "10/min"),
    THROTTLE_CHECKOUT_QUOTE_RATE=(str, "120/min"),
    THROTTLE_REFERRAL_SIGNUP_RATE=(str, "10/hour"),
    THROTTLE_WEBHOOK_RATE=(str, "600/min"),
    # Store credit engine (amounts in minor units / cents)
    FREE_SHIPPING_THRESHOLD=(int, 5000),
    SHIPPING_COST=(int, 590),
    REFERRAL_REWARD_AMOUNT=(int, 500),
    REFERRAL_MINIMUM_ORDER=(int, 3500),
    REFERRAL_MAX_PER_IP_DAILY=(int, 3),
    REFERRAL_REFUND_WINDOW_DAYS=(int, 14),
    FIRST_ORDER_DISCOUNT_PERCENT=(int, 10),
    REFERRAL_FIRST_ORDER_DISCOUNT_PERCENT=(int, 15),
    FIRST_ORDER_VALIDITY_DAYS=(int, 30),
    GIFT_CARD_VALIDITY_DAYS=(int, 365),
    CODE_MAX_ATTEMPTS=(int, 100),
    LEDGER_LOCK_TIMEOUT_MS=(int, 5000),
    # Sentry (optional; enable by setting SENTRY_DSN)
    SENTRY_DSN=(str, ""),
    SENTRY_ENVIRONMENT=(str, "development"),
    SENTRY_TRACES_SAMPLE_RATE=(float, 0.0),
    SENTRY_SEND_PII=(bool, False),
    LOG_LEVEL=(str, "INFO"),
    ADMIN_PATH=(str, "admin/"),
)

# -----------------------------------------
# LOAD .env
# -----------------------------------------
env_file_1 = BASE_DIR / ".env"
env_file_2 = BASE_DIR.parent / ".env"

if env_file_1.exists():
    env.read_env(str(env_file_1))
elif env_file_2.exists():
    env.read_env(str(env_file_2))

# -----------------------------------------
# CORE SECURITY
# -----------------------------------------
SECRET_KEY = (env("SECRET_KEY") or "dev-insecure-change-me").strip()
DEBUG = env.bool("DEBUG")
ALLOWED_HOSTS = env.list("ALLOWED_HOSTS")
# X-Forwarded-For hops appended by our own proxies (0 = use REMOTE_ADDR)
TRUSTED_PROXY_COUNT = env.int("TRUSTED_PROXY_COUNT")

# -----------------------------------------
# I18N / TZ
# -----------------------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = (env("TIME_ZONE") or "UTC").strip()
USE_I18N = True
USE_TZ = True

# -----------------------------------------
# AUTH USER MODEL (custom)
# -----------------------------------------
AUTH_USER_MODEL = "users.User"

# -----------------------------------------
# INSTALLED APPS
# -----------------------------------------
INSTALLED_APPS = [
    "corsheaders",
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "django_filters",
    "users.apps.UsersConfig",
    "codes.apps.CodesConfig",
    "credits.apps.CreditsConfig",
    "giftcards.apps.GiftCardsConfig",
    "promotions.apps.PromotionsConfig",
    "referrals.apps.ReferralsConfig",
    "checkout.apps.CheckoutConfig",
]

# -----------------------------------------
# MIDDLEWARE
# -----------------------------------------
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

ROOT_URLCONF = "backend.urls"
ADMIN_PATH = (env("ADMIN_PATH") or "admin/").strip()
WSGI_APPLICATION = "backend.wsgi.application"
APPEND_SLASH = True

# -----------------------------------------
# TEMPLATES (required for Django admin)
# -----------------------------------------
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [str(BASE_DIR / "templates")],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

# -----------------------------------------
# AUTH BACKENDS
# -----------------------------------------
AUTHENTICATION_BACKENDS = [
    "users.auth_backends.EmailOrUsernameBackend",
]

# -----------------------------------------
# REST FRAMEWORK
# -----------------------------------------
# Scoped throttles are relaxed under tests so suites that hammer one endpoint
# do not trip them accidentally.
_THROTTLE_TEST_RATE = "10000/min"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": ("rest_framework.permissions.IsAuthenticated",),
    "DEFAULT_FILTER_BACKENDS": ("django_filters.rest_framework.DjangoFilterBackend",),
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 20,
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_THROTTLE_CLASSES": (
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
    ),
    "DEFAULT_THROTTLE_RATES": {
        "anon": _THROTTLE_TEST_RATE if TESTING else env("THROTTLE_ANON_RATE"),
        "user": _THROTTLE_TEST_RATE if TESTING else env("THROTTLE_USER_RATE"),
        "giftcard_redeem": (
            _THROTTLE_TEST_RATE if TESTING else env("THROTTLE_GIFTCARD_REDEEM_RATE")
        ),
        "checkout_quote": (
            _THROTTLE_TEST_RATE if TESTING else env("THROTTLE_CHECKOUT_QUOTE_RATE")
        ),
        "referral_signup": (
            _THROTTLE_TEST_RATE if TESTING else env("THROTTLE_REFERRAL_SIGNUP_RATE")
        ),
        "webhook": _THROTTLE_TEST_RATE if TESTING else env("THROTTLE_WEBHOOK_RATE"),
    },
}

# -----------------------------------------
# SIMPLE JWT
# -----------------------------------------
SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=30),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=1),
    "ROTATE_REFRESH_TOKENS": True,
}

# -----------------------------------------
# DATABASE
# -----------------------------------------
DATABASES = {
    "default": env.db("DATABASE_URL"),
}

# -----------------------------------------
# STORE CREDIT ENGINE
# -----------------------------------------
# All amounts are integer minor units (cents).
STORE_CREDIT = {
    "FREE_SHIPPING_THRESHOLD": env.int("FREE_SHIPPING_THRESHOLD"),
    "SHIPPING_COST": env.int("SHIPPING_COST"),
    "REFERRAL_REWARD_AMOUNT": env.int("REFERRAL_REWARD_AMOUNT"),
    "REFERRAL_MINIMUM_ORDER": env.int("REFERRAL_MINIMUM_ORDER"),
    "REFERRAL_MAX_PER_IP_DAILY": env.int("REFERRAL_MAX_PER_IP_DAILY"),
    "REFERRAL_REFUND_WINDOW_DAYS": env.int("REFERRAL_REFUND_WINDOW_DAYS"),
    "FIRST_ORDER_DISCOUNT_PERCENT": env.int("FIRST_ORDER_DISCOUNT_PERCENT"),
    "REFERRAL_FIRST_ORDER_DISCOUNT_PERCENT": env.int(
        "REFERRAL_FIRST_ORDER_DISCOUNT_PERCENT"
    ),
    "FIRST_ORDER_VALIDITY_DAYS": env.int("FIRST_ORDER_VALIDITY_DAYS"),
    "GIFT_CARD_VALIDITY_DAYS": env.int("GIFT_CARD_VALIDITY_DAYS"),
    "CODE_MAX_ATTEMPTS": env.int("CODE_MAX_ATTEMPTS"),
    "LOCK_TIMEOUT_MS": env.int("LEDGER_LOCK_TIMEOUT_MS"),
    "CURRENCY": (env("PAYMENT_CURRENCY") or "eur").strip().lower(),
}

# -----------------------------------------
# PAYMENTS
# -----------------------------------------
PAYMENTS = {
    "WEBHOOK_SECRET": (env("PAYMENT_WEBHOOK_SECRET") or "").strip(),
    "SIGNATURE_HEADER": "X-Payment-Signature",
    "QUOTE_SEAL_SECRET": (env("QUOTE_SEAL_SECRET") or "").strip(),
}

# -----------------------------------------
# NOTIFICATIONS (fire-and-forget)
# -----------------------------------------
NOTIFICATIONS = {
    "WEBHOOK_URL": (env("NOTIFICATION_WEBHOOK_URL") or "").strip(),
    "TIMEOUT_SECONDS": env.int("NOTIFICATION_TIMEOUT_SECONDS"),
}

# -----------------------------------------
# LOGGING
# -----------------------------------------
LOG_LEVEL = (env("LOG_LEVEL") or "INFO").strip().upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        app: {
            "handlers": ["console"],
            "level": "CRITICAL" if TESTING else LOG_LEVEL,
            "propagate": False,
        }
        for app in (
            "codes",
            "credits",
            "giftcards",
            "promotions",
            "referrals",
            "checkout",
            "users",
            "core",
        )
    },
}

# -----------------------------------------
# SENTRY (optional)
# -----------------------------------------
SENTRY_DSN = (env("SENTRY_DSN") or "").strip()
SENTRY_ENVIRONMENT = (env("SENTRY_ENVIRONMENT") or "development").strip()
SENTRY_TRACES_SAMPLE_RATE = float(env("SENTRY_TRACES_SAMPLE_RATE"))
SENTRY_SEND_PII = env.bool("SENTRY_SEND_PII")

if SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.django import DjangoIntegration

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=SENTRY_ENVIRONMENT,
        integrations=[DjangoIntegration()],
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        send_default_pii=SENTRY_SEND_PII,
    )

# -----------------------------------------
# CORS / CSRF
# -----------------------------------------
CORS_ALLOWED_ORIGINS = env.list("CORS_ALLOWED_ORIGINS")
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_METHODS = list(default_methods)
CORS_ALLOW_HEADERS = [*default_headers, "x-payment-signature"]

CSRF_TRUSTED_ORIGINS = env.list("CSRF_TRUSTED_ORIGINS")

# -----------------------------------------
# STATIC FILES
# -----------------------------------------
STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -----------------------------------------
# SWAGGER
# -----------------------------------------
SPECTACULAR_SETTINGS = {
    "TITLE": "Store Credit API",
    "DESCRIPTION": "Store credit ledger, gift cards, referrals, promotions and checkout pricing",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}
