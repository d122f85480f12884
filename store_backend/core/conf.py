# core/conf.py

"""
STORE_CREDIT settings accessor.

settings.STORE_CREDIT is the single source of every threshold. Missing keys
fall back to DEFAULTS so tests can override one value with override_settings
without restating the whole dict.
"""

from __future__ import annotations

from django.conf import settings

DEFAULTS = {
    "FREE_SHIPPING_THRESHOLD": 5000,
    "SHIPPING_COST": 590,
    "REFERRAL_REWARD_AMOUNT": 500,
    "REFERRAL_MINIMUM_ORDER": 3500,
    "REFERRAL_MAX_PER_IP_DAILY": 3,
    "REFERRAL_REFUND_WINDOW_DAYS": 14,
    "FIRST_ORDER_DISCOUNT_PERCENT": 10,
    "REFERRAL_FIRST_ORDER_DISCOUNT_PERCENT": 15,
    "FIRST_ORDER_VALIDITY_DAYS": 30,
    "GIFT_CARD_VALIDITY_DAYS": 365,
    "CODE_MAX_ATTEMPTS": 100,
    "LOCK_TIMEOUT_MS": 5000,
    "CURRENCY": "eur",
}


def store_credit_setting(name: str):
    cfg = getattr(settings, "STORE_CREDIT", {}) or {}
    if name in cfg:
        return cfg[name]
    return DEFAULTS[name]


def payments_setting(name: str, default=""):
    cfg = getattr(settings, "PAYMENTS", {}) or {}
    return cfg.get(name, default)


def notifications_setting(name: str, default=""):
    cfg = getattr(settings, "NOTIFICATIONS", {}) or {}
    return cfg.get(name, default)
