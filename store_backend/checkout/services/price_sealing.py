# checkout/services/price_sealing.py

"""
======================================================
PATH: checkout/services/price_sealing.py
======================================================
QUOTE SEALING

The quote endpoint hands the pricing breakdown to the client as processor
metadata. The breakdown is sealed with an HMAC over its canonical JSON so
the confirmation handler only applies amounts this server computed.

Secret: settings.PAYMENTS["QUOTE_SEAL_SECRET"], falling back to SECRET_KEY.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging

from django.conf import settings

from checkout.services.pricing import METADATA_PREFIX
from core.conf import payments_setting

logger = logging.getLogger(__name__)

SEAL_KEY = f"{METADATA_PREFIX}seal"


def _get_secret_key() -> str:
    secret = (payments_setting("QUOTE_SEAL_SECRET") or "").strip()
    if not secret:
        logger.warning("QUOTE_SEAL_SECRET is not configured, sealing quotes with SECRET_KEY")
        return settings.SECRET_KEY
    return secret


def _canonical(metadata: dict) -> str:
    sealed = {
        key: str(value)
        for key, value in (metadata or {}).items()
        if key.startswith(METADATA_PREFIX) and key != SEAL_KEY
    }
    return json.dumps(sealed, sort_keys=True, separators=(",", ":"))


def _signature(metadata: dict) -> str:
    return hmac.new(
        _get_secret_key().encode("utf-8"),
        _canonical(metadata).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def seal_metadata(metadata: dict) -> dict:
    sealed = dict(metadata or {})
    sealed.pop(SEAL_KEY, None)
    sealed[SEAL_KEY] = _signature(sealed)
    return sealed


def is_sealed(metadata: dict) -> bool:
    """True when the sc_ fields carry an intact seal."""
    seal = str((metadata or {}).get(SEAL_KEY) or "").strip()
    if not seal:
        return False
    return hmac.compare_digest(_signature(metadata), seal)
