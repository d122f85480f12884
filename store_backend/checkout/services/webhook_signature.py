# checkout/services/webhook_signature.py

from __future__ import annotations

import hashlib
import hmac

from core.conf import payments_setting


def _get_secret_key() -> str:
    secret = (payments_setting("WEBHOOK_SECRET") or "").strip()
    if not secret:
        raise RuntimeError(
            "Payment webhook secret is not configured. "
            "Expected settings.PAYMENTS['WEBHOOK_SECRET'] (env PAYMENT_WEBHOOK_SECRET)."
        )
    return secret


def sign_payload(raw_body: bytes) -> str:
    return hmac.new(_get_secret_key().encode("utf-8"), raw_body or b"", hashlib.sha512).hexdigest()


def verify_signature(*, raw_body: bytes, signature: str | None) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(sign_payload(raw_body), str(signature).strip())
