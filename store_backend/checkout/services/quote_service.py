# checkout/services/quote_service.py

"""
CHECKOUT QUOTE

Read-only: looks up the promotion, gift card and store credit balance, then
hands everything to the pricing composer. An absent or invalid code
contributes zero and is reported in `ignored`; a quote never fails because
of a code.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from django.utils import timezone

from checkout.services.price_sealing import seal_metadata
from checkout.services.pricing import PricingBreakdown, PricingInput, compose_charge
from codes.services.code_registry import normalize_code
from core.conf import store_credit_setting
from credits.services.ledger_service import get_balance
from giftcards.services.giftcard_service import validate_code
from promotions.services.promotion_catalog import (
    applicable_subtotal,
    invalid_reason,
    lookup,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Quote:
    breakdown: PricingBreakdown
    ignored: dict = field(default_factory=dict)
    store_credit_balance: int = 0

    @property
    def metadata(self) -> dict:
        """Sealed sc_ metadata to attach to the processor payment."""
        return seal_metadata(self.breakdown.to_metadata())


def build_quote(
    *,
    user,
    subtotal: int,
    promo_code: str = "",
    gift_card_code: str = "",
    requested_credit: int = 0,
    lines=None,
    now=None,
) -> Quote:
    now = now or timezone.now()
    ignored = {}

    promo = None
    promo_valid = False
    promo_base = None
    promo_code = normalize_code(promo_code)
    if promo_code:
        promo = lookup(promo_code)
        reason = invalid_reason(promo, now, subtotal, user=user)
        if reason is None:
            promo_valid = True
            promo_base = applicable_subtotal(promo, subtotal, lines)
        else:
            ignored["promo_code"] = reason

    gift_card_balance = None
    gift_card_code = normalize_code(gift_card_code)
    if gift_card_code:
        check = validate_code(gift_card_code, now=now)
        if check.ok:
            gift_card_balance = check.available
        else:
            ignored["gift_card_code"] = str(check.outcome)

    balance = get_balance(user)

    breakdown = compose_charge(
        PricingInput(
            subtotal=subtotal,
            free_shipping_threshold=int(store_credit_setting("FREE_SHIPPING_THRESHOLD")),
            shipping_cost=int(store_credit_setting("SHIPPING_COST")),
            store_credit_balance=balance,
            requested_credit=requested_credit,
            promo=promo,
            promo_valid=promo_valid,
            promo_base=promo_base,
            gift_card_balance=gift_card_balance,
            promo_code=promo_code,
            gift_card_code=gift_card_code,
            user_id=str(user.pk),
        )
    )

    if ignored:
        logger.info("Quote ignored codes", extra={"user_id": str(user.pk), "ignored": ignored})

    return Quote(breakdown=breakdown, ignored=ignored, store_credit_balance=balance)
