# checkout/services/pricing.py

"""
======================================================
PATH: checkout/services/pricing.py
======================================================
PRICING COMPOSER

Pure function: no database access, no locks, no side effects.

Order of application on the subtotal S:
    1. promotion discount
    2. gift card (up to what is left of S)
    3. store credit (goods first, then shipping)

GUARANTEES (checked on every call, PricingInvariantError otherwise):
- final_charge >= 0
- coupon_total <= S
- credit_for_goods + credit_for_ship <= available store credit
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

from core.exceptions import PricingInvariantError
from core.money import non_negative
from promotions.services.promotion_catalog import compute_discount

METADATA_PREFIX = "sc_"

_INT_FIELDS = (
    "subtotal",
    "discount",
    "gift_amount",
    "shipping",
    "credit_for_goods",
    "credit_for_ship",
    "coupon_total",
    "final_charge",
)
_STR_FIELDS = ("promo_code", "gift_card_code", "user_id")


@dataclass(frozen=True)
class PricingInput:
    subtotal: int
    free_shipping_threshold: int
    shipping_cost: int
    store_credit_balance: int = 0
    requested_credit: int = 0
    # promotion: only applied when promo_valid; promo_base defaults to subtotal
    promo: object = None
    promo_valid: bool = False
    promo_base: int | None = None
    gift_card_balance: int | None = None
    promo_code: str = ""
    gift_card_code: str = ""
    user_id: str = ""


@dataclass(frozen=True)
class PricingBreakdown:
    subtotal: int
    discount: int
    gift_amount: int
    shipping: int
    credit_for_goods: int
    credit_for_ship: int
    coupon_total: int
    final_charge: int
    promo_code: str = ""
    gift_card_code: str = ""
    user_id: str = ""
    labels: tuple = field(default_factory=tuple)

    @property
    def credit_total(self) -> int:
        return self.credit_for_goods + self.credit_for_ship

    def discount_instruction(self) -> dict | None:
        """One-off amount_off coupon for the payment processor."""
        if self.coupon_total <= 0:
            return None
        return {
            "amount_off": self.coupon_total,
            "duration": "once",
            "name": " + ".join(self.labels) or "Discount",
        }

    def to_metadata(self) -> dict:
        data = asdict(self)
        data.pop("labels")
        return {f"{METADATA_PREFIX}{key}": str(value) for key, value in data.items()}

    @classmethod
    def from_metadata(cls, metadata: dict) -> PricingBreakdown:
        metadata = metadata or {}
        try:
            ints = {
                name: int(str(metadata[f"{METADATA_PREFIX}{name}"]))
                for name in _INT_FIELDS
            }
        except (KeyError, ValueError, TypeError) as exc:
            raise PricingInvariantError(f"Incomplete pricing metadata: {exc}") from exc

        strs = {name: str(metadata.get(f"{METADATA_PREFIX}{name}") or "") for name in _STR_FIELDS}
        breakdown = cls(**ints, **strs)
        _check_postconditions(breakdown, available_credit=breakdown.credit_total)
        return breakdown


def _check_postconditions(b: PricingBreakdown, *, available_credit: int) -> None:
    if b.final_charge < 0:
        raise PricingInvariantError(f"final_charge < 0: {b}")
    if b.coupon_total > b.subtotal:
        raise PricingInvariantError(f"coupon_total > subtotal: {b}")
    if b.credit_for_goods + b.credit_for_ship > available_credit:
        raise PricingInvariantError(f"store credit above available balance: {b}")
    if b.final_charge != b.subtotal - b.coupon_total + b.shipping:
        raise PricingInvariantError(f"final_charge does not add up: {b}")


def compose_charge(p: PricingInput) -> PricingBreakdown:
    subtotal = non_negative(int(p.subtotal))
    threshold = non_negative(int(p.free_shipping_threshold))
    shipping_cost = non_negative(int(p.shipping_cost))
    available = non_negative(int(p.store_credit_balance))
    requested = non_negative(int(p.requested_credit))

    labels = []

    discount = 0
    if p.promo is not None and p.promo_valid:
        base = subtotal if p.promo_base is None else non_negative(int(p.promo_base))
        discount = min(compute_discount(p.promo, min(base, subtotal)), subtotal)
        if discount:
            labels.append(f"Promo {p.promo_code}".strip())

    gift_amount = 0
    if p.gift_card_balance is not None:
        gift_amount = min(non_negative(int(p.gift_card_balance)), subtotal - discount)
        if gift_amount:
            labels.append("Gift card")

    shipping = 0 if subtotal >= threshold else shipping_cost

    credit_wanted = min(requested, available, non_negative(subtotal + shipping - discount - gift_amount))
    remaining_sub = subtotal - discount - gift_amount

    if credit_wanted <= remaining_sub:
        credit_for_goods = credit_wanted
        credit_for_ship = 0
    else:
        credit_for_goods = non_negative(remaining_sub)
        credit_for_ship = credit_wanted - credit_for_goods
        shipping = non_negative(shipping - credit_for_ship)

    if credit_wanted:
        labels.append("Store credit")

    coupon_total = discount + gift_amount + credit_for_goods
    final_charge = subtotal - coupon_total + shipping

    breakdown = PricingBreakdown(
        subtotal=subtotal,
        discount=discount,
        gift_amount=gift_amount,
        shipping=shipping,
        credit_for_goods=credit_for_goods,
        credit_for_ship=credit_for_ship,
        coupon_total=coupon_total,
        final_charge=final_charge,
        promo_code=p.promo_code if discount else "",
        gift_card_code=p.gift_card_code if gift_amount else "",
        user_id=p.user_id,
        labels=tuple(labels),
    )
    _check_postconditions(breakdown, available_credit=available)
    return breakdown
