# giftcards/services/giftcard_service.py

"""
======================================================
PATH: giftcards/services/giftcard_service.py
======================================================
GIFT CARD VAULT

This module is the ONLY place allowed to:
- Issue gift cards (code + QR token + registry entry, one transaction)
- Redeem a card into store credit
- Charge part of a card at checkout
- Deactivate a card

GUARANTEES:
- A card is redeemed at most once, even under concurrent redemption of the
  same QR token (row lock on the card; the ledger credit is keyed on the
  card id, so a retry can never credit twice).
- Redemption credits exactly the card's remaining balance.
- remaining_balance never goes below zero; a card that reaches zero through
  checkout charges becomes redeemed (terminal).
- Issuance for a purchase payment is idempotent (unique purchase_payment_id).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

from django.db import IntegrityError, transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from codes.models import CodeRegistryEntry
from codes.services.code_registry import (
    generate_gift_card_code,
    is_claimable,
    normalize_code,
    register_on_issue,
)
from core.conf import store_credit_setting
from core.exceptions import (
    AlreadyUsedError,
    ExpiredError,
    InactiveError,
    NotFoundError,
)
from core.locking import apply_lock_timeout, lock_conflicts
from core.money import positive_amount
from core.notifications import EVENT_GIFT_CARD_REDEEMED, notify
from core.results import Outcome, ServiceResult
from credits.models import CreditTransaction
from credits.services import ledger_service
from giftcards.models import GiftCard, GiftCardCharge

logger = logging.getLogger(__name__)


# ============================================================
# RESULTS
# ============================================================


class GiftCardOutcome(Outcome):
    OK = "ok"
    NOT_FOUND = "not_found"
    ALREADY_REDEEMED = "already_redeemed"
    INACTIVE = "inactive"
    EXPIRED = "expired"


GIFT_CARD_ERRORS = {
    GiftCardOutcome.NOT_FOUND: NotFoundError,
    GiftCardOutcome.ALREADY_REDEEMED: AlreadyUsedError,
    GiftCardOutcome.INACTIVE: InactiveError,
    GiftCardOutcome.EXPIRED: ExpiredError,
}


@dataclass(frozen=True)
class RedeemResult(ServiceResult):
    gift_card: GiftCard | None = None
    amount: int = 0
    balance: int = 0

    SUCCESS = frozenset({GiftCardOutcome.OK})
    ERRORS = GIFT_CARD_ERRORS


@dataclass(frozen=True)
class ChargeResult(ServiceResult):
    gift_card: GiftCard | None = None
    requested: int = 0
    charged: int = 0
    shortfall: int = 0
    remaining: int = 0
    replayed: bool = False

    SUCCESS = frozenset({GiftCardOutcome.OK})
    ERRORS = GIFT_CARD_ERRORS


@dataclass(frozen=True)
class GiftCardCheck(ServiceResult):
    """Read-only answer for checkout quotes."""

    gift_card: GiftCard | None = None
    available: int = 0

    SUCCESS = frozenset({GiftCardOutcome.OK})
    ERRORS = GIFT_CARD_ERRORS


@dataclass(frozen=True)
class RecipientInfo:
    name: str = ""
    email: str = ""
    sender_name: str = ""
    message: str = ""
    template: str = GiftCard.TEMPLATE_DEFAULT


# ============================================================
# HELPERS
# ============================================================


def _parse_token(qr_token) -> uuid.UUID | None:
    if isinstance(qr_token, uuid.UUID):
        return qr_token
    try:
        return uuid.UUID(str(qr_token or "").strip())
    except ValueError:
        return None


def _state_outcome(card: GiftCard | None, now) -> GiftCardOutcome:
    """Checks in the fixed order: found, redeemed, active, expiry."""
    if card is None:
        return GiftCardOutcome.NOT_FOUND
    if card.is_redeemed:
        return GiftCardOutcome.ALREADY_REDEEMED
    if not card.is_active:
        return GiftCardOutcome.INACTIVE
    if card.is_expired(now):
        return GiftCardOutcome.EXPIRED
    return GiftCardOutcome.OK


# ============================================================
# READS
# ============================================================


def get_by_token(qr_token) -> GiftCard | None:
    token = _parse_token(qr_token)
    if token is None:
        return None
    return GiftCard.objects.filter(qr_token=token).first()


def validate_code(code, *, now=None) -> GiftCardCheck:
    code = normalize_code(code)
    card = GiftCard.objects.filter(code=code).first() if code else None
    outcome = _state_outcome(card, now or timezone.now())

    if outcome == GiftCardOutcome.OK and card.remaining_balance <= 0:
        outcome = GiftCardOutcome.ALREADY_REDEEMED

    if outcome != GiftCardOutcome.OK:
        return GiftCardCheck(outcome, gift_card=card)
    return GiftCardCheck(outcome, gift_card=card, available=card.remaining_balance)


def search_cards(*, query: str = "", status: str = "", now=None):
    now = now or timezone.now()
    qs = GiftCard.objects.select_related("purchased_by", "redeemed_by")

    query = (query or "").strip()
    if query:
        qs = qs.filter(
            Q(code__icontains=query)
            | Q(recipient_email__icontains=query)
            | Q(purchased_by__email__icontains=query)
        )

    status = (status or "").strip().lower()
    if status == "active":
        qs = qs.filter(is_active=True, is_redeemed=False).filter(
            Q(expires_at__isnull=True) | Q(expires_at__gte=now)
        )
    elif status == "redeemed":
        qs = qs.filter(is_redeemed=True)
    elif status == "inactive":
        qs = qs.filter(is_active=False, is_redeemed=False)
    elif status == "expired":
        qs = qs.filter(is_redeemed=False, expires_at__lt=now)

    return qs.order_by("-created_at")


def vault_stats(*, now=None) -> dict:
    now = now or timezone.now()
    outstanding_q = Q(is_active=True, is_redeemed=False) & (
        Q(expires_at__isnull=True) | Q(expires_at__gte=now)
    )
    agg = GiftCard.objects.aggregate(
        total=Count("id"),
        redeemed=Count("id", filter=Q(is_redeemed=True)),
        inactive=Count("id", filter=Q(is_active=False, is_redeemed=False)),
        expired=Count("id", filter=Q(is_redeemed=False, expires_at__lt=now)),
        active=Count("id", filter=outstanding_q),
        issued_value=Sum("amount"),
        outstanding_value=Sum("remaining_balance", filter=outstanding_q),
    )
    return {key: int(value or 0) for key, value in agg.items()}


# ============================================================
# ISSUE
# ============================================================


@transaction.atomic
def issue(
    *,
    amount,
    recipient: RecipientInfo | None = None,
    purchased_by=None,
    payment_id: str | None = None,
    validity_days: int | None = None,
    code: str | None = None,
) -> GiftCard:
    amount = positive_amount(amount)
    recipient = recipient or RecipientInfo()
    payment_id = (payment_id or "").strip() or None

    if payment_id:
        existing = GiftCard.objects.filter(purchase_payment_id=payment_id).first()
        if existing is not None:
            logger.info(
                "Gift card already issued for payment",
                extra={"payment_id": payment_id, "gift_card_id": str(existing.pk)},
            )
            return existing

    if code:
        code = normalize_code(code)
        if not is_claimable(code):
            raise AlreadyUsedError(f"Gift card code {code} cannot be issued")
    else:
        code = generate_gift_card_code()

    days = int(validity_days or store_credit_setting("GIFT_CARD_VALIDITY_DAYS"))
    expires_at = timezone.now() + timedelta(days=days)

    try:
        with transaction.atomic():
            card = GiftCard.objects.create(
                code=code,
                amount=amount,
                remaining_balance=amount,
                expires_at=expires_at,
                purchased_by=purchased_by,
                purchase_payment_id=payment_id,
                recipient_name=recipient.name,
                recipient_email=recipient.email,
                sender_name=recipient.sender_name,
                message=recipient.message,
                template=recipient.template or GiftCard.TEMPLATE_DEFAULT,
            )
            register_on_issue(
                card.code,
                owner_id=card.pk,
                namespace=CodeRegistryEntry.NAMESPACE_GIFT_CARD,
            )
    except IntegrityError:
        if payment_id:
            existing = GiftCard.objects.filter(purchase_payment_id=payment_id).first()
            if existing is not None:
                return existing
        raise

    logger.info(
        "Gift card issued",
        extra={"gift_card_id": str(card.pk), "amount": amount, "payment_id": payment_id},
    )
    return card


# ============================================================
# REDEEM (QR -> STORE CREDIT)
# ============================================================


def redeem(*, qr_token, user, now=None) -> RedeemResult:
    token = _parse_token(qr_token)
    if token is None:
        return RedeemResult(GiftCardOutcome.NOT_FOUND)

    now = now or timezone.now()

    with lock_conflicts(resource=f"gift_card:{token}"), transaction.atomic():
        apply_lock_timeout()
        card = GiftCard.objects.select_for_update().filter(qr_token=token).first()

        outcome = _state_outcome(card, now)
        if outcome == GiftCardOutcome.OK and card.remaining_balance <= 0:
            outcome = GiftCardOutcome.ALREADY_REDEEMED

        if outcome != GiftCardOutcome.OK:
            logger.info(
                "Gift card redemption refused",
                extra={"qr_token": str(token), "outcome": str(outcome)},
            )
            return RedeemResult(outcome, gift_card=card)

        amount = card.remaining_balance

        card.is_redeemed = True
        card.redeemed_by = user
        card.redeemed_at = now
        card.remaining_balance = 0
        card.save(
            update_fields=[
                "is_redeemed",
                "redeemed_by",
                "redeemed_at",
                "remaining_balance",
                "updated_at",
            ]
        )

        ledger = ledger_service.credit(
            user=user,
            amount=amount,
            kind=CreditTransaction.KIND_GIFT_CARD_REDEEM,
            reference_id=card.pk,
            reference_type="gift_card",
            description=f"Gift card {card.code}",
        )

        notify(
            EVENT_GIFT_CARD_REDEEMED,
            {"user_id": str(user.pk), "gift_card_id": str(card.pk), "amount": amount},
        )

    logger.info(
        "Gift card redeemed",
        extra={"gift_card_id": str(card.pk), "user_id": str(user.pk), "amount": amount},
    )
    return RedeemResult(GiftCardOutcome.OK, gift_card=card, amount=amount, balance=ledger.balance)


# ============================================================
# CHARGE (PARTIAL SPEND AT CHECKOUT)
# ============================================================


def charge(*, code, amount, payment_id: str, user=None, now=None) -> ChargeResult:
    """
    Take up to `amount` from the card for a confirmed payment.

    If less than `amount` is left (another payment spent it since the quote),
    the available part is charged and the difference reported as shortfall.
    """
    code = normalize_code(code)
    amount = positive_amount(amount)
    payment_id = str(payment_id).strip()
    now = now or timezone.now()

    with lock_conflicts(resource=f"gift_card:{code}"), transaction.atomic():
        apply_lock_timeout()
        card = GiftCard.objects.select_for_update().filter(code=code).first()

        if card is not None:
            previous = GiftCardCharge.objects.filter(gift_card=card, payment_id=payment_id).first()
            if previous is not None:
                return ChargeResult(
                    GiftCardOutcome.OK,
                    gift_card=card,
                    requested=amount,
                    charged=previous.amount,
                    shortfall=max(0, amount - previous.amount),
                    remaining=card.remaining_balance,
                    replayed=True,
                )

        outcome = _state_outcome(card, now)
        if outcome == GiftCardOutcome.OK and card.remaining_balance <= 0:
            outcome = GiftCardOutcome.ALREADY_REDEEMED
        if outcome != GiftCardOutcome.OK:
            logger.warning(
                "Gift card charge refused",
                extra={"code": code, "payment_id": payment_id, "outcome": str(outcome)},
            )
            return ChargeResult(outcome, gift_card=card, requested=amount, shortfall=amount)

        before = card.remaining_balance
        charged = min(before, amount)
        after = before - charged

        GiftCardCharge.objects.create(
            gift_card=card,
            payment_id=payment_id,
            amount=charged,
            balance_before=before,
            balance_after=after,
            user=user,
        )

        card.remaining_balance = after
        update_fields = ["remaining_balance", "updated_at"]
        if after == 0:
            card.is_redeemed = True
            card.redeemed_at = now
            card.redeemed_by = user
            update_fields += ["is_redeemed", "redeemed_at", "redeemed_by"]
        card.save(update_fields=update_fields)

    shortfall = amount - charged
    if shortfall:
        logger.warning(
            "Gift card charge short",
            extra={"code": code, "payment_id": payment_id, "shortfall": shortfall},
        )

    return ChargeResult(
        GiftCardOutcome.OK,
        gift_card=card,
        requested=amount,
        charged=charged,
        shortfall=shortfall,
        remaining=after,
    )


# ============================================================
# ADMIN
# ============================================================


@transaction.atomic
def deactivate(*, gift_card_id) -> GiftCard:
    card = GiftCard.objects.select_for_update().filter(pk=gift_card_id).first()
    if card is None:
        raise NotFoundError(f"Gift card {gift_card_id} not found")

    if card.is_active:
        card.is_active = False
        card.save(update_fields=["is_active", "updated_at"])
        logger.info("Gift card deactivated", extra={"gift_card_id": str(card.pk)})

    return card
