# checkout/services/confirmation_service.py

"""
======================================================
PATH: checkout/services/confirmation_service.py
======================================================
PAYMENT CONFIRMATION HANDLER

Applies the side effects of a processor-confirmed payment, exactly once:

    1. gift card charge        (giftcards)
    2. promotion usage         (promotions)
    3. referral conversion     (referrals, order_subtotal = S)
    4. store credit debit      (credits, purchase_debit keyed on payment id)

GUARANTEES:
- One transaction per payment; the PaymentConfirmation row is written first,
  so a redelivered webhook returns the stored outcome and applies nothing.
- Only sealed quotes are applied; a broken seal or a paid amount that
  differs from the quoted final_charge applies nothing.
- A gift card or store credit that no longer covers the quoted amount
  leaves the payment in "review" instead of "applied".
- Refunds revoke the referral reward (window rules) and return the store
  credit the payment consumed, once.
- Notifications are scheduled on commit by the services themselves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from checkout.models import PaymentConfirmation
from checkout.services.price_sealing import is_sealed
from checkout.services.pricing import PricingBreakdown
from core.exceptions import (
    AlreadyUsedError,
    InsufficientBalanceError,
    NotFoundError,
    PricingInvariantError,
    ValidationError,
)
from core.locking import apply_lock_timeout, lock_conflicts
from core.money import minor_units
from core.notifications import EVENT_GIFT_CARD_ISSUED, notify
from core.results import Outcome, ServiceResult
from credits.models import CreditTransaction
from credits.services import ledger_service
from giftcards.models import GiftCard
from giftcards.services import giftcard_service
from promotions.services.promotion_catalog import record_usage
from referrals.services.referral_service import convert, revoke

logger = logging.getLogger(__name__)

SKIPPED = "skipped"


# ============================================================
# RESULTS
# ============================================================


class ConfirmationOutcome(Outcome):
    APPLIED = "applied"
    REJECTED = "rejected"
    DUPLICATE = "duplicate"
    NEEDS_REVIEW = "review"


class RefundOutcome(Outcome):
    REFUNDED = "refunded"
    ALREADY_REFUNDED = "already_refunded"
    NOT_FOUND = "not_found"
    NOT_APPLIED = "not_applied"


class GiftCardPurchaseOutcome(Outcome):
    ISSUED = "issued"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ConfirmationResult(ServiceResult):
    confirmation: PaymentConfirmation | None = None

    SUCCESS = frozenset({ConfirmationOutcome.APPLIED, ConfirmationOutcome.DUPLICATE})
    ERRORS = {
        ConfirmationOutcome.REJECTED: ValidationError,
        ConfirmationOutcome.NEEDS_REVIEW: InsufficientBalanceError,
    }


@dataclass(frozen=True)
class RefundResult(ServiceResult):
    confirmation: PaymentConfirmation | None = None
    referral_outcome: str = ""
    credit_returned: int = 0

    SUCCESS = frozenset({RefundOutcome.REFUNDED, RefundOutcome.ALREADY_REFUNDED})
    ERRORS = {
        RefundOutcome.NOT_FOUND: NotFoundError,
        RefundOutcome.NOT_APPLIED: ValidationError,
    }


@dataclass(frozen=True)
class GiftCardPurchaseResult(ServiceResult):
    gift_card: GiftCard | None = None

    SUCCESS = frozenset({GiftCardPurchaseOutcome.ISSUED})
    ERRORS = {GiftCardPurchaseOutcome.REJECTED: ValidationError}


# ============================================================
# HELPERS
# ============================================================


def _resolve_user(user_id):
    if not user_id:
        return None
    User = get_user_model()
    try:
        return User.objects.filter(pk=user_id).first()
    except (ValueError, TypeError, DjangoValidationError):
        return None


def _lock_confirmation(payment_id: str) -> PaymentConfirmation | None:
    return PaymentConfirmation.objects.select_for_update().filter(payment_id=payment_id).first()


def _reject(confirmation: PaymentConfirmation, reason: str) -> ConfirmationResult:
    confirmation.status = PaymentConfirmation.STATUS_REJECTED
    confirmation.rejection_reason = reason
    confirmation.save(update_fields=["status", "rejection_reason"])
    logger.error(
        "Payment confirmation rejected",
        extra={"payment_id": confirmation.payment_id, "reason": reason},
    )
    return ConfirmationResult(ConfirmationOutcome.REJECTED, confirmation=confirmation)


# ============================================================
# CONFIRM
# ============================================================


def confirm_payment(*, payment_id, amount, metadata) -> ConfirmationResult:
    payment_id = str(payment_id or "").strip()
    if not payment_id:
        raise ValidationError("payment_id is required")
    paid = minor_units(amount, field="amount")
    metadata = metadata or {}

    with lock_conflicts(resource=f"payment:{payment_id}"), transaction.atomic():
        apply_lock_timeout()

        existing = _lock_confirmation(payment_id)
        if existing is not None:
            logger.info("Duplicate payment confirmation ignored", extra={"payment_id": payment_id})
            return ConfirmationResult(ConfirmationOutcome.DUPLICATE, confirmation=existing)

        try:
            with transaction.atomic():
                confirmation = PaymentConfirmation.objects.create(
                    payment_id=payment_id,
                    amount=paid,
                    metadata=metadata,
                    status=PaymentConfirmation.STATUS_APPLIED,
                )
        except IntegrityError:
            # a concurrent delivery of the same event won the insert
            existing = _lock_confirmation(payment_id)
            return ConfirmationResult(ConfirmationOutcome.DUPLICATE, confirmation=existing)

        if not is_sealed(metadata):
            return _reject(confirmation, "invalid_seal")

        try:
            breakdown = PricingBreakdown.from_metadata(metadata)
        except PricingInvariantError as exc:
            return _reject(confirmation, f"invalid_metadata: {exc.detail}"[:255])

        user = _resolve_user(breakdown.user_id)
        if user is None:
            return _reject(confirmation, "unknown_user")

        confirmation.user = user

        if paid != breakdown.final_charge:
            confirmation.save(update_fields=["user"])
            return _reject(
                confirmation,
                f"amount_mismatch: paid {paid}, expected {breakdown.final_charge}",
            )

        review_reasons = []

        # 1. gift card
        gift_card_outcome = SKIPPED
        if breakdown.gift_amount and breakdown.gift_card_code:
            charged = giftcard_service.charge(
                code=breakdown.gift_card_code,
                amount=breakdown.gift_amount,
                payment_id=payment_id,
                user=user,
            )
            gift_card_outcome = str(charged.outcome)
            if not charged.ok:
                review_reasons.append(f"gift_card_{gift_card_outcome}")
            elif charged.shortfall:
                gift_card_outcome = "short"
                review_reasons.append(f"gift_card_short: {charged.shortfall}")
                logger.error(
                    "Gift card charged less than quoted",
                    extra={"payment_id": payment_id, "shortfall": charged.shortfall},
                )

        # 2. promotion
        promotion_outcome = SKIPPED
        if breakdown.discount and breakdown.promo_code:
            promotion_outcome = str(record_usage(breakdown.promo_code).outcome)

        # 3. referral
        referral_outcome = str(
            convert(
                referee=user,
                order_id=payment_id,
                order_subtotal=breakdown.subtotal,
            ).outcome
        )

        # 4. store credit
        credit_outcome = SKIPPED
        if breakdown.credit_total:
            debited = ledger_service.debit(
                user=user,
                amount=breakdown.credit_total,
                kind=CreditTransaction.KIND_PURCHASE_DEBIT,
                reference_id=payment_id,
                reference_type="payment",
                description="Store credit applied at checkout",
            )
            credit_outcome = str(debited.outcome)
            if not debited.ok:
                review_reasons.append(f"store_credit_{credit_outcome}")
                logger.error(
                    "Store credit debit failed after payment",
                    extra={"payment_id": payment_id, "amount": breakdown.credit_total},
                )

        confirmation.gift_card_outcome = gift_card_outcome
        confirmation.promotion_outcome = promotion_outcome
        confirmation.referral_outcome = referral_outcome
        confirmation.credit_outcome = credit_outcome
        if review_reasons:
            confirmation.status = PaymentConfirmation.STATUS_REVIEW
            confirmation.rejection_reason = "; ".join(review_reasons)[:255]
        confirmation.save(
            update_fields=[
                "user",
                "status",
                "rejection_reason",
                "gift_card_outcome",
                "promotion_outcome",
                "referral_outcome",
                "credit_outcome",
            ]
        )

    if review_reasons:
        logger.error(
            "Payment confirmation needs review",
            extra={"payment_id": payment_id, "reasons": review_reasons},
        )
        return ConfirmationResult(ConfirmationOutcome.NEEDS_REVIEW, confirmation=confirmation)

    logger.info(
        "Payment confirmation applied",
        extra={
            "payment_id": payment_id,
            "user_id": str(user.pk),
            "gift_card": gift_card_outcome,
            "promotion": promotion_outcome,
            "referral": referral_outcome,
            "credit": credit_outcome,
        },
    )
    return ConfirmationResult(ConfirmationOutcome.APPLIED, confirmation=confirmation)


# ============================================================
# REFUND
# ============================================================


def refund_payment(*, payment_id, reason: str = "", now=None) -> RefundResult:
    payment_id = str(payment_id or "").strip()
    now = now or timezone.now()

    with lock_conflicts(resource=f"payment:{payment_id}"), transaction.atomic():
        apply_lock_timeout()
        confirmation = _lock_confirmation(payment_id)

        if confirmation is None:
            return RefundResult(RefundOutcome.NOT_FOUND)
        if confirmation.status == PaymentConfirmation.STATUS_REFUNDED:
            return RefundResult(RefundOutcome.ALREADY_REFUNDED, confirmation=confirmation)
        if confirmation.status not in (
            PaymentConfirmation.STATUS_APPLIED,
            PaymentConfirmation.STATUS_REVIEW,
        ):
            return RefundResult(RefundOutcome.NOT_APPLIED, confirmation=confirmation)

        referral_outcome = str(revoke(order_id=payment_id, reason=reason or "refund", now=now).outcome)

        breakdown = PricingBreakdown.from_metadata(confirmation.metadata)
        credit_returned = 0
        if breakdown.credit_total and confirmation.credit_outcome == "ok":
            returned = ledger_service.credit(
                user=confirmation.user,
                amount=breakdown.credit_total,
                kind=CreditTransaction.KIND_REFUND_CREDIT,
                reference_id=payment_id,
                reference_type="payment",
                description="Store credit returned on refund",
            )
            credit_returned = returned.transaction.amount

        confirmation.status = PaymentConfirmation.STATUS_REFUNDED
        confirmation.refunded_at = now
        confirmation.refund_reason = (reason or "")[:255]
        confirmation.save(update_fields=["status", "refunded_at", "refund_reason"])

    logger.info(
        "Payment refunded",
        extra={
            "payment_id": payment_id,
            "referral": referral_outcome,
            "credit_returned": credit_returned,
        },
    )
    return RefundResult(
        RefundOutcome.REFUNDED,
        confirmation=confirmation,
        referral_outcome=referral_outcome,
        credit_returned=credit_returned,
    )


# ============================================================
# GIFT CARD PURCHASE
# ============================================================


def complete_gift_card_purchase(*, payment_id, amount, metadata) -> GiftCardPurchaseResult:
    """
    metadata: gift_card_amount, user_id, recipient_name, recipient_email,
    sender_name, message, template
    """
    payment_id = str(payment_id or "").strip()
    if not payment_id:
        raise ValidationError("payment_id is required")
    paid = minor_units(amount, field="amount")
    metadata = metadata or {}

    face_value = minor_units(metadata.get("gift_card_amount", paid), field="gift_card_amount")
    if face_value != paid:
        logger.error(
            "Gift card purchase amount mismatch",
            extra={"payment_id": payment_id, "paid": paid, "face_value": face_value},
        )
        return GiftCardPurchaseResult(GiftCardPurchaseOutcome.REJECTED)

    template = str(metadata.get("template") or GiftCard.TEMPLATE_DEFAULT)
    if template not in dict(GiftCard.TEMPLATE_CHOICES):
        template = GiftCard.TEMPLATE_DEFAULT

    already_issued = GiftCard.objects.filter(purchase_payment_id=payment_id).exists()

    try:
        card = giftcard_service.issue(
            amount=face_value,
            purchased_by=_resolve_user(metadata.get("user_id")),
            payment_id=payment_id,
            recipient=giftcard_service.RecipientInfo(
                name=str(metadata.get("recipient_name") or "")[:120],
                email=str(metadata.get("recipient_email") or "")[:254],
                sender_name=str(metadata.get("sender_name") or "")[:120],
                message=str(metadata.get("message") or ""),
                template=template,
            ),
        )
    except AlreadyUsedError:
        logger.exception("Gift card purchase could not be issued", extra={"payment_id": payment_id})
        return GiftCardPurchaseResult(GiftCardPurchaseOutcome.REJECTED)

    if already_issued:
        return GiftCardPurchaseResult(GiftCardPurchaseOutcome.ISSUED, gift_card=card)

    notify(
        EVENT_GIFT_CARD_ISSUED,
        {
            "gift_card_id": str(card.pk),
            "recipient_email": card.recipient_email,
            "amount": card.amount,
        },
    )
    return GiftCardPurchaseResult(GiftCardPurchaseOutcome.ISSUED, gift_card=card)
