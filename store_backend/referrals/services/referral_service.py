# referrals/services/referral_service.py

"""
======================================================
PATH: referrals/services/referral_service.py
======================================================
REFERRAL STATE MACHINE

This module is the ONLY place allowed to:
- Create referral codes and relationships
- Convert a pending relationship on the referee's first paid order
- Revoke a converted reward after a refund
- Move ReferralCode counters

GUARANTEES:
- Nobody earns from referring themselves (same user or same e-mail).
- A referee has at most one relationship, converted at most once.
- The reward is credited at most once per relationship and clawed back at
  most once (ledger idempotency keyed on the relationship id).
- Revocation only inside REFERRAL_REFUND_WINDOW_DAYS of the conversion.
- At most REFERRAL_MAX_PER_IP_DAILY credited conversions per IP address in
  any trailing 24 hours.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from codes.models import CodeRegistryEntry
from codes.services.code_registry import (
    generate_referral_code,
    normalize_code,
    register_on_issue,
)
from core.api import normalize_ip
from core.conf import store_credit_setting
from core.exceptions import (
    AlreadyReferredError,
    NotFoundError,
    OutsideWindowError,
    RateLimitExceededError,
    SelfReferralError,
    ValidationError,
)
from core.locking import apply_lock_timeout, lock_conflicts
from core.money import non_negative
from core.notifications import (
    EVENT_REFERRAL_REWARD_CREDITED,
    EVENT_REFERRAL_REWARD_REVOKED,
    notify,
)
from core.results import Outcome, ServiceResult
from credits.models import CreditTransaction
from credits.services import ledger_service
from referrals.models import ReferralCode, ReferralRelationship
from referrals.services.referral_lifecycle import validate_transition

logger = logging.getLogger(__name__)

IP_WINDOW = timedelta(hours=24)


# ============================================================
# RESULTS
# ============================================================


class RelationshipOutcome(Outcome):
    OK = "ok"
    SELF_REFERRAL = "self_referral"
    INVALID_CODE = "invalid_code"
    ALREADY_REFERRED = "already_referred"


class ConversionOutcome(Outcome):
    NO_PENDING_REFERRAL = "no_pending_referral"
    MINIMUM_NOT_MET = "minimum_not_met"
    IP_LIMIT_EXCEEDED = "ip_limit_exceeded"
    CREDITED = "credited"


class RevokeOutcome(Outcome):
    NO_ELIGIBLE_REFERRAL = "no_eligible_referral"
    OUTSIDE_WINDOW = "outside_window"
    REVOKED = "revoked"


@dataclass(frozen=True)
class RelationshipResult(ServiceResult):
    relationship: ReferralRelationship | None = None

    SUCCESS = frozenset({RelationshipOutcome.OK})
    ERRORS = {
        RelationshipOutcome.SELF_REFERRAL: SelfReferralError,
        RelationshipOutcome.INVALID_CODE: NotFoundError,
        RelationshipOutcome.ALREADY_REFERRED: AlreadyReferredError,
    }


@dataclass(frozen=True)
class ConversionResult(ServiceResult):
    relationship: ReferralRelationship | None = None
    reward: int = 0

    SUCCESS = frozenset({ConversionOutcome.CREDITED})
    ERRORS = {
        ConversionOutcome.NO_PENDING_REFERRAL: NotFoundError,
        ConversionOutcome.MINIMUM_NOT_MET: ValidationError,
        ConversionOutcome.IP_LIMIT_EXCEEDED: RateLimitExceededError,
    }


@dataclass(frozen=True)
class RevokeResult(ServiceResult):
    relationship: ReferralRelationship | None = None
    deducted: int = 0
    shortfall: int = 0

    SUCCESS = frozenset({RevokeOutcome.REVOKED})
    ERRORS = {
        RevokeOutcome.NO_ELIGIBLE_REFERRAL: NotFoundError,
        RevokeOutcome.OUTSIDE_WINDOW: OutsideWindowError,
    }


# ============================================================
# CODES
# ============================================================


def ensure_referral_code(user) -> ReferralCode:
    existing = ReferralCode.objects.filter(user=user).first()
    if existing is not None:
        return existing

    try:
        with transaction.atomic():
            referral_code = ReferralCode.objects.create(
                user=user,
                code=generate_referral_code(),
            )
            register_on_issue(
                referral_code.code,
                owner_id=referral_code.pk,
                namespace=CodeRegistryEntry.NAMESPACE_REFERRAL,
            )
    except IntegrityError:
        # concurrent signup hook for the same user
        existing = ReferralCode.objects.filter(user=user).first()
        if existing is None:
            raise
        return existing

    logger.info(
        "Referral code created",
        extra={"user_id": str(user.pk), "code": referral_code.code},
    )
    return referral_code


def resolve_code(code) -> ReferralCode | None:
    code = normalize_code(code)
    if not code:
        return None
    return (
        ReferralCode.objects.select_related("user")
        .filter(code=code, is_active=True, user__is_active=True)
        .first()
    )


@transaction.atomic
def deactivate_code(*, user) -> ReferralCode | None:
    referral_code = ReferralCode.objects.select_for_update().filter(user=user).first()
    if referral_code is None or not referral_code.is_active:
        return referral_code

    referral_code.is_active = False
    referral_code.save(update_fields=["is_active"])
    logger.info("Referral code deactivated", extra={"user_id": str(user.pk)})
    return referral_code


# ============================================================
# RELATIONSHIP
# ============================================================


def _same_person(owner, referee) -> bool:
    if owner.pk == referee.pk:
        return True
    owner_email = (owner.email or "").strip().lower()
    return bool(owner_email) and owner_email == (referee.email or "").strip().lower()


def create_relationship(*, referee, code, ip_address=None, referrer=None) -> RelationshipResult:
    if referrer is not None and referrer.pk == referee.pk:
        logger.warning("Self-referral attempt", extra={"user_id": str(referee.pk)})
        return RelationshipResult(RelationshipOutcome.SELF_REFERRAL)

    referral_code = resolve_code(code)

    if referral_code is None or (referrer is not None and referral_code.user_id != referrer.pk):
        logger.info("Referral code rejected", extra={"code": normalize_code(code)})
        return RelationshipResult(RelationshipOutcome.INVALID_CODE)

    owner = referral_code.user
    if _same_person(owner, referee):
        logger.warning(
            "Self-referral attempt",
            extra={"user_id": str(referee.pk), "code": referral_code.code},
        )
        return RelationshipResult(RelationshipOutcome.SELF_REFERRAL)

    if ReferralRelationship.objects.filter(referee=referee).exists():
        return RelationshipResult(RelationshipOutcome.ALREADY_REFERRED)

    try:
        with transaction.atomic():
            relationship = ReferralRelationship.objects.create(
                referrer=owner,
                referee=referee,
                code=referral_code,
                reward_amount=int(store_credit_setting("REFERRAL_REWARD_AMOUNT")),
                ip_address=normalize_ip(ip_address),
            )
            ReferralCode.objects.filter(pk=referral_code.pk).update(
                total_referrals=F("total_referrals") + 1
            )
    except IntegrityError:
        return RelationshipResult(RelationshipOutcome.ALREADY_REFERRED)

    logger.info(
        "Referral relationship created",
        extra={
            "relationship_id": str(relationship.pk),
            "referrer_id": str(owner.pk),
            "referee_id": str(referee.pk),
        },
    )
    return RelationshipResult(RelationshipOutcome.OK, relationship=relationship)


# ============================================================
# CONVERSION
# ============================================================


def _credited_from_ip(ip_address, *, now, exclude_pk) -> int:
    return (
        ReferralRelationship.objects.filter(
            ip_address=ip_address,
            status=ReferralRelationship.STATUS_CONVERTED,
            reward_credited=True,
            converted_at__gte=now - IP_WINDOW,
        )
        .exclude(pk=exclude_pk)
        .count()
    )


def convert(*, referee, order_id, order_subtotal: int, now=None) -> ConversionResult:
    """
    Called on the referee's confirmed payment with the order subtotal
    (before discounts).
    """
    now = now or timezone.now()
    order_id = str(order_id)

    with lock_conflicts(resource=f"referral:{referee.pk}"), transaction.atomic():
        apply_lock_timeout()
        relationship = (
            ReferralRelationship.objects.select_for_update()
            .filter(referee=referee, status=ReferralRelationship.STATUS_PENDING)
            .first()
        )
        if relationship is None:
            return ConversionResult(ConversionOutcome.NO_PENDING_REFERRAL)

        validate_transition(
            relationship=relationship,
            target_status=ReferralRelationship.STATUS_CONVERTED,
        )

        relationship.status = ReferralRelationship.STATUS_CONVERTED
        relationship.converted_order_id = order_id
        relationship.converted_at = now
        update_fields = ["status", "converted_order_id", "converted_at", "outcome"]

        minimum = int(store_credit_setting("REFERRAL_MINIMUM_ORDER"))
        ip_cap = int(store_credit_setting("REFERRAL_MAX_PER_IP_DAILY"))

        if order_subtotal < minimum:
            relationship.outcome = ReferralRelationship.OUTCOME_MINIMUM_NOT_MET
            relationship.save(update_fields=update_fields)
            logger.info(
                "Referral converted without reward: order below minimum",
                extra={"relationship_id": str(relationship.pk), "subtotal": order_subtotal},
            )
            return ConversionResult(ConversionOutcome.MINIMUM_NOT_MET, relationship=relationship)

        if relationship.ip_address and _credited_from_ip(
            relationship.ip_address, now=now, exclude_pk=relationship.pk
        ) >= ip_cap:
            relationship.outcome = ReferralRelationship.OUTCOME_IP_LIMIT_EXCEEDED
            relationship.save(update_fields=update_fields)
            logger.warning(
                "Referral reward withheld: IP daily limit",
                extra={"relationship_id": str(relationship.pk), "ip_address": relationship.ip_address},
            )
            return ConversionResult(ConversionOutcome.IP_LIMIT_EXCEEDED, relationship=relationship)

        relationship.outcome = ReferralRelationship.OUTCOME_CREDITED
        relationship.reward_credited = True
        relationship.save(update_fields=update_fields + ["reward_credited"])

        reward = relationship.reward_amount
        ledger_service.credit(
            user=relationship.referrer,
            amount=reward,
            kind=CreditTransaction.KIND_REFERRAL_REWARD,
            reference_id=relationship.pk,
            reference_type="referral",
            description=f"Referral reward for order {order_id}",
        )
        ReferralCode.objects.filter(pk=relationship.code_id).update(
            total_conversions=F("total_conversions") + 1,
            total_earned=F("total_earned") + reward,
        )

        notify(
            EVENT_REFERRAL_REWARD_CREDITED,
            {
                "user_id": str(relationship.referrer_id),
                "relationship_id": str(relationship.pk),
                "amount": reward,
            },
        )

    logger.info(
        "Referral reward credited",
        extra={
            "relationship_id": str(relationship.pk),
            "referrer_id": str(relationship.referrer_id),
            "amount": reward,
        },
    )
    return ConversionResult(ConversionOutcome.CREDITED, relationship=relationship, reward=reward)


# ============================================================
# REVOCATION
# ============================================================


def revoke(*, order_id, reason: str = "", now=None) -> RevokeResult:
    now = now or timezone.now()
    order_id = str(order_id)
    window = timedelta(days=int(store_credit_setting("REFERRAL_REFUND_WINDOW_DAYS")))

    with lock_conflicts(resource=f"referral_order:{order_id}"), transaction.atomic():
        apply_lock_timeout()
        relationship = (
            ReferralRelationship.objects.select_for_update()
            .filter(
                converted_order_id=order_id,
                status=ReferralRelationship.STATUS_CONVERTED,
                reward_credited=True,
            )
            .first()
        )
        if relationship is None:
            return RevokeResult(RevokeOutcome.NO_ELIGIBLE_REFERRAL)

        if now - relationship.converted_at > window:
            logger.info(
                "Referral revocation skipped: outside refund window",
                extra={"relationship_id": str(relationship.pk), "order_id": order_id},
            )
            return RevokeResult(RevokeOutcome.OUTSIDE_WINDOW, relationship=relationship)

        validate_transition(
            relationship=relationship,
            target_status=ReferralRelationship.STATUS_REVOKED,
        )

        clawback = ledger_service.claw_back(
            user=relationship.referrer,
            amount=relationship.reward_amount,
            kind=CreditTransaction.KIND_REFERRAL_REVOKED,
            reference_id=relationship.pk,
            reference_type="referral",
            description=f"Referral reward revoked: {reason or 'refund'}",
        )

        relationship.status = ReferralRelationship.STATUS_REVOKED
        relationship.revoked_at = now
        relationship.revoke_reason = (reason or "")[:255]
        relationship.revocation_shortfall = clawback.shortfall
        relationship.save(
            update_fields=["status", "revoked_at", "revoke_reason", "revocation_shortfall"]
        )

        referral_code = ReferralCode.objects.select_for_update().get(pk=relationship.code_id)
        referral_code.total_conversions = non_negative(referral_code.total_conversions - 1)
        referral_code.total_earned = non_negative(
            referral_code.total_earned - relationship.reward_amount
        )
        referral_code.save(update_fields=["total_conversions", "total_earned"])

        notify(
            EVENT_REFERRAL_REWARD_REVOKED,
            {
                "user_id": str(relationship.referrer_id),
                "relationship_id": str(relationship.pk),
                "amount": clawback.deducted,
            },
        )

    logger.info(
        "Referral reward revoked",
        extra={
            "relationship_id": str(relationship.pk),
            "deducted": clawback.deducted,
            "shortfall": clawback.shortfall,
        },
    )
    return RevokeResult(
        RevokeOutcome.REVOKED,
        relationship=relationship,
        deducted=clawback.deducted,
        shortfall=clawback.shortfall,
    )


# ============================================================
# READS
# ============================================================


def referral_stats(user) -> dict:
    referral_code = ensure_referral_code(user)
    pending = ReferralRelationship.objects.filter(
        referrer=user,
        status=ReferralRelationship.STATUS_PENDING,
    ).count()
    return {
        "code": referral_code.code,
        "is_active": referral_code.is_active,
        "total_referrals": referral_code.total_referrals,
        "total_conversions": referral_code.total_conversions,
        "total_earned": referral_code.total_earned,
        "pending": pending,
        "reward_amount": int(store_credit_setting("REFERRAL_REWARD_AMOUNT")),
        "minimum_order": int(store_credit_setting("REFERRAL_MINIMUM_ORDER")),
    }


def referral_history(user):
    return (
        ReferralRelationship.objects.filter(referrer=user)
        .select_related("referee")
        .order_by("-created_at")
    )


def bonus_eligibility(user, cart_subtotal: int) -> dict:
    """
    For a referee: does this cart earn the referrer the reward, and if not,
    how much more must be spent.
    """
    minimum = int(store_credit_setting("REFERRAL_MINIMUM_ORDER"))
    pending = ReferralRelationship.objects.filter(
        referee=user,
        status=ReferralRelationship.STATUS_PENDING,
    ).exists()
    subtotal = non_negative(int(cart_subtotal))
    return {
        "has_pending_referral": pending,
        "eligible": pending and subtotal >= minimum,
        "minimum_order": minimum,
        "remaining": non_negative(minimum - subtotal),
        "reward_amount": int(store_credit_setting("REFERRAL_REWARD_AMOUNT")),
    }
