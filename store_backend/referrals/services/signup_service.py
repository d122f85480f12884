# referrals/services/signup_service.py

"""
SIGNUP HOOK

Runs right after a customer account is created:
1. the customer's own referral code
2. a pending relationship, when a valid referral code was presented
3. a single-use first-order promotion (bigger discount when referred)

A bad or self-owned referral code never fails the signup; it is reported in
the outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction

from core.results import Outcome, ServiceResult
from promotions.models import PromotionCode
from promotions.services.promotion_catalog import create_first_order_code
from referrals.models import ReferralCode, ReferralRelationship
from referrals.services.referral_service import (
    RelationshipOutcome,
    create_relationship,
    ensure_referral_code,
)

logger = logging.getLogger(__name__)


class SignupOutcome(Outcome):
    NOT_REFERRED = "not_referred"
    REFERRED = "referred"
    SELF_REFERRAL = "self_referral"
    INVALID_CODE = "invalid_code"
    ALREADY_REFERRED = "already_referred"


_FROM_RELATIONSHIP = {
    RelationshipOutcome.OK: SignupOutcome.REFERRED,
    RelationshipOutcome.SELF_REFERRAL: SignupOutcome.SELF_REFERRAL,
    RelationshipOutcome.INVALID_CODE: SignupOutcome.INVALID_CODE,
    RelationshipOutcome.ALREADY_REFERRED: SignupOutcome.ALREADY_REFERRED,
}


@dataclass(frozen=True)
class SignupResult(ServiceResult):
    referral_code: ReferralCode | None = None
    first_order_promotion: PromotionCode | None = None
    relationship: ReferralRelationship | None = None

    SUCCESS = frozenset(SignupOutcome)


@transaction.atomic
def handle_signup(*, user, referral_code=None, ip_address=None) -> SignupResult:
    own_code = ensure_referral_code(user)

    outcome = SignupOutcome.NOT_REFERRED
    relationship = None

    if (referral_code or "").strip():
        result = create_relationship(
            referee=user,
            code=referral_code,
            ip_address=ip_address,
        )
        outcome = _FROM_RELATIONSHIP[result.outcome]
        relationship = result.relationship

    promotion = create_first_order_code(
        user,
        referral_bonus=outcome == SignupOutcome.REFERRED,
    )

    logger.info(
        "Signup hook completed",
        extra={"user_id": str(user.pk), "referral_outcome": str(outcome)},
    )
    return SignupResult(
        outcome,
        referral_code=own_code,
        first_order_promotion=promotion,
        relationship=relationship,
    )
