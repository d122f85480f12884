"""
REFERRAL LIFECYCLE DOMAIN RULES

This module defines the ONLY allowed lifecycle transitions
for ReferralRelationship entities.

DESIGN PRINCIPLES:
- No database writes
- No ledger mutation
- No side effects
- Single source of truth
"""

from core.exceptions import StoreCreditError
from referrals.models import ReferralRelationship

# ============================================================
# DOMAIN ERRORS
# ============================================================


class InvalidReferralTransitionError(StoreCreditError):
    code = "INVALID_REFERRAL_TRANSITION"
    http_status = 409


# ============================================================
# STATE DEFINITIONS
# ============================================================

TERMINAL_STATES = {
    ReferralRelationship.STATUS_REVOKED,
}

ALLOWED_TRANSITIONS = {
    ReferralRelationship.STATUS_PENDING: {
        ReferralRelationship.STATUS_CONVERTED,
    },
    ReferralRelationship.STATUS_CONVERTED: {
        ReferralRelationship.STATUS_REVOKED,
    },
}


# ============================================================
# DOMAIN RULES
# ============================================================


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_transition(*, relationship: ReferralRelationship, target_status: str):
    if not can_transition(
        from_status=relationship.status,
        to_status=target_status,
    ):
        raise InvalidReferralTransitionError(
            f"Referral {relationship.id} cannot transition from "
            f"'{relationship.status}' to '{target_status}'"
        )
