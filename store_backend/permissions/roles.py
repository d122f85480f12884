# permissions/roles.py

from __future__ import annotations

from typing import Optional

from rest_framework.permissions import BasePermission


# =========================================================
# ROLE CONSTANTS
# =========================================================
# They describe what the account is allowed to operate, not who the customer is.
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_SUPPORT = "support"  # customer care: disputes, gift card lookups
ROLE_CUSTOMER = "customer"

STAFF_ROLES = {
    ROLE_ADMIN,
    ROLE_MANAGER,
    ROLE_SUPPORT,
}

ROLE_CHOICES = [
    (ROLE_ADMIN, "Admin"),
    (ROLE_MANAGER, "Manager"),
    (ROLE_SUPPORT, "Support"),
    (ROLE_CUSTOMER, "Customer"),
]


# =========================================================
# CAPABILITIES (THE REAL PERMISSION LANGUAGE)
# =========================================================
# Views should protect capabilities, not raw roles.
CAP_CREDITS_VIEW_ANY = "credits.view_any"   # any user's ledger + replay audit
CAP_CREDITS_ADJUST = "credits.adjust"       # manual admin_adjustment entries

CAP_GIFTCARDS_ISSUE = "giftcards.issue"
CAP_GIFTCARDS_MANAGE = "giftcards.manage"   # search, deactivate, stats

CAP_CODES_RESERVE = "codes.reserve"         # reserve / block codes

CAP_PROMOTIONS_MANAGE = "promotions.manage"

CAP_REFERRALS_VIEW_ANY = "referrals.view_any"
CAP_REFERRALS_REVOKE = "referrals.revoke"

ALL_CAPABILITIES = {
    CAP_CREDITS_VIEW_ANY,
    CAP_CREDITS_ADJUST,
    CAP_GIFTCARDS_ISSUE,
    CAP_GIFTCARDS_MANAGE,
    CAP_CODES_RESERVE,
    CAP_PROMOTIONS_MANAGE,
    CAP_REFERRALS_VIEW_ANY,
    CAP_REFERRALS_REVOKE,
}


# =========================================================
# ROLE → CAPABILITY MAP (DEFAULT)
# =========================================================
ROLE_CAPABILITIES: dict[str, set[str]] = {
    ROLE_ADMIN: {
        # admin can do everything
        *ALL_CAPABILITIES,
    },
    ROLE_MANAGER: {
        CAP_CREDITS_VIEW_ANY,
        CAP_CREDITS_ADJUST,
        CAP_GIFTCARDS_ISSUE,
        CAP_GIFTCARDS_MANAGE,
        CAP_PROMOTIONS_MANAGE,
        CAP_REFERRALS_VIEW_ANY,
        CAP_REFERRALS_REVOKE,
    },
    ROLE_SUPPORT: {
        CAP_CREDITS_VIEW_ANY,
        CAP_GIFTCARDS_MANAGE,
        CAP_REFERRALS_VIEW_ANY,
        # no credits.adjust
    },
    ROLE_CUSTOMER: set(),
}


# =========================================================
# Helpers
# =========================================================
def get_user_role(user) -> Optional[str]:
    return getattr(user, "role", None)


def effective_capabilities_for(user) -> set[str]:
    if getattr(user, "is_superuser", False):
        return set(ALL_CAPABILITIES)
    return set(ROLE_CAPABILITIES.get(get_user_role(user), set()))


def user_has_capability(user, capability: str) -> bool:
    if not user or not getattr(user, "is_authenticated", False):
        return False
    return capability in effective_capabilities_for(user)


# =========================================================
# Capability Permissions
# =========================================================
class HasCapability(BasePermission):
    """
    Require a specific capability.

    Usage:
        permission_classes = [IsAuthenticated, HasCapability]
        required_capability = CAP_CREDITS_ADJUST
    """

    def has_permission(self, request, view):
        required = getattr(view, "required_capability", None)
        if not required:
            # If not set, deny-by-default to avoid accidental open endpoints
            return False

        return user_has_capability(request.user, required)


class HasAnyCapability(BasePermission):
    """
    Require ANY capability from a list.

    Usage:
        required_any_capabilities = {CAP_GIFTCARDS_ISSUE, CAP_GIFTCARDS_MANAGE}
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = getattr(view, "required_any_capabilities", None)
        if not required:
            return False

        caps = effective_capabilities_for(user)
        return any(cap in caps for cap in set(required))


class IsStaff(BasePermission):
    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return get_user_role(user) in STAFF_ROLES
