# referrals/models/__init__.py

from .referral_code import ReferralCode
from .relationship import ReferralRelationship

__all__ = [
    "ReferralCode",
    "ReferralRelationship",
]
