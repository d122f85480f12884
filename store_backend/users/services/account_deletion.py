# users/services/account_deletion.py

"""
ACCOUNT DELETION (ANONYMIZE, NEVER DROP)

GUARANTEES:
- The user row survives with scrubbed identity, so StoreCredit and the
  immutable CreditTransaction history keep their owner.
- The user's referral code is deactivated; the code itself stays in the
  CodeRegistry forever and is never re-issued.
- Idempotent: anonymizing an anonymized account is a no-op.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from users.models import User

logger = logging.getLogger(__name__)

ANONYMIZED_EMAIL_DOMAIN = "anonymized.invalid"


@transaction.atomic
def anonymize_user(*, user: User) -> User:
    from referrals.services.referral_service import deactivate_code

    user = User.objects.select_for_update().get(pk=user.pk)
    if user.anonymized_at is not None:
        return user

    deactivate_code(user=user)

    user.email = f"deleted-{user.pk}@{ANONYMIZED_EMAIL_DOMAIN}"
    user.username = None
    user.first_name = ""
    user.last_name = ""
    user.is_active = False
    user.is_staff = False
    user.anonymized_at = timezone.now()
    user.set_unusable_password()
    user.save(
        update_fields=[
            "email",
            "username",
            "first_name",
            "last_name",
            "is_active",
            "is_staff",
            "anonymized_at",
            "password",
            "updated_at",
        ]
    )

    logger.info("User anonymized", extra={"user_id": str(user.pk)})
    return user
