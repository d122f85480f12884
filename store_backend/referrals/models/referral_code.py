# referrals/models/referral_code.py

"""
REFERRAL CODE

One permanent code per user. Counters are maintained by
referrals.services.referral_service only and never go below zero.
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models
from django.db.models import Q


class ReferralCode(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="referral_code",
    )
    code = models.CharField(max_length=16, unique=True)
    is_active = models.BooleanField(default=True)

    total_referrals = models.PositiveIntegerField(default=0)
    total_conversions = models.PositiveIntegerField(default=0)
    total_earned = models.BigIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Referral Code"
        verbose_name_plural = "Referral Codes"
        constraints = [
            models.CheckConstraint(
                condition=Q(total_earned__gte=0),
                name="referrals_code_earned_non_negative",
            ),
        ]

    def __str__(self):
        return self.code
