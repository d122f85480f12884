# referrals/models/relationship.py

"""
======================================================
PATH: referrals/models/relationship.py
======================================================
REFERRAL RELATIONSHIP

referrer -> referee, created at signup.

Lifecycle (referrals/services/referral_lifecycle.py):
    pending -> converted -> revoked

Guarantees:
- a user is referred at most once (referee is unique)
- nobody refers themselves (DB check constraint)
- reward_amount is a snapshot taken when the relationship is created
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models
from django.db.models import F, Q


class ReferralRelationship(models.Model):
    STATUS_PENDING = "pending"
    STATUS_CONVERTED = "converted"
    STATUS_REVOKED = "revoked"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_CONVERTED, "Converted"),
        (STATUS_REVOKED, "Revoked"),
    ]

    OUTCOME_MINIMUM_NOT_MET = "minimum_not_met"
    OUTCOME_IP_LIMIT_EXCEEDED = "ip_limit_exceeded"
    OUTCOME_CREDITED = "credited"

    OUTCOME_CHOICES = [
        (OUTCOME_MINIMUM_NOT_MET, "Order below minimum"),
        (OUTCOME_IP_LIMIT_EXCEEDED, "IP daily limit exceeded"),
        (OUTCOME_CREDITED, "Reward credited"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    referrer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="referrals_made",
    )
    referee = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="referred_by",
    )
    code = models.ForeignKey(
        "referrals.ReferralCode",
        on_delete=models.PROTECT,
        related_name="relationships",
    )

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING)
    outcome = models.CharField(max_length=32, choices=OUTCOME_CHOICES, blank=True, default="")

    reward_amount = models.PositiveBigIntegerField()
    reward_credited = models.BooleanField(default=False)

    ip_address = models.GenericIPAddressField(null=True, blank=True)

    converted_order_id = models.CharField(max_length=128, blank=True, default="")
    converted_at = models.DateTimeField(null=True, blank=True)

    revoked_at = models.DateTimeField(null=True, blank=True)
    revoke_reason = models.CharField(max_length=255, blank=True, default="")
    revocation_shortfall = models.PositiveBigIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Referral"
        verbose_name_plural = "Referrals"
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=~Q(referrer=F("referee")),
                name="referrals_no_self_referral",
            ),
        ]
        indexes = [
            models.Index(fields=["referrer", "status"], name="referrals_referrer_idx"),
            models.Index(fields=["converted_order_id"], name="referrals_order_idx"),
            models.Index(
                fields=["ip_address", "reward_credited", "converted_at"],
                name="referrals_ip_window_idx",
            ),
        ]

    def __str__(self):
        return f"{self.referrer_id} -> {self.referee_id} ({self.status})"
