# credits/models/store_credit.py

"""
======================================================
PATH: credits/models/store_credit.py
======================================================
STORE CREDIT ACCOUNT (ONE PER USER)

Guarantees:
- balance == total_earned - total_spent   (DB check constraint)
- balance >= 0                             (DB check constraint)
- Created lazily on first credit, mutated ONLY by credits.services.ledger_service
  while holding a row lock
- Never deleted: if the user row goes away the account is orphaned
  (user = NULL) and its transaction history stays intact
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q


class StoreCredit(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="store_credit",
    )

    balance = models.BigIntegerField(default=0, help_text="Minor units (cents)")
    total_earned = models.BigIntegerField(default=0)
    total_spent = models.BigIntegerField(default=0)

    last_sequence = models.PositiveBigIntegerField(
        default=0,
        help_text="Sequence number of the most recent CreditTransaction.",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Store Credit"
        verbose_name_plural = "Store Credits"
        ordering = ["-updated_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(balance__gte=0),
                name="credits_balance_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(balance=F("total_earned") - F("total_spent")),
                name="credits_balance_consistent",
            ),
        ]

    def __str__(self):
        return f"StoreCredit {self.user_id} balance={self.balance}"

    def delete(self, *args, **kwargs):
        raise ValidationError("StoreCredit accounts cannot be deleted")
