# giftcards/models/charge.py

"""
======================================================
PATH: giftcards/models/charge.py
======================================================
GIFT CARD CHARGE (PARTIAL SPEND AT CHECKOUT)

Append-only record of value taken from a card by a confirmed payment.

Guarantees:
- Immutable once created
- (gift_card, payment_id) unique: a retried payment webhook charges once
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q


class GiftCardCharge(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    gift_card = models.ForeignKey(
        "giftcards.GiftCard",
        on_delete=models.PROTECT,
        related_name="charges",
    )
    payment_id = models.CharField(max_length=128)

    amount = models.PositiveBigIntegerField()
    balance_before = models.BigIntegerField()
    balance_after = models.BigIntegerField()

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="gift_card_charges",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["gift_card", "payment_id"],
                name="giftcards_charge_payment_uniq",
            ),
            models.CheckConstraint(
                condition=Q(balance_after=F("balance_before") - F("amount")),
                name="giftcards_charge_arithmetic",
            ),
        ]

    def __str__(self):
        return f"{self.gift_card_id} -{self.amount} ({self.payment_id})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("GiftCardCharge records are immutable")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("GiftCardCharge records are immutable")
