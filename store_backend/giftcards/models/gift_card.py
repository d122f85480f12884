# giftcards/models/gift_card.py

"""
======================================================
PATH: giftcards/models/gift_card.py
======================================================
GIFT CARD

Bearer instrument with a human code (XXXX-XXXX-XXXX) and a secret QR token.

Guarantees:
- 0 <= remaining_balance <= amount    (DB check constraints)
- is_redeemed is terminal: once set, nothing flips it back
- purchase_payment_id is unique: one card per gift-card purchase payment
- Never deleted (deactivate with is_active = False); the code is also kept
  forever in the CodeRegistry
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class GiftCard(models.Model):
    TEMPLATE_DEFAULT = "default"
    TEMPLATE_BIRTHDAY = "birthday"
    TEMPLATE_HOLIDAY = "holiday"
    TEMPLATE_THANK_YOU = "thank_you"

    TEMPLATE_CHOICES = [
        (TEMPLATE_DEFAULT, "Default"),
        (TEMPLATE_BIRTHDAY, "Birthday"),
        (TEMPLATE_HOLIDAY, "Holiday"),
        (TEMPLATE_THANK_YOU, "Thank you"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    code = models.CharField(max_length=32, unique=True)
    qr_token = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)

    amount = models.PositiveBigIntegerField(help_text="Face value in minor units")
    remaining_balance = models.BigIntegerField()

    is_active = models.BooleanField(default=True)
    is_redeemed = models.BooleanField(default=False)

    redeemed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="redeemed_gift_cards",
    )
    redeemed_at = models.DateTimeField(null=True, blank=True)

    expires_at = models.DateTimeField(null=True, blank=True)

    # Purchase + recipient details
    purchased_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="purchased_gift_cards",
    )
    purchase_payment_id = models.CharField(max_length=128, unique=True, null=True, blank=True)

    recipient_name = models.CharField(max_length=120, blank=True, default="")
    recipient_email = models.EmailField(blank=True, default="")
    sender_name = models.CharField(max_length=120, blank=True, default="")
    message = models.TextField(blank=True, default="")
    template = models.CharField(max_length=32, choices=TEMPLATE_CHOICES, default=TEMPLATE_DEFAULT)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Gift Card"
        verbose_name_plural = "Gift Cards"
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="giftcards_amount_positive",
            ),
            models.CheckConstraint(
                condition=Q(remaining_balance__gte=0),
                name="giftcards_remaining_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(remaining_balance__lte=F("amount")),
                name="giftcards_remaining_within_amount",
            ),
        ]
        indexes = [
            models.Index(fields=["is_active", "is_redeemed"], name="giftcards_state_idx"),
            models.Index(fields=["expires_at"], name="giftcards_expires_idx"),
            models.Index(fields=["recipient_email"], name="giftcards_recipient_idx"),
        ]

    def __str__(self):
        return f"{self.code} ({self.remaining_balance}/{self.amount})"

    def is_expired(self, now=None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (now or timezone.now())

    @property
    def status(self) -> str:
        if self.is_redeemed:
            return "redeemed"
        if not self.is_active:
            return "inactive"
        if self.is_expired():
            return "expired"
        return "active"

    def delete(self, *args, **kwargs):
        raise ValidationError("Gift cards cannot be deleted; deactivate them instead")
