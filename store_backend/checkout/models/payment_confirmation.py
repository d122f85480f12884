# checkout/models/payment_confirmation.py

"""
======================================================
PATH: checkout/models/payment_confirmation.py
======================================================
PAYMENT CONFIRMATION

One row per processed processor payment. Created (and locked) before any
side effect so a redelivered webhook finds it and does nothing.

Status:
- applied:  side effects ran (gift card, promotion, referral, credit)
- rejected: amount mismatch, unsealed or broken metadata, nothing applied
- review:   applied, but the gift card or store credit covered less than
            quoted (balance spent elsewhere since the quote)
- refunded: refund side effects ran (terminal)
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models


class PaymentConfirmation(models.Model):
    STATUS_APPLIED = "applied"
    STATUS_REJECTED = "rejected"
    STATUS_REVIEW = "review"
    STATUS_REFUNDED = "refunded"

    STATUS_CHOICES = [
        (STATUS_APPLIED, "Applied"),
        (STATUS_REJECTED, "Rejected"),
        (STATUS_REVIEW, "Needs review"),
        (STATUS_REFUNDED, "Refunded"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    payment_id = models.CharField(max_length=64, unique=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payment_confirmations",
    )
    amount = models.BigIntegerField(help_text="Amount actually paid, minor units")
    metadata = models.JSONField(default=dict, blank=True)

    status = models.CharField(max_length=16, choices=STATUS_CHOICES)

    gift_card_outcome = models.CharField(max_length=32, blank=True, default="")
    promotion_outcome = models.CharField(max_length=32, blank=True, default="")
    referral_outcome = models.CharField(max_length=32, blank=True, default="")
    credit_outcome = models.CharField(max_length=32, blank=True, default="")

    rejection_reason = models.CharField(max_length=255, blank=True, default="")
    refund_reason = models.CharField(max_length=255, blank=True, default="")

    processed_at = models.DateTimeField(auto_now_add=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Payment Confirmation"
        verbose_name_plural = "Payment Confirmations"
        ordering = ["-processed_at"]
        indexes = [
            models.Index(fields=["user", "status"], name="checkout_user_status_idx"),
        ]

    def __str__(self):
        return f"{self.payment_id} ({self.status})"
