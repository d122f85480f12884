# credits/models/transaction.py

"""
======================================================
PATH: credits/models/transaction.py
======================================================
CREDIT TRANSACTION (APPEND-ONLY LEDGER ROW)

One row per balance mutation.

Guarantees:
- Immutable once created (no updates, no deletes)
- (kind, reference_id) is unique: the idempotency key of every mutation
- (store_credit, sequence) is unique: per-user total order
- balance_after == balance_before + amount, balance_after >= 0
- amount is signed: > 0 credit, < 0 debit, never 0

Replaying every row of an account in sequence order reproduces
StoreCredit.balance exactly (credits.services.ledger_service.replay_ledger).
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q


class CreditTransaction(models.Model):
    KIND_GIFT_CARD_REDEEM = "gift_card_redeem"
    KIND_REFERRAL_REWARD = "referral_reward"
    KIND_REFERRAL_REVOKED = "referral_revoked"
    KIND_PURCHASE_DEBIT = "purchase_debit"
    KIND_REFUND_CREDIT = "refund_credit"
    KIND_ADMIN_ADJUSTMENT = "admin_adjustment"

    KIND_CHOICES = [
        (KIND_GIFT_CARD_REDEEM, "Gift card redeemed"),
        (KIND_REFERRAL_REWARD, "Referral reward"),
        (KIND_REFERRAL_REVOKED, "Referral reward revoked"),
        (KIND_PURCHASE_DEBIT, "Spent at checkout"),
        (KIND_REFUND_CREDIT, "Returned by refund"),
        (KIND_ADMIN_ADJUSTMENT, "Admin adjustment"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    store_credit = models.ForeignKey(
        "credits.StoreCredit",
        on_delete=models.PROTECT,
        related_name="transactions",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="credit_transactions",
    )

    sequence = models.PositiveBigIntegerField()

    amount = models.BigIntegerField(help_text="Signed minor units: + credit, - debit")
    kind = models.CharField(max_length=32, choices=KIND_CHOICES)

    reference_id = models.CharField(max_length=64)
    reference_type = models.CharField(max_length=32, blank=True, default="")

    balance_before = models.BigIntegerField()
    balance_after = models.BigIntegerField()

    description = models.CharField(max_length=255, blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Credit Transaction"
        verbose_name_plural = "Credit Transactions"
        ordering = ["-sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=["kind", "reference_id"],
                name="credits_tx_kind_reference_uniq",
            ),
            models.UniqueConstraint(
                fields=["store_credit", "sequence"],
                name="credits_tx_sequence_uniq",
            ),
            models.CheckConstraint(
                condition=Q(balance_after=F("balance_before") + F("amount")),
                name="credits_tx_arithmetic",
            ),
            models.CheckConstraint(
                condition=Q(balance_after__gte=0),
                name="credits_tx_balance_after_non_negative",
            ),
            models.CheckConstraint(
                condition=~Q(amount=0),
                name="credits_tx_amount_non_zero",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "created_at"], name="credits_tx_user_created_idx"),
            models.Index(fields=["kind"], name="credits_tx_kind_idx"),
        ]

    def __str__(self):
        return f"#{self.sequence} {self.kind} {self.amount:+d} -> {self.balance_after}"

    @property
    def is_credit(self) -> bool:
        return self.amount > 0

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("CreditTransaction records are immutable and cannot be modified")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("CreditTransaction records are immutable and cannot be deleted")
