"""
======================================================
PATH: credits/migrations/0001_initial.py
======================================================
MIGRATION: CREATE StoreCredit + CreditTransaction

Purpose:
- Per-user balance row with DB-enforced consistency constraints.
- Append-only ledger with (kind, reference_id) idempotency key and
  per-account sequence numbers.
"""

from __future__ import annotations

import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="StoreCredit",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                ("balance", models.BigIntegerField(default=0, help_text="Minor units (cents)")),
                ("total_earned", models.BigIntegerField(default=0)),
                ("total_spent", models.BigIntegerField(default=0)),
                (
                    "last_sequence",
                    models.PositiveBigIntegerField(
                        default=0,
                        help_text="Sequence number of the most recent CreditTransaction.",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="store_credit",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Store Credit",
                "verbose_name_plural": "Store Credits",
                "ordering": ["-updated_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(balance__gte=0),
                        name="credits_balance_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            balance=models.F("total_earned") - models.F("total_spent")
                        ),
                        name="credits_balance_consistent",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CreditTransaction",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                ("sequence", models.PositiveBigIntegerField()),
                (
                    "amount",
                    models.BigIntegerField(help_text="Signed minor units: + credit, - debit"),
                ),
                (
                    "kind",
                    models.CharField(
                        max_length=32,
                        choices=[
                            ("gift_card_redeem", "Gift card redeemed"),
                            ("referral_reward", "Referral reward"),
                            ("referral_revoked", "Referral reward revoked"),
                            ("purchase_debit", "Spent at checkout"),
                            ("refund_credit", "Returned by refund"),
                            ("admin_adjustment", "Admin adjustment"),
                        ],
                    ),
                ),
                ("reference_id", models.CharField(max_length=64)),
                ("reference_type", models.CharField(blank=True, default="", max_length=32)),
                ("balance_before", models.BigIntegerField()),
                ("balance_after", models.BigIntegerField()),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "store_credit",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="credits.storecredit",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="credit_transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Credit Transaction",
                "verbose_name_plural": "Credit Transactions",
                "ordering": ["-sequence"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("kind", "reference_id"),
                        name="credits_tx_kind_reference_uniq",
                    ),
                    models.UniqueConstraint(
                        fields=("store_credit", "sequence"),
                        name="credits_tx_sequence_uniq",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            balance_after=models.F("balance_before") + models.F("amount")
                        ),
                        name="credits_tx_arithmetic",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(balance_after__gte=0),
                        name="credits_tx_balance_after_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("amount", 0), _negated=True),
                        name="credits_tx_amount_non_zero",
                    ),
                ],
                "indexes": [
                    models.Index(
                        fields=["user", "created_at"], name="credits_tx_user_created_idx"
                    ),
                    models.Index(fields=["kind"], name="credits_tx_kind_idx"),
                ],
            },
        ),
    ]
