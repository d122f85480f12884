"""
======================================================
PATH: giftcards/migrations/0001_initial.py
======================================================
MIGRATION: CREATE GiftCard + GiftCardCharge
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
            name="GiftCard",
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
                ("code", models.CharField(max_length=32, unique=True)),
                (
                    "qr_token",
                    models.UUIDField(default=uuid.uuid4, editable=False, unique=True),
                ),
                (
                    "amount",
                    models.PositiveBigIntegerField(help_text="Face value in minor units"),
                ),
                ("remaining_balance", models.BigIntegerField()),
                ("is_active", models.BooleanField(default=True)),
                ("is_redeemed", models.BooleanField(default=False)),
                ("redeemed_at", models.DateTimeField(blank=True, null=True)),
                ("expires_at", models.DateTimeField(blank=True, null=True)),
                (
                    "purchase_payment_id",
                    models.CharField(blank=True, max_length=128, null=True, unique=True),
                ),
                ("recipient_name", models.CharField(blank=True, default="", max_length=120)),
                ("recipient_email", models.EmailField(blank=True, default="", max_length=254)),
                ("sender_name", models.CharField(blank=True, default="", max_length=120)),
                ("message", models.TextField(blank=True, default="")),
                (
                    "template",
                    models.CharField(
                        choices=[
                            ("default", "Default"),
                            ("birthday", "Birthday"),
                            ("holiday", "Holiday"),
                            ("thank_you", "Thank you"),
                        ],
                        default="default",
                        max_length=32,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "purchased_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="purchased_gift_cards",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "redeemed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="redeemed_gift_cards",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Gift Card",
                "verbose_name_plural": "Gift Cards",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(amount__gt=0),
                        name="giftcards_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(remaining_balance__gte=0),
                        name="giftcards_remaining_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(remaining_balance__lte=models.F("amount")),
                        name="giftcards_remaining_within_amount",
                    ),
                ],
                "indexes": [
                    models.Index(
                        fields=["is_active", "is_redeemed"], name="giftcards_state_idx"
                    ),
                    models.Index(fields=["expires_at"], name="giftcards_expires_idx"),
                    models.Index(
                        fields=["recipient_email"], name="giftcards_recipient_idx"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="GiftCardCharge",
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
                ("payment_id", models.CharField(max_length=128)),
                ("amount", models.PositiveBigIntegerField()),
                ("balance_before", models.BigIntegerField()),
                ("balance_after", models.BigIntegerField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "gift_card",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="charges",
                        to="giftcards.giftcard",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="gift_card_charges",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("gift_card", "payment_id"),
                        name="giftcards_charge_payment_uniq",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            balance_after=models.F("balance_before") - models.F("amount")
                        ),
                        name="giftcards_charge_arithmetic",
                    ),
                ],
            },
        ),
    ]
