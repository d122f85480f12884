"""
======================================================
PATH: checkout/migrations/0001_initial.py
======================================================
MIGRATION: CREATE PaymentConfirmation
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
            name="PaymentConfirmation",
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
                ("payment_id", models.CharField(max_length=64, unique=True)),
                ("amount", models.BigIntegerField(help_text="Amount actually paid, minor units")),
                ("metadata", models.JSONField(blank=True, default=dict)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("applied", "Applied"),
                            ("rejected", "Rejected"),
                            ("refunded", "Refunded"),
                        ],
                        max_length=16,
                    ),
                ),
                ("gift_card_outcome", models.CharField(blank=True, default="", max_length=32)),
                ("promotion_outcome", models.CharField(blank=True, default="", max_length=32)),
                ("referral_outcome", models.CharField(blank=True, default="", max_length=32)),
                ("credit_outcome", models.CharField(blank=True, default="", max_length=32)),
                ("rejection_reason", models.CharField(blank=True, default="", max_length=255)),
                ("refund_reason", models.CharField(blank=True, default="", max_length=255)),
                ("processed_at", models.DateTimeField(auto_now_add=True)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payment_confirmations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Confirmation",
                "verbose_name_plural": "Payment Confirmations",
                "ordering": ["-processed_at"],
            },
        ),
        migrations.AddIndex(
            model_name="paymentconfirmation",
            index=models.Index(fields=["user", "status"], name="checkout_user_status_idx"),
        ),
    ]
