"""
======================================================
PATH: checkout/migrations/0002_paymentconfirmation_review_status.py
======================================================
MIGRATION: PaymentConfirmation "review" status
"""

from __future__ import annotations

from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("checkout", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="paymentconfirmation",
            name="status",
            field=models.CharField(
                choices=[
                    ("applied", "Applied"),
                    ("rejected", "Rejected"),
                    ("review", "Needs review"),
                    ("refunded", "Refunded"),
                ],
                max_length=16,
            ),
        ),
    ]
