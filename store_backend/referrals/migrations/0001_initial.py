"""
======================================================
PATH: referrals/migrations/0001_initial.py
======================================================
MIGRATION: CREATE ReferralCode + ReferralRelationship
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
            name="ReferralCode",
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
                ("code", models.CharField(max_length=16, unique=True)),
                ("is_active", models.BooleanField(default=True)),
                ("total_referrals", models.PositiveIntegerField(default=0)),
                ("total_conversions", models.PositiveIntegerField(default=0)),
                ("total_earned", models.BigIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="referral_code",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Referral Code",
                "verbose_name_plural": "Referral Codes",
            },
        ),
        migrations.AddConstraint(
            model_name="referralcode",
            constraint=models.CheckConstraint(
                condition=models.Q(("total_earned__gte", 0)),
                name="referrals_code_earned_non_negative",
            ),
        ),
        migrations.CreateModel(
            name="ReferralRelationship",
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
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("converted", "Converted"),
                            ("revoked", "Revoked"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                (
                    "outcome",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("minimum_not_met", "Order below minimum"),
                            ("ip_limit_exceeded", "IP daily limit exceeded"),
                            ("credited", "Reward credited"),
                        ],
                        default="",
                        max_length=32,
                    ),
                ),
                ("reward_amount", models.PositiveBigIntegerField()),
                ("reward_credited", models.BooleanField(default=False)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("converted_order_id", models.CharField(blank=True, default="", max_length=128)),
                ("converted_at", models.DateTimeField(blank=True, null=True)),
                ("revoked_at", models.DateTimeField(blank=True, null=True)),
                ("revoke_reason", models.CharField(blank=True, default="", max_length=255)),
                ("revocation_shortfall", models.PositiveBigIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "code",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="relationships",
                        to="referrals.referralcode",
                    ),
                ),
                (
                    "referee",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="referred_by",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "referrer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="referrals_made",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Referral",
                "verbose_name_plural": "Referrals",
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="referralrelationship",
            constraint=models.CheckConstraint(
                condition=models.Q(("referrer", models.F("referee")), _negated=True),
                name="referrals_no_self_referral",
            ),
        ),
        migrations.AddIndex(
            model_name="referralrelationship",
            index=models.Index(fields=["referrer", "status"], name="referrals_referrer_idx"),
        ),
        migrations.AddIndex(
            model_name="referralrelationship",
            index=models.Index(fields=["converted_order_id"], name="referrals_order_idx"),
        ),
        migrations.AddIndex(
            model_name="referralrelationship",
            index=models.Index(
                fields=["ip_address", "reward_credited", "converted_at"],
                name="referrals_ip_window_idx",
            ),
        ),
    ]
