"""
======================================================
PATH: promotions/migrations/0001_initial.py
======================================================
MIGRATION: CREATE PromotionCode
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
            name="PromotionCode",
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
                ("name", models.CharField(max_length=120)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "discount_type",
                    models.CharField(
                        choices=[("percentage", "Percentage"), ("fixed", "Fixed amount")],
                        max_length=16,
                    ),
                ),
                ("discount_value", models.PositiveBigIntegerField()),
                ("min_purchase", models.PositiveBigIntegerField(default=0)),
                ("max_discount", models.PositiveBigIntegerField(blank=True, null=True)),
                ("usage_limit", models.PositiveIntegerField(blank=True, null=True)),
                ("usage_count", models.PositiveIntegerField(default=0)),
                ("starts_at", models.DateTimeField()),
                ("ends_at", models.DateTimeField()),
                (
                    "applies_to",
                    models.CharField(
                        choices=[
                            ("all", "Whole order"),
                            ("category", "Categories"),
                            ("product", "Products"),
                        ],
                        default="all",
                        max_length=16,
                    ),
                ),
                ("applies_to_ids", models.JSONField(blank=True, default=list)),
                ("is_active", models.BooleanField(default=True)),
                ("is_first_order_code", models.BooleanField(default=False)),
                ("referral_bonus", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="promotion_codes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Promotion Code",
                "verbose_name_plural": "Promotion Codes",
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="promotioncode",
            constraint=models.CheckConstraint(
                condition=models.Q(("usage_limit__isnull", True), ("usage_count__lte", models.F("usage_limit")), _connector="OR"),
                name="promotions_usage_within_limit",
            ),
        ),
        migrations.AddConstraint(
            model_name="promotioncode",
            constraint=models.CheckConstraint(
                condition=models.Q(("ends_at__gte", models.F("starts_at"))),
                name="promotions_window_ordered",
            ),
        ),
        migrations.AddConstraint(
            model_name="promotioncode",
            constraint=models.CheckConstraint(
                condition=models.Q(
                    models.Q(("discount_type", "percentage"), _negated=True),
                    ("discount_value__lte", 100),
                    _connector="OR",
                ),
                name="promotions_percent_within_100",
            ),
        ),
        migrations.AddIndex(
            model_name="promotioncode",
            index=models.Index(fields=["is_active", "ends_at"], name="promotions_active_idx"),
        ),
        migrations.AddIndex(
            model_name="promotioncode",
            index=models.Index(fields=["user", "is_first_order_code"], name="promotions_first_order_idx"),
        ),
    ]
