# promotions/models/promotion_code.py

"""
======================================================
PATH: promotions/models/promotion_code.py
======================================================
PROMOTION CODE

discount_value is a whole percent for percentage codes and an amount in
minor units for fixed codes.

Guarantees:
- usage_count never exceeds usage_limit (DB check, plus the row lock in
  promotions.services.promotion_catalog.record_usage)
- first-order codes are bound to one user and single use
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q


class PromotionCode(models.Model):
    TYPE_PERCENTAGE = "percentage"
    TYPE_FIXED = "fixed"

    TYPE_CHOICES = [
        (TYPE_PERCENTAGE, "Percentage"),
        (TYPE_FIXED, "Fixed amount"),
    ]

    APPLIES_TO_ALL = "all"
    APPLIES_TO_CATEGORY = "category"
    APPLIES_TO_PRODUCT = "product"

    APPLIES_TO_CHOICES = [
        (APPLIES_TO_ALL, "Whole order"),
        (APPLIES_TO_CATEGORY, "Categories"),
        (APPLIES_TO_PRODUCT, "Products"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    code = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=120)
    description = models.TextField(blank=True, default="")

    discount_type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    discount_value = models.PositiveBigIntegerField()

    min_purchase = models.PositiveBigIntegerField(default=0)
    max_discount = models.PositiveBigIntegerField(null=True, blank=True)

    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    usage_count = models.PositiveIntegerField(default=0)

    starts_at = models.DateTimeField()
    ends_at = models.DateTimeField()

    applies_to = models.CharField(
        max_length=16,
        choices=APPLIES_TO_CHOICES,
        default=APPLIES_TO_ALL,
    )
    applies_to_ids = models.JSONField(default=list, blank=True)

    is_active = models.BooleanField(default=True)

    # First-order codes
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="promotion_codes",
    )
    is_first_order_code = models.BooleanField(default=False)
    referral_bonus = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Promotion Code"
        verbose_name_plural = "Promotion Codes"
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(usage_limit__isnull=True) | Q(usage_count__lte=F("usage_limit")),
                name="promotions_usage_within_limit",
            ),
            models.CheckConstraint(
                condition=Q(ends_at__gte=F("starts_at")),
                name="promotions_window_ordered",
            ),
            models.CheckConstraint(
                condition=~Q(discount_type="percentage") | Q(discount_value__lte=100),
                name="promotions_percent_within_100",
            ),
        ]
        indexes = [
            models.Index(fields=["is_active", "ends_at"], name="promotions_active_idx"),
            models.Index(fields=["user", "is_first_order_code"], name="promotions_first_order_idx"),
        ]

    def __str__(self):
        return f"{self.code} ({self.discount_type} {self.discount_value})"

    def clean(self):
        if self.discount_type == self.TYPE_PERCENTAGE and not 0 < self.discount_value <= 100:
            raise ValidationError({"discount_value": "Percentage must be between 1 and 100"})
        if self.ends_at and self.starts_at and self.ends_at < self.starts_at:
            raise ValidationError({"ends_at": "End must not be before start"})
        if not isinstance(self.applies_to_ids, list):
            raise ValidationError({"applies_to_ids": "Must be a list of ids"})

    @property
    def remaining_uses(self):
        if self.usage_limit is None:
            return None
        return max(0, self.usage_limit - self.usage_count)
