# codes/models/registry_entry.py

"""
======================================================
PATH: codes/models/registry_entry.py
======================================================
CODE REGISTRY ENTRY (PERMANENT BLACKLIST)

Every code ever issued or reserved, across namespaces.

Guarantees:
- A code appears at most once (global uniqueness across namespaces)
- Append-only: rows are never deleted
- The only permitted update is attaching owner_id to a reserved code at the
  moment it is issued
- owner_id is a plain string, NOT a foreign key: it must survive the deletion
  of the record that issued the code
"""

from __future__ import annotations

import uuid

from django.core.exceptions import ValidationError
from django.db import models


class CodeRegistryEntry(models.Model):
    NAMESPACE_GIFT_CARD = "gift_card"
    NAMESPACE_REFERRAL = "referral"
    NAMESPACE_PROMOTION = "promotion"

    NAMESPACE_CHOICES = [
        (NAMESPACE_GIFT_CARD, "Gift card"),
        (NAMESPACE_REFERRAL, "Referral"),
        (NAMESPACE_PROMOTION, "Promotion"),
    ]

    REASON_GENERATED = "generated"
    REASON_RESERVED = "reserved"
    REASON_ADMIN_BLOCKED = "admin_blocked"

    REASON_CHOICES = [
        (REASON_GENERATED, "Generated"),
        (REASON_RESERVED, "Reserved"),
        (REASON_ADMIN_BLOCKED, "Blocked by admin"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    code = models.CharField(max_length=64, unique=True)
    namespace = models.CharField(max_length=16, choices=NAMESPACE_CHOICES)
    reason = models.CharField(
        max_length=16, choices=REASON_CHOICES, default=REASON_GENERATED
    )

    owner_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Id of the issuing record. May dangle after deletion.",
    )

    registered_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Code Registry Entry"
        verbose_name_plural = "Code Registry"
        ordering = ["-registered_at"]
        indexes = [
            models.Index(fields=["namespace", "reason"], name="codes_ns_reason_idx"),
            models.Index(fields=["registered_at"], name="codes_registered_idx"),
        ]

    def __str__(self):
        return f"{self.code} [{self.namespace}/{self.reason}]"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            update_fields = kwargs.get("update_fields")
            if update_fields is None or set(update_fields) - {"owner_id"}:
                raise ValidationError(
                    "CodeRegistryEntry is append-only; only owner_id may be attached"
                )
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("CodeRegistryEntry records are permanent and cannot be deleted")
