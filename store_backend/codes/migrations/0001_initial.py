"""
======================================================
PATH: codes/migrations/0001_initial.py
======================================================
MIGRATION: CREATE CodeRegistryEntry

Purpose:
- Permanent, append-only registry of every issued / reserved code.
"""

from __future__ import annotations

import uuid

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="CodeRegistryEntry",
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
                ("code", models.CharField(max_length=64, unique=True)),
                (
                    "namespace",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("gift_card", "Gift card"),
                            ("referral", "Referral"),
                            ("promotion", "Promotion"),
                        ],
                    ),
                ),
                (
                    "reason",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("generated", "Generated"),
                            ("reserved", "Reserved"),
                            ("admin_blocked", "Blocked by admin"),
                        ],
                        default="generated",
                    ),
                ),
                (
                    "owner_id",
                    models.CharField(
                        max_length=64,
                        blank=True,
                        default="",
                        help_text="Id of the issuing record. May dangle after deletion.",
                    ),
                ),
                ("registered_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "verbose_name": "Code Registry Entry",
                "verbose_name_plural": "Code Registry",
                "ordering": ["-registered_at"],
                "indexes": [
                    models.Index(
                        fields=["namespace", "reason"], name="codes_ns_reason_idx"
                    ),
                    models.Index(fields=["registered_at"], name="codes_registered_idx"),
                ],
            },
        ),
    ]
