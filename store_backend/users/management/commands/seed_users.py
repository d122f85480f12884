# users/management/commands/seed_users.py

from __future__ import annotations

from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from permissions.roles import ROLE_ADMIN, ROLE_MANAGER, ROLE_SUPPORT


@dataclass(frozen=True)
class SeedUserSpec:
    label: str
    role: str
    email: str
    first_name: str = ""
    last_name: str = ""


SEED_USERS = [
    SeedUserSpec("Admin", ROLE_ADMIN, "admin@example.com", "System", "Admin"),
    SeedUserSpec("Manager", ROLE_MANAGER, "manager@example.com", "Store", "Manager"),
    SeedUserSpec("Support", ROLE_SUPPORT, "support@example.com", "Customer", "Care"),
]


class Command(BaseCommand):
    help = "Seed staff users (admin / manager / support)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--password",
            type=str,
            default="Pass1234!",
            help="Password for seeded users (default: Pass1234!)",
        )
        parser.add_argument(
            "--force-password",
            action="store_true",
            help="Reset password for existing seeded users too.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        password = options.get("password") or ""
        force_password = bool(options.get("force_password"))

        if len(password) < 6:
            raise CommandError("--password must be at least 6 characters.")

        User = get_user_model()
        created_count = 0

        for seed in SEED_USERS:
            user, created = User.objects.get_or_create(
                email=seed.email,
                defaults={
                    "username": seed.email.split("@")[0],
                    "role": seed.role,
                    "first_name": seed.first_name,
                    "last_name": seed.last_name,
                    "is_staff": True,
                    "is_superuser": seed.role == ROLE_ADMIN,
                },
            )

            if created or force_password:
                user.set_password(password)

            user.role = seed.role
            user.is_staff = True
            user.is_active = True
            user.save()

            if created:
                created_count += 1
                self.stdout.write(f"created: {seed.label} ({seed.role}) -> {seed.email}")
            else:
                self.stdout.write(f"exists:  {seed.label} ({seed.role}) -> {seed.email}")

        self.stdout.write(f"\nCreated: {created_count}")
