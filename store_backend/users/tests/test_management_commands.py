# users/tests/test_management_commands.py

from __future__ import annotations

import os
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import CommandError, call_command
from django.test import TestCase

from permissions.roles import (
    CAP_CREDITS_ADJUST,
    ROLE_ADMIN,
    ROLE_SUPPORT,
    user_has_capability,
)

User = get_user_model()


class SeedUsersTests(TestCase):
    def test_seeds_staff_roles_idempotently(self):
        call_command("seed_users", stdout=StringIO())
        call_command("seed_users", stdout=StringIO())

        support = User.objects.get(email="support@example.com")
        self.assertEqual(support.role, ROLE_SUPPORT)
        self.assertFalse(user_has_capability(support, CAP_CREDITS_ADJUST))
        self.assertEqual(User.objects.filter(is_staff=True).count(), 3)

    def test_short_password_rejected(self):
        with self.assertRaises(CommandError):
            call_command("seed_users", "--password", "abc", stdout=StringIO())


class EnsureSuperuserTests(TestCase):
    def test_skips_without_env(self):
        with mock.patch.dict(os.environ, {"AUTO_ADMIN_EMAIL": "", "AUTO_ADMIN_PASSWORD": ""}):
            call_command("ensure_superuser", stdout=StringIO())
        self.assertFalse(User.objects.filter(is_superuser=True).exists())

    def test_creates_then_updates(self):
        env = {"AUTO_ADMIN_EMAIL": "root@example.com", "AUTO_ADMIN_PASSWORD": "first-pass-1"}
        with mock.patch.dict(os.environ, env):
            call_command("ensure_superuser", stdout=StringIO())

        admin = User.objects.get(email="root@example.com")
        self.assertTrue(admin.is_superuser)
        self.assertEqual(admin.role, ROLE_ADMIN)

        env["AUTO_ADMIN_PASSWORD"] = "second-pass-2"
        with mock.patch.dict(os.environ, env):
            call_command("ensure_superuser", stdout=StringIO())

        admin.refresh_from_db()
        self.assertTrue(admin.check_password("second-pass-2"))
