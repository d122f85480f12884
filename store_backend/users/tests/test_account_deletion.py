# users/tests/test_account_deletion.py

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from codes.services.code_registry import is_available
from credits.models import CreditTransaction
from credits.services import ledger_service
from referrals.services import referral_service
from referrals.services.referral_service import RelationshipOutcome
from users.services.account_deletion import anonymize_user

User = get_user_model()


class AccountDeletionTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            email="ana@example.com", password="pw12345!", first_name="Ana", last_name="Lopez"
        )
        self.code = referral_service.ensure_referral_code(self.user)
        ledger_service.credit(
            user=self.user,
            amount=1500,
            kind=CreditTransaction.KIND_GIFT_CARD_REDEEM,
            reference_id="card-1",
        )

    def test_identity_scrubbed_history_kept(self):
        anonymize_user(user=self.user)
        self.user.refresh_from_db()

        self.assertTrue(self.user.is_anonymized)
        self.assertFalse(self.user.is_active)
        self.assertEqual(self.user.first_name, "")
        self.assertTrue(self.user.email.endswith("@anonymized.invalid"))
        self.assertFalse(self.user.has_usable_password())

        self.assertEqual(CreditTransaction.objects.filter(user=self.user).count(), 1)
        self.assertTrue(ledger_service.audit_user(self.user).ok)

    def test_referral_code_retired_not_reissued(self):
        anonymize_user(user=self.user)

        self.code.refresh_from_db()
        self.assertFalse(self.code.is_active)
        self.assertFalse(is_available(self.code.code))

        newcomer = User.objects.create_user(email="new@example.com", password="pw12345!")
        result = referral_service.create_relationship(referee=newcomer, code=self.code.code)
        self.assertEqual(result.outcome, RelationshipOutcome.INVALID_CODE)

    def test_anonymize_is_idempotent(self):
        first = anonymize_user(user=self.user)
        second = anonymize_user(user=self.user)
        self.assertEqual(first.anonymized_at, second.anonymized_at)

    def test_delete_me_endpoint(self):
        client = APIClient()
        client.force_authenticate(self.user)

        res = client.delete("/api/auth/me/")

        self.assertEqual(res.status_code, status.HTTP_204_NO_CONTENT)
        self.user.refresh_from_db()
        self.assertTrue(self.user.is_anonymized)


class AuthApiTests(TestCase):
    def test_register_then_login(self):
        client = APIClient()
        res = client.post(
            "/api/auth/register/",
            {"email": "bob@example.com", "password": "Str0ng-Passw0rd!"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["referral_status"], "not_referred")
        self.assertEqual(res.data["first_order_discount_percent"], 10)

        res = client.post(
            "/api/auth/login/",
            {"email": "bob@example.com", "password": "Str0ng-Passw0rd!"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertIn("access", res.data)

        res = client.post(
            "/api/auth/login/",
            {"email": "bob@example.com", "password": "wrong"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(res.data["error"]["code"], "INVALID_CREDENTIALS")

    def test_duplicate_email_rejected(self):
        User.objects.create_user(email="bob@example.com", password="pw12345!")
        res = APIClient().post(
            "/api/auth/register/",
            {"email": "BOB@example.com", "password": "Str0ng-Passw0rd!"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_me_lists_capabilities(self):
        user = User.objects.create_user(email="cust@example.com", password="pw12345!")
        client = APIClient()
        client.force_authenticate(user)

        res = client.get("/api/auth/me/")

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["capabilities"], [])
