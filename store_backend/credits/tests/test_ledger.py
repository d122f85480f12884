# credits/tests/test_ledger.py

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.management import CommandError, call_command
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from core.exceptions import InsufficientBalanceError, ValidationError
from credits.models import CreditTransaction, StoreCredit
from credits.services import ledger_service
from credits.services.ledger_service import LedgerOutcome
from permissions.roles import ROLE_MANAGER, ROLE_SUPPORT

User = get_user_model()


def _credit(user, amount, ref, kind=CreditTransaction.KIND_GIFT_CARD_REDEEM):
    return ledger_service.credit(user=user, amount=amount, kind=kind, reference_id=ref)


class LedgerServiceTests(TestCase):
    """
    GUARANTEES:
    - balance == total_earned - total_spent, never negative
    - every mutation is idempotent on (kind, reference_id)
    - history replays to the stored balance
    """

    def setUp(self):
        self.user = User.objects.create_user(email="ana@example.com", password="pw12345!")

    def test_credit_creates_account_lazily(self):
        self.assertIsNone(ledger_service.get_account(self.user))
        self.assertEqual(ledger_service.get_balance(self.user), 0)

        result = _credit(self.user, 2000, "card-1")

        self.assertTrue(result.ok)
        self.assertEqual(result.balance, 2000)
        account = StoreCredit.objects.get(user=self.user)
        self.assertEqual(account.total_earned, 2000)
        self.assertEqual(account.last_sequence, 1)

    def test_credit_is_idempotent_per_reference(self):
        first = _credit(self.user, 2000, "card-1")
        again = _credit(self.user, 2000, "card-1")

        self.assertFalse(first.replayed)
        self.assertTrue(again.replayed)
        self.assertEqual(again.transaction.pk, first.transaction.pk)
        self.assertEqual(ledger_service.get_balance(self.user), 2000)
        self.assertEqual(CreditTransaction.objects.count(), 1)

    def test_debit_insufficient_balance_changes_nothing(self):
        _credit(self.user, 1000, "card-1")

        result = ledger_service.debit(user=self.user, amount=1500, reference_id="pay-1")

        self.assertEqual(result.outcome, LedgerOutcome.INSUFFICIENT_BALANCE)
        self.assertEqual(result.balance, 1000)
        with self.assertRaises(InsufficientBalanceError):
            result.raise_for_outcome()
        self.assertEqual(CreditTransaction.objects.count(), 1)

    def test_debit_records_balance_snapshots(self):
        _credit(self.user, 1000, "card-1")

        result = ledger_service.debit(user=self.user, amount=400, reference_id="pay-1")

        tx = result.transaction
        self.assertEqual((tx.amount, tx.balance_before, tx.balance_after), (-400, 1000, 600))
        self.assertEqual(tx.sequence, 2)
        account = StoreCredit.objects.get(user=self.user)
        self.assertEqual(account.total_spent, 400)

    def test_claw_back_is_floored_at_balance(self):
        _credit(self.user, 500, "ref-1", kind=CreditTransaction.KIND_REFERRAL_REWARD)
        ledger_service.debit(user=self.user, amount=300, reference_id="pay-1")

        result = ledger_service.claw_back(user=self.user, amount=500, reference_id="ref-1")

        self.assertEqual(result.deducted, 200)
        self.assertEqual(result.shortfall, 300)
        self.assertEqual(result.balance, 0)
        account = StoreCredit.objects.get(user=self.user)
        self.assertEqual(account.balance, 0)
        self.assertEqual(account.total_earned, 300)

        again = ledger_service.claw_back(user=self.user, amount=500, reference_id="ref-1")
        self.assertTrue(again.replayed)
        self.assertEqual(again.deducted, 200)

    def test_invalid_amounts_raise(self):
        for bad in (0, -5, "1.5", None, True):
            with self.assertRaises(ValidationError):
                _credit(self.user, bad, "x")

    def test_transactions_are_immutable(self):
        tx = _credit(self.user, 100, "card-1").transaction

        tx.description = "edited"
        with self.assertRaises(DjangoValidationError):
            tx.save()
        with self.assertRaises(DjangoValidationError):
            tx.delete()

    def test_replay_matches_after_mixed_history(self):
        _credit(self.user, 2000, "card-1")
        _credit(self.user, 500, "ref-1", kind=CreditTransaction.KIND_REFERRAL_REWARD)
        ledger_service.debit(user=self.user, amount=700, reference_id="pay-1")
        ledger_service.claw_back(user=self.user, amount=500, reference_id="ref-1")
        ledger_service.adjust(user=self.user, amount=-100, reason="goodwill fix", created_by=None)

        audit = ledger_service.audit_user(self.user)

        self.assertTrue(audit.ok, audit.problems)
        self.assertEqual(audit.transaction_count, 5)
        self.assertEqual(audit.replayed_balance, 1200)

    def test_replay_detects_tampering(self):
        _credit(self.user, 1000, "card-1")
        StoreCredit.objects.filter(user=self.user).update(balance=900, total_earned=900)

        audit = ledger_service.audit_user(self.user)

        self.assertFalse(audit.ok)
        with self.assertRaises(CommandError):
            call_command("verify_ledgers", "--user", str(self.user.pk))


class CreditApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.customer = User.objects.create_user(email="cust@example.com", password="pw12345!")
        self.manager = User.objects.create_user(email="mgr@example.com", password="pw12345!", role=ROLE_MANAGER)
        self.support = User.objects.create_user(email="sup@example.com", password="pw12345!", role=ROLE_SUPPORT)

    def test_balance_requires_auth(self):
        res = self.client.get("/api/credits/balance/")
        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_own_balance_and_history(self):
        _credit(self.customer, 2500, "card-1")
        self.client.force_authenticate(self.customer)

        res = self.client.get("/api/credits/balance/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["balance"], 2500)

        res = self.client.get("/api/credits/transactions/")
        self.assertEqual(len(res.data), 1)
        self.assertEqual(res.data[0]["kind"], CreditTransaction.KIND_GIFT_CARD_REDEEM)

    def test_manager_adjusts_and_replay_is_idempotent(self):
        self.client.force_authenticate(self.manager)
        payload = {
            "user_id": str(self.customer.pk),
            "amount": 750,
            "reason": "Late delivery",
            "reference_id": "ticket-42",
        }

        res = self.client.post("/api/credits/adjustments/", payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)

        res = self.client.post("/api/credits/adjustments/", payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(ledger_service.get_balance(self.customer), 750)

    def test_negative_adjustment_beyond_balance_is_conflict(self):
        self.client.force_authenticate(self.manager)
        res = self.client.post(
            "/api/credits/adjustments/",
            {"user_id": str(self.customer.pk), "amount": -100, "reason": "oops"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(res.data["error"]["code"], "INSUFFICIENT_BALANCE")

    def test_support_can_audit_but_not_adjust(self):
        _credit(self.customer, 300, "card-1")
        self.client.force_authenticate(self.support)

        res = self.client.get(f"/api/credits/users/{self.customer.pk}/audit/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertTrue(res.data["ok"])

        res = self.client.get(f"/api/credits/users/{self.customer.pk}/transactions/?kind=gift_card_redeem")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["count"], 1)

        res = self.client.post(
            "/api/credits/adjustments/",
            {"user_id": str(self.customer.pk), "amount": 100, "reason": "x"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)
