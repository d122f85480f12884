# giftcards/tests/test_giftcards.py

from __future__ import annotations

import threading
import uuid
from datetime import timedelta
from unittest import mock, skipUnless

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import connection
from django.test import TestCase, TransactionTestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from codes.models import CodeRegistryEntry
from codes.services.code_registry import is_available, is_claimable
from core.exceptions import AlreadyUsedError
from core.notifications import EVENT_GIFT_CARD_REDEEMED
from credits.models import CreditTransaction
from credits.services import ledger_service
from giftcards.models import GiftCard, GiftCardCharge
from giftcards.services import giftcard_service
from giftcards.services.giftcard_service import GiftCardOutcome
from permissions.roles import ROLE_CUSTOMER, ROLE_MANAGER, ROLE_SUPPORT

User = get_user_model()


class GiftCardIssueTests(TestCase):
    def test_issue_registers_code_permanently(self):
        card = giftcard_service.issue(amount=5000)

        self.assertEqual(card.remaining_balance, 5000)
        self.assertIsNotNone(card.expires_at)
        entry = CodeRegistryEntry.objects.get(code=card.code)
        self.assertEqual(entry.namespace, CodeRegistryEntry.NAMESPACE_GIFT_CARD)
        self.assertEqual(str(entry.owner_id), str(card.pk))

        # Even a raw queryset delete leaves the registry entry behind.
        GiftCard.objects.filter(pk=card.pk).delete()
        self.assertFalse(is_available(card.code))
        self.assertFalse(is_claimable(card.code))

    def test_issue_is_idempotent_per_payment(self):
        first = giftcard_service.issue(amount=2500, payment_id="pay_1")
        again = giftcard_service.issue(amount=2500, payment_id="pay_1")

        self.assertEqual(first.pk, again.pk)
        self.assertEqual(GiftCard.objects.count(), 1)

    def test_explicit_code_must_be_claimable(self):
        card = giftcard_service.issue(amount=1000, code="gift-abc")
        self.assertEqual(card.code, "GIFT-ABC")

        with self.assertRaises(AlreadyUsedError):
            giftcard_service.issue(amount=1000, code="GIFT-ABC")

    def test_cards_cannot_be_deleted(self):
        card = giftcard_service.issue(amount=1000)
        with self.assertRaises(DjangoValidationError):
            card.delete()


class GiftCardRedeemTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="ana@example.com", password="pw12345!")
        self.card = giftcard_service.issue(amount=5000)

    def test_redeem_moves_full_balance_to_store_credit(self):
        result = giftcard_service.redeem(qr_token=self.card.qr_token, user=self.user)

        self.assertTrue(result.ok)
        self.assertEqual(result.amount, 5000)
        self.assertEqual(result.balance, 5000)
        self.card.refresh_from_db()
        self.assertTrue(self.card.is_redeemed)
        self.assertEqual(self.card.remaining_balance, 0)
        self.assertEqual(self.card.redeemed_by, self.user)

        tx = CreditTransaction.objects.get(user=self.user)
        self.assertEqual(tx.kind, CreditTransaction.KIND_GIFT_CARD_REDEEM)
        self.assertEqual(tx.reference_id, str(self.card.pk))

    def test_second_redeem_is_refused(self):
        giftcard_service.redeem(qr_token=self.card.qr_token, user=self.user)
        other = User.objects.create_user(email="bob@example.com", password="pw12345!")

        result = giftcard_service.redeem(qr_token=self.card.qr_token, user=other)

        self.assertEqual(result.outcome, GiftCardOutcome.ALREADY_REDEEMED)
        with self.assertRaises(AlreadyUsedError):
            result.raise_for_outcome()
        self.assertEqual(ledger_service.get_balance(other), 0)
        self.assertEqual(ledger_service.get_balance(self.user), 5000)

    def test_expired_and_inactive_cards(self):
        later = timezone.now() + timedelta(days=400)
        result = giftcard_service.redeem(qr_token=self.card.qr_token, user=self.user, now=later)
        self.assertEqual(result.outcome, GiftCardOutcome.EXPIRED)

        giftcard_service.deactivate(gift_card_id=self.card.pk)
        result = giftcard_service.redeem(qr_token=self.card.qr_token, user=self.user)
        self.assertEqual(result.outcome, GiftCardOutcome.INACTIVE)
        self.assertEqual(ledger_service.get_balance(self.user), 0)

    def test_unknown_or_malformed_token(self):
        for token in (uuid.uuid4(), "not-a-uuid", ""):
            result = giftcard_service.redeem(qr_token=token, user=self.user)
            self.assertEqual(result.outcome, GiftCardOutcome.NOT_FOUND)

    def test_redeem_notifies_after_commit(self):
        with mock.patch("core.notifications._deliver") as deliver:
            with self.captureOnCommitCallbacks(execute=True):
                giftcard_service.redeem(qr_token=self.card.qr_token, user=self.user)

        deliver.assert_called_once()
        event, payload = deliver.call_args.args
        self.assertEqual(event, EVENT_GIFT_CARD_REDEEMED)
        self.assertEqual(payload["amount"], 5000)


class GiftCardChargeTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="ana@example.com", password="pw12345!")
        self.card = giftcard_service.issue(amount=3000)

    def test_partial_charges_then_shortfall(self):
        first = giftcard_service.charge(code=self.card.code, amount=2000, payment_id="pay_1", user=self.user)
        self.assertEqual((first.charged, first.remaining, first.shortfall), (2000, 1000, 0))

        second = giftcard_service.charge(code=self.card.code, amount=1500, payment_id="pay_2", user=self.user)
        self.assertEqual((second.charged, second.remaining, second.shortfall), (1000, 0, 500))

        self.card.refresh_from_db()
        self.assertTrue(self.card.is_redeemed)
        self.assertEqual(GiftCardCharge.objects.filter(gift_card=self.card).count(), 2)

    def test_charge_is_idempotent_per_payment(self):
        giftcard_service.charge(code=self.card.code, amount=1000, payment_id="pay_1")
        again = giftcard_service.charge(code=self.card.code, amount=1000, payment_id="pay_1")

        self.assertTrue(again.replayed)
        self.card.refresh_from_db()
        self.assertEqual(self.card.remaining_balance, 2000)

    def test_validate_code_reports_available_amount(self):
        check = giftcard_service.validate_code(self.card.code.lower())
        self.assertTrue(check.ok)
        self.assertEqual(check.available, 3000)

        giftcard_service.charge(code=self.card.code, amount=3000, payment_id="pay_1")
        check = giftcard_service.validate_code(self.card.code)
        self.assertEqual(check.outcome, GiftCardOutcome.ALREADY_REDEEMED)


class GiftCardApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.customer = User.objects.create_user(email="cust@example.com", password="pw12345!", role=ROLE_CUSTOMER)
        self.manager = User.objects.create_user(email="mgr@example.com", password="pw12345!", role=ROLE_MANAGER)
        self.support = User.objects.create_user(email="sup@example.com", password="pw12345!", role=ROLE_SUPPORT)
        self.card = giftcard_service.issue(amount=2000)

    def test_preview_and_redeem(self):
        self.client.force_authenticate(self.customer)

        res = self.client.get(f"/api/giftcards/token/{self.card.qr_token}/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], "active")

        res = self.client.post("/api/giftcards/redeem/", {"qr_token": str(self.card.qr_token)}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["amount"], 2000)
        self.assertEqual(res.data["balance"], 2000)

        res = self.client.post("/api/giftcards/redeem/", {"qr_token": str(self.card.qr_token)}, format="json")
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(res.data["error"]["code"], "ALREADY_USED")

    def test_preview_unknown_token_is_404(self):
        self.client.force_authenticate(self.customer)
        res = self.client.get(f"/api/giftcards/token/{uuid.uuid4()}/")
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(res.data["error"]["code"], "NOT_FOUND")

    def test_validate_endpoint(self):
        self.client.force_authenticate(self.customer)
        res = self.client.post("/api/giftcards/validate/", {"code": "NOPE-NOPE"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data, {"valid": False, "reason": "not_found", "available": 0})

    def test_issue_requires_capability(self):
        self.client.force_authenticate(self.customer)
        res = self.client.post("/api/giftcards/", {"amount": 1000}, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.manager)
        res = self.client.post("/api/giftcards/", {"amount": 1000, "recipient_email": "r@example.com"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["remaining_balance"], 1000)

    def test_support_searches_and_deactivates(self):
        self.client.force_authenticate(self.support)

        res = self.client.get("/api/giftcards/search/", {"q": self.card.code[:4], "status": "active"})
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertIn(str(self.card.pk), [row["id"] for row in res.data])

        res = self.client.post(f"/api/giftcards/{self.card.pk}/deactivate/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], "inactive")

        res = self.client.get("/api/giftcards/stats/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["gift_cards"]["inactive"], 1)


@skipUnless(connection.features.has_select_for_update, "row locks not supported")
class ConcurrentRedeemTests(TransactionTestCase):
    def test_only_one_concurrent_redeem_succeeds(self):
        card = giftcard_service.issue(amount=2000)
        users = [
            User.objects.create_user(email=f"u{i}@example.com", password="pw12345!")
            for i in range(4)
        ]
        outcomes = []
        lock = threading.Lock()

        def worker(user):
            try:
                result = giftcard_service.redeem(qr_token=card.qr_token, user=user)
                with lock:
                    outcomes.append(result.outcome)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker, args=(u,)) for u in users]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(outcomes.count(GiftCardOutcome.OK), 1)
        self.assertEqual(CreditTransaction.objects.count(), 1)
        self.assertEqual(sum(ledger_service.get_balance(u) for u in users), 2000)
