# checkout/tests/test_webhook.py

from __future__ import annotations

import json
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from checkout.models import PaymentConfirmation
from checkout.services.quote_service import build_quote
from checkout.services.webhook_signature import sign_payload
from credits.models import CreditTransaction
from credits.services import ledger_service
from giftcards.models import GiftCard
from giftcards.services import giftcard_service
from promotions.models import PromotionCode
from referrals.models import ReferralRelationship
from referrals.services import referral_service

User = get_user_model()

WEBHOOK_URL = "/api/checkout/webhook/"
PAYMENTS = {"WEBHOOK_SECRET": "test-secret", "SIGNATURE_HEADER": "X-Payment-Signature"}


@override_settings(PAYMENTS=PAYMENTS)
class PaymentWebhookTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(email="ana@example.com", password="pw12345!")
        ledger_service.credit(
            user=self.user,
            amount=5000,
            kind=CreditTransaction.KIND_GIFT_CARD_REDEEM,
            reference_id="seed-card",
        )
        now = timezone.now()
        self.promo = PromotionCode.objects.create(
            code="SPRING10",
            name="Spring",
            discount_type=PromotionCode.TYPE_PERCENTAGE,
            discount_value=10,
            starts_at=now - timedelta(days=1),
            ends_at=now + timedelta(days=1),
        )
        self.card = giftcard_service.issue(amount=3000)

    def _quote(self):
        return build_quote(
            user=self.user,
            subtotal=10000,
            promo_code="spring10",
            gift_card_code=self.card.code,
            requested_credit=5000,
        )

    def _post(self, event, data, *, signature=None):
        body = json.dumps({"event": event, "data": data}).encode("utf-8")
        return self.client.post(
            WEBHOOK_URL,
            data=body,
            content_type="application/json",
            HTTP_X_PAYMENT_SIGNATURE=signature if signature is not None else sign_payload(body),
        )

    def _succeed(self, payment_id, amount, metadata):
        return self._post(
            "payment.succeeded",
            {"payment_id": payment_id, "amount": amount, "metadata": metadata},
        )

    def test_quote_matches_worked_example(self):
        quote = self._quote()
        self.assertEqual(quote.ignored, {})
        self.assertEqual(quote.breakdown.final_charge, 1000)
        self.assertEqual(quote.store_credit_balance, 5000)

    def test_bad_signature_is_rejected(self):
        res = self._post("payment.succeeded", {"payment_id": "pay_1"}, signature="deadbeef")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(PaymentConfirmation.objects.exists())

    def test_confirmation_applies_every_part_once(self):
        metadata = self._quote().metadata

        res = self._succeed("pay_1", 1000, metadata)
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["detail"], "applied")

        confirmation = PaymentConfirmation.objects.get(payment_id="pay_1")
        self.assertEqual(confirmation.status, PaymentConfirmation.STATUS_APPLIED)
        self.assertEqual(confirmation.user, self.user)
        self.assertEqual(confirmation.gift_card_outcome, "ok")
        self.assertEqual(confirmation.promotion_outcome, "ok")
        self.assertEqual(confirmation.referral_outcome, "no_pending_referral")
        self.assertEqual(confirmation.credit_outcome, "ok")

        self.card.refresh_from_db()
        self.promo.refresh_from_db()
        self.assertEqual(self.card.remaining_balance, 0)
        self.assertEqual(self.promo.usage_count, 1)
        self.assertEqual(ledger_service.get_balance(self.user), 0)

        # redelivery
        res = self._succeed("pay_1", 1000, metadata)
        self.assertEqual(res.data["detail"], "duplicate")
        self.promo.refresh_from_db()
        self.assertEqual(self.promo.usage_count, 1)
        self.assertEqual(CreditTransaction.objects.filter(user=self.user).count(), 2)

    def test_amount_mismatch_applies_nothing(self):
        metadata = self._quote().metadata

        res = self._succeed("pay_1", 999, metadata)

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["detail"], "rejected")
        confirmation = PaymentConfirmation.objects.get(payment_id="pay_1")
        self.assertEqual(confirmation.status, PaymentConfirmation.STATUS_REJECTED)
        self.assertTrue(confirmation.rejection_reason.startswith("amount_mismatch"))
        self.assertEqual(ledger_service.get_balance(self.user), 5000)
        self.card.refresh_from_db()
        self.assertEqual(self.card.remaining_balance, 3000)

    def test_missing_metadata_is_rejected(self):
        res = self._succeed("pay_1", 1000, {})
        self.assertEqual(res.data["detail"], "rejected")
        confirmation = PaymentConfirmation.objects.get(payment_id="pay_1")
        self.assertEqual(confirmation.rejection_reason, "invalid_seal")

    def test_altered_metadata_is_rejected(self):
        metadata = self._quote().metadata
        # customer rewrites the sealed breakdown to pay for most of the order with credit
        metadata.update(
            {
                "sc_credit_for_goods": "5900",
                "sc_coupon_total": "9900",
                "sc_final_charge": "100",
            }
        )

        res = self._succeed("pay_1", 100, metadata)

        self.assertEqual(res.data["detail"], "rejected")
        confirmation = PaymentConfirmation.objects.get(payment_id="pay_1")
        self.assertEqual(confirmation.rejection_reason, "invalid_seal")
        self.assertEqual(ledger_service.get_balance(self.user), 5000)

    def test_unsealed_breakdown_is_rejected(self):
        breakdown = self._quote().breakdown

        res = self._succeed("pay_1", breakdown.final_charge, breakdown.to_metadata())

        self.assertEqual(res.data["detail"], "rejected")
        self.assertEqual(ledger_service.get_balance(self.user), 5000)

    def test_second_payment_on_the_same_balance_needs_review(self):
        first = build_quote(user=self.user, subtotal=10000, requested_credit=5000)
        second = build_quote(user=self.user, subtotal=10000, requested_credit=5000)
        self.assertEqual(first.breakdown.final_charge, 5000)

        res = self._succeed("pay_1", 5000, first.metadata)
        self.assertEqual(res.data["detail"], "applied")

        res = self._succeed("pay_2", 5000, second.metadata)
        self.assertEqual(res.data["detail"], "review")

        confirmation = PaymentConfirmation.objects.get(payment_id="pay_2")
        self.assertEqual(confirmation.status, PaymentConfirmation.STATUS_REVIEW)
        self.assertEqual(confirmation.credit_outcome, "insufficient_balance")
        self.assertEqual(confirmation.rejection_reason, "store_credit_insufficient_balance")
        self.assertEqual(ledger_service.get_balance(self.user), 0)

        # refund of the flagged payment returns nothing it never took
        self._post("payment.refunded", {"payment_id": "pay_2"})
        self.assertEqual(ledger_service.get_balance(self.user), 0)

    def test_gift_card_spent_since_quote_needs_review(self):
        metadata = self._quote().metadata
        giftcard_service.charge(code=self.card.code, amount=2000, payment_id="pay_other")

        res = self._succeed("pay_1", 1000, metadata)

        self.assertEqual(res.data["detail"], "review")
        confirmation = PaymentConfirmation.objects.get(payment_id="pay_1")
        self.assertEqual(confirmation.status, PaymentConfirmation.STATUS_REVIEW)
        self.assertEqual(confirmation.gift_card_outcome, "short")
        self.assertEqual(confirmation.rejection_reason, "gift_card_short: 2000")
        self.card.refresh_from_db()
        self.assertEqual(self.card.remaining_balance, 0)

    def test_refund_returns_store_credit_once(self):
        metadata = self._quote().metadata
        self._succeed("pay_1", 1000, metadata)

        res = self._post("payment.refunded", {"payment_id": "pay_1", "reason": "damaged"})
        self.assertEqual(res.data["detail"], "refunded")
        self.assertEqual(ledger_service.get_balance(self.user), 5000)

        res = self._post("payment.refunded", {"payment_id": "pay_1"})
        self.assertEqual(res.data["detail"], "already_refunded")
        self.assertEqual(ledger_service.get_balance(self.user), 5000)

        confirmation = PaymentConfirmation.objects.get(payment_id="pay_1")
        self.assertEqual(confirmation.status, PaymentConfirmation.STATUS_REFUNDED)
        # gift card value is not restored by a refund
        self.card.refresh_from_db()
        self.assertEqual(self.card.remaining_balance, 0)

    def test_unknown_event_and_missing_payment_id(self):
        res = self._post("customer.updated", {"payment_id": "pay_1"})
        self.assertEqual(res.data, {"ok": True, "detail": "Ignored"})

        res = self._post("payment.succeeded", {})
        self.assertEqual(res.data["detail"], "No payment_id")


@override_settings(PAYMENTS=PAYMENTS)
class ReferralCheckoutTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.referrer = User.objects.create_user(email="ref@example.com", password="pw12345!")
        code = referral_service.ensure_referral_code(self.referrer)
        self.referee = User.objects.create_user(email="new@example.com", password="pw12345!")
        referral_service.create_relationship(referee=self.referee, code=code.code)

    def _post(self, event, data):
        body = json.dumps({"event": event, "data": data}).encode("utf-8")
        return self.client.post(
            WEBHOOK_URL,
            data=body,
            content_type="application/json",
            HTTP_X_PAYMENT_SIGNATURE=sign_payload(body),
        )

    def test_first_paid_order_rewards_referrer_and_refund_revokes(self):
        quote = build_quote(user=self.referee, subtotal=4000)
        self.assertEqual(quote.breakdown.final_charge, 4590)

        res = self._post(
            "payment.succeeded",
            {"payment_id": "pay_1", "amount": quote.breakdown.final_charge, "metadata": quote.metadata},
        )
        self.assertEqual(res.data["detail"], "applied")
        self.assertEqual(ledger_service.get_balance(self.referrer), 500)
        confirmation = PaymentConfirmation.objects.get(payment_id="pay_1")
        self.assertEqual(confirmation.referral_outcome, "credited")

        self._post("payment.refunded", {"payment_id": "pay_1"})
        self.assertEqual(ledger_service.get_balance(self.referrer), 0)
        relationship = ReferralRelationship.objects.get(referee=self.referee)
        self.assertEqual(relationship.status, ReferralRelationship.STATUS_REVOKED)


@override_settings(PAYMENTS=PAYMENTS)
class GiftCardPurchaseWebhookTests(TestCase):
    def _post(self, data):
        body = json.dumps({"event": "giftcard.purchased", "data": data}).encode("utf-8")
        return APIClient().post(
            WEBHOOK_URL,
            data=body,
            content_type="application/json",
            HTTP_X_PAYMENT_SIGNATURE=sign_payload(body),
        )

    def test_purchase_issues_one_card_per_payment(self):
        data = {
            "payment_id": "pay_gc",
            "amount": 2500,
            "metadata": {
                "gift_card_amount": "2500",
                "recipient_email": "friend@example.com",
                "sender_name": "Ana",
                "template": "birthday",
            },
        }

        res = self._post(data)
        self.assertEqual(res.data["detail"], "issued")
        self._post(data)

        card = GiftCard.objects.get(purchase_payment_id="pay_gc")
        self.assertEqual(card.amount, 2500)
        self.assertEqual(card.template, GiftCard.TEMPLATE_BIRTHDAY)
        self.assertEqual(GiftCard.objects.count(), 1)

    def test_face_value_must_match_paid_amount(self):
        res = self._post({"payment_id": "pay_gc", "amount": 1000, "metadata": {"gift_card_amount": "2500"}})
        self.assertEqual(res.data["detail"], "rejected")
        self.assertFalse(GiftCard.objects.exists())
