# referrals/tests/test_referrals.py

from __future__ import annotations

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import RequestFactory, SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from core.api import client_ip
from credits.models import CreditTransaction
from credits.services import ledger_service
from permissions.roles import ROLE_MANAGER
from referrals.models import ReferralCode, ReferralRelationship
from referrals.services import referral_service
from referrals.services.referral_lifecycle import (
    InvalidReferralTransitionError,
    can_transition,
    validate_transition,
)
from referrals.services.referral_service import (
    ConversionOutcome,
    RelationshipOutcome,
    RevokeOutcome,
)
from referrals.services.signup_service import SignupOutcome, handle_signup

User = get_user_model()

REFERRAL_SETTINGS = {
    "REFERRAL_REWARD_AMOUNT": 500,
    "REFERRAL_MINIMUM_ORDER": 3500,
    "REFERRAL_MAX_PER_IP_DAILY": 2,
    "REFERRAL_REFUND_WINDOW_DAYS": 14,
}


def make_user(email):
    return User.objects.create_user(email=email, password="pw12345!")


@override_settings(STORE_CREDIT=REFERRAL_SETTINGS)
class RelationshipTests(TestCase):
    def setUp(self):
        self.referrer = make_user("ref@example.com")
        self.code = referral_service.ensure_referral_code(self.referrer)

    def test_referral_code_is_stable_per_user(self):
        again = referral_service.ensure_referral_code(self.referrer)
        self.assertEqual(again.pk, self.code.pk)

    def test_create_relationship_counts_referral(self):
        referee = make_user("new@example.com")

        result = referral_service.create_relationship(referee=referee, code=self.code.code.lower())

        self.assertTrue(result.ok)
        self.assertEqual(result.relationship.status, ReferralRelationship.STATUS_PENDING)
        self.assertEqual(result.relationship.reward_amount, 500)
        self.code.refresh_from_db()
        self.assertEqual(self.code.total_referrals, 1)

    def test_self_referral_rejected(self):
        result = referral_service.create_relationship(referee=self.referrer, code=self.code.code)
        self.assertEqual(result.outcome, RelationshipOutcome.SELF_REFERRAL)
        self.assertFalse(ReferralRelationship.objects.exists())

    def test_self_referral_wins_over_code_mismatch(self):
        other_code = referral_service.ensure_referral_code(make_user("other@example.com"))

        result = referral_service.create_relationship(
            referrer=self.referrer,
            referee=self.referrer,
            code=other_code.code,
        )

        self.assertEqual(result.outcome, RelationshipOutcome.SELF_REFERRAL)
        self.assertFalse(ReferralRelationship.objects.exists())

    def test_unparseable_ip_is_stored_as_null(self):
        referee = make_user("new@example.com")

        result = referral_service.create_relationship(referee=referee, code=self.code.code, ip_address="foo")

        self.assertTrue(result.ok)
        self.assertIsNone(result.relationship.ip_address)

    def test_one_relationship_per_referee(self):
        referee = make_user("new@example.com")
        other_code = referral_service.ensure_referral_code(make_user("other@example.com"))

        referral_service.create_relationship(referee=referee, code=self.code.code)
        result = referral_service.create_relationship(referee=referee, code=other_code.code)

        self.assertEqual(result.outcome, RelationshipOutcome.ALREADY_REFERRED)

    def test_inactive_code_is_invalid(self):
        referral_service.deactivate_code(user=self.referrer)
        result = referral_service.create_relationship(referee=make_user("x@example.com"), code=self.code.code)
        self.assertEqual(result.outcome, RelationshipOutcome.INVALID_CODE)


@override_settings(STORE_CREDIT=REFERRAL_SETTINGS)
class ConversionTests(TestCase):
    def setUp(self):
        self.referrer = make_user("ref@example.com")
        self.code = referral_service.ensure_referral_code(self.referrer)

    def _refer(self, email, ip="10.0.0.1"):
        referee = make_user(email)
        referral_service.create_relationship(referee=referee, code=self.code.code, ip_address=ip)
        return referee

    def test_conversion_credits_referrer_once(self):
        referee = self._refer("a@example.com")

        result = referral_service.convert(referee=referee, order_id="pay_1", order_subtotal=4000)
        self.assertEqual(result.outcome, ConversionOutcome.CREDITED)
        self.assertEqual(result.reward, 500)
        self.assertEqual(ledger_service.get_balance(self.referrer), 500)

        again = referral_service.convert(referee=referee, order_id="pay_2", order_subtotal=4000)
        self.assertEqual(again.outcome, ConversionOutcome.NO_PENDING_REFERRAL)
        self.assertEqual(ledger_service.get_balance(self.referrer), 500)

        self.code.refresh_from_db()
        self.assertEqual((self.code.total_conversions, self.code.total_earned), (1, 500))

    def test_order_below_minimum_converts_without_reward(self):
        referee = self._refer("a@example.com")

        result = referral_service.convert(referee=referee, order_id="pay_1", order_subtotal=3499)

        self.assertEqual(result.outcome, ConversionOutcome.MINIMUM_NOT_MET)
        relationship = result.relationship
        self.assertEqual(relationship.status, ReferralRelationship.STATUS_CONVERTED)
        self.assertFalse(relationship.reward_credited)
        self.assertEqual(ledger_service.get_balance(self.referrer), 0)

    def test_ip_daily_cap_withholds_reward(self):
        referees = [self._refer(f"r{i}@example.com") for i in range(3)]

        outcomes = [
            referral_service.convert(referee=r, order_id=f"pay_{i}", order_subtotal=5000).outcome
            for i, r in enumerate(referees)
        ]

        self.assertEqual(
            outcomes,
            [ConversionOutcome.CREDITED, ConversionOutcome.CREDITED, ConversionOutcome.IP_LIMIT_EXCEEDED],
        )
        self.assertEqual(ledger_service.get_balance(self.referrer), 1000)
        withheld = ReferralRelationship.objects.get(referee=referees[2])
        self.assertEqual(withheld.outcome, ReferralRelationship.OUTCOME_IP_LIMIT_EXCEEDED)
        self.assertFalse(withheld.reward_credited)

    def test_ip_cap_window_is_trailing_24_hours(self):
        first, second, third = (self._refer(f"r{i}@example.com") for i in range(3))
        earlier = timezone.now() - timedelta(hours=25)

        referral_service.convert(referee=first, order_id="pay_1", order_subtotal=5000, now=earlier)
        referral_service.convert(referee=second, order_id="pay_2", order_subtotal=5000, now=earlier)
        result = referral_service.convert(referee=third, order_id="pay_3", order_subtotal=5000)

        self.assertEqual(result.outcome, ConversionOutcome.CREDITED)

    def test_bonus_eligibility(self):
        referee = self._refer("a@example.com")

        info = referral_service.bonus_eligibility(referee, 2000)
        self.assertTrue(info["has_pending_referral"])
        self.assertFalse(info["eligible"])
        self.assertEqual(info["remaining"], 1500)

        info = referral_service.bonus_eligibility(self.referrer, 5000)
        self.assertFalse(info["eligible"])


@override_settings(STORE_CREDIT=REFERRAL_SETTINGS)
class RevocationTests(TestCase):
    def setUp(self):
        self.referrer = make_user("ref@example.com")
        code = referral_service.ensure_referral_code(self.referrer)
        self.referee = make_user("a@example.com")
        referral_service.create_relationship(referee=self.referee, code=code.code)
        self.converted_at = timezone.now()
        referral_service.convert(
            referee=self.referee, order_id="pay_1", order_subtotal=5000, now=self.converted_at
        )

    def test_refund_inside_window_claws_back(self):
        result = referral_service.revoke(order_id="pay_1", reason="refund")

        self.assertEqual(result.outcome, RevokeOutcome.REVOKED)
        self.assertEqual(result.deducted, 500)
        self.assertEqual(ledger_service.get_balance(self.referrer), 0)
        self.assertEqual(result.relationship.status, ReferralRelationship.STATUS_REVOKED)

        code = ReferralCode.objects.get(user=self.referrer)
        self.assertEqual((code.total_conversions, code.total_earned), (0, 0))

        again = referral_service.revoke(order_id="pay_1")
        self.assertEqual(again.outcome, RevokeOutcome.NO_ELIGIBLE_REFERRAL)

    def test_refund_after_spending_records_shortfall(self):
        ledger_service.debit(user=self.referrer, amount=300, reference_id="pay_other")

        result = referral_service.revoke(order_id="pay_1")

        self.assertEqual((result.deducted, result.shortfall), (200, 300))
        self.assertEqual(ledger_service.get_balance(self.referrer), 0)
        relationship = ReferralRelationship.objects.get(referee=self.referee)
        self.assertEqual(relationship.revocation_shortfall, 300)
        self.assertEqual(
            CreditTransaction.objects.filter(kind=CreditTransaction.KIND_REFERRAL_REVOKED).count(), 1
        )

    def test_refund_outside_window_keeps_reward(self):
        later = self.converted_at + timedelta(days=15)

        result = referral_service.revoke(order_id="pay_1", now=later)

        self.assertEqual(result.outcome, RevokeOutcome.OUTSIDE_WINDOW)
        self.assertEqual(ledger_service.get_balance(self.referrer), 500)

    def test_revoked_is_terminal(self):
        relationship = referral_service.revoke(order_id="pay_1").relationship

        self.assertFalse(
            can_transition(from_status=relationship.status, to_status=ReferralRelationship.STATUS_CONVERTED)
        )
        with self.assertRaises(InvalidReferralTransitionError):
            validate_transition(relationship=relationship, target_status=ReferralRelationship.STATUS_PENDING)


@override_settings(STORE_CREDIT=REFERRAL_SETTINGS)
class SignupTests(TestCase):
    def test_signup_without_referral(self):
        user = make_user("solo@example.com")

        result = handle_signup(user=user)

        self.assertEqual(result.outcome, SignupOutcome.NOT_REFERRED)
        self.assertIsNotNone(result.referral_code)
        self.assertEqual(result.first_order_promotion.discount_value, 10)

    def test_signup_with_own_email_code_is_self_referral(self):
        owner = make_user("owner@example.com")
        code = referral_service.ensure_referral_code(owner)

        result = handle_signup(user=owner, referral_code=code.code)

        self.assertEqual(result.outcome, SignupOutcome.SELF_REFERRAL)
        self.assertFalse(result.first_order_promotion.referral_bonus)

    def test_register_api_with_referral_code(self):
        owner = make_user("owner@example.com")
        code = referral_service.ensure_referral_code(owner)
        client = APIClient()

        res = client.post(
            "/api/auth/register/",
            {"email": "friend@example.com", "password": "Str0ng-Passw0rd!", "referral_code": code.code},
            format="json",
        )

        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["referral_status"], "referred")
        self.assertEqual(res.data["first_order_discount_percent"], 15)
        self.assertTrue(res.data["first_order_code"].startswith("WELCOME"))

        friend = User.objects.get(email="friend@example.com")
        relationship = ReferralRelationship.objects.get(referee=friend)
        self.assertEqual(relationship.referrer, owner)
        self.assertEqual(relationship.ip_address, "127.0.0.1")

    def test_register_api_ignores_client_forwarded_for(self):
        owner = make_user("owner@example.com")
        code = referral_service.ensure_referral_code(owner)
        client = APIClient()

        for i in range(3):
            res = client.post(
                "/api/auth/register/",
                {"email": f"friend{i}@example.com", "password": "Str0ng-Passw0rd!", "referral_code": code.code},
                format="json",
                REMOTE_ADDR="9.9.9.9",
                HTTP_X_FORWARDED_FOR=f"10.0.0.{i}",
            )
            self.assertEqual(res.status_code, status.HTTP_201_CREATED)

        ips = set(ReferralRelationship.objects.values_list("ip_address", flat=True))
        self.assertEqual(ips, {"9.9.9.9"})

    def test_register_api_with_bad_code_still_succeeds(self):
        res = APIClient().post(
            "/api/auth/register/",
            {"email": "friend@example.com", "password": "Str0ng-Passw0rd!", "referral_code": "NOPE1234"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["referral_status"], "invalid_code")


@override_settings(STORE_CREDIT=REFERRAL_SETTINGS)
class ReferralApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.referrer = make_user("ref@example.com")
        self.manager = User.objects.create_user(email="mgr@example.com", password="pw12345!", role=ROLE_MANAGER)
        code = referral_service.ensure_referral_code(self.referrer)
        self.referee = make_user("alice.smith@example.com")
        referral_service.create_relationship(referee=self.referee, code=code.code)

    def test_my_stats_and_masked_history(self):
        self.client.force_authenticate(self.referrer)

        res = self.client.get("/api/referrals/me/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["total_referrals"], 1)
        self.assertEqual(res.data["pending"], 1)

        res = self.client.get("/api/referrals/history/")
        self.assertEqual(len(res.data), 1)
        self.assertNotIn("alice.smith@example.com", str(res.data))

    def test_eligibility_requires_integer_subtotal(self):
        self.client.force_authenticate(self.referee)

        res = self.client.get("/api/referrals/eligibility/", {"subtotal": "3000"})
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["remaining"], 500)

        res = self.client.get("/api/referrals/eligibility/", {"subtotal": "12.5"})
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manual_revoke_requires_capability(self):
        referral_service.convert(referee=self.referee, order_id="pay_9", order_subtotal=5000)

        self.client.force_authenticate(self.referrer)
        res = self.client.post("/api/referrals/revoke/", {"order_id": "pay_9"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.manager)
        res = self.client.post("/api/referrals/revoke/", {"order_id": "pay_9"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["deducted"], 500)

        res = self.client.post("/api/referrals/revoke/", {"order_id": "pay_9"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)


class ClientIpTests(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()

    def test_forwarded_for_ignored_without_trusted_proxy(self):
        request = self.factory.get("/", REMOTE_ADDR="9.9.9.9", HTTP_X_FORWARDED_FOR="1.2.3.4")
        self.assertEqual(client_ip(request), "9.9.9.9")

    @override_settings(TRUSTED_PROXY_COUNT=1)
    def test_trusted_proxy_hop_is_used(self):
        request = self.factory.get(
            "/",
            REMOTE_ADDR="10.0.0.1",
            HTTP_X_FORWARDED_FOR="6.6.6.6, 203.0.113.7",
        )
        self.assertEqual(client_ip(request), "203.0.113.7")

    @override_settings(TRUSTED_PROXY_COUNT=1)
    def test_garbage_addresses_return_none(self):
        request = self.factory.get("/", REMOTE_ADDR="10.0.0.1", HTTP_X_FORWARDED_FOR="foo")
        self.assertIsNone(client_ip(request))

        request = self.factory.get("/", REMOTE_ADDR="not-an-ip")
        with override_settings(TRUSTED_PROXY_COUNT=0):
            self.assertIsNone(client_ip(request))
