# checkout/tests/test_quote_api.py

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from giftcards.services import giftcard_service
from promotions.services.promotion_catalog import create_first_order_code

User = get_user_model()


class CheckoutQuoteApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(email="ana@example.com", password="pw12345!")
        self.client.force_authenticate(self.user)

    def test_requires_authentication(self):
        res = APIClient().post("/api/checkout/quote/", {"subtotal": 1000}, format="json")
        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_invalid_codes_are_reported_not_fatal(self):
        res = self.client.post(
            "/api/checkout/quote/",
            {"subtotal": 6000, "promo_code": "NOPE", "gift_card_code": "NOPE-NOPE"},
            format="json",
        )

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["final_charge"], 6000)
        self.assertEqual(res.data["ignored"], {"promo_code": "not_found", "gift_card_code": "not_found"})
        self.assertIsNone(res.data["discount_instruction"])

    def test_first_order_code_and_gift_card(self):
        promo = create_first_order_code(self.user)
        card = giftcard_service.issue(amount=1000)

        res = self.client.post(
            "/api/checkout/quote/",
            {"subtotal": 4000, "promo_code": promo.code, "gift_card_code": card.code},
            format="json",
        )

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["discount"], 400)
        self.assertEqual(res.data["gift_amount"], 1000)
        self.assertEqual(res.data["shipping"], 590)
        self.assertEqual(res.data["final_charge"], 3190)
        self.assertEqual(res.data["discount_instruction"]["amount_off"], 1400)
        self.assertEqual(res.data["metadata"]["sc_user_id"], str(self.user.pk))
        self.assertIn("sc_seal", res.data["metadata"])

    def test_code_of_another_customer_is_ignored(self):
        other = User.objects.create_user(email="bob@example.com", password="pw12345!")
        promo = create_first_order_code(other)

        res = self.client.post("/api/checkout/quote/", {"subtotal": 4000, "promo_code": promo.code}, format="json")

        self.assertEqual(res.data["discount"], 0)
        self.assertEqual(res.data["ignored"]["promo_code"], "not_owner")
