# checkout/tests/test_pricing.py

from __future__ import annotations

import random

from django.test import SimpleTestCase, override_settings

from checkout.services.price_sealing import SEAL_KEY, is_sealed, seal_metadata
from checkout.services.pricing import PricingBreakdown, PricingInput, compose_charge
from core.exceptions import PricingInvariantError
from promotions.models import PromotionCode


def percent_promo(value, **extra):
    return PromotionCode(
        code="SPRING10",
        discount_type=PromotionCode.TYPE_PERCENTAGE,
        discount_value=value,
        **extra,
    )


def priced(**overrides):
    fields = {
        "subtotal": 10000,
        "free_shipping_threshold": 5000,
        "shipping_cost": 590,
    }
    fields.update(overrides)
    return compose_charge(PricingInput(**fields))


class ComposeChargeTests(SimpleTestCase):
    def test_full_stack_checkout(self):
        b = priced(
            promo=percent_promo(10),
            promo_valid=True,
            promo_code="SPRING10",
            gift_card_balance=3000,
            gift_card_code="GIFT-1",
            store_credit_balance=5000,
            requested_credit=5000,
        )

        self.assertEqual(b.discount, 1000)
        self.assertEqual(b.gift_amount, 3000)
        self.assertEqual(b.shipping, 0)
        self.assertEqual((b.credit_for_goods, b.credit_for_ship), (5000, 0))
        self.assertEqual(b.coupon_total, 9000)
        self.assertEqual(b.final_charge, 1000)
        self.assertEqual(
            b.discount_instruction(),
            {"amount_off": 9000, "duration": "once", "name": "Promo SPRING10 + Gift card + Store credit"},
        )

    def test_credit_spills_into_shipping(self):
        b = priced(subtotal=2000, store_credit_balance=10000, requested_credit=10000)

        self.assertEqual(b.credit_for_goods, 2000)
        self.assertEqual(b.credit_for_ship, 590)
        self.assertEqual(b.shipping, 0)
        self.assertEqual(b.coupon_total, 2000)
        self.assertEqual(b.final_charge, 0)
        self.assertEqual(b.credit_total, 2590)

    def test_credit_partially_covers_shipping(self):
        b = priced(subtotal=2000, gift_card_balance=1800, store_credit_balance=500, requested_credit=500)

        self.assertEqual(b.gift_amount, 1800)
        self.assertEqual((b.credit_for_goods, b.credit_for_ship), (200, 300))
        self.assertEqual(b.shipping, 290)
        self.assertEqual(b.final_charge, 290)

    def test_requested_credit_is_capped_by_balance(self):
        b = priced(subtotal=6000, store_credit_balance=1200, requested_credit=99999)
        self.assertEqual(b.credit_total, 1200)
        self.assertEqual(b.final_charge, 4800)

    def test_invalid_promotion_contributes_nothing(self):
        b = priced(promo=percent_promo(50), promo_valid=False, promo_code="SPRING10")
        self.assertEqual(b.discount, 0)
        self.assertEqual(b.promo_code, "")
        self.assertIsNone(b.discount_instruction())

    def test_negative_inputs_are_clamped(self):
        b = priced(subtotal=-500, store_credit_balance=-10, requested_credit=-1, gift_card_balance=-5)

        self.assertEqual(b.subtotal, 0)
        self.assertEqual(b.credit_total, 0)
        self.assertEqual(b.gift_amount, 0)
        self.assertEqual(b.final_charge, 590)

    def test_fixed_discount_clipped_to_subtotal(self):
        promo = PromotionCode(code="FLAT", discount_type=PromotionCode.TYPE_FIXED, discount_value=5000)
        b = priced(subtotal=3000, promo=promo, promo_valid=True, promo_code="FLAT")

        self.assertEqual(b.discount, 3000)
        self.assertEqual(b.final_charge, 590)

    def test_scoped_promotion_uses_promo_base(self):
        b = priced(promo=percent_promo(10), promo_valid=True, promo_base=4000, promo_code="SPRING10")
        self.assertEqual(b.discount, 400)


class MetadataTests(SimpleTestCase):
    def test_metadata_round_trip(self):
        b = priced(store_credit_balance=700, requested_credit=700, user_id="u-1")
        metadata = b.to_metadata()

        self.assertTrue(all(key.startswith("sc_") for key in metadata))
        self.assertTrue(all(isinstance(value, str) for value in metadata.values()))

        restored = PricingBreakdown.from_metadata(metadata)
        self.assertEqual(restored.final_charge, b.final_charge)
        self.assertEqual(restored.credit_total, 700)
        self.assertEqual(restored.user_id, "u-1")

    def test_incomplete_or_inconsistent_metadata(self):
        with self.assertRaises(PricingInvariantError):
            PricingBreakdown.from_metadata({"sc_subtotal": "100"})

        metadata = priced().to_metadata()
        metadata["sc_final_charge"] = "1"
        with self.assertRaises(PricingInvariantError):
            PricingBreakdown.from_metadata(metadata)


class QuoteSealTests(SimpleTestCase):
    def test_sealed_metadata_verifies(self):
        metadata = seal_metadata(priced(store_credit_balance=700, requested_credit=700).to_metadata())
        self.assertIn(SEAL_KEY, metadata)
        self.assertTrue(is_sealed(metadata))

    def test_any_changed_field_breaks_the_seal(self):
        metadata = seal_metadata(priced(store_credit_balance=700, requested_credit=700).to_metadata())
        for key in [k for k in metadata if k != SEAL_KEY]:
            with self.subTest(key=key):
                altered = dict(metadata, **{key: metadata[key] + "0"})
                self.assertFalse(is_sealed(altered))

    def test_missing_seal_or_other_secret(self):
        metadata = priced().to_metadata()
        self.assertFalse(is_sealed(metadata))

        sealed = seal_metadata(metadata)
        with override_settings(PAYMENTS={"QUOTE_SEAL_SECRET": "another-secret"}):
            self.assertFalse(is_sealed(sealed))


class ComposeChargePropertyTests(SimpleTestCase):
    """Random inputs: every breakdown satisfies the pricing postconditions."""

    ITERATIONS = 500

    def _random_promo(self, rng):
        if rng.random() < 0.5:
            return PromotionCode(
                code="P",
                discount_type=PromotionCode.TYPE_PERCENTAGE,
                discount_value=rng.randint(1, 100),
                max_discount=rng.choice([None, rng.randint(0, 20000)]),
            )
        return PromotionCode(
            code="P",
            discount_type=PromotionCode.TYPE_FIXED,
            discount_value=rng.randint(0, 50000),
        )

    def test_postconditions_hold_for_random_inputs(self):
        rng = random.Random(20240611)

        for i in range(self.ITERATIONS):
            subtotal = rng.randint(0, 40000)
            shipping_cost = rng.randint(0, 2000)
            balance = rng.randint(0, 40000)
            requested = rng.randint(0, 50000)
            promo = self._random_promo(rng) if rng.random() < 0.7 else None
            p = PricingInput(
                subtotal=subtotal,
                free_shipping_threshold=rng.randint(0, 20000),
                shipping_cost=shipping_cost,
                store_credit_balance=balance,
                requested_credit=requested,
                promo=promo,
                promo_valid=promo is not None and rng.random() < 0.8,
                promo_base=rng.choice([None, rng.randint(0, subtotal)]),
                gift_card_balance=rng.choice([None, rng.randint(0, 30000)]),
            )

            with self.subTest(i=i, input=p):
                b = compose_charge(p)

                self.assertGreaterEqual(b.final_charge, 0)
                self.assertLessEqual(b.coupon_total, b.subtotal)
                self.assertLessEqual(b.credit_for_goods + b.credit_for_ship, balance)
                self.assertLessEqual(b.credit_total, requested)
                self.assertEqual(b.final_charge, b.subtotal - b.coupon_total + b.shipping)
                self.assertLessEqual(b.shipping, shipping_cost)
                for part in (b.discount, b.gift_amount, b.credit_for_goods, b.credit_for_ship):
                    self.assertGreaterEqual(part, 0)
