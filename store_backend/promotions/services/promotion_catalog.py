# promotions/services/promotion_catalog.py

"""
======================================================
PATH: promotions/services/promotion_catalog.py
======================================================
PROMOTION CATALOG

Reads promotion codes, decides validity, computes discounts and counts
usage.

RULES:
- compute_discount() is pure and never returns more than the subtotal.
- An inapplicable promotion contributes zero; it never raises.
- usage_count only moves through record_usage(), under a row lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from django.apps import apps
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from codes.models import CodeRegistryEntry
from codes.services.code_registry import (
    generate_first_order_code,
    is_claimable,
    normalize_code,
    register_on_issue,
)
from core.conf import store_credit_setting
from core.exceptions import AlreadyUsedError, NotFoundError
from core.locking import apply_lock_timeout, lock_conflicts
from core.money import non_negative, percent_of
from core.results import Outcome, ServiceResult
from promotions.models import PromotionCode

logger = logging.getLogger(__name__)


# ============================================================
# RESULTS
# ============================================================


class PromotionOutcome(Outcome):
    OK = "ok"
    NOT_FOUND = "not_found"
    LIMIT_REACHED = "limit_reached"


@dataclass(frozen=True)
class UsageResult(ServiceResult):
    promotion: PromotionCode | None = None

    SUCCESS = frozenset({PromotionOutcome.OK})
    ERRORS = {
        PromotionOutcome.NOT_FOUND: NotFoundError,
        PromotionOutcome.LIMIT_REACHED: AlreadyUsedError,
    }


# ============================================================
# READS
# ============================================================


def lookup(code) -> PromotionCode | None:
    code = normalize_code(code)
    if not code:
        return None
    return PromotionCode.objects.filter(code=code).first()


def _has_prior_order(user) -> bool:
    PaymentConfirmation = apps.get_model("checkout", "PaymentConfirmation")
    return PaymentConfirmation.objects.filter(
        user=user,
        status__in=[PaymentConfirmation.STATUS_APPLIED, PaymentConfirmation.STATUS_REVIEW],
    ).exists()


def invalid_reason(promo: PromotionCode | None, now, cart_total: int, user=None) -> str | None:
    """
    None when the promotion may be applied, otherwise a short reason.
    """
    if promo is None:
        return "not_found"
    if not promo.is_active:
        return "inactive"
    if now < promo.starts_at:
        return "not_started"
    if now > promo.ends_at:
        return "expired"
    if promo.usage_limit is not None and promo.usage_count >= promo.usage_limit:
        return "usage_limit_reached"
    if cart_total < promo.min_purchase:
        return "minimum_not_met"

    if promo.user_id is not None:
        if user is None or promo.user_id != user.pk:
            return "not_owner"
        if promo.is_first_order_code and _has_prior_order(user):
            return "not_first_order"

    return None


def is_valid(promo: PromotionCode | None, now, cart_total: int, user=None) -> bool:
    return invalid_reason(promo, now, cart_total, user=user) is None


def compute_discount(promo: PromotionCode, subtotal: int) -> int:
    subtotal = non_negative(int(subtotal))

    if promo.discount_type == PromotionCode.TYPE_PERCENTAGE:
        discount = percent_of(subtotal, promo.discount_value)
        if promo.max_discount is not None:
            discount = min(discount, promo.max_discount)
    else:
        discount = min(promo.discount_value, subtotal)

    return min(non_negative(discount), subtotal)


def applicable_subtotal(promo: PromotionCode, subtotal: int, lines=None) -> int:
    """
    Part of the subtotal the promotion applies to.

    lines: iterable of {"product_id", "category_id", "amount"} dicts.
    A scoped promotion without a line breakdown applies to nothing.
    """
    if promo.applies_to == PromotionCode.APPLIES_TO_ALL:
        return non_negative(int(subtotal))

    if not lines:
        return 0

    key = "category_id" if promo.applies_to == PromotionCode.APPLIES_TO_CATEGORY else "product_id"
    wanted = {str(value) for value in (promo.applies_to_ids or [])}

    total = sum(
        non_negative(int(line.get("amount") or 0))
        for line in lines
        if str(line.get(key) or "") in wanted
    )
    return min(total, non_negative(int(subtotal)))


def preview(promo: PromotionCode, *, now=None, user=None) -> dict:
    now = now or timezone.now()
    return {
        "code": promo.code,
        "name": promo.name,
        "description": promo.description,
        "discount_type": promo.discount_type,
        "discount_value": promo.discount_value,
        "min_purchase": promo.min_purchase,
        "max_discount": promo.max_discount,
        "ends_at": promo.ends_at,
        "remaining_uses": promo.remaining_uses,
        "valid_now": is_valid(promo, now, promo.min_purchase, user=user),
    }


# ============================================================
# WRITES
# ============================================================


def record_usage(promo_or_code) -> UsageResult:
    code = promo_or_code.code if isinstance(promo_or_code, PromotionCode) else normalize_code(promo_or_code)

    with lock_conflicts(resource=f"promotion:{code}"), transaction.atomic():
        apply_lock_timeout()
        promo = PromotionCode.objects.select_for_update().filter(code=code).first()

        if promo is None:
            return UsageResult(PromotionOutcome.NOT_FOUND)

        if promo.usage_limit is not None and promo.usage_count >= promo.usage_limit:
            logger.warning(
                "Promotion usage limit reached",
                extra={"code": code, "usage_count": promo.usage_count},
            )
            return UsageResult(PromotionOutcome.LIMIT_REACHED, promotion=promo)

        PromotionCode.objects.filter(pk=promo.pk).update(
            usage_count=F("usage_count") + 1,
            updated_at=timezone.now(),
        )
        promo.refresh_from_db(fields=["usage_count", "updated_at"])

    logger.info("Promotion used", extra={"code": code, "usage_count": promo.usage_count})
    return UsageResult(PromotionOutcome.OK, promotion=promo)


@transaction.atomic
def create_first_order_code(
    user,
    *,
    percent=None,
    validity_days: int | None = None,
    referral_bonus: bool = False,
) -> PromotionCode:
    """
    Single-use, user-bound percentage code (WELCOMEXXXXXX).
    Returns the existing one if the user already has a first-order code.
    """
    existing = PromotionCode.objects.filter(user=user, is_first_order_code=True).first()
    if existing is not None:
        return existing

    if percent is None:
        key = "REFERRAL_FIRST_ORDER_DISCOUNT_PERCENT" if referral_bonus else "FIRST_ORDER_DISCOUNT_PERCENT"
        percent = store_credit_setting(key)
    days = int(validity_days or store_credit_setting("FIRST_ORDER_VALIDITY_DAYS"))

    now = timezone.now()
    promo = PromotionCode.objects.create(
        code=generate_first_order_code(),
        name="Welcome discount" if not referral_bonus else "Referral welcome discount",
        description=f"{percent}% off your first order",
        discount_type=PromotionCode.TYPE_PERCENTAGE,
        discount_value=int(percent),
        usage_limit=1,
        starts_at=now,
        ends_at=now + timedelta(days=days),
        user=user,
        is_first_order_code=True,
        referral_bonus=referral_bonus,
    )
    register_on_issue(
        promo.code,
        owner_id=promo.pk,
        namespace=CodeRegistryEntry.NAMESPACE_PROMOTION,
    )

    logger.info(
        "First-order code created",
        extra={"user_id": str(user.pk), "code": promo.code, "percent": int(percent)},
    )
    return promo


@transaction.atomic
def create_promotion(**fields) -> PromotionCode:
    """Staff-created campaign code. The code is registered permanently."""
    code = normalize_code(fields.pop("code", ""))
    if not is_claimable(code):
        raise AlreadyUsedError(f"Promotion code {code} cannot be issued")

    promo = PromotionCode(code=code, **fields)
    promo.full_clean(exclude=["user"])
    promo.save()
    register_on_issue(
        promo.code,
        owner_id=promo.pk,
        namespace=CodeRegistryEntry.NAMESPACE_PROMOTION,
    )

    logger.info("Promotion created", extra={"code": promo.code, "promotion_id": str(promo.pk)})
    return promo


@transaction.atomic
def deactivate_promotion(*, code) -> PromotionCode:
    promo = PromotionCode.objects.select_for_update().filter(code=normalize_code(code)).first()
    if promo is None:
        raise NotFoundError(f"Promotion {code} not found")
    if promo.is_active:
        promo.is_active = False
        promo.save(update_fields=["is_active", "updated_at"])
        logger.info("Promotion deactivated", extra={"code": promo.code})
    return promo
