# codes/services/code_registry.py

"""
======================================================
PATH: codes/services/code_registry.py
======================================================
CODE REGISTRY SERVICE

The ONLY place allowed to:
- Generate redemption / referral / promotion codes
- Decide whether a code is available
- Write CodeRegistryEntry rows

GUARANTEES:
- A code that was ever issued or reserved is never handed out again, even
  after the issuing record has been deleted (the registry is the long-term
  authority; the live tables are consulted too because registration happens
  in the same transaction as issuance).
- Generation is bounded: CODE_MAX_ATTEMPTS tries, then CodeSpaceExhausted.
- Alphabet excludes visually ambiguous symbols (0/O, 1/I/L).
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass

from django.apps import apps
from django.db import IntegrityError, transaction
from django.db.models import Count

from codes.models import CodeRegistryEntry
from core.conf import store_credit_setting
from core.exceptions import AlreadyUsedError, CodeSpaceExhausted, ValidationError
from core.results import Outcome, ServiceResult

logger = logging.getLogger(__name__)

CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"

# (app_label, model_name, field) of every table that issues codes
LIVE_ISSUANCE_TABLES = (
    ("giftcards", "GiftCard", "code"),
    ("referrals", "ReferralCode", "code"),
    ("promotions", "PromotionCode", "code"),
)

GIFT_CARD_CODE_LENGTH = 12
GIFT_CARD_GROUP_SIZE = 4
REFERRAL_CODE_LENGTH = 8
FIRST_ORDER_PREFIX = "WELCOME"
FIRST_ORDER_SUFFIX_LENGTH = 6


# ============================================================
# RESULTS
# ============================================================


class ReserveOutcome(Outcome):
    OK = "ok"
    ALREADY_TAKEN = "already_taken"


@dataclass(frozen=True)
class ReserveResult(ServiceResult):
    entry: CodeRegistryEntry | None = None

    SUCCESS = frozenset({ReserveOutcome.OK})
    ERRORS = {ReserveOutcome.ALREADY_TAKEN: AlreadyUsedError}


# ============================================================
# HELPERS
# ============================================================


def normalize_code(raw) -> str:
    return str(raw or "").strip().upper()


def random_code(length: int, *, group_size: int | None = None, prefix: str = "") -> str:
    body = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
    if group_size:
        body = "-".join(
            body[i : i + group_size] for i in range(0, length, group_size)
        )
    return f"{prefix}{body}"


def _in_live_tables(code: str) -> bool:
    for app_label, model_name, field in LIVE_ISSUANCE_TABLES:
        model = apps.get_model(app_label, model_name)
        if model._default_manager.filter(**{field: code}).exists():
            return True
    return False


# ============================================================
# QUERIES
# ============================================================


def is_available(code) -> bool:
    code = normalize_code(code)
    if not code:
        return False

    if CodeRegistryEntry.objects.filter(code=code).exists():
        return False

    return not _in_live_tables(code)


def is_claimable(code) -> bool:
    """
    True if an issuer may take this exact code: either never seen, or
    reserved by an administrator and not yet attached to an owner.
    """
    code = normalize_code(code)
    if not code or _in_live_tables(code):
        return False

    entry = CodeRegistryEntry.objects.filter(code=code).first()
    if entry is None:
        return True
    return entry.reason == CodeRegistryEntry.REASON_RESERVED and not entry.owner_id


def registry_stats() -> dict:
    by_reason = {
        row["reason"]: row["total"]
        for row in CodeRegistryEntry.objects.values("reason").annotate(total=Count("id"))
    }
    by_namespace = {
        row["namespace"]: row["total"]
        for row in CodeRegistryEntry.objects.values("namespace").annotate(
            total=Count("id")
        )
    }
    return {
        "total": sum(by_reason.values()),
        "by_reason": by_reason,
        "by_namespace": by_namespace,
    }


# ============================================================
# GENERATION
# ============================================================


def generate_code(
    *,
    namespace: str,
    length: int,
    group_size: int | None = None,
    prefix: str = "",
    max_attempts: int | None = None,
) -> str:
    """
    Draw random codes until one is available.

    The returned code is NOT yet registered; the issuing service registers it
    via register_on_issue() inside its own transaction.
    """
    attempts = int(max_attempts or store_credit_setting("CODE_MAX_ATTEMPTS"))

    for _ in range(attempts):
        candidate = random_code(length, group_size=group_size, prefix=prefix)
        if is_available(candidate):
            return candidate

    logger.error(
        "Code space exhausted",
        extra={"namespace": namespace, "attempts": attempts, "length": length},
    )
    raise CodeSpaceExhausted(
        f"No free {namespace} code after {attempts} attempts (length={length})"
    )


def generate_gift_card_code() -> str:
    return generate_code(
        namespace=CodeRegistryEntry.NAMESPACE_GIFT_CARD,
        length=GIFT_CARD_CODE_LENGTH,
        group_size=GIFT_CARD_GROUP_SIZE,
    )


def generate_referral_code() -> str:
    return generate_code(
        namespace=CodeRegistryEntry.NAMESPACE_REFERRAL,
        length=REFERRAL_CODE_LENGTH,
    )


def generate_first_order_code() -> str:
    return generate_code(
        namespace=CodeRegistryEntry.NAMESPACE_PROMOTION,
        length=FIRST_ORDER_SUFFIX_LENGTH,
        prefix=FIRST_ORDER_PREFIX,
    )


# ============================================================
# WRITES
# ============================================================


@transaction.atomic
def reserve(
    code,
    *,
    namespace: str,
    reason: str = CodeRegistryEntry.REASON_RESERVED,
) -> ReserveResult:
    code = normalize_code(code)
    if not code:
        raise ValidationError("code is required")

    if reason not in (
        CodeRegistryEntry.REASON_RESERVED,
        CodeRegistryEntry.REASON_ADMIN_BLOCKED,
    ):
        raise ValidationError(f"Invalid reservation reason: {reason!r}")

    if namespace not in dict(CodeRegistryEntry.NAMESPACE_CHOICES):
        raise ValidationError(f"Invalid namespace: {namespace!r}")

    if not is_available(code):
        return ReserveResult(ReserveOutcome.ALREADY_TAKEN)

    try:
        with transaction.atomic():
            entry = CodeRegistryEntry.objects.create(
                code=code,
                namespace=namespace,
                reason=reason,
            )
    except IntegrityError:
        # Lost the race against a concurrent issuer / reserver.
        return ReserveResult(ReserveOutcome.ALREADY_TAKEN)

    logger.info(
        "Code reserved",
        extra={"code": code, "namespace": namespace, "reason": reason},
    )
    return ReserveResult(ReserveOutcome.OK, entry=entry)


def block(code, *, namespace: str) -> ReserveResult:
    return reserve(
        code,
        namespace=namespace,
        reason=CodeRegistryEntry.REASON_ADMIN_BLOCKED,
    )


@transaction.atomic
def register_on_issue(code, *, owner_id, namespace: str) -> CodeRegistryEntry:
    """
    Record that `code` now belongs to `owner_id`.

    Must run inside the issuing transaction, right after the issuing row is
    persisted, so issuance and registration commit (or roll back) together.
    """
    code = normalize_code(code)
    owner = str(owner_id)

    entry = CodeRegistryEntry.objects.select_for_update().filter(code=code).first()

    if entry is None:
        return CodeRegistryEntry.objects.create(
            code=code,
            namespace=namespace,
            reason=CodeRegistryEntry.REASON_GENERATED,
            owner_id=owner,
        )

    if entry.owner_id == owner:
        return entry

    if entry.reason == CodeRegistryEntry.REASON_RESERVED and not entry.owner_id:
        entry.owner_id = owner
        entry.save(update_fields=["owner_id"])
        return entry

    raise AlreadyUsedError(f"Code {code} is already registered ({entry.reason})")
