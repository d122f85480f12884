# credits/services/ledger_service.py

"""
======================================================
PATH: credits/services/ledger_service.py
======================================================
LEDGER STORE (STORE CREDIT ENGINE)

This module is the ONLY place allowed to:
- Create / mutate StoreCredit
- Create CreditTransaction
- Enforce balance >= 0 and balance == earned - spent
- Enforce idempotency via (kind, reference_id)

Everything else (gift cards, referrals, checkout, admin) must pass through here.

WRITE PATH (credit / debit / claw_back), one DB transaction:
1) bounded lock wait (SET LOCAL lock_timeout on PostgreSQL)
2) SELECT ... FOR UPDATE on the user's StoreCredit row
3) re-check the idempotency key under the lock
4) compute, reject a debit that would go negative
5) append CreditTransaction (next sequence, balance_before/after)
6) write the new balance + counters
A concurrent duplicate that slips past the re-check loses on the unique
(kind, reference_id) constraint and is answered with the original row.

RESULTS:
- Expected business outcomes are returned (LedgerResult), not raised.
- Invalid amounts / kinds raise core.exceptions.ValidationError.
- Lock wait timeouts raise core.exceptions.ConcurrencyConflictError.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from django.db import IntegrityError, transaction

from core.exceptions import InsufficientBalanceError, ValidationError
from core.locking import apply_lock_timeout, lock_conflicts
from core.money import positive_amount
from core.results import Outcome, ServiceResult
from credits.models import CreditTransaction, StoreCredit

logger = logging.getLogger(__name__)

CREDIT_KINDS = {
    CreditTransaction.KIND_GIFT_CARD_REDEEM,
    CreditTransaction.KIND_REFERRAL_REWARD,
    CreditTransaction.KIND_REFUND_CREDIT,
    CreditTransaction.KIND_ADMIN_ADJUSTMENT,
}

DEBIT_KINDS = {
    CreditTransaction.KIND_PURCHASE_DEBIT,
    CreditTransaction.KIND_ADMIN_ADJUSTMENT,
}

CLAWBACK_KINDS = {
    CreditTransaction.KIND_REFERRAL_REVOKED,
}

DEFAULT_HISTORY_LIMIT = 50


# ============================================================
# RESULTS
# ============================================================


class LedgerOutcome(Outcome):
    OK = "ok"
    INSUFFICIENT_BALANCE = "insufficient_balance"


@dataclass(frozen=True)
class LedgerResult(ServiceResult):
    transaction: CreditTransaction | None = None
    balance: int = 0
    replayed: bool = False

    SUCCESS = frozenset({LedgerOutcome.OK})
    ERRORS = {LedgerOutcome.INSUFFICIENT_BALANCE: InsufficientBalanceError}


@dataclass(frozen=True)
class ClawbackResult(ServiceResult):
    """
    Claw-backs never fail for lack of balance: they take what is there.
    `shortfall` is the part of the requested amount that could not be taken.
    """

    transaction: CreditTransaction | None = None
    requested: int = 0
    deducted: int = 0
    shortfall: int = 0
    balance: int = 0
    replayed: bool = False

    SUCCESS = frozenset({LedgerOutcome.OK})


@dataclass
class LedgerAudit:
    store_credit_id: str
    user_id: str | None
    transaction_count: int = 0
    replayed_balance: int = 0
    stored_balance: int = 0
    problems: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems

    def as_dict(self) -> dict:
        return {
            "store_credit_id": self.store_credit_id,
            "user_id": self.user_id,
            "transaction_count": self.transaction_count,
            "replayed_balance": self.replayed_balance,
            "stored_balance": self.stored_balance,
            "ok": self.ok,
            "problems": list(self.problems),
        }


# ============================================================
# HELPERS
# ============================================================


def _normalize_reference(reference_id) -> str:
    ref = str(reference_id or "").strip()
    if not ref:
        raise ValidationError("reference_id is required for every ledger mutation")
    if len(ref) > 64:
        raise ValidationError("reference_id must be at most 64 characters")
    return ref


def _require_kind(kind: str, allowed: set[str]) -> str:
    if kind not in allowed:
        raise ValidationError(f"Ledger kind {kind!r} is not allowed here")
    return kind


def _existing(kind: str, reference_id: str) -> CreditTransaction | None:
    return CreditTransaction.objects.filter(kind=kind, reference_id=reference_id).first()


def _replay(existing: CreditTransaction) -> LedgerResult:
    logger.info(
        "Duplicate ledger mutation ignored",
        extra={
            "kind": existing.kind,
            "reference_id": existing.reference_id,
            "transaction_id": str(existing.id),
        },
    )
    return LedgerResult(
        LedgerOutcome.OK,
        transaction=existing,
        balance=existing.balance_after,
        replayed=True,
    )


def _lock_account(user, *, create: bool) -> StoreCredit | None:
    apply_lock_timeout()
    qs = StoreCredit.objects.select_for_update()

    account = qs.filter(user=user).first()
    if account is not None or not create:
        return account

    # First credit for this user. A concurrent first credit may create the
    # row between our read and insert; the OneToOne constraint settles it.
    try:
        with transaction.atomic():
            StoreCredit.objects.create(user=user)
    except IntegrityError:
        pass

    return qs.get(user=user)


def _append(
    *,
    account: StoreCredit,
    user,
    amount: int,
    kind: str,
    reference_id: str,
    reference_type: str,
    description: str,
    created_by,
    earned_delta: int = 0,
    spent_delta: int = 0,
) -> CreditTransaction:
    before = account.balance
    after = before + amount
    sequence = account.last_sequence + 1

    # Savepoint: a unique-key race rolls back both rows together.
    with transaction.atomic():
        tx = CreditTransaction.objects.create(
            store_credit=account,
            user=user,
            sequence=sequence,
            amount=amount,
            kind=kind,
            reference_id=reference_id,
            reference_type=(reference_type or "").strip()[:32],
            balance_before=before,
            balance_after=after,
            description=(description or "").strip()[:255],
            created_by=created_by,
        )

        account.balance = after
        account.total_earned += earned_delta
        account.total_spent += spent_delta
        account.last_sequence = sequence
        account.save(
            update_fields=[
                "balance",
                "total_earned",
                "total_spent",
                "last_sequence",
                "updated_at",
            ]
        )

    return tx


def _append_or_replay(*, kind: str, reference_id: str, **kwargs) -> tuple[CreditTransaction, bool]:
    try:
        return _append(kind=kind, reference_id=reference_id, **kwargs), False
    except IntegrityError:
        existing = _existing(kind, reference_id)
        if existing is None:
            raise
        return existing, True


# ============================================================
# READS
# ============================================================


def get_balance(user) -> int:
    balance = (
        StoreCredit.objects.filter(user=user).values_list("balance", flat=True).first()
    )
    return int(balance or 0)


def get_account(user) -> StoreCredit | None:
    return StoreCredit.objects.filter(user=user).first()


def account_summary(user) -> dict:
    account = get_account(user)
    if account is None:
        return {"balance": 0, "total_earned": 0, "total_spent": 0, "transaction_count": 0}
    return {
        "balance": account.balance,
        "total_earned": account.total_earned,
        "total_spent": account.total_spent,
        "transaction_count": account.last_sequence,
    }


def list_transactions(user, *, limit: int = DEFAULT_HISTORY_LIMIT):
    return CreditTransaction.objects.filter(user=user).order_by("-sequence")[:limit]


# ============================================================
# WRITES
# ============================================================


def credit(
    *,
    user,
    amount,
    kind: str,
    reference_id,
    reference_type: str = "",
    description: str = "",
    created_by=None,
) -> LedgerResult:
    amount = positive_amount(amount)
    kind = _require_kind(kind, CREDIT_KINDS)
    reference_id = _normalize_reference(reference_id)

    with lock_conflicts(resource=f"store_credit:{user.pk}"), transaction.atomic():
        existing = _existing(kind, reference_id)
        if existing is not None:
            return _replay(existing)

        account = _lock_account(user, create=True)

        # A concurrent duplicate may have committed while we waited for the lock.
        existing = _existing(kind, reference_id)
        if existing is not None:
            return _replay(existing)

        tx, replayed = _append_or_replay(
            account=account,
            user=user,
            amount=amount,
            kind=kind,
            reference_id=reference_id,
            reference_type=reference_type,
            description=description,
            created_by=created_by,
            earned_delta=amount,
        )

    if replayed:
        return _replay(tx)

    logger.info(
        "Store credit added",
        extra={
            "user_id": str(user.pk),
            "kind": kind,
            "amount": amount,
            "reference_id": reference_id,
            "balance_after": tx.balance_after,
        },
    )
    return LedgerResult(LedgerOutcome.OK, transaction=tx, balance=tx.balance_after)


def debit(
    *,
    user,
    amount,
    kind: str = CreditTransaction.KIND_PURCHASE_DEBIT,
    reference_id,
    reference_type: str = "",
    description: str = "",
    created_by=None,
) -> LedgerResult:
    amount = positive_amount(amount)
    kind = _require_kind(kind, DEBIT_KINDS)
    reference_id = _normalize_reference(reference_id)

    with lock_conflicts(resource=f"store_credit:{user.pk}"), transaction.atomic():
        existing = _existing(kind, reference_id)
        if existing is not None:
            return _replay(existing)

        account = _lock_account(user, create=False)

        existing = _existing(kind, reference_id)
        if existing is not None:
            return _replay(existing)

        available = account.balance if account is not None else 0
        if account is None or available < amount:
            logger.info(
                "Debit rejected: insufficient balance",
                extra={
                    "user_id": str(user.pk),
                    "amount": amount,
                    "balance": available,
                    "reference_id": reference_id,
                },
            )
            return LedgerResult(LedgerOutcome.INSUFFICIENT_BALANCE, balance=available)

        tx, replayed = _append_or_replay(
            account=account,
            user=user,
            amount=-amount,
            kind=kind,
            reference_id=reference_id,
            reference_type=reference_type,
            description=description,
            created_by=created_by,
            spent_delta=amount,
        )

    if replayed:
        return _replay(tx)

    logger.info(
        "Store credit spent",
        extra={
            "user_id": str(user.pk),
            "kind": kind,
            "amount": amount,
            "reference_id": reference_id,
            "balance_after": tx.balance_after,
        },
    )
    return LedgerResult(LedgerOutcome.OK, transaction=tx, balance=tx.balance_after)


def claw_back(
    *,
    user,
    amount,
    kind: str = CreditTransaction.KIND_REFERRAL_REVOKED,
    reference_id,
    reference_type: str = "",
    description: str = "",
    created_by=None,
) -> ClawbackResult:
    """
    Take back up to `amount` of previously granted credit.

    The balance is floored at zero: only min(amount, balance) is deducted and
    recorded; the rest is reported as `shortfall`. The deduction reduces
    total_earned (the grant is reversed, not spent).
    """
    amount = positive_amount(amount)
    kind = _require_kind(kind, CLAWBACK_KINDS)
    reference_id = _normalize_reference(reference_id)

    with lock_conflicts(resource=f"store_credit:{user.pk}"), transaction.atomic():
        existing = _existing(kind, reference_id)
        if existing is None:
            account = _lock_account(user, create=False)
            existing = _existing(kind, reference_id)

        if existing is not None:
            deducted = -existing.amount
            return ClawbackResult(
                LedgerOutcome.OK,
                transaction=existing,
                requested=amount,
                deducted=deducted,
                shortfall=max(0, amount - deducted),
                balance=existing.balance_after,
                replayed=True,
            )

        available = account.balance if account is not None else 0
        deducted = min(amount, available)
        shortfall = amount - deducted

        if deducted == 0:
            logger.warning(
                "Claw-back found no balance to deduct",
                extra={"user_id": str(user.pk), "amount": amount, "reference_id": reference_id},
            )
            return ClawbackResult(
                LedgerOutcome.OK,
                requested=amount,
                deducted=0,
                shortfall=shortfall,
                balance=available,
            )

        tx, replayed = _append_or_replay(
            account=account,
            user=user,
            amount=-deducted,
            kind=kind,
            reference_id=reference_id,
            reference_type=reference_type,
            description=description,
            created_by=created_by,
            earned_delta=-deducted,
        )

    if replayed:
        deducted = -tx.amount
        shortfall = max(0, amount - deducted)

    if shortfall:
        logger.warning(
            "Claw-back partially collected",
            extra={
                "user_id": str(user.pk),
                "requested": amount,
                "deducted": deducted,
                "shortfall": shortfall,
                "reference_id": reference_id,
            },
        )

    return ClawbackResult(
        LedgerOutcome.OK,
        transaction=tx,
        requested=amount,
        deducted=deducted,
        shortfall=shortfall,
        balance=tx.balance_after,
        replayed=replayed,
    )


def adjust(*, user, amount, reason: str, created_by, reference_id=None) -> LedgerResult:
    """
    Manual admin adjustment. Positive amount credits, negative debits.
    """
    signed = int(amount)
    if signed == 0:
        raise ValidationError("Adjustment amount must not be zero")

    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Adjustment reason is required")

    reference_id = reference_id or uuid.uuid4().hex
    op = credit if signed > 0 else debit
    return op(
        user=user,
        amount=abs(signed),
        kind=CreditTransaction.KIND_ADMIN_ADJUSTMENT,
        reference_id=reference_id,
        reference_type="admin",
        description=reason,
        created_by=created_by,
    )


# ============================================================
# AUDIT (REPLAY)
# ============================================================


def replay_ledger(account: StoreCredit) -> LedgerAudit:
    """
    Rebuild the balance from the transaction history and compare.

    Checks:
    - sequences are 1..n with no gaps
    - each row's balance_before equals the previous row's balance_after
    - each row's arithmetic (after = before + amount) and after >= 0
    - final replayed balance == StoreCredit.balance
    - StoreCredit.balance == total_earned - total_spent
    - StoreCredit.last_sequence == n
    """
    audit = LedgerAudit(
        store_credit_id=str(account.pk),
        user_id=str(account.user_id) if account.user_id else None,
        stored_balance=account.balance,
    )

    running = 0
    expected_sequence = 1

    rows = account.transactions.order_by("sequence").only(
        "sequence", "amount", "balance_before", "balance_after"
    )
    for tx in rows.iterator():
        audit.transaction_count += 1

        if tx.sequence != expected_sequence:
            audit.problems.append(
                f"sequence gap: expected {expected_sequence}, found {tx.sequence}"
            )
        if tx.balance_before != running:
            audit.problems.append(
                f"#{tx.sequence}: balance_before {tx.balance_before} != replayed {running}"
            )
        if tx.balance_after != tx.balance_before + tx.amount:
            audit.problems.append(f"#{tx.sequence}: arithmetic mismatch")
        if tx.balance_after < 0:
            audit.problems.append(f"#{tx.sequence}: negative balance_after")

        running += tx.amount
        expected_sequence = tx.sequence + 1

    audit.replayed_balance = running

    if running != account.balance:
        audit.problems.append(
            f"replayed balance {running} != stored balance {account.balance}"
        )
    if account.balance != account.total_earned - account.total_spent:
        audit.problems.append("stored balance != total_earned - total_spent")
    if account.last_sequence != audit.transaction_count:
        audit.problems.append(
            f"last_sequence {account.last_sequence} != transaction count {audit.transaction_count}"
        )

    if not audit.ok:
        logger.error(
            "Ledger replay mismatch",
            extra={"store_credit_id": audit.store_credit_id, "problems": audit.problems},
        )
    return audit


def audit_user(user) -> LedgerAudit | None:
    account = get_account(user)
    if account is None:
        return None
    return replay_ledger(account)
