# core/locking.py

"""
ROW LOCK DISCIPLINE

Every mutation of a shared row (StoreCredit, GiftCard, ReferralRelationship,
PromotionCode) goes through:

    with transaction.atomic(), lock_conflicts(resource=...):
        apply_lock_timeout()
        row = Model.objects.select_for_update().get(...)

GUARANTEES:
- Lock waits are bounded by STORE_CREDIT["LOCK_TIMEOUT_MS"] (PostgreSQL
  `SET LOCAL lock_timeout`, scoped to the current transaction).
- A timeout, deadlock or serialization failure surfaces as the retryable
  ConcurrencyConflictError instead of a raw database error.

SQLite (dev/tests) has no row locks: writers are serialized by the database
file lock and select_for_update() is a no-op there.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager

from django.db import DEFAULT_DB_ALIAS, OperationalError, connections

from core.conf import store_credit_setting
from core.exceptions import ConcurrencyConflictError

logger = logging.getLogger(__name__)

# lock_not_available, deadlock_detected, serialization_failure
CONFLICT_SQLSTATES = {"55P03", "40P01", "40001"}


def apply_lock_timeout(*, using: str = DEFAULT_DB_ALIAS) -> None:
    """Must be called inside transaction.atomic()."""
    connection = connections[using]
    if connection.vendor != "postgresql":
        return

    timeout_ms = int(store_credit_setting("LOCK_TIMEOUT_MS"))
    with connection.cursor() as cursor:
        cursor.execute(f"SET LOCAL lock_timeout = {timeout_ms}")


def is_lock_conflict(exc: OperationalError) -> bool:
    cause = exc.__cause__
    sqlstate = getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)
    if sqlstate in CONFLICT_SQLSTATES:
        return True
    return "database is locked" in str(exc).lower()


@contextmanager
def lock_conflicts(*, resource: str):
    try:
        yield
    except OperationalError as exc:
        if not is_lock_conflict(exc):
            raise
        logger.warning("Row lock conflict", extra={"resource": resource})
        raise ConcurrencyConflictError(f"Lock wait timed out on {resource}") from exc


def supports_row_locks(*, using: str = DEFAULT_DB_ALIAS) -> bool:
    return bool(connections[using].features.has_select_for_update)
