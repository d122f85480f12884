# core/exceptions.py

"""
STORE CREDIT DOMAIN ERRORS

Single error taxonomy shared by every component (ledger, gift cards,
referrals, promotions, pricing).

RULES:
- Expected business outcomes (insufficient balance, already redeemed, ...)
  are RETURNED as result objects by the services. These classes are raised
  only when a caller asks for it (result.raise_for_outcome()), for
  infrastructure failures (lock timeouts) and for programming errors
  (bad amounts, exhausted code space).
- Every class has a stable machine `code` and a generic, translatable public
  message. Internal detail (row ids, codes) goes into the exception text and
  the logs, never into the API response.
"""

from __future__ import annotations

from django.utils.translation import gettext_lazy as _


# ============================================================
# BASE
# ============================================================


class StoreCreditError(Exception):
    code = "STORE_CREDIT_ERROR"
    public_message = _("The request could not be completed.")
    http_status = 400
    retryable = False

    def __init__(self, detail: str = ""):
        self.detail = detail or str(self.public_message)
        super().__init__(self.detail)


# ============================================================
# CALLER ERRORS
# ============================================================


class ValidationError(StoreCreditError):
    code = "VALIDATION_ERROR"
    public_message = _("The request contains invalid values.")


class NotFoundError(StoreCreditError):
    code = "NOT_FOUND"
    public_message = _("The requested item was not found.")
    http_status = 404


class AlreadyUsedError(StoreCreditError):
    code = "ALREADY_USED"
    public_message = _("This code has already been used.")
    http_status = 409


class InsufficientBalanceError(StoreCreditError):
    code = "INSUFFICIENT_BALANCE"
    public_message = _("Insufficient store credit balance.")
    http_status = 409


class RateLimitExceededError(StoreCreditError):
    code = "RATE_LIMIT_EXCEEDED"
    public_message = _("Too many attempts. Please try again later.")
    http_status = 429


class ExpiredError(StoreCreditError):
    code = "EXPIRED"
    public_message = _("This code has expired.")
    http_status = 410


class InactiveError(StoreCreditError):
    code = "INACTIVE"
    public_message = _("This code is no longer active.")
    http_status = 410


class OutsideWindowError(StoreCreditError):
    code = "OUTSIDE_WINDOW"
    public_message = _("The allowed time window for this action has passed.")
    http_status = 409


class SelfReferralError(StoreCreditError):
    code = "SELF_REFERRAL"
    public_message = _("You cannot use your own referral code.")


class AlreadyReferredError(StoreCreditError):
    code = "ALREADY_REFERRED"
    public_message = _("This account has already been referred.")
    http_status = 409


# ============================================================
# INFRASTRUCTURE / PROGRAMMING ERRORS
# ============================================================


class ConcurrencyConflictError(StoreCreditError):
    """Lock wait exceeded the configured timeout. Safe to retry."""

    code = "CONCURRENCY_CONFLICT"
    public_message = _("The resource is busy. Please retry.")
    http_status = 409
    retryable = True


class CodeSpaceExhausted(StoreCreditError):
    code = "CODE_SPACE_EXHAUSTED"
    public_message = _("Could not generate a unique code.")
    http_status = 503


class PricingInvariantError(StoreCreditError):
    """The composed charge violated a postcondition. Always a bug."""

    code = "PRICING_INVARIANT"
    public_message = _("The order total could not be computed.")
    http_status = 500
