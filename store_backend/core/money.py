# core/money.py

"""
MONEY HELPERS (INTEGER MINOR UNITS)

Every amount in this system is an integer number of minor units (cents).
Floats never touch money. Percentages go through Decimal with ROUND_HALF_UP,
applied once per multiplicative step.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from core.exceptions import ValidationError

ONE = Decimal("1")
HUNDRED = Decimal("100")


def minor_units(value, *, field: str = "amount") -> int:
    """
    Coerce an incoming value to an int amount.

    Accepts ints and integral strings/Decimals. Rejects bools, floats with a
    fractional part and anything non-numeric.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be an integer amount in minor units")

    if isinstance(value, int):
        return value

    try:
        dec = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValidationError(f"Invalid {field}: {value!r}") from exc

    if dec != dec.to_integral_value():
        raise ValidationError(f"{field} must not have a fractional part: {value!r}")

    return int(dec)


def positive_amount(value, *, field: str = "amount") -> int:
    amount = minor_units(value, field=field)
    if amount <= 0:
        raise ValidationError(f"{field} must be > 0 (got {amount})")
    return amount


def non_negative(value: int) -> int:
    return value if value > 0 else 0


def percent_of(amount: int, percent) -> int:
    """round_half_up(amount * percent / 100)"""
    try:
        pct = Decimal(str(percent))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValidationError(f"Invalid percentage: {percent!r}") from exc

    raw = Decimal(int(amount)) * pct / HUNDRED
    return int(raw.quantize(ONE, rounding=ROUND_HALF_UP))


def format_minor(amount: int, currency: str = "eur") -> str:
    sign = "-" if amount < 0 else ""
    whole, cents = divmod(abs(int(amount)), 100)
    return f"{sign}{whole}.{cents:02d} {currency.upper()}"
