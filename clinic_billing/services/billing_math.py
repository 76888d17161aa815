# clinic_billing/services/billing_math.py
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from clinic_billing.services.billing_errors import InvalidAmount

Q2 = Decimal("0.01")

# largest value a Numeric(12, 2) money column holds
MAX_AMOUNT = Decimal("9999999999.99")


def as_decimal(x: Any) -> Optional[Decimal]:
    """Finite Decimal, or None for blank / non-numeric / NaN / inf input."""
    if x is None or isinstance(x, bool):
        return None
    try:
        v = x if isinstance(x, Decimal) else Decimal(str(x).strip())
    except (InvalidOperation, ValueError):
        return None
    return v if v.is_finite() else None


def D(x: Any) -> Decimal:
    """Lenient Decimal: blank, NaN, garbage and unroundable values count as 0."""
    v = as_decimal(x)
    if v is None:
        return Decimal("0")
    try:
        v.quantize(Q2, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return Decimal("0")
    return v


def money2(x: Any) -> Decimal:
    return D(x).quantize(Q2, rounding=ROUND_HALF_UP)


def check_amount_limit(v: Decimal, *, field: str = "amount") -> Decimal:
    if v > MAX_AMOUNT:
        raise InvalidAmount(f"{field} cannot exceed {MAX_AMOUNT}",
                            details={field: str(v)})
    return v


def parse_amount(x: Any, *, field: str = "amount") -> Decimal:
    """
    Strict money parse for amounts an operator is paying.
    Non-numeric, NaN/inf, negative and out-of-range values raise InvalidAmount.
    """
    v = as_decimal(x)
    if v is None:
        raise InvalidAmount(f"{field} must be a number", details={field: str(x)})
    if v < 0:
        raise InvalidAmount(f"{field} cannot be negative",
                            details={field: str(v)})
    check_amount_limit(v, field=field)
    return v.quantize(Q2, rounding=ROUND_HALF_UP)
