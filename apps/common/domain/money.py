from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .errors import InvalidArgumentError

CENT = Decimal("0.01")


def to_amount(raw, *, field: str = "amount") -> Decimal:
    """Parse a positive money amount with two decimal places."""
    if isinstance(raw, bool) or raw is None:
        raise InvalidArgumentError("Amount is required.", field=field)
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidArgumentError("Amount must be a number.", field=field) from exc
    if not value.is_finite():
        raise InvalidArgumentError("Amount must be a number.", field=field)
    if value != value.quantize(CENT):
        raise InvalidArgumentError("Amount supports at most two decimal places.", field=field)
    if value <= 0:
        raise InvalidArgumentError("Amount must be positive.", field=field)
    return value.quantize(CENT)


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
