from __future__ import annotations

from enum import StrEnum

from apps.common.domain.errors import InvalidArgumentError


class PaymentMethod(StrEnum):
    CARD = "CARD"
    WALLET = "WALLET"
    BANK_TRANSFER = "BANK_TRANSFER"
    PAY_ON_DELIVERY = "PAY_ON_DELIVERY"


class PaymentStatus(StrEnum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


# Methods settled through an external gateway intent.
GATEWAY_METHODS = frozenset({PaymentMethod.CARD, PaymentMethod.BANK_TRANSFER})


def parse_method(raw: str) -> PaymentMethod:
    try:
        return PaymentMethod((raw or "").strip().upper())
    except ValueError as exc:
        raise InvalidArgumentError(f"Unknown payment method: {raw}", field="method") from exc
