from __future__ import annotations

from enum import StrEnum

from apps.common.domain.errors import InvalidArgumentError, InvalidStateTransitionError


class OrderStatus(StrEnum):
    PENDING = "PENDING"
    PAID = "PAID"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}


def parse_status(raw: str) -> OrderStatus:
    try:
        return OrderStatus((raw or "").strip().upper())
    except ValueError as exc:
        raise InvalidArgumentError(f"Unknown order status: {raw}", field="status") from exc


class OrderStateMachine:
    """
    PENDING -> PAID -> SHIPPED -> DELIVERED is the happy path.

    PENDING and PAID may be cancelled, DELIVERED may be refunded. CANCELLED and
    REFUNDED accept nothing further; DELIVERED accepts only the refund.
    """

    @staticmethod
    def can_transition(current: str, target: str) -> bool:
        return OrderStatus(target) in ALLOWED_TRANSITIONS[OrderStatus(current)]

    @staticmethod
    def ensure_can_transition(current: str, target: str) -> None:
        if not OrderStateMachine.can_transition(current, target):
            raise InvalidStateTransitionError(current=str(current), target=str(target))

    @staticmethod
    def allowed_from(current: str) -> list[str]:
        return sorted(s.value for s in ALLOWED_TRANSITIONS[OrderStatus(current)])
