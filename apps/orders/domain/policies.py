from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from apps.accounts.domain.roles import Role
from apps.common.domain.errors import InvalidArgumentError, PermissionDeniedError

from .state_machine import OrderStatus

# Transitions a non-admin actor may request directly. PAID is only reached by
# payment settlement, never by a status write.
SUPPLIER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
}

BUYER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
}

LOGISTICS_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
}

MANUAL_ADMIN_TARGETS = frozenset(
    {OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
)


def ensure_actor_may_transition(
    *,
    role: str,
    is_buyer: bool,
    is_supplier: bool,
    is_logistics: bool,
    current: OrderStatus,
    target: OrderStatus,
) -> None:
    if role == Role.ADMIN:
        if target in MANUAL_ADMIN_TARGETS:
            return
        raise PermissionDeniedError(f"Status {target} is set by payment settlement only.")

    allowed: set[OrderStatus] = set()
    if is_supplier:
        allowed |= SUPPLIER_TRANSITIONS.get(current, frozenset())
    if is_buyer:
        allowed |= BUYER_TRANSITIONS.get(current, frozenset())
    if is_logistics:
        allowed |= LOGISTICS_TRANSITIONS.get(current, frozenset())
    if target not in allowed:
        raise PermissionDeniedError(f"You cannot change this order from {current} to {target}.")


def line_total(unit_price: Decimal, quantity: int) -> Decimal:
    return unit_price * quantity


def compute_total(lines: Iterable[tuple[Decimal, int]]) -> Decimal:
    total = Decimal("0.00")
    for unit_price, quantity in lines:
        total += line_total(unit_price, quantity)
    return total


def validate_quantity(raw) -> int:
    if isinstance(raw, bool):
        raise InvalidArgumentError("Quantity must be a whole number.", field="quantity")
    try:
        quantity = int(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidArgumentError("Quantity must be a whole number.", field="quantity") from exc
    if quantity < 1:
        raise InvalidArgumentError("Quantity must be at least 1.", field="quantity")
    return quantity
