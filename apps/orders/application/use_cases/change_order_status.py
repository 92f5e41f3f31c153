from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone

from apps.accounts.domain.roles import Role
from apps.accounts.services.identity_service import IdentityService
from apps.catalog.services.inventory_service import InventoryService
from apps.common.domain.errors import NotFoundError
from apps.orders.domain.policies import ensure_actor_may_transition
from apps.orders.domain.state_machine import OrderStateMachine, OrderStatus, parse_status
from apps.orders.models import Order
from apps.orders.services.order_lifecycle_service import OrderLifecycleService
from apps.payments.domain.types import PaymentStatus
from apps.payments.models import Payment
from apps.payments.services.settlement_service import SettlementService
from apps.tracking.domain.policies import TrackingStatus
from apps.tracking.services.timeline_service import TrackingTimelineService

logger = logging.getLogger("partsmarket.orders")

_TIMELINE = {
    OrderStatus.SHIPPED: (TrackingStatus.IN_TRANSIT, "Order shipped"),
    OrderStatus.DELIVERED: (TrackingStatus.DELIVERED, "Order delivered"),
}


@dataclass(frozen=True)
class ChangeOrderStatusCommand:
    order_id: int
    actor: object
    status: str
    note: str = ""


class ChangeOrderStatusUseCase:
    @staticmethod
    @transaction.atomic
    def execute(cmd: ChangeOrderStatusCommand) -> Order:
        target = parse_status(cmd.status)
        order = Order.objects.select_for_update().filter(id=cmd.order_id).first()
        if order is None:
            raise NotFoundError("Order not found.")

        role = IdentityService.role_of(cmd.actor)
        is_buyer = order.user_id == cmd.actor.id
        is_supplier = order.items.filter(supplier_id=cmd.actor.id).exists()
        is_logistics = order.logistics_provider_id == cmd.actor.id
        if role != Role.ADMIN and not (is_buyer or is_supplier or is_logistics):
            raise NotFoundError("Order not found.")

        current = OrderStatus(order.status)
        OrderStateMachine.ensure_can_transition(current, target)
        ensure_actor_may_transition(
            role=role,
            is_buyer=is_buyer,
            is_supplier=is_supplier,
            is_logistics=is_logistics,
            current=current,
            target=target,
        )

        if target == OrderStatus.CANCELLED:
            for product_id, quantity in order.items.values_list("product_id", "quantity"):
                InventoryService.release(product_id, quantity)
            Payment.objects.filter(order=order, status=PaymentStatus.PENDING.value).update(
                status=PaymentStatus.FAILED.value,
                failure_reason="Order cancelled.",
                updated_at=timezone.now(),
            )
        # A PENDING order can already hold partial SUCCESS payments.
        if target == OrderStatus.REFUNDED or (
            target == OrderStatus.CANCELLED and SettlementService.confirmed_total(order) > 0
        ):
            SettlementService.reverse(order)

        OrderLifecycleService.transition(order, target, actor=cmd.actor, note=cmd.note)
        if target in _TIMELINE:
            tracking_status, message = _TIMELINE[target]
            TrackingTimelineService.append(order, status=tracking_status, message=message, recorded_by=cmd.actor)

        logger.info(
            "order_status_requested",
            extra={"order_id": order.id, "actor_id": cmd.actor.id, "role": role, "to_status": target.value},
        )
        return order
