from __future__ import annotations

import logging

from django.utils import timezone

from apps.notifications.application.use_cases.notify_user import NotifyUserCommand, NotifyUserUseCase
from apps.orders.domain.state_machine import OrderStateMachine, OrderStatus
from apps.orders.models import Order, OrderStatusChange

logger = logging.getLogger("partsmarket.orders")

_TIMESTAMP_FIELDS = {
    OrderStatus.PAID: "paid_at",
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
    OrderStatus.REFUNDED: "refunded_at",
}

_BUYER_MESSAGES = {
    OrderStatus.PAID: ("Payment Received", "Payment for your order #{code} is complete. The seller will ship it soon."),
    OrderStatus.SHIPPED: ("Order Shipped", "Your order #{code} has been shipped and is on its way to you."),
    OrderStatus.DELIVERED: ("Order Delivered", "Your order #{code} has been marked as delivered."),
    OrderStatus.CANCELLED: ("Order Cancelled", "Your order #{code} has been cancelled."),
    OrderStatus.REFUNDED: ("Order Refunded", "Your order #{code} has been refunded to your wallet."),
}

_SUPPLIER_MESSAGES = {
    OrderStatus.PAID: ("New Paid Order", "Order #{code} has been paid. Please prepare it for shipping."),
    OrderStatus.SHIPPED: ("Order Shipped", "Order #{code} has been marked as shipped."),
    OrderStatus.DELIVERED: ("Order Delivered", "Order #{code} has been delivered."),
    OrderStatus.CANCELLED: ("Order Cancelled", "Order #{code} has been cancelled."),
    OrderStatus.REFUNDED: ("Order Refunded", "Order #{code} has been refunded to the buyer."),
}


class OrderLifecycleService:
    """Status writes for an order row the caller has already locked."""

    @staticmethod
    def transition(order: Order, target: str, *, actor=None, note: str = "") -> Order:
        target = OrderStatus(target)
        current = order.status
        OrderStateMachine.ensure_can_transition(current, target)

        order.status = target.value
        update_fields = ["status", "updated_at"]
        timestamp_field = _TIMESTAMP_FIELDS.get(target)
        if timestamp_field:
            setattr(order, timestamp_field, timezone.now())
            update_fields.append(timestamp_field)
        order.save(update_fields=update_fields)

        OrderStatusChange.objects.create(
            order=order,
            from_status=current,
            to_status=target.value,
            actor=actor,
            note=(note or "")[:255],
        )
        logger.info(
            "order_status_changed",
            extra={
                "order_id": order.id,
                "from_status": current,
                "to_status": target.value,
                "actor_id": getattr(actor, "id", None),
            },
        )
        OrderLifecycleService._notify(order, target)
        return order

    @staticmethod
    def _notify(order: Order, target: OrderStatus) -> None:
        code = order.tracking_code or str(order.id)
        title, message = _BUYER_MESSAGES[target]
        NotifyUserUseCase.execute(
            NotifyUserCommand(
                user_id=order.user_id,
                kind="ORDER",
                title=title,
                message=message.format(code=code),
                link=f"/orders/{order.id}",
            )
        )
        title, message = _SUPPLIER_MESSAGES[target]
        supplier_ids = set(order.items.values_list("supplier_id", flat=True))
        for supplier_id in sorted(supplier_ids):
            NotifyUserUseCase.execute(
                NotifyUserCommand(
                    user_id=supplier_id,
                    kind="ORDER",
                    title=title,
                    message=message.format(code=code),
                    link="/dashboard/supplier",
                )
            )
