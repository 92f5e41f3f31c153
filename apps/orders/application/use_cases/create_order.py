from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from django.conf import settings
from django.db import transaction

from apps.catalog.models import Product
from apps.catalog.services.inventory_service import InventoryService
from apps.common.domain.errors import InvalidArgumentError, NotFoundError
from apps.customers.models import Address
from apps.notifications.application.use_cases.notify_user import NotifyUserCommand, NotifyUserUseCase
from apps.orders.domain.policies import compute_total, validate_quantity
from apps.orders.domain.state_machine import OrderStatus
from apps.orders.models import Order, OrderItem, OrderStatusChange
from apps.tracking.application.use_cases.assign_tracking_code import (
    AssignTrackingCodeCommand,
    AssignTrackingCodeUseCase,
)
from apps.tracking.domain.policies import TrackingStatus
from apps.tracking.services.timeline_service import TrackingTimelineService

logger = logging.getLogger("partsmarket.orders")


@dataclass(frozen=True)
class OrderLineInput:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class CreateOrderCommand:
    user: object
    address_id: int
    items: Sequence[OrderLineInput]
    delivery_notes: str = ""
    tracking_code_generator: Callable[[], str] | None = None


def _merge_lines(items: Sequence[OrderLineInput]) -> dict[int, int]:
    merged: dict[int, int] = {}
    for line in items:
        quantity = validate_quantity(line.quantity)
        merged[line.product_id] = merged.get(line.product_id, 0) + quantity
    return merged


class CreateOrderUseCase:
    """
    Checkout: turn a basket into a PENDING order.

    Unit prices and product names are copied onto the line items here and are
    never read back from the catalog afterwards.
    """

    @staticmethod
    @transaction.atomic
    def execute(cmd: CreateOrderCommand) -> Order:
        if not cmd.items:
            raise InvalidArgumentError("Order must contain at least one item.", field="items")
        quantities = _merge_lines(cmd.items)

        address = Address.objects.filter(id=cmd.address_id, user_id=cmd.user.id).first()
        if address is None:
            raise NotFoundError("Address not found.")

        products = Product.objects.select_for_update().filter(id__in=list(quantities), is_active=True).in_bulk()
        missing = sorted(set(quantities) - set(products))
        if missing:
            raise InvalidArgumentError(f"Product {missing[0]} is not available.", field="items")

        for product_id in sorted(quantities):
            InventoryService.reserve(products[product_id], quantities[product_id])

        total = compute_total((products[pid].price, qty) for pid, qty in quantities.items())
        order = Order.objects.create(
            user=cmd.user,
            status=OrderStatus.PENDING.value,
            total_amount=total,
            currency=getattr(settings, "MARKETPLACE_CURRENCY", "NGN"),
            shipping_address=address,
            delivery_notes=(cmd.delivery_notes or "").strip(),
        )
        OrderItem.objects.bulk_create(
            [
                OrderItem(
                    order=order,
                    product=products[product_id],
                    supplier_id=products[product_id].supplier_id,
                    product_name=products[product_id].name,
                    quantity=quantity,
                    unit_price=products[product_id].price,
                )
                for product_id, quantity in sorted(quantities.items())
            ]
        )

        AssignTrackingCodeUseCase.execute(
            AssignTrackingCodeCommand(order=order, generator=cmd.tracking_code_generator)
        )
        OrderStatusChange.objects.create(
            order=order, from_status="", to_status=OrderStatus.PENDING.value, actor=cmd.user, note="Order placed"
        )
        TrackingTimelineService.append(order, status=TrackingStatus.PENDING, message="Order placed")

        logger.info(
            "order_created",
            extra={"order_id": order.id, "user_id": cmd.user.id, "total": str(total), "lines": len(quantities)},
        )
        NotifyUserUseCase.execute(
            NotifyUserCommand(
                user_id=cmd.user.id,
                kind="ORDER",
                title="Order Placed",
                message=f"Your order #{order.tracking_code} of {order.currency} {total} has been placed.",
                link=f"/orders/{order.id}",
            )
        )
        for supplier_id in sorted({p.supplier_id for p in products.values()}):
            NotifyUserUseCase.execute(
                NotifyUserCommand(
                    user_id=supplier_id,
                    kind="ORDER",
                    title="New Order",
                    message=f"You have a new order #{order.tracking_code}.",
                    link="/dashboard/supplier",
                )
            )
        return order
