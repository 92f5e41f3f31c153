"""
Read side for orders.

Nothing here writes. Snapshots are built from the frozen line items stored on
the order; they never join to the product's current price.
"""

from __future__ import annotations

from django.db.models import Q, QuerySet

from apps.accounts.domain.roles import Role
from apps.common.domain.errors import NotFoundError
from apps.orders.domain.snapshots import (
    AddressSnapshot,
    LineItemSnapshot,
    OrderSnapshot,
    TrackingEventSnapshot,
)
from apps.orders.domain.state_machine import OrderStatus
from apps.orders.models import Order

TRACKING_NOT_FOUND_MESSAGE = "No order matches this tracking code."


class OrderQueryService:
    @staticmethod
    def _base() -> QuerySet[Order]:
        return Order.objects.select_related("shipping_address").prefetch_related("items")

    @staticmethod
    def list_for_user(user_id: int) -> QuerySet[Order]:
        return OrderQueryService._base().filter(user_id=user_id).order_by("-created_at", "-id")

    @staticmethod
    def list_for_supplier(supplier_id: int) -> QuerySet[Order]:
        return (
            OrderQueryService._base()
            .filter(items__supplier_id=supplier_id)
            .distinct()
            .order_by("-created_at", "-id")
        )

    @staticmethod
    def get_visible(*, order_id: int, user, role: str) -> Order:
        qs = OrderQueryService._base().filter(id=order_id)
        if role != Role.ADMIN:
            qs = qs.filter(
                Q(user_id=user.id) | Q(items__supplier_id=user.id) | Q(logistics_provider_id=user.id)
            ).distinct()
        order = qs.first()
        if order is None:
            raise NotFoundError("Order not found.")
        return order

    @staticmethod
    def get_by_tracking_code(code: str) -> OrderSnapshot:
        order = (
            OrderQueryService._base()
            .prefetch_related("tracking_events")
            .filter(tracking_code=code)
            .exclude(status=OrderStatus.CANCELLED.value)
            .first()
        )
        if order is None:
            raise NotFoundError(TRACKING_NOT_FOUND_MESSAGE)
        return OrderQueryService.snapshot(order)

    @staticmethod
    def snapshot(order: Order) -> OrderSnapshot:
        address = order.shipping_address
        items = tuple(
            LineItemSnapshot(
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=item.line_total,
            )
            for item in sorted(order.items.all(), key=lambda i: i.id)
        )
        events = tuple(
            TrackingEventSnapshot(
                status=event.status,
                location=event.location,
                message=event.message,
                timestamp=event.created_at,
            )
            for event in sorted(order.tracking_events.all(), key=lambda e: (e.created_at, e.id), reverse=True)
        )
        return OrderSnapshot(
            tracking_code=order.tracking_code or "",
            status=order.status,
            currency=order.currency,
            total_amount=order.total_amount,
            items=items,
            shipping_address=AddressSnapshot(city=address.city, state=address.state, country=address.country)
            if address
            else None,
            events=events,
            created_at=order.created_at,
        )
