from __future__ import annotations

import logging
from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.db import transaction

from apps.accounts.domain.roles import Role
from apps.accounts.services.identity_service import IdentityService
from apps.common.domain.errors import (
    InvalidArgumentError,
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
)
from apps.notifications.application.use_cases.notify_user import NotifyUserCommand, NotifyUserUseCase
from apps.orders.domain.state_machine import OrderStatus
from apps.orders.models import Order
from apps.tracking.domain.policies import TrackingStatus
from apps.tracking.services.timeline_service import TrackingTimelineService

logger = logging.getLogger("partsmarket.tracking")


@dataclass(frozen=True)
class AssignLogisticsProviderCommand:
    order_id: int
    provider_id: int
    actor: object


class AssignLogisticsProviderUseCase:
    @staticmethod
    @transaction.atomic
    def execute(cmd: AssignLogisticsProviderCommand) -> Order:
        order = Order.objects.select_for_update().filter(id=cmd.order_id).first()
        if order is None:
            raise NotFoundError("Order not found.")

        is_admin = IdentityService.has_role(cmd.actor, Role.ADMIN)
        is_supplier = order.items.filter(supplier_id=cmd.actor.id).exists()
        if not (is_admin or is_supplier):
            raise PermissionDeniedError("Only the supplier or an admin can assign logistics.")
        if order.status not in (OrderStatus.PAID.value, OrderStatus.SHIPPED.value):
            raise InvalidStateTransitionError(f"Cannot assign logistics to an order in status {order.status}.")

        provider = get_user_model().objects.filter(id=cmd.provider_id).first()
        if provider is None or not IdentityService.has_role(provider, Role.LOGISTICS):
            raise InvalidArgumentError("Logistics provider not found.", field="provider_id")

        order.logistics_provider = provider
        order.save(update_fields=["logistics_provider", "updated_at"])
        display_name = provider.get_full_name() or provider.get_username()
        TrackingTimelineService.append(
            order,
            status=TrackingStatus.PENDING,
            message=f"Logistics provider {display_name} assigned to order",
            recorded_by=cmd.actor,
        )
        logger.info("logistics_assigned", extra={"order_id": order.id, "provider_id": provider.id})

        NotifyUserUseCase.execute(
            NotifyUserCommand(
                user_id=order.user_id,
                kind="DELIVERY",
                title="Logistics Provider Assigned",
                message=f"Your order has been assigned to {display_name}. They will be in touch soon.",
                link=f"/track/{order.tracking_code}",
            )
        )
        NotifyUserUseCase.execute(
            NotifyUserCommand(
                user_id=provider.id,
                kind="DELIVERY",
                title="New Delivery Assigned",
                message=f"You have been assigned order #{order.tracking_code}.",
                link="/dashboard/logistics",
            )
        )
        return order
