from __future__ import annotations

import logging
from dataclasses import dataclass

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
from apps.tracking.models import TrackingEvent
from apps.tracking.services.timeline_service import TrackingTimelineService

logger = logging.getLogger("partsmarket.tracking")

_TRACKABLE_STATUSES = {OrderStatus.PAID.value, OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value}


@dataclass(frozen=True)
class RecordTrackingEventCommand:
    order_id: int
    actor: object
    status: str
    message: str
    location: str = ""


class RecordTrackingEventUseCase:
    @staticmethod
    @transaction.atomic
    def execute(cmd: RecordTrackingEventCommand) -> TrackingEvent:
        message = (cmd.message or "").strip()
        if not message:
            raise InvalidArgumentError("message is required", field="message")
        try:
            status = TrackingStatus((cmd.status or "").strip().upper())
        except ValueError as exc:
            raise InvalidArgumentError("Invalid tracking status.", field="status") from exc

        order = Order.objects.select_for_update().filter(id=cmd.order_id).first()
        if order is None:
            raise NotFoundError("Order not found.")

        is_admin = IdentityService.has_role(cmd.actor, Role.ADMIN)
        if not is_admin and order.logistics_provider_id != cmd.actor.id:
            raise PermissionDeniedError("Only the assigned logistics provider can update tracking.")
        if order.status not in _TRACKABLE_STATUSES:
            raise InvalidStateTransitionError(f"Orders in status {order.status} cannot be tracked.")

        event = TrackingTimelineService.append(
            order,
            status=status,
            message=message,
            location=cmd.location,
            recorded_by=cmd.actor,
        )
        logger.info(
            "tracking_event_recorded",
            extra={"order_id": order.id, "tracking_status": status.value, "actor_id": cmd.actor.id},
        )
        NotifyUserUseCase.execute(
            NotifyUserCommand(
                user_id=order.user_id,
                kind="DELIVERY",
                title="Delivery Update",
                message=f"Order #{order.tracking_code}: {message}",
                link=f"/track/{order.tracking_code}",
                send_email=False,
            )
        )
        return event
