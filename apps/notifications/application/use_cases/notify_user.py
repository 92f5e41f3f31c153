"""
Fire-and-forget user notifications.

Delivery is scheduled with ``transaction.on_commit`` so it only happens once
the domain mutation that triggered it is durable, and any failure while
delivering is logged and dropped: it never rolls back or fails the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.db import transaction

from apps.notifications.domain.types import EmailMessage
from apps.notifications.infrastructure.router import EmailGatewayRouter
from apps.notifications.models import Notification

logger = logging.getLogger("partsmarket.notifications")


@dataclass(frozen=True)
class NotifyUserCommand:
    user_id: int
    kind: str
    title: str
    message: str
    link: str = ""
    send_email: bool = True


class NotifyUserUseCase:
    @staticmethod
    def execute(cmd: NotifyUserCommand) -> None:
        transaction.on_commit(lambda: NotifyUserUseCase.deliver(cmd))

    @staticmethod
    def deliver(cmd: NotifyUserCommand) -> Notification | None:
        try:
            notification = Notification.objects.create(
                user_id=cmd.user_id,
                kind=cmd.kind,
                title=cmd.title,
                message=cmd.message,
                link=cmd.link,
            )
        except Exception:
            logger.exception("notification_store_failed", extra={"user_id": cmd.user_id, "kind": cmd.kind})
            return None

        if cmd.send_email:
            NotifyUserUseCase._send_email(cmd)
        return notification

    @staticmethod
    def _send_email(cmd: NotifyUserCommand) -> None:
        resolved = EmailGatewayRouter.resolve()
        if not resolved.enabled:
            return
        email = get_user_model().objects.filter(id=cmd.user_id).values_list("email", flat=True).first()
        if not email:
            return
        try:
            resolved.gateway.send(message=EmailMessage(to_email=email, subject=cmd.title, text=cmd.message))
        except Exception:
            logger.exception(
                "notification_email_failed",
                extra={"user_id": cmd.user_id, "kind": cmd.kind, "gateway": resolved.gateway.name},
            )
