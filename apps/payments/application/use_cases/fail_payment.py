from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction

from apps.common.domain.errors import InvalidStateTransitionError, NotFoundError
from apps.notifications.application.use_cases.notify_user import NotifyUserCommand, NotifyUserUseCase
from apps.payments.domain.types import PaymentStatus
from apps.payments.models import Payment

logger = logging.getLogger("partsmarket.payments")


@dataclass(frozen=True)
class FailPaymentCommand:
    payment_id: int
    reason: str = ""
    actor: object = None


class FailPaymentUseCase:
    @staticmethod
    @transaction.atomic
    def execute(cmd: FailPaymentCommand) -> Payment:
        payment = Payment.objects.select_for_update().select_related("order").filter(id=cmd.payment_id).first()
        if payment is None:
            raise NotFoundError("Payment not found.")
        if payment.status != PaymentStatus.PENDING.value:
            raise InvalidStateTransitionError(current=payment.status, target=PaymentStatus.FAILED.value)

        payment.status = PaymentStatus.FAILED.value
        payment.failure_reason = (cmd.reason or "")[:255]
        payment.save(update_fields=["status", "failure_reason", "updated_at"])

        order = payment.order
        NotifyUserUseCase.execute(
            NotifyUserCommand(
                user_id=payment.user_id,
                kind="PAYMENT",
                title="Payment Failed",
                message=f"Your payment for order #{order.tracking_code or order.id} did not go through.",
                link=f"/orders/{order.id}",
            )
        )
        logger.info(
            "payment_failed",
            extra={"payment_id": payment.id, "order_id": order.id, "reason": payment.failure_reason},
        )
        return payment
