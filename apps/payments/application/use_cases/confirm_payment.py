from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone

from apps.common.domain.errors import ConflictError, InvalidStateTransitionError, NotFoundError
from apps.notifications.application.use_cases.notify_user import NotifyUserCommand, NotifyUserUseCase
from apps.orders.domain.state_machine import OrderStatus
from apps.orders.models import Order
from apps.orders.services.order_lifecycle_service import OrderLifecycleService
from apps.payments.domain.types import PaymentMethod, PaymentStatus
from apps.payments.models import Payment
from apps.payments.services.settlement_service import SettlementService
from apps.wallet.domain.types import TransactionReason
from apps.wallet.services.wallet_service import WalletService

logger = logging.getLogger("partsmarket.payments")


@dataclass(frozen=True)
class ConfirmPaymentCommand:
    payment_id: int
    actor: object = None


@dataclass(frozen=True)
class ConfirmPaymentResult:
    payment: Payment
    replayed: bool = False


class ConfirmPaymentUseCase:
    """
    Settle a pending payment.

    Safe under at-least-once delivery: a payment that is already SUCCESS is
    returned untouched with ``replayed=True`` and nothing is credited again.
    """

    @staticmethod
    @transaction.atomic
    def execute(cmd: ConfirmPaymentCommand) -> ConfirmPaymentResult:
        payment = Payment.objects.select_for_update().filter(id=cmd.payment_id).first()
        if payment is None:
            raise NotFoundError("Payment not found.")
        if payment.status == PaymentStatus.SUCCESS.value:
            logger.info("payment_confirm_replayed", extra={"payment_id": payment.id})
            return ConfirmPaymentResult(payment=payment, replayed=True)
        if payment.status != PaymentStatus.PENDING.value:
            raise InvalidStateTransitionError(current=payment.status, target=PaymentStatus.SUCCESS.value)

        order = Order.objects.select_for_update().get(id=payment.order_id)
        payment.order = order
        if order.status != OrderStatus.PENDING.value:
            raise InvalidStateTransitionError(f"Order is {order.status} and cannot be settled.")
        settled = SettlementService.confirmed_total(order)
        if settled + payment.amount > order.total_amount:
            raise ConflictError("Payment would exceed the order total.")

        if payment.method == PaymentMethod.WALLET.value:
            WalletService.debit(
                user=payment.user,
                amount=payment.amount,
                reason=TransactionReason.ORDER_PAYMENT,
                payment=payment,
                order=order,
                reference=f"payment:{payment.id}:debit",
                description=f"Payment for order {order.tracking_code or order.id}",
            )

        payment.status = PaymentStatus.SUCCESS.value
        payment.settled_at = timezone.now()
        payment.save(update_fields=["status", "settled_at", "updated_at"])
        SettlementService.credit_suppliers(payment)

        if settled + payment.amount >= order.total_amount:
            OrderLifecycleService.transition(
                order, OrderStatus.PAID, actor=cmd.actor, note=f"Settled by payment {payment.id}"
            )

        NotifyUserUseCase.execute(
            NotifyUserCommand(
                user_id=payment.user_id,
                kind="PAYMENT",
                title="Payment Confirmed",
                message=f"Your payment of {order.currency} {payment.amount} for order "
                f"#{order.tracking_code or order.id} was successful.",
                link=f"/orders/{order.id}",
            )
        )
        logger.info(
            "payment_confirmed",
            extra={
                "payment_id": payment.id,
                "order_id": order.id,
                "method": payment.method,
                "amount": str(payment.amount),
                "order_status": order.status,
            },
        )
        return ConfirmPaymentResult(payment=payment)
