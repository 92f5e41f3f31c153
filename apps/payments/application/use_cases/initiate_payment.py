from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, transaction

from apps.accounts.domain.roles import Role
from apps.accounts.services.identity_service import IdentityService
from apps.common.domain.errors import ConflictError, InvalidArgumentError, InvalidStateTransitionError, NotFoundError
from apps.common.domain.money import to_amount
from apps.orders.domain.state_machine import OrderStatus
from apps.orders.models import Order
from apps.payments.application.facade import PaymentGatewayFacade
from apps.payments.domain.ports import PaymentRedirect
from apps.payments.domain.types import GATEWAY_METHODS, PaymentStatus, parse_method
from apps.payments.models import Payment
from apps.payments.services.settlement_service import SettlementService

logger = logging.getLogger("partsmarket.payments")


@dataclass(frozen=True)
class InitiatePaymentCommand:
    user: object
    order_id: int
    amount: object
    method: str
    reference: str = ""
    return_url: str = ""


@dataclass(frozen=True)
class InitiatePaymentResult:
    payment: Payment
    redirect: PaymentRedirect | None


def _ensure_payable(order: Order, amount: Decimal) -> None:
    if order.status != OrderStatus.PENDING.value:
        raise InvalidStateTransitionError(f"Order is {order.status} and cannot take new payments.")
    if SettlementService.confirmed_total(order) + amount > order.total_amount:
        raise InvalidArgumentError("Payment would exceed the order total.", field="amount")


class InitiatePaymentUseCase:
    @staticmethod
    def execute(cmd: InitiatePaymentCommand) -> InitiatePaymentResult:
        method = parse_method(cmd.method)
        amount = to_amount(cmd.amount)

        orders = Order.objects.filter(id=cmd.order_id)
        if IdentityService.role_of(cmd.user) != Role.ADMIN:
            orders = orders.filter(user_id=cmd.user.id)
        order = orders.select_related("user").first()
        if order is None:
            raise NotFoundError("Order not found.")
        _ensure_payable(order, amount)

        # The gateway is called before any row is locked; the order is
        # re-validated under lock before the payment row is written.
        redirect = None
        provider_code = ""
        reference = (cmd.reference or "").strip()
        if method in GATEWAY_METHODS:
            provider_code = getattr(settings, "PAYMENT_GATEWAY_PROVIDER", "dummy")
            gateway = PaymentGatewayFacade.get(provider_code)
            redirect = gateway.create_intent(
                order=order,
                amount=amount,
                currency=order.currency,
                email=order.user.email,
                return_url=cmd.return_url or getattr(settings, "PAYMENT_RETURN_URL", ""),
            )
            reference = redirect.provider_reference or reference

        try:
            with transaction.atomic():
                order = Order.objects.select_for_update().get(id=order.id)
                _ensure_payable(order, amount)
                payment = Payment.objects.create(
                    order=order,
                    user_id=order.user_id,
                    method=method.value,
                    status=PaymentStatus.PENDING.value,
                    amount=amount,
                    reference=reference,
                    provider_code=provider_code,
                )
        except IntegrityError as exc:
            raise ConflictError("A payment with this reference already exists.", field="reference") from exc

        logger.info(
            "payment_initiated",
            extra={
                "payment_id": payment.id,
                "order_id": order.id,
                "method": method.value,
                "amount": str(amount),
                "provider_code": provider_code,
            },
        )
        return InitiatePaymentResult(payment=payment, redirect=redirect)
