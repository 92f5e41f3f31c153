"""
Money movement that follows a payment.

Supplier credits are proportional to each supplier's frozen line-item
subtotal on the order. The platform fee (``MARKETPLACE_PLATFORM_FEE_PERCENT``)
is taken off the payment once; any rounding remainder is given to the largest
share so the credits always add up to the net amount exactly.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db.models import Sum

from apps.common.domain.errors import InvalidArgumentError
from apps.common.domain.money import CENT, quantize
from apps.payments.domain.types import PaymentStatus
from apps.payments.models import Payment
from apps.wallet.domain.types import TransactionKind, TransactionReason
from apps.wallet.models import WalletTransaction
from apps.wallet.services.wallet_service import WalletService

logger = logging.getLogger("partsmarket.payments")

HUNDRED = Decimal("100")


def platform_fee_percent() -> Decimal:
    raw = getattr(settings, "MARKETPLACE_PLATFORM_FEE_PERCENT", "0") or "0"
    fee = Decimal(str(raw))
    if fee < 0 or fee >= HUNDRED:
        raise InvalidArgumentError("MARKETPLACE_PLATFORM_FEE_PERCENT must be in [0, 100).")
    return fee


def split_proportionally(amount: Decimal, weights: dict[int, Decimal]) -> dict[int, Decimal]:
    """Split ``amount`` over ``weights`` in cents; the remainder goes to the largest share."""
    total_weight = sum(weights.values(), Decimal("0"))
    if not weights or total_weight <= 0:
        return {}
    shares = {key: (amount * weight / total_weight).quantize(CENT) for key, weight in weights.items()}
    remainder = amount - sum(shares.values(), Decimal("0"))
    if remainder:
        largest = max(shares, key=lambda key: (shares[key], -key))
        shares[largest] += remainder
    return shares


class SettlementService:
    @staticmethod
    def confirmed_total(order) -> Decimal:
        total = Payment.objects.filter(order=order, status=PaymentStatus.SUCCESS.value).aggregate(
            total=Sum("amount")
        )["total"]
        return total if total is not None else Decimal("0.00")

    @staticmethod
    def supplier_subtotals(order) -> dict[int, Decimal]:
        subtotals: dict[int, Decimal] = defaultdict(lambda: Decimal("0.00"))
        for item in order.items.all():
            subtotals[item.supplier_id] += item.line_total
        return dict(subtotals)

    @staticmethod
    def supplier_shares(order, amount: Decimal) -> dict[int, Decimal]:
        net = quantize(amount * (HUNDRED - platform_fee_percent()) / HUNDRED)
        return {
            supplier_id: share
            for supplier_id, share in split_proportionally(net, SettlementService.supplier_subtotals(order)).items()
            if share > 0
        }

    @staticmethod
    def credit_suppliers(payment: Payment) -> list[WalletTransaction]:
        order = payment.order
        shares = SettlementService.supplier_shares(order, payment.amount)
        suppliers = get_user_model().objects.in_bulk(list(shares))
        entries = []
        for supplier_id in sorted(shares):
            entries.append(
                WalletService.credit(
                    user=suppliers[supplier_id],
                    amount=shares[supplier_id],
                    reason=TransactionReason.ORDER_PAYMENT,
                    payment=payment,
                    order=order,
                    reference=f"payment:{payment.id}:supplier:{supplier_id}",
                    description=f"Sale on order {order.tracking_code or order.id}",
                )
            )
        logger.info(
            "suppliers_credited",
            extra={"payment_id": payment.id, "order_id": order.id, "suppliers": len(entries)},
        )
        return entries

    @staticmethod
    def reverse(order) -> list[WalletTransaction]:
        """
        Take back what suppliers were paid for ``order`` and refund the payer.

        Runs inside the caller's transaction: an ``InsufficientFundsError`` on
        any supplier debit leaves nothing applied.
        """
        credited = (
            WalletTransaction.objects.filter(
                order=order,
                kind=TransactionKind.CREDIT.value,
                reason=TransactionReason.ORDER_PAYMENT.value,
            )
            .values("wallet__user_id")
            .annotate(total=Sum("amount"))
            .order_by("wallet__user_id")
        )
        supplier_totals = {row["wallet__user_id"]: row["total"] for row in credited if row["total"] > 0}
        users = get_user_model().objects.in_bulk([*supplier_totals, order.user_id])

        entries = []
        label = order.tracking_code or order.id
        for supplier_id, amount in supplier_totals.items():
            entries.append(
                WalletService.debit(
                    user=users[supplier_id],
                    amount=amount,
                    reason=TransactionReason.REFUND,
                    order=order,
                    reference=f"order:{order.id}:refund:supplier:{supplier_id}",
                    description=f"Refund of order {label}",
                )
            )

        refund = SettlementService.confirmed_total(order)
        if refund > 0:
            entries.append(
                WalletService.credit(
                    user=users[order.user_id],
                    amount=refund,
                    reason=TransactionReason.REFUND,
                    order=order,
                    reference=f"order:{order.id}:refund:payer",
                    description=f"Refund of order {label}",
                )
            )
        logger.info(
            "settlement_reversed",
            extra={"order_id": order.id, "refund": str(refund), "suppliers": len(supplier_totals)},
        )
        return entries
