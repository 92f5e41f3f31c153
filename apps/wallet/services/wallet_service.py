"""
Wallet accounting.

A wallet balance is a cached projection of its ledger: it only ever moves
together with a ``WalletTransaction`` row, inside one database transaction.
Debits use a single conditional UPDATE (``balance >= amount``) so two
concurrent debits cannot both pass a stale balance check.

Every mutation may carry a ``reference``. The ledger is unique on
``(wallet, reference)``, so replaying a mutation after a timeout returns the
row that already committed instead of moving money twice.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F, Sum
from django.utils import timezone

from apps.common.domain.errors import InsufficientFundsError, InvalidArgumentError
from apps.common.domain.money import to_amount
from apps.wallet.domain.types import TransactionKind, TransactionReason
from apps.wallet.models import Wallet, WalletTransaction

logger = logging.getLogger("partsmarket.wallet")


def _validate_reason(reason) -> str:
    try:
        return TransactionReason(reason).value
    except ValueError as exc:
        raise InvalidArgumentError(f"Unknown wallet transaction reason: {reason}", field="reason") from exc


class WalletService:
    @staticmethod
    def get_or_create_wallet(user, currency: str | None = None) -> Wallet:
        wallet, created = Wallet.objects.get_or_create(
            user=user,
            defaults={"currency": currency or getattr(settings, "MARKETPLACE_CURRENCY", "NGN")},
        )
        if created:
            logger.info("wallet_created", extra={"user_id": user.id, "wallet_id": wallet.id})
        return wallet

    @staticmethod
    def find_committed(wallet: Wallet, reference: str) -> WalletTransaction | None:
        if not reference:
            return None
        return WalletTransaction.objects.filter(wallet=wallet, reference=reference).first()

    @staticmethod
    def credit(
        *,
        user,
        amount,
        reason: str,
        payment=None,
        order=None,
        reference: str = "",
        description: str = "",
    ) -> WalletTransaction:
        return WalletService._apply(
            kind=TransactionKind.CREDIT,
            user=user,
            amount=amount,
            reason=reason,
            payment=payment,
            order=order,
            reference=reference,
            description=description,
        )

    @staticmethod
    def debit(
        *,
        user,
        amount,
        reason: str,
        payment=None,
        order=None,
        reference: str = "",
        description: str = "",
    ) -> WalletTransaction:
        return WalletService._apply(
            kind=TransactionKind.DEBIT,
            user=user,
            amount=amount,
            reason=reason,
            payment=payment,
            order=order,
            reference=reference,
            description=description,
        )

    @staticmethod
    @transaction.atomic
    def _apply(
        *,
        kind: TransactionKind,
        user,
        amount,
        reason: str,
        payment,
        order,
        reference: str,
        description: str,
    ) -> WalletTransaction:
        value = to_amount(amount)
        reason = _validate_reason(reason)
        reference = (reference or "").strip()
        wallet = WalletService.get_or_create_wallet(user)

        existing = WalletService.find_committed(wallet, reference)
        if existing is not None:
            logger.info(
                "wallet_mutation_replayed",
                extra={"wallet_id": wallet.id, "reference": reference, "transaction_id": existing.id},
            )
            return existing

        try:
            with transaction.atomic():
                balance_rows = Wallet.objects.filter(pk=wallet.pk)
                if kind == TransactionKind.DEBIT:
                    updated = balance_rows.filter(balance__gte=value).update(
                        balance=F("balance") - value, updated_at=timezone.now()
                    )
                else:
                    updated = balance_rows.update(balance=F("balance") + value, updated_at=timezone.now())
                if not updated:
                    logger.info(
                        "wallet_debit_rejected",
                        extra={"wallet_id": wallet.id, "amount": str(value), "reason": reason},
                    )
                    raise InsufficientFundsError()

                entry = WalletTransaction.objects.create(
                    wallet=wallet,
                    kind=kind.value,
                    amount=value if kind == TransactionKind.CREDIT else -value,
                    reason=reason,
                    payment=payment,
                    order=order,
                    reference=reference,
                    description=description[:255],
                )
        except IntegrityError:
            existing = WalletService.find_committed(wallet, reference)
            if existing is None:
                raise
            return existing

        logger.info(
            "wallet_mutation_applied",
            extra={
                "wallet_id": wallet.id,
                "transaction_id": entry.id,
                "kind": entry.kind,
                "amount": str(entry.amount),
                "reason": reason,
                "reference": reference,
            },
        )
        return entry

    @staticmethod
    def recompute_balance(wallet: Wallet) -> Decimal:
        total = WalletTransaction.objects.filter(wallet=wallet).aggregate(total=Sum("amount"))["total"]
        return total if total is not None else Decimal("0.00")

    @staticmethod
    def balance_matches_ledger(wallet: Wallet) -> bool:
        wallet.refresh_from_db(fields=["balance"])
        return wallet.balance == WalletService.recompute_balance(wallet)

    @staticmethod
    def recent_transactions(wallet: Wallet, *, limit: int | None = None):
        limit = limit or getattr(settings, "WALLET_TRANSACTIONS_PAGE_SIZE", 50)
        return WalletTransaction.objects.filter(wallet=wallet).order_by("-created_at", "-id")[:limit]
