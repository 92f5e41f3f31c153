from __future__ import annotations

from enum import StrEnum


class TransactionKind(StrEnum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class TransactionReason(StrEnum):
    ORDER_PAYMENT = "ORDER_PAYMENT"
    REFUND = "REFUND"
    PAYOUT = "PAYOUT"
    ADJUSTMENT = "ADJUSTMENT"


class WithdrawalStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    CREDITED = "credited"
    FAILED = "failed"


WITHDRAWAL_TRANSITIONS: dict[str, frozenset[str]] = {
    WithdrawalStatus.PENDING: frozenset({WithdrawalStatus.PROCESSING, WithdrawalStatus.CREDITED, WithdrawalStatus.FAILED}),
    WithdrawalStatus.PROCESSING: frozenset({WithdrawalStatus.CREDITED, WithdrawalStatus.FAILED}),
    WithdrawalStatus.CREDITED: frozenset(),
    WithdrawalStatus.FAILED: frozenset(),
}
