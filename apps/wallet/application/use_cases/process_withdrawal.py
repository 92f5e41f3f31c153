from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone

from apps.common.domain.errors import InvalidArgumentError, InvalidStateTransitionError, NotFoundError
from apps.notifications.application.use_cases.notify_user import NotifyUserCommand, NotifyUserUseCase
from apps.wallet.domain.types import WITHDRAWAL_TRANSITIONS, TransactionReason, WithdrawalStatus
from apps.wallet.models import Withdrawal
from apps.wallet.services.wallet_service import WalletService

logger = logging.getLogger("partsmarket.wallet")


@dataclass(frozen=True)
class ProcessWithdrawalCommand:
    withdrawal_id: int
    status: str
    admin: object


class ProcessWithdrawalUseCase:
    @staticmethod
    @transaction.atomic
    def execute(cmd: ProcessWithdrawalCommand) -> Withdrawal:
        try:
            target = WithdrawalStatus(cmd.status)
        except ValueError as exc:
            raise InvalidArgumentError("Invalid status.", field="status") from exc

        withdrawal = (
            Withdrawal.objects.select_for_update().select_related("wallet__user").filter(id=cmd.withdrawal_id).first()
        )
        if withdrawal is None:
            raise NotFoundError("Withdrawal not found.")
        if target not in WITHDRAWAL_TRANSITIONS[WithdrawalStatus(withdrawal.status)]:
            raise InvalidStateTransitionError(current=withdrawal.status, target=target.value)

        if target == WithdrawalStatus.FAILED:
            WalletService.credit(
                user=withdrawal.wallet.user,
                amount=withdrawal.amount,
                reason=TransactionReason.ADJUSTMENT,
                reference=f"withdrawal:{withdrawal.reference}:reversal",
                description=f"Reversal of failed withdrawal {withdrawal.reference}",
            )

        withdrawal.status = target.value
        withdrawal.processed_by = cmd.admin
        if target in (WithdrawalStatus.CREDITED, WithdrawalStatus.FAILED):
            withdrawal.processed_at = timezone.now()
        withdrawal.save(update_fields=["status", "processed_by", "processed_at"])

        logger.info(
            "withdrawal_processed",
            extra={"withdrawal_id": withdrawal.id, "status": withdrawal.status, "admin_id": cmd.admin.id},
        )
        NotifyUserUseCase.execute(
            NotifyUserCommand(
                user_id=withdrawal.wallet.user_id,
                kind="PAYMENT",
                title="Withdrawal Update",
                message=f"Your withdrawal {withdrawal.reference} is now {withdrawal.status}.",
                link="/wallet",
            )
        )
        return withdrawal
