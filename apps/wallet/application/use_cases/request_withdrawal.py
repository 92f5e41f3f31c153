from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import uuid4

from django.conf import settings
from django.db import transaction

from apps.common.domain.money import to_amount
from apps.notifications.application.use_cases.notify_user import NotifyUserCommand, NotifyUserUseCase
from apps.wallet.domain.errors import WithdrawalValidationError
from apps.wallet.domain.types import TransactionReason
from apps.wallet.models import Withdrawal
from apps.wallet.services.wallet_service import WalletService

logger = logging.getLogger("partsmarket.wallet")


@dataclass(frozen=True)
class RequestWithdrawalCommand:
    user: object
    amount: object
    bank_code: str
    account_number: str
    account_name: str = ""
    bank_name: str = ""


class RequestWithdrawalUseCase:
    @staticmethod
    def _validate(cmd: RequestWithdrawalCommand) -> Decimal:
        amount = to_amount(cmd.amount)
        minimum = Decimal(str(getattr(settings, "WALLET_MIN_WITHDRAWAL", "1000")))
        if amount < minimum:
            raise WithdrawalValidationError(f"Minimum withdrawal is {minimum}.", field="amount")
        if not (cmd.bank_code or "").strip():
            raise WithdrawalValidationError("Bank code is required.", field="bank_code")
        account_number = (cmd.account_number or "").strip()
        if len(account_number) < 10 or not account_number.isdigit():
            raise WithdrawalValidationError("Invalid account number.", field="account_number")
        return amount

    @staticmethod
    @transaction.atomic
    def execute(cmd: RequestWithdrawalCommand) -> Withdrawal:
        amount = RequestWithdrawalUseCase._validate(cmd)
        wallet = WalletService.get_or_create_wallet(cmd.user)
        reference = f"WD-{uuid4().hex[:16].upper()}"

        WalletService.debit(
            user=cmd.user,
            amount=amount,
            reason=TransactionReason.PAYOUT,
            reference=f"withdrawal:{reference}",
            description=f"Withdrawal to bank ({cmd.account_number.strip()[-4:]})",
        )
        withdrawal = Withdrawal.objects.create(
            wallet=wallet,
            amount=amount,
            bank_code=cmd.bank_code.strip(),
            bank_name=(cmd.bank_name or "").strip(),
            account_number=cmd.account_number.strip(),
            account_name=(cmd.account_name or "").strip(),
            reference=reference,
        )
        logger.info(
            "withdrawal_requested",
            extra={"withdrawal_id": withdrawal.id, "wallet_id": wallet.id, "amount": str(amount)},
        )
        NotifyUserUseCase.execute(
            NotifyUserCommand(
                user_id=cmd.user.id,
                kind="PAYMENT",
                title="Withdrawal Requested",
                message=f"Your withdrawal of {wallet.currency} {amount} has been initiated. Reference: {reference}",
                link="/wallet",
            )
        )
        return withdrawal
