from __future__ import annotations

from apps.common.domain.errors import InvalidArgumentError, MarketplaceError


class LedgerImmutableError(MarketplaceError):
    kind = "ledger_immutable"
    default_message = "Wallet transactions cannot be modified or deleted."


class WithdrawalValidationError(InvalidArgumentError):
    pass
