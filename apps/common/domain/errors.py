from __future__ import annotations


class MarketplaceError(ValueError):
    kind = "error"
    default_message = "Request failed."

    def __init__(self, message: str | None = None, *, field: str | None = None):
        super().__init__(message or self.default_message)
        self.field = field


class UnauthorizedError(MarketplaceError):
    kind = "unauthorized"
    default_message = "Authentication required."


class NotFoundError(MarketplaceError):
    kind = "not_found"
    default_message = "Not found."


class InvalidArgumentError(MarketplaceError):
    kind = "invalid_argument"
    default_message = "Invalid input."


class InvalidStateTransitionError(MarketplaceError):
    kind = "invalid_state_transition"
    default_message = "Transition is not allowed."

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        target: str | None = None,
        field: str | None = None,
    ):
        if message is None and current and target:
            message = f"Cannot change status from {current} to {target}."
        super().__init__(message, field=field)
        self.current = current
        self.target = target


class InsufficientFundsError(MarketplaceError):
    kind = "insufficient_funds"
    default_message = "Insufficient wallet balance."


class ConflictError(MarketplaceError):
    kind = "conflict"
    default_message = "Conflicting request."


class UpstreamUnavailableError(MarketplaceError):
    kind = "upstream_unavailable"
    default_message = "A dependent service is unavailable. Try again later."

    retryable = True


class PermissionDeniedError(MarketplaceError):
    kind = "forbidden"
    default_message = "You are not allowed to perform this action."
