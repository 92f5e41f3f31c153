from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol


@dataclass(frozen=True)
class PaymentRedirect:
    redirect_url: str | None
    client_secret: str | None
    provider_reference: str | None


@dataclass(frozen=True)
class VerifiedEvent:
    event_id: str
    event_type: str
    intent_reference: str
    status: str


EVENT_STATUS_SUCCEEDED = "succeeded"
EVENT_STATUS_FAILED = "failed"


class PaymentGatewayPort(Protocol):
    code: str
    name: str

    def create_intent(
        self, *, order, amount: Decimal, currency: str, email: str, return_url: str
    ) -> PaymentRedirect:
        ...

    def verify_event(self, *, payload: dict, headers, raw_body: bytes = b"") -> VerifiedEvent:
        ...
