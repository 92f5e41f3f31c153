from __future__ import annotations

import hmac
from uuid import uuid4

from django.conf import settings

from apps.common.domain.errors import InvalidArgumentError
from apps.payments.domain.ports import EVENT_STATUS_FAILED, PaymentRedirect, VerifiedEvent


class DummyGateway:
    """Shared-secret gateway used in development and tests."""

    code = "dummy"
    name = "Dummy Gateway"
    test_only = True
    reference_prefix = "DUMMY"
    secret_setting = "PAYMENT_DUMMY_SECRET"
    default_secret = "dummy-secret"

    @property
    def _signature(self) -> str:
        return getattr(settings, self.secret_setting, self.default_secret)

    def create_intent(self, *, order, amount, currency, email, return_url: str) -> PaymentRedirect:
        reference = f"{self.reference_prefix}-{uuid4().hex[:12].upper()}"
        return PaymentRedirect(redirect_url=return_url, client_secret=None, provider_reference=reference)

    def verify_event(self, *, payload: dict, headers, raw_body: bytes = b"") -> VerifiedEvent:
        signature = headers.get("X-Signature") or ""
        if not hmac.compare_digest(signature, self._signature):
            raise InvalidArgumentError("Invalid signature.")
        event_id = payload.get("event_id") or ""
        intent_reference = payload.get("intent_reference") or ""
        status = payload.get("status") or EVENT_STATUS_FAILED
        if not event_id or not intent_reference:
            raise InvalidArgumentError("Invalid payload.")
        return VerifiedEvent(event_id=event_id, event_type="payment", intent_reference=intent_reference, status=status)


class SandboxStubGateway(DummyGateway):
    code = "sandbox"
    name = "Sandbox Stub"
    reference_prefix = "SANDBOX"
    secret_setting = "PAYMENT_SANDBOX_SECRET"
    default_secret = "sandbox-secret"

    def create_intent(self, *, order, amount, currency, email, return_url: str) -> PaymentRedirect:
        redirect = super().create_intent(order=order, amount=amount, currency=currency, email=email, return_url=return_url)
        redirect_url = f"{return_url}?provider=sandbox&intent={redirect.provider_reference}"
        return PaymentRedirect(redirect_url=redirect_url, client_secret=None, provider_reference=redirect.provider_reference)
