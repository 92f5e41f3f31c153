from __future__ import annotations

import hashlib
import hmac
import logging
from decimal import Decimal
from uuid import uuid4

import requests
from django.conf import settings

from apps.common.domain.errors import InvalidArgumentError, UpstreamUnavailableError
from apps.payments.domain.ports import EVENT_STATUS_FAILED, EVENT_STATUS_SUCCEEDED, PaymentRedirect, VerifiedEvent

logger = logging.getLogger("partsmarket.payments")

_EVENT_STATUSES = {
    "charge.success": EVENT_STATUS_SUCCEEDED,
    "charge.failed": EVENT_STATUS_FAILED,
}


class PaystackGateway:
    code = "paystack"
    name = "Paystack"
    test_only = False

    def __init__(self, *, secret_key: str | None = None, base_url: str | None = None, timeout: int | None = None):
        self._secret_key = secret_key if secret_key is not None else getattr(settings, "PAYSTACK_SECRET_KEY", "")
        self._base_url = (base_url or getattr(settings, "PAYSTACK_BASE_URL", "https://api.paystack.co")).rstrip("/")
        self._timeout = timeout or getattr(settings, "PAYMENT_GATEWAY_TIMEOUT_SECONDS", 15)

    def _sign(self, raw_body: bytes) -> str:
        return hmac.new(self._secret_key.encode(), raw_body, hashlib.sha512).hexdigest()

    def create_intent(self, *, order, amount: Decimal, currency: str, email: str, return_url: str) -> PaymentRedirect:
        if not self._secret_key:
            raise UpstreamUnavailableError("Payment gateway is not configured.")
        reference = f"PSK-{uuid4().hex[:16].upper()}"
        try:
            response = requests.post(
                f"{self._base_url}/transaction/initialize",
                json={
                    "email": email,
                    "amount": int(amount * 100),
                    "currency": currency,
                    "reference": reference,
                    "callback_url": return_url,
                    "metadata": {"tracking_code": order.tracking_code or ""},
                },
                headers={"Authorization": f"Bearer {self._secret_key}"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (requests.Timeout, requests.ConnectionError) as exc:
            logger.warning("paystack_unreachable", extra={"error": exc.__class__.__name__})
            raise UpstreamUnavailableError() from exc
        except (requests.RequestException, ValueError) as exc:
            logger.warning("paystack_initialize_failed", extra={"error": exc.__class__.__name__})
            raise UpstreamUnavailableError() from exc

        if not body.get("status"):
            logger.warning("paystack_initialize_rejected", extra={"gateway_message": body.get("message", "")})
            raise UpstreamUnavailableError("Payment gateway rejected the request.")
        data = body.get("data") or {}
        return PaymentRedirect(
            redirect_url=data.get("authorization_url"),
            client_secret=data.get("access_code"),
            provider_reference=data.get("reference") or reference,
        )

    def verify_event(self, *, payload: dict, headers, raw_body: bytes = b"") -> VerifiedEvent:
        signature = headers.get("X-Paystack-Signature") or ""
        if not self._secret_key or not signature:
            raise InvalidArgumentError("Missing signature or key.")
        if not hmac.compare_digest(self._sign(raw_body), signature):
            raise InvalidArgumentError("Invalid signature.")

        event_type = payload.get("event") or ""
        data = payload.get("data") or {}
        reference = data.get("reference") or ""
        event_id = str(data.get("id") or "")
        if not reference or not event_id:
            raise InvalidArgumentError("Invalid payload.")
        return VerifiedEvent(
            event_id=f"{event_type}:{event_id}",
            event_type=event_type,
            intent_reference=reference,
            status=_EVENT_STATUSES.get(event_type, ""),
        )
