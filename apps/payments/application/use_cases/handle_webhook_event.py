from __future__ import annotations

import logging
from dataclasses import dataclass, field

from django.db import transaction
from django.utils import timezone

from apps.common.domain.errors import MarketplaceError
from apps.payments.application.facade import PaymentGatewayFacade
from apps.payments.application.use_cases.confirm_payment import ConfirmPaymentCommand, ConfirmPaymentUseCase
from apps.payments.application.use_cases.fail_payment import FailPaymentCommand, FailPaymentUseCase
from apps.payments.domain.ports import EVENT_STATUS_FAILED, EVENT_STATUS_SUCCEEDED
from apps.payments.models import Payment, PaymentEvent

logger = logging.getLogger("partsmarket.payments")


@dataclass(frozen=True)
class HandleWebhookEventCommand:
    provider_code: str
    headers: dict
    payload: dict
    raw_body: bytes = field(default=b"", repr=False)


class HandleWebhookEventUseCase:
    """
    Apply a gateway callback exactly once.

    Callbacks are delivered at least once and possibly late; the event row is
    keyed by ``provider:event_id`` and a processed event is returned as is.
    """

    @staticmethod
    @transaction.atomic
    def execute(cmd: HandleWebhookEventCommand) -> PaymentEvent:
        provider_code = (cmd.provider_code or "").strip().lower()
        gateway = PaymentGatewayFacade.get(provider_code)
        verified = gateway.verify_event(payload=cmd.payload, headers=cmd.headers, raw_body=cmd.raw_body)
        idempotency_key = f"{provider_code}:{verified.event_id}"

        event, _ = PaymentEvent.objects.get_or_create(
            idempotency_key=idempotency_key,
            defaults={
                "provider_code": provider_code,
                "event_id": verified.event_id,
                "event_type": verified.event_type[:64],
                "payload_json": cmd.payload,
            },
        )
        event = PaymentEvent.objects.select_for_update().get(pk=event.pk)
        if event.processing_status != PaymentEvent.STATUS_PENDING:
            logger.info("webhook_duplicate", extra={"idempotency_key": idempotency_key})
            return event

        payment = Payment.objects.filter(provider_code=provider_code, reference=verified.intent_reference).first()
        if payment is None:
            return HandleWebhookEventUseCase._finish(event, PaymentEvent.STATUS_FAILED, "Unknown payment reference.")

        try:
            if verified.status == EVENT_STATUS_SUCCEEDED:
                ConfirmPaymentUseCase.execute(ConfirmPaymentCommand(payment_id=payment.id))
            elif verified.status == EVENT_STATUS_FAILED:
                FailPaymentUseCase.execute(
                    FailPaymentCommand(payment_id=payment.id, reason=f"Declined by {provider_code}.")
                )
            else:
                return HandleWebhookEventUseCase._finish(
                    event, PaymentEvent.STATUS_PROCESSED, f"Ignored event type {verified.event_type}."
                )
        except MarketplaceError as exc:
            logger.warning(
                "webhook_not_applied",
                extra={"idempotency_key": idempotency_key, "payment_id": payment.id, "error_kind": exc.kind},
            )
            return HandleWebhookEventUseCase._finish(event, PaymentEvent.STATUS_FAILED, str(exc))

        return HandleWebhookEventUseCase._finish(event, PaymentEvent.STATUS_PROCESSED, "")

    @staticmethod
    def _finish(event: PaymentEvent, processing_status: str, note: str) -> PaymentEvent:
        event.processing_status = processing_status
        event.note = note[:255]
        event.processed_at = timezone.now()
        event.save(update_fields=["processing_status", "note", "processed_at"])
        return event
