from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.accounts.domain.roles import Role
from apps.accounts.services.identity_service import IdentityService
from apps.common.domain.errors import MarketplaceError
from apps.common.interfaces.api.permissions import IsMarketplaceAdmin
from apps.common.interfaces.api.responses import domain_error, invalid_input, success
from apps.payments.application.use_cases.confirm_payment import ConfirmPaymentCommand, ConfirmPaymentUseCase
from apps.payments.application.use_cases.fail_payment import FailPaymentCommand, FailPaymentUseCase
from apps.payments.application.use_cases.handle_webhook_event import (
    HandleWebhookEventCommand,
    HandleWebhookEventUseCase,
)
from apps.payments.application.use_cases.initiate_payment import (
    InitiatePaymentCommand,
    InitiatePaymentUseCase,
)
from apps.payments.interfaces.api.serializers import (
    PaymentCreateSerializer,
    PaymentFailSerializer,
    PaymentSerializer,
)
from apps.payments.models import Payment


class PaymentListCreateAPI(APIView):
    def get(self, request):
        identity = IdentityService.resolve(request)
        payments = Payment.objects.select_related("order").order_by("-created_at", "-id")
        if identity.role != Role.ADMIN:
            payments = payments.filter(user_id=identity.user_id)
        return success(data={"payments": PaymentSerializer(payments[:50], many=True).data})

    def post(self, request):
        serializer = PaymentCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        data = serializer.validated_data
        try:
            result = InitiatePaymentUseCase.execute(
                InitiatePaymentCommand(
                    user=request.user,
                    order_id=data["order_id"],
                    amount=data["amount"],
                    method=data["method"],
                    reference=data["reference"],
                    return_url=data["return_url"],
                )
            )
        except MarketplaceError as exc:
            return domain_error(exc)

        redirect = None
        if result.redirect is not None:
            redirect = {
                "redirect_url": result.redirect.redirect_url,
                "client_secret": result.redirect.client_secret,
                "reference": result.redirect.provider_reference,
            }
        return success(
            data={"payment": PaymentSerializer(result.payment).data, "redirect": redirect},
            http_status=status.HTTP_201_CREATED,
        )


class PaymentConfirmAPI(APIView):
    permission_classes = [IsMarketplaceAdmin]

    def post(self, request, payment_id: int):
        try:
            result = ConfirmPaymentUseCase.execute(
                ConfirmPaymentCommand(payment_id=payment_id, actor=request.user)
            )
        except MarketplaceError as exc:
            return domain_error(exc)
        return success(data={"payment": PaymentSerializer(result.payment).data, "replayed": result.replayed})


class PaymentFailAPI(APIView):
    permission_classes = [IsMarketplaceAdmin]

    def post(self, request, payment_id: int):
        serializer = PaymentFailSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)
        try:
            payment = FailPaymentUseCase.execute(
                FailPaymentCommand(
                    payment_id=payment_id,
                    reason=serializer.validated_data["reason"],
                    actor=request.user,
                )
            )
        except MarketplaceError as exc:
            return domain_error(exc)
        return success(data={"payment": PaymentSerializer(payment).data})


class PaymentWebhookAPI(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "webhooks"

    def post(self, request, provider_code: str):
        # Signatures cover the raw bytes, so read them before DRF parses the body.
        raw_body = request.body
        payload = request.data if isinstance(request.data, dict) else {}
        try:
            event = HandleWebhookEventUseCase.execute(
                HandleWebhookEventCommand(
                    provider_code=provider_code,
                    headers=request.headers,
                    payload=dict(payload),
                    raw_body=raw_body,
                )
            )
        except MarketplaceError as exc:
            return domain_error(exc)
        return success(data={"event_id": event.event_id, "processing_status": event.processing_status})
