from __future__ import annotations

import hashlib
import hmac
import json
from decimal import Decimal
from unittest.mock import MagicMock, patch

import requests
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from apps.common.domain.errors import (
    InsufficientFundsError,
    InvalidArgumentError,
    InvalidStateTransitionError,
    NotFoundError,
    UpstreamUnavailableError,
)
from apps.common.testing import make_product, make_user, place_order
from apps.orders.models import Order
from apps.payments.application.use_cases.confirm_payment import ConfirmPaymentCommand, ConfirmPaymentUseCase
from apps.payments.application.use_cases.fail_payment import FailPaymentCommand, FailPaymentUseCase
from apps.payments.application.use_cases.handle_webhook_event import (
    HandleWebhookEventCommand,
    HandleWebhookEventUseCase,
)
from apps.payments.application.use_cases.initiate_payment import InitiatePaymentCommand, InitiatePaymentUseCase
from apps.payments.infrastructure.gateways.paystack_gateway import PaystackGateway
from apps.payments.models import Payment, PaymentEvent
from apps.payments.services.settlement_service import SettlementService, split_proportionally
from apps.tracking.application.use_cases.resolve_tracking_code import (
    ResolveTrackingCodeCommand,
    ResolveTrackingCodeUseCase,
)
from apps.wallet.domain.types import TransactionReason
from apps.wallet.models import Wallet, WalletTransaction
from apps.wallet.services.wallet_service import WalletService


def _initiate(order, amount, method="WALLET", user=None):
    return InitiatePaymentUseCase.execute(
        InitiatePaymentCommand(user=user or order.user, order_id=order.id, amount=amount, method=method)
    ).payment


def _confirm(payment):
    return ConfirmPaymentUseCase.execute(ConfirmPaymentCommand(payment_id=payment.id))


class CheckoutScenarioTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.buyer = make_user("buyer")
        self.supplier = make_user("supplier", role="SUPPLIER")
        self.pads = make_product(self.supplier, price="1000.00", stock=10, name="Brake Pads")
        self.filter = make_product(self.supplier, price="500.00", stock=10, name="Oil Filter")
        WalletService.credit(user=self.buyer, amount="2500.00", reason=TransactionReason.ADJUSTMENT)

    def test_wallet_checkout_end_to_end(self):
        order = place_order(self.buyer, [(self.pads, 2), (self.filter, 1)])
        self.assertEqual(order.total_amount, Decimal("2500.00"))

        payment = _initiate(order, "2500")
        self.assertEqual(payment.status, "PENDING")
        self.assertEqual(Wallet.objects.get(user=self.buyer).balance, Decimal("2500.00"))

        result = _confirm(payment)
        self.assertFalse(result.replayed)
        self.assertEqual(Payment.objects.get(id=payment.id).status, "SUCCESS")
        self.assertEqual(Order.objects.get(id=order.id).status, "PAID")
        self.assertEqual(Wallet.objects.get(user=self.supplier).balance, Decimal("2500.00"))
        self.assertEqual(Wallet.objects.get(user=self.buyer).balance, Decimal("0.00"))

        snapshot = ResolveTrackingCodeUseCase.execute(ResolveTrackingCodeCommand(code=order.tracking_code))
        self.assertEqual(snapshot.status, "PAID")
        self.assertEqual(
            [(i.product_name, i.quantity, i.unit_price) for i in snapshot.items],
            [("Brake Pads", 2, Decimal("1000.00")), ("Oil Filter", 1, Decimal("500.00"))],
        )

    def test_duplicate_confirmation_credits_once(self):
        order = place_order(self.buyer, [(self.pads, 2), (self.filter, 1)])
        payment = _initiate(order, "2500")

        _confirm(payment)
        replay = _confirm(payment)

        self.assertTrue(replay.replayed)
        self.assertEqual(replay.payment.status, "SUCCESS")
        supplier_wallet = Wallet.objects.get(user=self.supplier)
        self.assertEqual(supplier_wallet.balance, Decimal("2500.00"))
        self.assertEqual(WalletTransaction.objects.filter(wallet=supplier_wallet).count(), 1)
        self.assertEqual(WalletTransaction.objects.filter(wallet__user=self.buyer, amount__lt=0).count(), 1)

    def test_wallet_confirmation_without_funds_changes_nothing(self):
        WalletService.debit(user=self.buyer, amount="2000.00", reason=TransactionReason.PAYOUT)
        order = place_order(self.buyer, [(self.pads, 1)])
        payment = _initiate(order, "1000")

        with self.assertRaises(InsufficientFundsError):
            _confirm(payment)

        self.assertEqual(Payment.objects.get(id=payment.id).status, "PENDING")
        self.assertEqual(Order.objects.get(id=order.id).status, "PENDING")
        self.assertFalse(Wallet.objects.filter(user=self.supplier).exists())
        self.assertEqual(Wallet.objects.get(user=self.buyer).balance, Decimal("500.00"))


class PaymentRecorderTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.buyer = make_user("buyer")
        self.supplier = make_user("supplier", role="SUPPLIER")
        self.product = make_product(self.supplier, price="2500.00", stock=10)
        self.order = place_order(self.buyer, [(self.product, 1)])

    def test_every_method_starts_pending(self):
        for method in ("CARD", "WALLET", "BANK_TRANSFER", "PAY_ON_DELIVERY"):
            with self.subTest(method=method):
                self.assertEqual(_initiate(self.order, "10", method=method).status, "PENDING")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "PENDING")

    def test_initiate_validation(self):
        with self.assertRaises(InvalidArgumentError):
            _initiate(self.order, "0")
        with self.assertRaises(InvalidArgumentError):
            _initiate(self.order, "10", method="CRYPTO")
        with self.assertRaises(InvalidArgumentError):
            _initiate(self.order, "2500.01")
        with self.assertRaises(NotFoundError):
            _initiate(self.order, "10", user=make_user("stranger"))
        with self.assertRaises(NotFoundError):
            InitiatePaymentUseCase.execute(
                InitiatePaymentCommand(user=self.buyer, order_id=999999, amount="10", method="CARD")
            )
        self.assertFalse(Payment.objects.exists())

    def test_partial_payments_settle_at_total(self):
        first = _initiate(self.order, "1500", method="PAY_ON_DELIVERY")
        second = _initiate(self.order, "1000", method="PAY_ON_DELIVERY")

        _confirm(first)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "PENDING")
        with self.assertRaises(InvalidArgumentError):
            _initiate(self.order, "1000.01", method="PAY_ON_DELIVERY")

        _confirm(second)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "PAID")
        self.assertEqual(SettlementService.confirmed_total(self.order), Decimal("2500.00"))
        with self.assertRaises(InvalidStateTransitionError):
            _initiate(self.order, "1", method="PAY_ON_DELIVERY")

    def test_confirm_cannot_exceed_total(self):
        first = _initiate(self.order, "2500", method="PAY_ON_DELIVERY")
        second = _initiate(self.order, "2500", method="PAY_ON_DELIVERY")
        _confirm(first)
        with self.assertRaises(InvalidStateTransitionError):
            _confirm(second)
        self.assertEqual(Payment.objects.get(id=second.id).status, "PENDING")
        self.assertEqual(SettlementService.confirmed_total(self.order), Decimal("2500.00"))

    def test_terminal_payments_reject_further_transitions(self):
        failed = _initiate(self.order, "100", method="CARD")
        FailPaymentUseCase.execute(FailPaymentCommand(payment_id=failed.id, reason="Card declined"))
        self.assertEqual(Payment.objects.get(id=failed.id).failure_reason, "Card declined")
        with self.assertRaises(InvalidStateTransitionError):
            _confirm(failed)
        with self.assertRaises(InvalidStateTransitionError):
            FailPaymentUseCase.execute(FailPaymentCommand(payment_id=failed.id))

        settled = _initiate(self.order, "100", method="PAY_ON_DELIVERY")
        _confirm(settled)
        with self.assertRaises(InvalidStateTransitionError):
            FailPaymentUseCase.execute(FailPaymentCommand(payment_id=settled.id))
        self.assertEqual(Payment.objects.get(id=settled.id).status, "SUCCESS")

    def test_unknown_payment_is_not_found(self):
        with self.assertRaises(NotFoundError):
            ConfirmPaymentUseCase.execute(ConfirmPaymentCommand(payment_id=424242))
        with self.assertRaises(NotFoundError):
            FailPaymentUseCase.execute(FailPaymentCommand(payment_id=424242))


class SettlementSplitTests(TestCase):
    def test_remainder_goes_to_largest_share(self):
        shares = split_proportionally(Decimal("100.00"), {1: Decimal("1"), 2: Decimal("1"), 3: Decimal("1")})
        self.assertEqual(sum(shares.values()), Decimal("100.00"))
        self.assertEqual(shares, {1: Decimal("33.34"), 2: Decimal("33.33"), 3: Decimal("33.33")})

    @override_settings(MARKETPLACE_PLATFORM_FEE_PERCENT="10")
    def test_suppliers_credited_in_proportion_minus_fee(self):
        buyer = make_user("buyer")
        pads_supplier = make_user("pads", role="SUPPLIER")
        filter_supplier = make_user("filters", role="SUPPLIER")
        order = place_order(
            buyer,
            [
                (make_product(pads_supplier, price="1000.00"), 2),
                (make_product(filter_supplier, price="500.00"), 1),
            ],
        )
        _confirm(_initiate(order, "2500", method="PAY_ON_DELIVERY"))

        self.assertEqual(Wallet.objects.get(user=pads_supplier).balance, Decimal("1800.00"))
        self.assertEqual(Wallet.objects.get(user=filter_supplier).balance, Decimal("450.00"))


class GatewayTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.buyer = make_user("buyer")
        self.order = place_order(self.buyer, [(make_product(make_user("s", role="SUPPLIER"), price="800.00"), 1)])

    def test_card_payment_gets_dummy_intent(self):
        result = InitiatePaymentUseCase.execute(
            InitiatePaymentCommand(user=self.buyer, order_id=self.order.id, amount="800", method="CARD")
        )
        self.assertEqual(result.payment.provider_code, "dummy")
        self.assertTrue(result.payment.reference.startswith("DUMMY-"))
        self.assertEqual(result.redirect.provider_reference, result.payment.reference)

    @override_settings(PAYMENT_GATEWAY_PROVIDER="paystack", PAYSTACK_SECRET_KEY="sk_test_123")
    def test_gateway_timeout_is_upstream_unavailable(self):
        with patch(
            "apps.payments.infrastructure.gateways.paystack_gateway.requests.post",
            side_effect=requests.Timeout("slow"),
        ) as post:
            with self.assertRaises(UpstreamUnavailableError):
                InitiatePaymentUseCase.execute(
                    InitiatePaymentCommand(user=self.buyer, order_id=self.order.id, amount="800", method="CARD")
                )
        self.assertEqual(post.call_args.kwargs["timeout"], 15)
        self.assertFalse(Payment.objects.exists())

    @override_settings(PAYMENT_GATEWAY_PROVIDER="paystack", PAYSTACK_SECRET_KEY="sk_test_123")
    def test_paystack_intent(self):
        response = MagicMock()
        response.json.return_value = {
            "status": True,
            "data": {"authorization_url": "https://checkout.paystack.com/abc", "access_code": "abc", "reference": "PSK-1"},
        }
        with patch("apps.payments.infrastructure.gateways.paystack_gateway.requests.post", return_value=response) as post:
            result = InitiatePaymentUseCase.execute(
                InitiatePaymentCommand(user=self.buyer, order_id=self.order.id, amount="800", method="BANK_TRANSFER")
            )
        self.assertEqual(post.call_args.kwargs["json"]["amount"], 80000)
        self.assertEqual(result.payment.reference, "PSK-1")
        self.assertEqual(result.redirect.redirect_url, "https://checkout.paystack.com/abc")

    def test_paystack_signature_check(self):
        gateway = PaystackGateway(secret_key="sk_test_123")
        body = json.dumps({"event": "charge.success", "data": {"id": 77, "reference": "PSK-1"}}).encode()
        signature = hmac.new(b"sk_test_123", body, hashlib.sha512).hexdigest()

        event = gateway.verify_event(
            payload=json.loads(body), headers={"X-Paystack-Signature": signature}, raw_body=body
        )
        self.assertEqual(event.status, "succeeded")
        self.assertEqual(event.intent_reference, "PSK-1")
        with self.assertRaises(InvalidArgumentError):
            gateway.verify_event(payload=json.loads(body), headers={"X-Paystack-Signature": "0" * 128}, raw_body=body)


class WebhookTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client = APIClient()
        self.buyer = make_user("buyer")
        self.supplier = make_user("supplier", role="SUPPLIER")
        self.order = place_order(self.buyer, [(make_product(self.supplier, price="1200.00"), 1)])
        self.payment = _initiate(self.order, "1200", method="CARD")

    def _post(self, payload, signature="dummy-secret"):
        return self.client.post(
            "/api/payments/webhooks/dummy/", data=payload, format="json", HTTP_X_SIGNATURE=signature
        )

    def test_duplicate_callbacks_apply_once(self):
        payload = {"event_id": "evt_1", "intent_reference": self.payment.reference, "status": "succeeded"}
        first = self._post(payload)
        second = self._post(payload)

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.json()["data"]["processing_status"], "processed")
        self.assertEqual(PaymentEvent.objects.count(), 1)
        self.assertEqual(Payment.objects.get(id=self.payment.id).status, "SUCCESS")
        self.assertEqual(Order.objects.get(id=self.order.id).status, "PAID")
        self.assertEqual(WalletTransaction.objects.filter(wallet__user=self.supplier).count(), 1)

        late = self._post({"event_id": "evt_2", "intent_reference": self.payment.reference, "status": "succeeded"})
        self.assertEqual(late.json()["data"]["processing_status"], "processed")
        self.assertEqual(Wallet.objects.get(user=self.supplier).balance, Decimal("1200.00"))

    def test_failure_callback(self):
        response = self._post({"event_id": "evt_f", "intent_reference": self.payment.reference, "status": "failed"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Payment.objects.get(id=self.payment.id).status, "FAILED")

        late_success = self._post(
            {"event_id": "evt_s", "intent_reference": self.payment.reference, "status": "succeeded"}
        )
        self.assertEqual(late_success.json()["data"]["processing_status"], "failed")
        self.assertEqual(Payment.objects.get(id=self.payment.id).status, "FAILED")

    def test_bad_signature_is_rejected(self):
        response = self._post(
            {"event_id": "evt_x", "intent_reference": self.payment.reference, "status": "succeeded"},
            signature="forged",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["kind"], "invalid_argument")
        self.assertFalse(PaymentEvent.objects.exists())
        self.assertEqual(Payment.objects.get(id=self.payment.id).status, "PENDING")

    @override_settings(ENVIRONMENT="production")
    def test_shared_secret_gateways_are_closed_in_production(self):
        for provider in ("dummy", "sandbox"):
            with self.subTest(provider=provider):
                response = self.client.post(
                    f"/api/payments/webhooks/{provider}/",
                    data={"event_id": "evt_p", "intent_reference": self.payment.reference, "status": "succeeded"},
                    format="json",
                    HTTP_X_SIGNATURE=f"{provider}-secret",
                )
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.json()["error"]["kind"], "invalid_argument")
        self.assertFalse(PaymentEvent.objects.exists())
        self.assertEqual(Payment.objects.get(id=self.payment.id).status, "PENDING")
        self.assertEqual(Order.objects.get(id=self.order.id).status, "PENDING")

    def test_unknown_reference_is_recorded_as_failed(self):
        event = HandleWebhookEventUseCase.execute(
            HandleWebhookEventCommand(
                provider_code="dummy",
                headers={"X-Signature": "dummy-secret"},
                payload={"event_id": "evt_u", "intent_reference": "DUMMY-NOPE", "status": "succeeded"},
            )
        )
        self.assertEqual(event.processing_status, "failed")
        self.assertEqual(event.note, "Unknown payment reference.")

    def test_unknown_provider(self):
        response = self.client.post("/api/payments/webhooks/acme/", data={}, format="json")
        self.assertEqual(response.status_code, 400)


class PaymentApiTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client = APIClient()
        self.buyer = make_user("buyer")
        self.admin = make_user("admin", role="ADMIN")
        self.order = place_order(self.buyer, [(make_product(make_user("s", role="SUPPLIER"), price="900.00"), 1)])

    def test_initiate_and_admin_reconciliation(self):
        self.client.force_authenticate(user=self.buyer)
        created = self.client.post(
            "/api/payments/",
            data={"order_id": self.order.id, "amount": "900", "method": "PAY_ON_DELIVERY"},
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        payment = created.json()["data"]["payment"]
        self.assertEqual(payment["status"], "PENDING")
        self.assertIsNone(created.json()["data"]["redirect"])

        forbidden = self.client.post(f"/api/payments/{payment['id']}/confirm/")
        self.assertEqual(forbidden.status_code, 403)
        self.assertEqual(forbidden.json()["error"]["kind"], "forbidden")

        self.client.force_authenticate(user=self.admin)
        confirmed = self.client.post(f"/api/payments/{payment['id']}/confirm/")
        self.assertEqual(confirmed.status_code, 200)
        self.assertFalse(confirmed.json()["data"]["replayed"])
        again = self.client.post(f"/api/payments/{payment['id']}/confirm/")
        self.assertTrue(again.json()["data"]["replayed"])

        fail = self.client.post(f"/api/payments/{payment['id']}/fail/", data={"reason": "late"}, format="json")
        self.assertEqual(fail.status_code, 409)
        self.assertEqual(fail.json()["error"]["kind"], "invalid_state_transition")

    def test_listing_is_scoped_to_owner(self):
        _initiate(self.order, "100", method="CARD")
        self.client.force_authenticate(user=make_user("other"))
        self.assertEqual(self.client.get("/api/payments/").json()["data"]["payments"], [])
        self.client.force_authenticate(user=self.buyer)
        self.assertEqual(len(self.client.get("/api/payments/").json()["data"]["payments"]), 1)
        other_order = place_order(self.admin, [(make_product(make_user("s2", role="SUPPLIER"), price="50.00"), 1)])
        _initiate(other_order, "50", method="CARD")
        self.client.force_authenticate(user=self.admin)
        self.assertEqual(len(self.client.get("/api/payments/").json()["data"]["payments"]), 2)

    def test_unknown_method_rejected(self):
        self.client.force_authenticate(user=self.buyer)
        response = self.client.post(
            "/api/payments/", data={"order_id": self.order.id, "amount": "1", "method": "BARTER"}, format="json"
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["field"], "method")
