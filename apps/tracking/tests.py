from __future__ import annotations

from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from apps.common.domain.errors import (
    ConflictError,
    InvalidArgumentError,
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
)
from apps.common.testing import make_product, make_user, place_order
from apps.orders.application.use_cases.change_order_status import (
    ChangeOrderStatusCommand,
    ChangeOrderStatusUseCase,
)
from apps.orders.models import Order
from apps.payments.application.use_cases.confirm_payment import ConfirmPaymentCommand, ConfirmPaymentUseCase
from apps.payments.application.use_cases.initiate_payment import InitiatePaymentCommand, InitiatePaymentUseCase
from apps.tracking.application.use_cases.assign_logistics_provider import (
    AssignLogisticsProviderCommand,
    AssignLogisticsProviderUseCase,
)
from apps.tracking.application.use_cases.assign_tracking_code import (
    AssignTrackingCodeCommand,
    AssignTrackingCodeUseCase,
)
from apps.tracking.application.use_cases.record_tracking_event import (
    RecordTrackingEventCommand,
    RecordTrackingEventUseCase,
)
from apps.tracking.application.use_cases.resolve_tracking_code import (
    ResolveTrackingCodeCommand,
    ResolveTrackingCodeUseCase,
)
from apps.tracking.domain.policies import TRACKING_ALPHABET, generate_tracking_code, normalize_tracking_code


def _sequence(*codes):
    values = iter(codes)
    return lambda: next(values)


class TrackingCodePolicyTests(TestCase):
    def test_generated_codes_are_prefixed_and_unambiguous(self):
        for _ in range(200):
            code = generate_tracking_code(prefix="edm", length=8)
            prefix, token = code.split("-")
            self.assertEqual(prefix, "EDM")
            self.assertEqual(len(token), 8)
            self.assertTrue(set(token) <= set(TRACKING_ALPHABET))
            self.assertFalse(set(token) & set("0O1I"))

    def test_normalize(self):
        self.assertEqual(normalize_tracking_code("  edm-abcd2345 "), "EDM-ABCD2345")
        self.assertIsNone(normalize_tracking_code(""))
        self.assertIsNone(normalize_tracking_code("42"))
        self.assertIsNone(normalize_tracking_code("EDM-AB'; DROP"))


class AssignTrackingCodeTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.buyer = make_user("buyer")
        self.product = make_product(make_user("supplier", role="SUPPLIER"), price="100.00", stock=20)
        self.existing = place_order(self.buyer, [(self.product, 1)], generator=_sequence("EDM-TAKEN234"))

    def test_collision_is_retried_with_fresh_code(self):
        order = place_order(self.buyer, [(self.product, 1)], generator=_sequence("EDM-TAKEN234", "EDM-FRESH567"))
        self.assertEqual(order.tracking_code, "EDM-FRESH567")
        self.assertEqual(Order.objects.get(id=order.id).tracking_code, "EDM-FRESH567")

    @override_settings(TRACKING_CODE_MAX_ATTEMPTS=5)
    def test_exhausted_retries_raise_conflict_and_roll_back(self):
        calls = []

        def always_taken():
            calls.append(1)
            return "EDM-TAKEN234"

        with self.assertRaises(ConflictError):
            place_order(self.buyer, [(self.product, 1)], generator=always_taken)
        self.assertEqual(len(calls), 5)
        self.assertEqual(Order.objects.count(), 1)

    def test_code_is_immutable_once_assigned(self):
        with self.assertRaises(InvalidStateTransitionError):
            AssignTrackingCodeUseCase.execute(
                AssignTrackingCodeCommand(order=self.existing, generator=lambda: "EDM-OTHER234")
            )
        self.assertEqual(Order.objects.get(id=self.existing.id).tracking_code, "EDM-TAKEN234")

    def test_stale_order_instance_cannot_reassign(self):
        stale = Order.objects.get(id=self.existing.id)
        stale.tracking_code = None
        with self.assertRaises(InvalidStateTransitionError):
            AssignTrackingCodeUseCase.execute(AssignTrackingCodeCommand(order=stale, generator=lambda: "EDM-OTHER234"))
        self.assertEqual(Order.objects.get(id=self.existing.id).tracking_code, "EDM-TAKEN234")


class ResolveTrackingCodeTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client = APIClient()
        self.buyer = make_user("buyer")
        self.product = make_product(make_user("supplier", role="SUPPLIER"), price="300.00", stock=20)
        self.order = place_order(self.buyer, [(self.product, 2)])

    def test_snapshot_exposes_no_internal_identifiers(self):
        snapshot = ResolveTrackingCodeUseCase.execute(
            ResolveTrackingCodeCommand(code=f"  {self.order.tracking_code.lower()} ")
        ).as_dict()
        self.assertEqual(
            set(snapshot),
            {"tracking_code", "status", "currency", "total_amount", "items", "shipping_address", "events", "created_at"},
        )
        self.assertEqual(set(snapshot["items"][0]), {"product_name", "quantity", "unit_price", "line_total"})
        self.assertEqual(snapshot["shipping_address"], {"city": "Ikeja", "state": "Lagos", "country": "Nigeria"})
        self.assertEqual(set(snapshot["events"][0]), {"status", "location", "message", "timestamp"})
        self.assertEqual(snapshot["total_amount"], "600.00")

    def test_unknown_cancelled_and_malformed_codes_look_the_same(self):
        ChangeOrderStatusUseCase.execute(
            ChangeOrderStatusCommand(order_id=self.order.id, actor=self.buyer, status="CANCELLED")
        )
        messages = set()
        for code in (self.order.tracking_code, "EDM-ZZZZZZZZ", "not a code", str(self.order.id)):
            with self.subTest(code=code):
                with self.assertRaises(NotFoundError) as ctx:
                    ResolveTrackingCodeUseCase.execute(ResolveTrackingCodeCommand(code=code))
                messages.add(str(ctx.exception))
        self.assertEqual(len(messages), 1)

    def test_public_endpoint(self):
        response = self.client.get(f"/api/track/{self.order.tracking_code}/")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertTrue(payload["success"])
        self.assertEqual(payload["data"]["order"]["status"], "PENDING")
        self.assertNotIn("id", payload["data"]["order"])
        self.assertNotIn("Ada Obi", response.content.decode())
        self.assertNotIn("12 Allen Avenue", response.content.decode())

        missing = self.client.get("/api/track/EDM-ZZZZZZZZ/")
        ChangeOrderStatusUseCase.execute(
            ChangeOrderStatusCommand(order_id=self.order.id, actor=self.buyer, status="CANCELLED")
        )
        cancelled = self.client.get(f"/api/track/{self.order.tracking_code}/")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(cancelled.status_code, 404)
        self.assertEqual(missing.json(), cancelled.json())


class LogisticsTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client = APIClient()
        self.buyer = make_user("buyer")
        self.supplier = make_user("supplier", role="SUPPLIER")
        self.courier = make_user("courier", role="LOGISTICS")
        self.order = place_order(self.buyer, [(make_product(self.supplier, price="700.00"), 1)])

    def _pay(self):
        payment = InitiatePaymentUseCase.execute(
            InitiatePaymentCommand(user=self.buyer, order_id=self.order.id, amount="700", method="PAY_ON_DELIVERY")
        ).payment
        ConfirmPaymentUseCase.execute(ConfirmPaymentCommand(payment_id=payment.id))

    def _assign(self, actor, provider):
        return AssignLogisticsProviderUseCase.execute(
            AssignLogisticsProviderCommand(order_id=self.order.id, provider_id=provider.id, actor=actor)
        )

    def test_assignment_rules(self):
        with self.assertRaises(InvalidStateTransitionError):
            self._assign(self.supplier, self.courier)
        self._pay()
        with self.assertRaises(PermissionDeniedError):
            self._assign(self.buyer, self.courier)
        with self.assertRaises(InvalidArgumentError):
            self._assign(self.supplier, self.buyer)

        order = self._assign(self.supplier, self.courier)
        self.assertEqual(order.logistics_provider_id, self.courier.id)

    def test_courier_records_events_shown_on_public_page(self):
        self._pay()
        self._assign(self.supplier, self.courier)

        with self.assertRaises(PermissionDeniedError):
            RecordTrackingEventUseCase.execute(
                RecordTrackingEventCommand(order_id=self.order.id, actor=self.buyer, status="IN_TRANSIT", message="x")
            )

        self.client.force_authenticate(user=self.courier)
        response = self.client.post(
            f"/api/orders/{self.order.id}/tracking-events/",
            data={"status": "OUT_FOR_DELIVERY", "message": "Rider is on the way", "location": "Ikeja"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)

        self.client.force_authenticate(user=None)
        public = self.client.get(f"/api/track/{self.order.tracking_code}/").json()["data"]["order"]
        self.assertEqual(public["events"][0]["message"], "Rider is on the way")
        self.assertEqual(public["events"][0]["location"], "Ikeja")

        ChangeOrderStatusUseCase.execute(
            ChangeOrderStatusCommand(order_id=self.order.id, actor=self.supplier, status="SHIPPED")
        )
        delivered = ChangeOrderStatusUseCase.execute(
            ChangeOrderStatusCommand(order_id=self.order.id, actor=self.courier, status="DELIVERED")
        )
        self.assertEqual(delivered.status, "DELIVERED")
