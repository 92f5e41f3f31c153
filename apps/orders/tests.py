from __future__ import annotations

import re
from decimal import Decimal

from django.test import TestCase
from rest_framework.test import APIClient

from apps.catalog.models import Product
from apps.common.domain.errors import (
    InsufficientFundsError,
    InvalidArgumentError,
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
)
from apps.common.testing import make_address, make_product, make_user, place_order
from apps.notifications.models import Notification
from apps.orders.application.use_cases.change_order_status import (
    ChangeOrderStatusCommand,
    ChangeOrderStatusUseCase,
)
from apps.orders.domain.state_machine import ALLOWED_TRANSITIONS, OrderStateMachine, OrderStatus
from apps.orders.models import Order, OrderStatusChange
from apps.orders.services.order_query_service import OrderQueryService
from apps.payments.application.use_cases.confirm_payment import ConfirmPaymentCommand, ConfirmPaymentUseCase
from apps.payments.application.use_cases.initiate_payment import InitiatePaymentCommand, InitiatePaymentUseCase
from apps.payments.models import Payment
from apps.wallet.models import Wallet
from apps.wallet.services.wallet_service import WalletService


def _settle(order, *, method="PAY_ON_DELIVERY"):
    result = InitiatePaymentUseCase.execute(
        InitiatePaymentCommand(user=order.user, order_id=order.id, amount=order.total_amount, method=method)
    )
    ConfirmPaymentUseCase.execute(ConfirmPaymentCommand(payment_id=result.payment.id))
    order.refresh_from_db()
    return result.payment


class OrderStateMachineTests(TestCase):
    def test_transition_table(self):
        for current in OrderStatus:
            for target in OrderStatus:
                with self.subTest(current=current, target=target):
                    expected = target in ALLOWED_TRANSITIONS[current]
                    self.assertEqual(OrderStateMachine.can_transition(current, target), expected)

    def test_skipping_straight_to_delivered_is_rejected(self):
        with self.assertRaises(InvalidStateTransitionError):
            OrderStateMachine.ensure_can_transition("PENDING", "DELIVERED")

    def test_terminal_states_accept_nothing(self):
        self.assertEqual(OrderStateMachine.allowed_from("CANCELLED"), [])
        self.assertEqual(OrderStateMachine.allowed_from("REFUNDED"), [])
        self.assertEqual(OrderStateMachine.allowed_from("DELIVERED"), ["REFUNDED"])


class CreateOrderTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.buyer = make_user("buyer")
        self.supplier = make_user("supplier", role="SUPPLIER")
        self.brake_pads = make_product(self.supplier, price="1000.00", stock=5, name="Brake Pads")
        self.oil_filter = make_product(self.supplier, price="500.00", stock=3, name="Oil Filter")

    def test_total_is_sum_of_frozen_lines(self):
        order = place_order(self.buyer, [(self.brake_pads, 2), (self.oil_filter, 1)])

        self.assertEqual(order.status, "PENDING")
        self.assertEqual(order.total_amount, Decimal("2500.00"))
        self.assertEqual(order.currency, "NGN")
        self.assertRegex(order.tracking_code, r"^EDM-[A-HJ-NP-Z2-9]{8}$")
        self.assertEqual(
            sorted((i.product_name, i.quantity, i.unit_price) for i in order.items.all()),
            [("Brake Pads", 2, Decimal("1000.00")), ("Oil Filter", 1, Decimal("500.00"))],
        )
        self.assertEqual(Product.objects.get(id=self.brake_pads.id).stock, 3)
        self.assertEqual(Product.objects.get(id=self.oil_filter.id).stock, 2)
        history = OrderStatusChange.objects.get(order=order)
        self.assertEqual((history.from_status, history.to_status), ("", "PENDING"))
        self.assertEqual(order.tracking_events.get().message, "Order placed")

    def test_price_change_does_not_touch_existing_orders(self):
        order = place_order(self.buyer, [(self.brake_pads, 2), (self.oil_filter, 1)])
        Product.objects.filter(id=self.brake_pads.id).update(price=Decimal("4000.00"))

        order = Order.objects.get(id=order.id)
        self.assertEqual(order.total_amount, Decimal("2500.00"))
        self.assertEqual(order.total_amount, sum(i.line_total for i in order.items.all()))
        snapshot = OrderQueryService.get_by_tracking_code(order.tracking_code)
        self.assertEqual(snapshot.total_amount, Decimal("2500.00"))
        self.assertIn(Decimal("1000.00"), [item.unit_price for item in snapshot.items])

    def test_duplicate_lines_are_merged(self):
        order = place_order(self.buyer, [(self.brake_pads, 1), (self.brake_pads, 2)])
        item = order.items.get()
        self.assertEqual(item.quantity, 3)
        self.assertEqual(order.total_amount, Decimal("3000.00"))

    def test_rejects_bad_input_without_side_effects(self):
        with self.assertRaises(InvalidArgumentError):
            place_order(self.buyer, [])
        with self.assertRaises(InvalidArgumentError):
            place_order(self.buyer, [(self.brake_pads, 0)])
        with self.assertRaises(InvalidArgumentError):
            place_order(self.buyer, [(self.brake_pads, 1), (self.oil_filter, 4)])

        self.brake_pads.is_active = False
        self.brake_pads.save(update_fields=["is_active"])
        with self.assertRaises(InvalidArgumentError):
            place_order(self.buyer, [(self.brake_pads, 1)])

        stranger_address = make_address(make_user("stranger"))
        with self.assertRaises(NotFoundError):
            place_order(self.buyer, [(self.oil_filter, 1)], address=stranger_address)

        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(Product.objects.get(id=self.brake_pads.id).stock, 5)
        self.assertEqual(Product.objects.get(id=self.oil_filter.id).stock, 3)

    def test_notifications_are_sent_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            order = place_order(self.buyer, [(self.brake_pads, 1)])
        self.assertGreaterEqual(len(callbacks), 2)
        self.assertTrue(Notification.objects.filter(user=self.buyer, title="Order Placed").exists())
        supplier_note = Notification.objects.get(user=self.supplier, title="New Order")
        self.assertIn(order.tracking_code, supplier_note.message)


class ChangeOrderStatusTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.buyer = make_user("buyer")
        self.supplier = make_user("supplier", role="SUPPLIER")
        self.admin = make_user("admin", role="ADMIN")
        self.product = make_product(self.supplier, price="1000.00", stock=10)
        self.order = place_order(self.buyer, [(self.product, 2)])

    def _change(self, actor, status, order=None):
        return ChangeOrderStatusUseCase.execute(
            ChangeOrderStatusCommand(order_id=(order or self.order).id, actor=actor, status=status)
        )

    def test_happy_path_end_to_end(self):
        _settle(self.order)
        self.assertEqual(self.order.status, "PAID")
        self.assertIsNotNone(self.order.paid_at)

        self._change(self.supplier, "SHIPPED")
        order = self._change(self.buyer, "DELIVERED")
        self.assertEqual(order.status, "DELIVERED")
        self.assertIsNotNone(order.delivered_at)
        self.assertEqual(
            list(order.status_changes.order_by("id").values_list("to_status", flat=True)),
            ["PENDING", "PAID", "SHIPPED", "DELIVERED"],
        )
        self.assertEqual(
            list(order.tracking_events.order_by("id").values_list("status", flat=True)),
            ["PENDING", "IN_TRANSIT", "DELIVERED"],
        )

    def test_skipping_states_is_rejected_even_for_admin(self):
        with self.assertRaises(InvalidStateTransitionError):
            self._change(self.admin, "DELIVERED")
        with self.assertRaises(InvalidStateTransitionError):
            self._change(self.admin, "SHIPPED")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "PENDING")

    def test_paid_is_only_reached_through_settlement(self):
        with self.assertRaises(PermissionDeniedError):
            self._change(self.admin, "PAID")

    def test_role_rules(self):
        _settle(self.order)
        with self.assertRaises(PermissionDeniedError):
            self._change(self.buyer, "SHIPPED")
        with self.assertRaises(NotFoundError):
            self._change(make_user("outsider"), "CANCELLED")
        self._change(self.supplier, "SHIPPED")
        with self.assertRaises(PermissionDeniedError):
            self._change(self.supplier, "DELIVERED")

    def test_unknown_status_is_invalid_argument(self):
        with self.assertRaises(InvalidArgumentError):
            self._change(self.admin, "LOST")

    def test_cancelling_pending_order_releases_stock_and_fails_open_payments(self):
        result = InitiatePaymentUseCase.execute(
            InitiatePaymentCommand(user=self.buyer, order_id=self.order.id, amount="2000.00", method="WALLET")
        )
        order = self._change(self.buyer, "CANCELLED")

        self.assertEqual(order.status, "CANCELLED")
        self.assertEqual(Product.objects.get(id=self.product.id).stock, 10)
        payment = Payment.objects.get(id=result.payment.id)
        self.assertEqual(payment.status, "FAILED")
        with self.assertRaises(InvalidStateTransitionError):
            self._change(self.admin, "REFUNDED")

    def test_cancelling_paid_order_reverses_settlement(self):
        WalletService.credit(user=self.buyer, amount="2000.00", reason="ADJUSTMENT")
        _settle(self.order, method="WALLET")
        self.assertEqual(Wallet.objects.get(user=self.supplier).balance, Decimal("2000.00"))
        self.assertEqual(Wallet.objects.get(user=self.buyer).balance, Decimal("0.00"))

        self._change(self.supplier, "CANCELLED")

        supplier_wallet = Wallet.objects.get(user=self.supplier)
        buyer_wallet = Wallet.objects.get(user=self.buyer)
        self.assertEqual(supplier_wallet.balance, Decimal("0.00"))
        self.assertEqual(buyer_wallet.balance, Decimal("2000.00"))
        self.assertTrue(WalletService.balance_matches_ledger(supplier_wallet))
        self.assertTrue(WalletService.balance_matches_ledger(buyer_wallet))

    def test_cancelling_partly_paid_pending_order_refunds_buyer(self):
        WalletService.credit(user=self.buyer, amount="2500.00", reason="ADJUSTMENT")
        result = InitiatePaymentUseCase.execute(
            InitiatePaymentCommand(user=self.buyer, order_id=self.order.id, amount="1500.00", method="WALLET")
        )
        ConfirmPaymentUseCase.execute(ConfirmPaymentCommand(payment_id=result.payment.id))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "PENDING")
        self.assertEqual(Wallet.objects.get(user=self.supplier).balance, Decimal("1500.00"))

        order = self._change(self.buyer, "CANCELLED")

        self.assertEqual(order.status, "CANCELLED")
        buyer_wallet = Wallet.objects.get(user=self.buyer)
        supplier_wallet = Wallet.objects.get(user=self.supplier)
        self.assertEqual(buyer_wallet.balance, Decimal("2500.00"))
        self.assertEqual(supplier_wallet.balance, Decimal("0.00"))
        self.assertTrue(WalletService.balance_matches_ledger(buyer_wallet))
        self.assertTrue(WalletService.balance_matches_ledger(supplier_wallet))

    def test_refund_aborts_when_supplier_cannot_cover_it(self):
        _settle(self.order)
        self._change(self.supplier, "SHIPPED")
        self._change(self.buyer, "DELIVERED")
        WalletService.debit(user=self.supplier, amount="1500.00", reason="PAYOUT")

        with self.assertRaises(InsufficientFundsError):
            self._change(self.admin, "REFUNDED")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "DELIVERED")
        self.assertEqual(Wallet.objects.get(user=self.supplier).balance, Decimal("500.00"))
        self.assertFalse(Wallet.objects.filter(user=self.buyer).exists())


class OrderQueryTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.buyer = make_user("buyer")
        self.supplier = make_user("supplier", role="SUPPLIER")
        self.product = make_product(self.supplier, price="250.00", stock=50)

    def test_list_for_user_is_newest_first_and_private(self):
        first = place_order(self.buyer, [(self.product, 1)])
        second = place_order(self.buyer, [(self.product, 2)])
        place_order(make_user("other"), [(self.product, 1)])

        listed = list(OrderQueryService.list_for_user(self.buyer.id))
        self.assertEqual([o.id for o in listed], [second.id, first.id])

        third = place_order(self.buyer, [(self.product, 3)])
        listed = [o.id for o in OrderQueryService.list_for_user(self.buyer.id)]
        self.assertEqual(listed, [third.id, second.id, first.id])

    def test_supplier_listing(self):
        order = place_order(self.buyer, [(self.product, 1)])
        self.assertEqual([o.id for o in OrderQueryService.list_for_supplier(self.supplier.id)], [order.id])
        self.assertEqual(list(OrderQueryService.list_for_supplier(self.buyer.id)), [])

    def test_visibility(self):
        order = place_order(self.buyer, [(self.product, 1)])
        self.assertEqual(OrderQueryService.get_visible(order_id=order.id, user=self.supplier, role="SUPPLIER"), order)
        with self.assertRaises(NotFoundError):
            OrderQueryService.get_visible(order_id=order.id, user=make_user("nosy"), role="BUYER")


class OrderApiTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client = APIClient()
        self.buyer = make_user("buyer")
        self.supplier = make_user("supplier", role="SUPPLIER")
        self.address = make_address(self.buyer)
        self.pads = make_product(self.supplier, price="1000.00", stock=5)
        self.filter = make_product(self.supplier, price="500.00", stock=5)
        self.client.force_authenticate(user=self.buyer)

    def _create(self):
        return self.client.post(
            "/api/orders/",
            data={
                "address_id": self.address.id,
                "items": [
                    {"product_id": self.pads.id, "quantity": 2},
                    {"product_id": self.filter.id, "quantity": 1},
                ],
            },
            format="json",
        )

    def test_create_list_and_detail(self):
        response = self._create()
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertTrue(payload["success"])
        order = payload["data"]["order"]
        self.assertEqual(order["total_amount"], "2500.00")
        self.assertEqual(order["status"], "PENDING")
        self.assertEqual(order["allowed_transitions"], ["CANCELLED", "PAID"])

        listed = self.client.get("/api/orders/").json()["data"]["orders"]
        self.assertEqual([o["id"] for o in listed], [order["id"]])

        detail = self.client.get(f"/api/orders/{order['id']}/").json()["data"]["order"]
        self.assertEqual([h["to_status"] for h in detail["status_history"]], ["PENDING"])

        self.client.force_authenticate(user=make_user("stranger"))
        hidden = self.client.get(f"/api/orders/{order['id']}/")
        self.assertEqual(hidden.status_code, 404)
        self.assertEqual(hidden.json()["error"]["kind"], "not_found")

    def test_create_validation_errors(self):
        empty = self.client.post("/api/orders/", data={"address_id": self.address.id, "items": []}, format="json")
        self.assertEqual(empty.status_code, 400)
        self.assertEqual(empty.json()["error"]["kind"], "invalid_argument")
        self.assertEqual(empty.json()["error"]["field"], "items")

    def test_status_endpoint_reports_invalid_transition(self):
        order_id = self._create().json()["data"]["order"]["id"]
        response = self.client.post(f"/api/orders/{order_id}/status/", data={"status": "DELIVERED"}, format="json")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["kind"], "invalid_state_transition")

        cancelled = self.client.post(f"/api/orders/{order_id}/status/", data={"status": "cancelled"}, format="json")
        self.assertEqual(cancelled.status_code, 200)
        self.assertEqual(cancelled.json()["data"]["order"]["status"], "CANCELLED")

    def test_tracking_code_shape_in_response(self):
        code = self._create().json()["data"]["order"]["tracking_code"]
        self.assertTrue(re.match(r"^EDM-[A-Z2-9]{8}$", code))
