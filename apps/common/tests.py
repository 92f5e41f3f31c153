from __future__ import annotations

from decimal import Decimal

from django.db import OperationalError
from django.test import SimpleTestCase
from rest_framework import exceptions as drf_exceptions

from apps.common.domain.errors import (
    ConflictError,
    InsufficientFundsError,
    InvalidArgumentError,
    InvalidStateTransitionError,
    NotFoundError,
)
from apps.common.domain.money import quantize, to_amount
from apps.common.interfaces.api.exceptions import marketplace_exception_handler
from apps.common.interfaces.api.responses import domain_error, first_error


class AmountParsingTests(SimpleTestCase):
    def test_accepts_two_decimal_places(self):
        self.assertEqual(to_amount("2500"), Decimal("2500.00"))
        self.assertEqual(to_amount(Decimal("0.10")), Decimal("0.10"))
        self.assertEqual(to_amount(12), Decimal("12.00"))

    def test_rejects_malformed_amounts(self):
        for raw in (None, True, "", "abc", "NaN", "Infinity", "0", "-5", "1.005"):
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidArgumentError) as ctx:
                    to_amount(raw)
                self.assertEqual(ctx.exception.field, "amount")

    def test_quantize_rounds_half_up(self):
        self.assertEqual(quantize(Decimal("1.005")), Decimal("1.01"))
        self.assertEqual(quantize(Decimal("1.004")), Decimal("1.00"))


class ErrorEnvelopeTests(SimpleTestCase):
    def test_domain_errors_map_to_status_codes(self):
        cases = [
            (NotFoundError(), 404),
            (InvalidArgumentError("bad", field="quantity"), 400),
            (InvalidStateTransitionError(current="PENDING", target="SHIPPED"), 409),
            (InsufficientFundsError(), 409),
            (ConflictError(), 409),
        ]
        for exc, expected in cases:
            with self.subTest(kind=exc.kind):
                response = domain_error(exc)
                self.assertEqual(response.status_code, expected)
                self.assertFalse(response.data["success"])
                self.assertEqual(response.data["error"]["kind"], exc.kind)

    def test_transition_message_names_both_states(self):
        exc = InvalidStateTransitionError(current="PENDING", target="SHIPPED")
        self.assertEqual(str(exc), "Cannot change status from PENDING to SHIPPED.")

    def test_field_is_reported(self):
        response = domain_error(InvalidArgumentError("bad", field="quantity"))
        self.assertEqual(response.data["error"]["field"], "quantity")

    def test_first_error_walks_nested_detail(self):
        self.assertEqual(first_error({"items": [{"quantity": ["Too small."]}]}), ("Too small.", "items"))
        self.assertEqual(first_error({"non_field_errors": ["Nope."]}), ("Nope.", None))

    def test_handler_maps_framework_exceptions(self):
        response = marketplace_exception_handler(drf_exceptions.NotAuthenticated(), {})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["error"]["kind"], "unauthorized")

        response = marketplace_exception_handler(drf_exceptions.ValidationError({"amount": ["Required."]}), {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"]["field"], "amount")

    def test_handler_hides_database_details(self):
        with self.assertLogs("partsmarket.request", level="WARNING"):
            response = marketplace_exception_handler(OperationalError("password auth failed for user x"), {})
        self.assertEqual(response.status_code, 503)
        self.assertNotIn("password", response.data["error"]["message"])

    def test_unexpected_errors_are_opaque(self):
        with self.assertLogs("partsmarket.request", level="ERROR"):
            response = marketplace_exception_handler(RuntimeError("secret internals"), {})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data["error"]["kind"], "internal_error")
