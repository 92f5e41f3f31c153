from __future__ import annotations

from unittest.mock import patch

from django.test import Client, TestCase


class HealthEndpointsTest(TestCase):
    def setUp(self):
        self.client = Client()

    def test_healthz_returns_ok(self):
        response = self.client.get("/healthz")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_readyz_returns_ok_when_healthy(self):
        response = self.client.get("/readyz")
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["status"], "ok")
        self.assertTrue(data["db"])
        self.assertTrue(data["cache"])

    def test_readyz_reports_database_outage(self):
        with patch("apps.observability.views.health._db_ok", return_value=False):
            response = self.client.get("/readyz")
        self.assertEqual(response.status_code, 503)
        self.assertFalse(response.json()["db"])


class RequestIdMiddlewareTest(TestCase):
    def setUp(self):
        self.client = Client()

    def test_request_id_added_to_response(self):
        response = self.client.get("/healthz")
        self.assertEqual(len(response["X-Request-Id"]), 36)
        self.assertGreaterEqual(int(response["X-Response-Time-ms"]), 0)

    def test_inbound_request_id_is_kept(self):
        response = self.client.get("/healthz", HTTP_X_REQUEST_ID="edge-req-12345")
        self.assertEqual(response["X-Request-Id"], "edge-req-12345")

    def test_malformed_inbound_id_is_replaced(self):
        response = self.client.get("/healthz", HTTP_X_REQUEST_ID="bad id\nwith newline")
        self.assertNotEqual(response["X-Request-Id"], "bad id\nwith newline")
        self.assertEqual(len(response["X-Request-Id"]), 36)


class ErrorEnvelopeTest(TestCase):
    def test_unknown_route_is_json_404(self):
        response = Client().get("/api/does-not-exist/")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["kind"], "not_found")
