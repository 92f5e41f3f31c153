from __future__ import annotations

from unittest.mock import patch

from django.core import mail
from django.db import transaction
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from apps.common.testing import make_user
from apps.notifications.application.use_cases.notify_user import NotifyUserCommand, NotifyUserUseCase
from apps.notifications.domain.errors import EmailGatewayError
from apps.notifications.models import Notification


class NotifyUserTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.user = make_user("notified")

    def _command(self, **overrides):
        params = {"user_id": self.user.id, "kind": "ORDER", "title": "Order Shipped", "message": "On its way."}
        params.update(overrides)
        return NotifyUserCommand(**params)

    def test_delivery_waits_for_commit(self):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            NotifyUserUseCase.execute(self._command())
        self.assertEqual(len(callbacks), 1)
        self.assertFalse(Notification.objects.exists())

        callbacks[0]()
        notification = Notification.objects.get(user=self.user)
        self.assertEqual(notification.title, "Order Shipped")
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["notified@example.com"])

    def test_rolled_back_mutation_sends_nothing(self):
        with self.captureOnCommitCallbacks(execute=True):
            try:
                with transaction.atomic():
                    NotifyUserUseCase.execute(self._command())
                    raise RuntimeError("domain mutation failed")
            except RuntimeError:
                pass
        self.assertFalse(Notification.objects.exists())
        self.assertEqual(len(mail.outbox), 0)

    @override_settings(NOTIFICATIONS_EMAIL_ENABLED=False)
    def test_email_can_be_disabled(self):
        with self.captureOnCommitCallbacks(execute=True):
            NotifyUserUseCase.execute(self._command())
        self.assertTrue(Notification.objects.exists())
        self.assertEqual(len(mail.outbox), 0)

    def test_gateway_failure_is_logged_not_raised(self):
        with patch(
            "apps.notifications.infrastructure.gateways.django_mail.DjangoMailGateway.send",
            side_effect=EmailGatewayError("smtp down"),
        ):
            with self.assertLogs("partsmarket.notifications", level="ERROR") as logs:
                with self.captureOnCommitCallbacks(execute=True):
                    NotifyUserUseCase.execute(self._command())
        self.assertTrue(Notification.objects.filter(user=self.user).exists())
        self.assertIn("notification_email_failed", logs.output[0])

    def test_in_app_only(self):
        with self.captureOnCommitCallbacks(execute=True):
            NotifyUserUseCase.execute(self._command(send_email=False))
        self.assertEqual(Notification.objects.count(), 1)
        self.assertEqual(len(mail.outbox), 0)


class NotificationApiTests(TestCase):
    def test_lists_only_my_notifications(self):
        me = make_user("me")
        other = make_user("other")
        Notification.objects.create(user=me, kind="ORDER", title="Mine", message="m")
        Notification.objects.create(user=other, kind="ORDER", title="Theirs", message="t")

        client = APIClient()
        client.force_authenticate(user=me)
        response = client.get("/api/notifications/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([n["title"] for n in response.json()["data"]["notifications"]], ["Mine"])
