from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings

from apps.notifications.domain.ports import EmailGateway
from apps.notifications.infrastructure.gateways.django_mail import DjangoMailGateway


@dataclass(frozen=True)
class ResolvedEmailProvider:
    gateway: EmailGateway
    enabled: bool


class EmailGatewayRouter:
    @staticmethod
    def resolve() -> ResolvedEmailProvider:
        return ResolvedEmailProvider(
            gateway=DjangoMailGateway(
                from_email=getattr(settings, "DEFAULT_FROM_EMAIL", "no-reply@partsmarket.local"),
                from_name=getattr(settings, "NOTIFICATIONS_FROM_NAME", "Parts Market"),
            ),
            enabled=bool(getattr(settings, "NOTIFICATIONS_EMAIL_ENABLED", True)),
        )
