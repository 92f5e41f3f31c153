from __future__ import annotations

from typing import Protocol

from .types import EmailMessage, EmailSendResult


class EmailGateway(Protocol):
    name: str

    def send(self, *, message: EmailMessage) -> EmailSendResult:
        ...
