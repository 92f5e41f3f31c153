from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class EmailMessage:
    to_email: str
    subject: str
    text: str
    html: str = ""
    headers: dict = field(default_factory=dict)


@dataclass(frozen=True)
class EmailSendResult:
    provider_message_id: str
