from __future__ import annotations

import re
import secrets
from enum import StrEnum

# No 0/O or 1/I: codes are read out over the phone and typed by hand.
TRACKING_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

_CODE_RE = re.compile(r"^[A-Z0-9]{1,10}-[A-Z0-9]{4,20}$")


class TrackingStatus(StrEnum):
    PENDING = "PENDING"
    IN_TRANSIT = "IN_TRANSIT"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


def generate_tracking_code(prefix: str = "EDM", length: int = 8) -> str:
    token = "".join(secrets.choice(TRACKING_ALPHABET) for _ in range(length))
    return f"{prefix.upper()}-{token}"


def normalize_tracking_code(raw: str) -> str | None:
    code = (raw or "").strip().upper()
    if not _CODE_RE.match(code):
        return None
    return code
