from __future__ import annotations

from django.conf import settings


def is_production() -> bool:
    env = (getattr(settings, "ENVIRONMENT", "") or "").strip().lower()
    return env in {"prod", "production"}
