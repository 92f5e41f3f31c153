from __future__ import annotations

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.views.decorators.http import require_GET

logger = logging.getLogger("partsmarket.request")


@require_GET
def healthz(request):
    return JsonResponse({"status": "ok"})


def _db_ok() -> bool:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError:
        logger.warning("readiness_db_failed")
        return False
    return True


def _cache_ok() -> bool:
    try:
        cache.set("readyz:ping", "1", timeout=5)
        return cache.get("readyz:ping") == "1"
    except Exception:
        logger.warning("readiness_cache_failed", exc_info=True)
        return False


@require_GET
def readyz(request):
    db_ok = _db_ok()
    cache_ok = _cache_ok()
    ready = db_ok and cache_ok
    return JsonResponse(
        {"status": "ok" if ready else "unavailable", "db": db_ok, "cache": cache_ok},
        status=200 if ready else 503,
    )
