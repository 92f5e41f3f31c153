from __future__ import annotations

import logging
import re
import time
import uuid

logger = logging.getLogger("partsmarket.request")

_INBOUND_ID_RE = re.compile(r"^[A-Za-z0-9._-]{8,64}$")


class RequestIdMiddleware:
    """
    Tag every request with an id and time it.

    A well-formed inbound ``X-Request-Id`` is kept so ids can be followed
    across services; otherwise a UUID4 is generated.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        inbound = request.headers.get("X-Request-Id", "")
        request.request_id = inbound if _INBOUND_ID_RE.match(inbound) else str(uuid.uuid4())
        started = time.monotonic()

        response = self.get_response(request)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        response["X-Request-Id"] = request.request_id
        response["X-Response-Time-ms"] = str(elapsed_ms)
        logger.info(
            "request_completed",
            extra={
                "request_id": request.request_id,
                "method": request.method,
                "path": request.path,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            },
        )
        return response
