from __future__ import annotations

import logging

from django.http import HttpRequest, JsonResponse

logger = logging.getLogger("partsmarket.request")


def _envelope(kind: str, message: str, status: int) -> JsonResponse:
    return JsonResponse(
        {"success": False, "data": {}, "error": {"kind": kind, "message": message}},
        status=status,
    )


def handle_403(request: HttpRequest, exception=None) -> JsonResponse:
    return _envelope("forbidden", "You are not allowed to perform this action.", 403)


def handle_404(request: HttpRequest, exception=None) -> JsonResponse:
    return _envelope("not_found", "Not found.", 404)


def handle_500(request: HttpRequest) -> JsonResponse:
    logger.error(
        "server_error",
        extra={
            "status_code": 500,
            "error_code": "server_error",
            "request_id": getattr(request, "request_id", ""),
        },
    )
    return _envelope("internal_error", "Something went wrong.", 500)
