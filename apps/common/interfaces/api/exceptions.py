"""
DRF exception handler.

Every failure leaves the API in the same envelope the success path uses:
``{"success": false, "data": {}, "error": {"kind": ..., "message": ...}}``.
Unexpected exceptions are logged with the request id and reported as a bare
``internal_error``; database or gateway text never reaches the client.
"""

from __future__ import annotations

import logging

from django.db import DatabaseError, OperationalError
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.views import set_rollback

from apps.common.domain.errors import MarketplaceError, UpstreamUnavailableError

from .responses import domain_error, error, first_error

logger = logging.getLogger("partsmarket.request")

_DRF_KINDS = (
    (drf_exceptions.NotAuthenticated, "unauthorized"),
    (drf_exceptions.AuthenticationFailed, "unauthorized"),
    (drf_exceptions.PermissionDenied, "forbidden"),
    (drf_exceptions.NotFound, "not_found"),
    (drf_exceptions.ValidationError, "invalid_argument"),
    (drf_exceptions.ParseError, "invalid_argument"),
    (drf_exceptions.MethodNotAllowed, "method_not_allowed"),
    (drf_exceptions.Throttled, "throttled"),
)


def _request_id(context) -> str:
    request = context.get("request") if context else None
    return getattr(request, "request_id", "") or ""


def marketplace_exception_handler(exc, context):
    set_rollback()
    if isinstance(exc, MarketplaceError):
        return domain_error(exc)

    if isinstance(exc, OperationalError):
        logger.warning(
            "database_unavailable",
            extra={"request_id": _request_id(context), "error_code": "upstream_unavailable"},
        )
        return domain_error(UpstreamUnavailableError())

    if isinstance(exc, drf_exceptions.APIException):
        kind = "error"
        for exc_class, exc_kind in _DRF_KINDS:
            if isinstance(exc, exc_class):
                kind = exc_kind
                break
        message, field = first_error(exc.detail)
        http_status = exc.status_code
        if kind == "unauthorized":
            http_status = status.HTTP_401_UNAUTHORIZED
        response = error(kind=kind, message=message, field=field, http_status=http_status)
        if getattr(exc, "auth_header", None):
            response["WWW-Authenticate"] = exc.auth_header
        if isinstance(exc, drf_exceptions.Throttled) and exc.wait is not None:
            response["Retry-After"] = str(int(exc.wait))
        return response

    if isinstance(exc, DatabaseError):
        logger.exception("database_error", extra={"request_id": _request_id(context)})
    else:
        logger.exception("unhandled_api_error", extra={"request_id": _request_id(context)})
    return error(
        kind="internal_error",
        message="Something went wrong.",
        http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
