from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response

from apps.common.domain.errors import MarketplaceError


def success(*, data, http_status: int = status.HTTP_200_OK) -> Response:
    return Response({"success": True, "data": data}, status=http_status)


def error(*, kind: str, message: str, field: str | None = None, http_status: int = 400) -> Response:
    payload: dict = {"success": False, "data": {}, "error": {"kind": kind, "message": message}}
    if field:
        payload["error"]["field"] = field
    return Response(payload, status=http_status)


_STATUS_BY_KIND = {
    "unauthorized": status.HTTP_401_UNAUTHORIZED,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "invalid_argument": status.HTTP_400_BAD_REQUEST,
    "invalid_state_transition": status.HTTP_409_CONFLICT,
    "insufficient_funds": status.HTTP_409_CONFLICT,
    "conflict": status.HTTP_409_CONFLICT,
    "upstream_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def http_status_for(exc: MarketplaceError) -> int:
    return _STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST)


def domain_error(exc: MarketplaceError) -> Response:
    return error(
        kind=exc.kind,
        message=str(exc),
        field=getattr(exc, "field", None),
        http_status=http_status_for(exc),
    )


def first_error(detail) -> tuple[str, str | None]:
    """Pull the first message (and its field) out of a DRF error structure."""
    if isinstance(detail, dict):
        for key, value in detail.items():
            message, _ = first_error(value)
            return message, (None if key == "non_field_errors" else str(key))
    if isinstance(detail, (list, tuple)) and detail:
        return first_error(detail[0])
    return str(detail), None


def invalid_input(errors) -> Response:
    message, field = first_error(errors)
    return error(kind="invalid_argument", message=message, field=field, http_status=status.HTTP_400_BAD_REQUEST)
