from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.common.domain.errors import MarketplaceError
from apps.common.interfaces.api.responses import domain_error, invalid_input, success
from apps.tracking.application.use_cases.assign_logistics_provider import (
    AssignLogisticsProviderCommand,
    AssignLogisticsProviderUseCase,
)
from apps.tracking.application.use_cases.record_tracking_event import (
    RecordTrackingEventCommand,
    RecordTrackingEventUseCase,
)
from apps.tracking.application.use_cases.resolve_tracking_code import (
    ResolveTrackingCodeCommand,
    ResolveTrackingCodeUseCase,
)
from apps.tracking.interfaces.api.serializers import (
    AssignLogisticsInputSerializer,
    TrackingEventInputSerializer,
    TrackingEventSerializer,
)


class TrackOrderAPI(APIView):
    """Public lookup by tracking code. Unknown and cancelled orders look the same."""

    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "tracking"

    def get(self, request, code: str):
        try:
            snapshot = ResolveTrackingCodeUseCase.execute(ResolveTrackingCodeCommand(code=code))
        except MarketplaceError as exc:
            return domain_error(exc)
        return success(data={"order": snapshot.as_dict()})


class TrackingEventCreateAPI(APIView):
    def post(self, request, order_id: int):
        serializer = TrackingEventInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)
        try:
            event = RecordTrackingEventUseCase.execute(
                RecordTrackingEventCommand(order_id=order_id, actor=request.user, **serializer.validated_data)
            )
        except MarketplaceError as exc:
            return domain_error(exc)
        return success(data={"event": TrackingEventSerializer(event).data}, http_status=status.HTTP_201_CREATED)


class AssignLogisticsAPI(APIView):
    def post(self, request, order_id: int):
        serializer = AssignLogisticsInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)
        try:
            order = AssignLogisticsProviderUseCase.execute(
                AssignLogisticsProviderCommand(
                    order_id=order_id,
                    provider_id=serializer.validated_data["provider_id"],
                    actor=request.user,
                )
            )
        except MarketplaceError as exc:
            return domain_error(exc)
        return success(
            data={"tracking_code": order.tracking_code, "logistics_provider_id": order.logistics_provider_id}
        )
