from __future__ import annotations

from apps.tracking.domain.policies import TrackingStatus
from apps.tracking.models import TrackingEvent


class TrackingTimelineService:
    @staticmethod
    def append(order, *, status: str, message: str = "", location: str = "", recorded_by=None) -> TrackingEvent:
        return TrackingEvent.objects.create(
            order=order,
            status=TrackingStatus(status).value,
            message=(message or "")[:255],
            location=(location or "")[:255],
            recorded_by=recorded_by,
        )
