from __future__ import annotations

from dataclasses import dataclass

from apps.common.domain.errors import NotFoundError
from apps.orders.domain.snapshots import OrderSnapshot
from apps.orders.services.order_query_service import TRACKING_NOT_FOUND_MESSAGE, OrderQueryService
from apps.tracking.domain.policies import normalize_tracking_code


@dataclass(frozen=True)
class ResolveTrackingCodeCommand:
    code: str


class ResolveTrackingCodeUseCase:
    @staticmethod
    def execute(cmd: ResolveTrackingCodeCommand) -> OrderSnapshot:
        code = normalize_tracking_code(cmd.code)
        if code is None:
            raise NotFoundError(TRACKING_NOT_FOUND_MESSAGE)
        return OrderQueryService.get_by_tracking_code(code)
