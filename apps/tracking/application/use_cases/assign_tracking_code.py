from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from django.conf import settings
from django.db import IntegrityError, transaction

from apps.common.domain.errors import ConflictError, InvalidStateTransitionError
from apps.orders.models import Order
from apps.tracking.domain.policies import generate_tracking_code

logger = logging.getLogger("partsmarket.tracking")


def _default_generator() -> str:
    return generate_tracking_code(
        prefix=getattr(settings, "TRACKING_CODE_PREFIX", "EDM"),
        length=getattr(settings, "TRACKING_CODE_LENGTH", 8),
    )


@dataclass(frozen=True)
class AssignTrackingCodeCommand:
    order: Order
    generator: Callable[[], str] | None = None


class AssignTrackingCodeUseCase:
    """
    Give an order its public tracking code, exactly once.

    The unique index on ``Order.tracking_code`` is what guarantees uniqueness;
    a collision only costs another attempt with a fresh code.
    """

    @staticmethod
    def execute(cmd: AssignTrackingCodeCommand) -> str:
        order = cmd.order
        if order.tracking_code:
            raise InvalidStateTransitionError("Tracking code is already assigned.")

        generate = cmd.generator or _default_generator
        max_attempts = max(1, int(getattr(settings, "TRACKING_CODE_MAX_ATTEMPTS", 5)))

        for attempt in range(1, max_attempts + 1):
            code = generate()
            try:
                with transaction.atomic():
                    updated = Order.objects.filter(pk=order.pk, tracking_code__isnull=True).update(
                        tracking_code=code
                    )
            except IntegrityError:
                logger.warning(
                    "tracking_code_collision",
                    extra={"order_id": order.pk, "attempt": attempt, "max_attempts": max_attempts},
                )
                continue

            if not updated:
                raise InvalidStateTransitionError("Tracking code is already assigned.")
            order.tracking_code = code
            logger.info("tracking_code_assigned", extra={"order_id": order.pk, "attempt": attempt})
            return code

        logger.error("tracking_code_exhausted", extra={"order_id": order.pk, "max_attempts": max_attempts})
        raise ConflictError("Could not assign a unique tracking code.")
