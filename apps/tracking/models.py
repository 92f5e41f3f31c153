from django.conf import settings
from django.db import models

from apps.tracking.domain.policies import TrackingStatus


class TrackingEvent(models.Model):
    STATUS_CHOICES = [(s.value, s.value.replace("_", " ").title()) for s in TrackingStatus]

    order = models.ForeignKey("orders.Order", on_delete=models.CASCADE, related_name="tracking_events")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES)
    location = models.CharField(max_length=255, blank=True, default="")
    message = models.CharField(max_length=255, blank=True, default="")
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["order", "created_at"], name="tracking_event_order_time_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.order} - {self.status}"
