from django.conf import settings
from django.db import models


class Notification(models.Model):
    KIND_ORDER = "ORDER"
    KIND_PAYMENT = "PAYMENT"
    KIND_DELIVERY = "DELIVERY"
    KIND_SYSTEM = "SYSTEM"

    KIND_CHOICES = [
        (KIND_ORDER, "Order"),
        (KIND_PAYMENT, "Payment"),
        (KIND_DELIVERY, "Delivery"),
        (KIND_SYSTEM, "System"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications"
    )
    kind = models.CharField(max_length=20, choices=KIND_CHOICES, default=KIND_SYSTEM)
    title = models.CharField(max_length=200)
    message = models.TextField()
    link = models.CharField(max_length=255, blank=True, default="")
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["user", "created_at"], name="notification_user_time_idx"),
        ]

    def __str__(self) -> str:
        return f"Notification(user_id={self.user_id}, kind={self.kind})"
