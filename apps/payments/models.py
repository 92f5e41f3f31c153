"""
Payments models.

A Payment is one attempt to settle an order. It starts PENDING whatever the
method and only moves to SUCCESS or FAILED on an explicit confirmation
(gateway callback or admin reconciliation).
"""

from django.conf import settings
from django.db import models
from django.db.models import Q

from apps.payments.domain.types import PaymentMethod, PaymentStatus


class Payment(models.Model):
    """Payment record linked to an order."""

    METHOD_CHOICES = [(m.value, m.value.replace("_", " ").title()) for m in PaymentMethod]
    STATUS_CHOICES = [(s.value, s.value.title()) for s in PaymentStatus]

    order = models.ForeignKey("orders.Order", on_delete=models.PROTECT, related_name="payments")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="payments")
    method = models.CharField(max_length=30, choices=METHOD_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PaymentStatus.PENDING.value)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    reference = models.CharField(max_length=100, blank=True, default="")
    provider_code = models.CharField(max_length=30, blank=True, default="")
    failure_reason = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    settled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["reference"], condition=~Q(reference=""), name="uq_payment_reference"),
        ]
        indexes = [
            models.Index(fields=["order", "status"], name="payment_order_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.order} - {self.status}"


class PaymentEvent(models.Model):
    STATUS_PENDING = "pending"
    STATUS_PROCESSED = "processed"
    STATUS_FAILED = "failed"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PROCESSED, "Processed"),
        (STATUS_FAILED, "Failed"),
    ]

    provider_code = models.CharField(max_length=30)
    event_id = models.CharField(max_length=128)
    event_type = models.CharField(max_length=64, blank=True, default="")
    idempotency_key = models.CharField(max_length=200, unique=True)
    payload_json = models.JSONField(default=dict, blank=True)
    processing_status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    note = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    def __str__(self) -> str:
        return f"{self.provider_code}:{self.event_id} ({self.processing_status})"
