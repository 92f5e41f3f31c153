from __future__ import annotations

from rest_framework import serializers

from apps.payments.domain.types import PaymentMethod
from apps.payments.models import Payment


class PaymentCreateSerializer(serializers.Serializer):
    order_id = serializers.IntegerField(min_value=1)
    amount = serializers.CharField(max_length=32)
    method = serializers.ChoiceField(choices=[m.value for m in PaymentMethod])
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    return_url = serializers.URLField(required=False, allow_blank=True, default="")


class PaymentFailSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class PaymentSerializer(serializers.ModelSerializer):
    order_id = serializers.IntegerField(read_only=True)
    tracking_code = serializers.CharField(source="order.tracking_code", read_only=True, default="")

    class Meta:
        model = Payment
        fields = [
            "id",
            "order_id",
            "tracking_code",
            "method",
            "status",
            "amount",
            "reference",
            "provider_code",
            "failure_reason",
            "created_at",
            "settled_at",
        ]
