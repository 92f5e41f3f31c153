from __future__ import annotations

from rest_framework import serializers

from apps.orders.domain.state_machine import OrderStateMachine
from apps.orders.models import Order, OrderItem, OrderStatusChange


class OrderLineInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)


class OrderCreateInputSerializer(serializers.Serializer):
    address_id = serializers.IntegerField(min_value=1)
    items = OrderLineInputSerializer(many=True, allow_empty=False)
    delivery_notes = serializers.CharField(required=False, allow_blank=True, default="", max_length=1000)


class OrderStatusInputSerializer(serializers.Serializer):
    status = serializers.CharField(max_length=20)
    note = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)


class OrderItemSerializer(serializers.ModelSerializer):
    line_total = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = ["product_id", "supplier_id", "product_name", "quantity", "unit_price", "line_total"]


class OrderStatusChangeSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusChange
        fields = ["from_status", "to_status", "note", "created_at"]


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    shipping_address = serializers.SerializerMethodField()
    allowed_transitions = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "tracking_code",
            "status",
            "total_amount",
            "currency",
            "items",
            "shipping_address",
            "logistics_provider_id",
            "delivery_notes",
            "allowed_transitions",
            "created_at",
            "paid_at",
            "shipped_at",
            "delivered_at",
            "cancelled_at",
            "refunded_at",
        ]

    def get_shipping_address(self, obj):
        address = obj.shipping_address
        return {
            "recipient_name": address.recipient_name,
            "phone": address.phone,
            "line1": address.line1,
            "city": address.city,
            "state": address.state,
            "country": address.country,
        }

    def get_allowed_transitions(self, obj):
        return OrderStateMachine.allowed_from(obj.status)


class OrderDetailSerializer(OrderSerializer):
    status_history = OrderStatusChangeSerializer(source="status_changes", many=True, read_only=True)

    class Meta(OrderSerializer.Meta):
        fields = OrderSerializer.Meta.fields + ["status_history"]
