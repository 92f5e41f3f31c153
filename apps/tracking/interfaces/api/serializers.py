from __future__ import annotations

from rest_framework import serializers

from apps.tracking.domain.policies import TrackingStatus
from apps.tracking.models import TrackingEvent


class TrackingEventInputSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[s.value for s in TrackingStatus])
    message = serializers.CharField(max_length=255)
    location = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class AssignLogisticsInputSerializer(serializers.Serializer):
    provider_id = serializers.IntegerField(min_value=1)


class TrackingEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = TrackingEvent
        fields = ["status", "location", "message", "created_at"]
