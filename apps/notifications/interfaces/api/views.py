from __future__ import annotations

from rest_framework.views import APIView

from apps.common.interfaces.api.responses import success
from apps.notifications.interfaces.api.serializers import NotificationSerializer
from apps.notifications.models import Notification


class NotificationListAPI(APIView):
    def get(self, request):
        notifications = Notification.objects.filter(user=request.user).order_by("-created_at", "-id")[:50]
        return success(data={"notifications": NotificationSerializer(notifications, many=True).data})
