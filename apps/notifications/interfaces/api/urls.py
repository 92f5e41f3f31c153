from django.urls import path

from .views import NotificationListAPI

urlpatterns = [
    path("notifications/", NotificationListAPI.as_view(), name="api_notifications"),
]
