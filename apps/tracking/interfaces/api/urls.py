from django.urls import path

from .views import AssignLogisticsAPI, TrackingEventCreateAPI, TrackOrderAPI

urlpatterns = [
    path("track/<str:code>/", TrackOrderAPI.as_view(), name="api_track_order"),
    path(
        "orders/<int:order_id>/tracking-events/",
        TrackingEventCreateAPI.as_view(),
        name="api_order_tracking_events",
    ),
    path(
        "orders/<int:order_id>/assign-logistics/",
        AssignLogisticsAPI.as_view(),
        name="api_order_assign_logistics",
    ),
]
