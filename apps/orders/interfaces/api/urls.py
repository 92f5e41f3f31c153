from django.urls import path

from .views import OrderDetailAPI, OrderListCreateAPI, OrderStatusAPI

urlpatterns = [
    path("orders/", OrderListCreateAPI.as_view(), name="api_orders"),
    path("orders/<int:order_id>/", OrderDetailAPI.as_view(), name="api_order_detail"),
    path("orders/<int:order_id>/status/", OrderStatusAPI.as_view(), name="api_order_status"),
]
