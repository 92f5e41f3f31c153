from django.urls import path

from .views import PaymentConfirmAPI, PaymentFailAPI, PaymentListCreateAPI, PaymentWebhookAPI

urlpatterns = [
    path("payments/", PaymentListCreateAPI.as_view(), name="api_payments"),
    path("payments/<int:payment_id>/confirm/", PaymentConfirmAPI.as_view(), name="api_payment_confirm"),
    path("payments/<int:payment_id>/fail/", PaymentFailAPI.as_view(), name="api_payment_fail"),
    path(
        "payments/webhooks/<str:provider_code>/",
        PaymentWebhookAPI.as_view(),
        name="api_payment_webhook",
    ),
]
