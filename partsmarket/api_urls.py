"""
API URL aggregation.

Collects every app's API routes under ``/api/``.
"""

from django.urls import include, path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView, TokenVerifyView

urlpatterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("auth/token/verify/", TokenVerifyView.as_view(), name="token_verify"),
    path("", include("apps.orders.interfaces.api.urls")),
    path("", include("apps.tracking.interfaces.api.urls")),
    path("", include("apps.payments.interfaces.api.urls")),
    path("", include("apps.wallet.interfaces.api.urls")),
    path("", include("apps.notifications.interfaces.api.urls")),
]
