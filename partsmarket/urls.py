"""URL configuration for the partsmarket project."""

from django.contrib import admin
from django.urls import include, path

from apps.observability.views.health import healthz, readyz

handler403 = "partsmarket.error_views.handle_403"
handler404 = "partsmarket.error_views.handle_404"
handler500 = "partsmarket.error_views.handle_500"

urlpatterns = [
    path("healthz", healthz, name="healthz"),
    path("readyz", readyz, name="readyz"),
    path("admin/", admin.site.urls),
    path("api/", include("partsmarket.api_urls")),
]
