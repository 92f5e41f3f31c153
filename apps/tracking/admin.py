from django.contrib import admin

from .models import TrackingEvent


@admin.register(TrackingEvent)
class TrackingEventAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "status", "location", "recorded_by", "created_at")
    list_filter = ("status",)
    search_fields = ("order__tracking_code", "location", "message")
    ordering = ("-created_at",)
