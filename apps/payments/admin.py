from django.contrib import admin

from .models import Payment, PaymentEvent


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "user", "method", "status", "amount", "reference", "created_at")
    list_filter = ("method", "status", "provider_code")
    search_fields = ("reference", "order__tracking_code", "user__username")
    readonly_fields = ("order", "user", "method", "amount", "reference", "provider_code", "settled_at")
    ordering = ("-created_at",)

    # Status moves only through the confirm/fail endpoints.
    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(PaymentEvent)
class PaymentEventAdmin(admin.ModelAdmin):
    list_display = ("id", "provider_code", "event_id", "event_type", "processing_status", "processed_at")
    list_filter = ("provider_code", "processing_status")
    search_fields = ("event_id", "idempotency_key")
    ordering = ("-created_at",)
