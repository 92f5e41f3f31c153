from django.contrib import admin

from .models import Order, OrderItem, OrderStatusChange


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("product", "supplier", "product_name", "quantity", "unit_price")
    can_delete = False


class OrderStatusChangeInline(admin.TabularInline):
    model = OrderStatusChange
    extra = 0
    readonly_fields = ("from_status", "to_status", "actor", "note", "created_at")
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "tracking_code", "user", "status", "total_amount", "currency", "created_at")
    list_filter = ("status", "currency")
    search_fields = ("tracking_code", "user__username", "user__email")
    ordering = ("-created_at",)
    readonly_fields = ("status", "total_amount", "tracking_code", "paid_at", "delivered_at", "cancelled_at")
    inlines = [OrderItemInline, OrderStatusChangeInline]

    def has_delete_permission(self, request, obj=None) -> bool:
        return False
