from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("id", "sku", "name", "supplier", "price", "stock", "is_active")
    list_filter = ("is_active",)
    search_fields = ("sku", "name", "supplier__username")
    ordering = ("-id",)
