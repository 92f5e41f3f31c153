from django.contrib import admin

from .models import Address


@admin.register(Address)
class AddressAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "recipient_name", "city", "state", "country", "is_default")
    search_fields = ("recipient_name", "city", "user__username")
