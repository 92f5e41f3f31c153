from django.contrib import admin

from .models import AccountProfile


@admin.register(AccountProfile)
class AccountProfileAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "role", "full_name", "phone", "created_at")
    list_filter = ("role",)
    search_fields = ("user__username", "user__email", "full_name", "phone")
    ordering = ("-id",)
