from django.contrib import admin

from .models import Wallet, WalletTransaction, Withdrawal
from .services.wallet_service import WalletService


@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "balance", "currency", "is_active", "ledger_ok", "updated_at")
    search_fields = ("user__username", "user__email")
    readonly_fields = ("balance",)

    @admin.display(boolean=True, description="Ledger matches")
    def ledger_ok(self, obj):
        return obj.balance == WalletService.recompute_balance(obj)


@admin.register(WalletTransaction)
class WalletTransactionAdmin(admin.ModelAdmin):
    list_display = ("id", "wallet", "kind", "amount", "reason", "reference", "created_at")
    list_filter = ("kind", "reason")
    search_fields = ("reference", "wallet__user__username")
    ordering = ("-created_at",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Withdrawal)
class WithdrawalAdmin(admin.ModelAdmin):
    list_display = ("reference", "wallet", "amount", "bank_code", "status", "initiated_at", "processed_at")
    list_filter = ("status",)
    search_fields = ("reference", "account_number")
    readonly_fields = ("wallet", "amount", "reference", "status", "processed_by", "processed_at")
