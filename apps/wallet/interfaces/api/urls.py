from django.urls import path

from .views import (
    AdminWithdrawalDetailAPI,
    AdminWithdrawalListAPI,
    WalletAPI,
    WalletTransactionListAPI,
    WithdrawalListCreateAPI,
)

urlpatterns = [
    path("wallet/", WalletAPI.as_view(), name="api_wallet"),
    path("wallet/transactions/", WalletTransactionListAPI.as_view(), name="api_wallet_transactions"),
    path("wallet/withdrawals/", WithdrawalListCreateAPI.as_view(), name="api_wallet_withdrawals"),
    path("admin/withdrawals/", AdminWithdrawalListAPI.as_view(), name="api_admin_withdrawals"),
    path(
        "admin/withdrawals/<int:withdrawal_id>/",
        AdminWithdrawalDetailAPI.as_view(),
        name="api_admin_withdrawal_detail",
    ),
]
