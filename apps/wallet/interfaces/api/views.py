from __future__ import annotations

from rest_framework import status
from rest_framework.views import APIView

from apps.common.domain.errors import MarketplaceError
from apps.common.interfaces.api.permissions import IsMarketplaceAdmin
from apps.common.interfaces.api.responses import domain_error, invalid_input, success
from apps.wallet.application.use_cases.process_withdrawal import (
    ProcessWithdrawalCommand,
    ProcessWithdrawalUseCase,
)
from apps.wallet.application.use_cases.request_withdrawal import (
    RequestWithdrawalCommand,
    RequestWithdrawalUseCase,
)
from apps.wallet.domain.types import WithdrawalStatus
from apps.wallet.interfaces.api.serializers import (
    WalletSerializer,
    WalletTransactionSerializer,
    WithdrawalProcessSerializer,
    WithdrawalRequestSerializer,
    WithdrawalSerializer,
)
from apps.wallet.models import Withdrawal
from apps.wallet.services.wallet_service import WalletService


class WalletAPI(APIView):
    def get(self, request):
        wallet = WalletService.get_or_create_wallet(request.user)
        return success(data={"wallet": WalletSerializer(wallet).data})


class WalletTransactionListAPI(APIView):
    def get(self, request):
        wallet = WalletService.get_or_create_wallet(request.user)
        transactions = WalletService.recent_transactions(wallet)
        return success(data={"transactions": WalletTransactionSerializer(transactions, many=True).data})


class WithdrawalListCreateAPI(APIView):
    def get(self, request):
        withdrawals = Withdrawal.objects.filter(wallet__user=request.user).order_by("-initiated_at", "-id")[:50]
        return success(data={"withdrawals": WithdrawalSerializer(withdrawals, many=True).data})

    def post(self, request):
        serializer = WithdrawalRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)
        try:
            withdrawal = RequestWithdrawalUseCase.execute(
                RequestWithdrawalCommand(user=request.user, **serializer.validated_data)
            )
        except MarketplaceError as exc:
            return domain_error(exc)
        return success(
            data={"withdrawal": WithdrawalSerializer(withdrawal).data},
            http_status=status.HTTP_201_CREATED,
        )


class AdminWithdrawalListAPI(APIView):
    permission_classes = [IsMarketplaceAdmin]

    def get(self, request):
        withdrawals = Withdrawal.objects.select_related("wallet").order_by("-initiated_at", "-id")
        status_filter = (request.query_params.get("status") or "").strip().lower()
        if status_filter in {s.value for s in WithdrawalStatus}:
            withdrawals = withdrawals.filter(status=status_filter)
        return success(data={"withdrawals": WithdrawalSerializer(withdrawals[:100], many=True).data})


class AdminWithdrawalDetailAPI(APIView):
    permission_classes = [IsMarketplaceAdmin]

    def patch(self, request, withdrawal_id: int):
        serializer = WithdrawalProcessSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)
        try:
            withdrawal = ProcessWithdrawalUseCase.execute(
                ProcessWithdrawalCommand(
                    withdrawal_id=withdrawal_id,
                    status=serializer.validated_data["status"],
                    admin=request.user,
                )
            )
        except MarketplaceError as exc:
            return domain_error(exc)
        return success(data={"withdrawal": WithdrawalSerializer(withdrawal).data})
