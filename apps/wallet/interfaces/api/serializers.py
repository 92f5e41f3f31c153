from __future__ import annotations

from rest_framework import serializers

from apps.wallet.domain.types import WithdrawalStatus
from apps.wallet.models import Wallet, WalletTransaction, Withdrawal


class WalletSerializer(serializers.ModelSerializer):
    class Meta:
        model = Wallet
        fields = ["balance", "currency", "is_active", "updated_at"]


class WalletTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = WalletTransaction
        fields = ["id", "kind", "amount", "reason", "reference", "description", "created_at"]


class WithdrawalSerializer(serializers.ModelSerializer):
    class Meta:
        model = Withdrawal
        fields = [
            "id",
            "reference",
            "amount",
            "bank_code",
            "bank_name",
            "account_number",
            "account_name",
            "status",
            "initiated_at",
            "processed_at",
        ]


class WithdrawalRequestSerializer(serializers.Serializer):
    amount = serializers.CharField(max_length=32)
    bank_code = serializers.CharField(max_length=20)
    bank_name = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    account_number = serializers.CharField(max_length=20)
    account_name = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")


class WithdrawalProcessSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[s.value for s in WithdrawalStatus])
