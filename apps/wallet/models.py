from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q

from apps.wallet.domain.errors import LedgerImmutableError
from apps.wallet.domain.types import TransactionKind, TransactionReason, WithdrawalStatus


class Wallet(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="wallet"
    )
    balance = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=10, default="NGN")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(balance__gte=0), name="ck_wallet_balance_non_negative"),
        ]

    def __str__(self) -> str:
        return f"User {self.user_id} ({self.currency})"


class WalletTransaction(models.Model):
    KIND_CHOICES = [(k.value, k.value.title()) for k in TransactionKind]
    REASON_CHOICES = [(r.value, r.value.replace("_", " ").title()) for r in TransactionReason]

    wallet = models.ForeignKey(Wallet, on_delete=models.PROTECT, related_name="transactions")
    kind = models.CharField(max_length=10, choices=KIND_CHOICES)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    reason = models.CharField(max_length=20, choices=REASON_CHOICES)
    payment = models.ForeignKey(
        "payments.Payment", on_delete=models.PROTECT, null=True, blank=True, related_name="wallet_transactions"
    )
    order = models.ForeignKey(
        "orders.Order", on_delete=models.PROTECT, null=True, blank=True, related_name="wallet_transactions"
    )
    reference = models.CharField(max_length=255, blank=True, default="")
    description = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["wallet", "reference"],
                condition=~Q(reference=""),
                name="uq_wallet_txn_reference",
            ),
        ]
        indexes = [
            models.Index(fields=["wallet", "created_at"], name="wallet_txn_wallet_time_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise LedgerImmutableError()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise LedgerImmutableError()

    def __str__(self) -> str:
        return f"{self.wallet} - {self.kind} {self.amount}"


class Withdrawal(models.Model):
    STATUS_CHOICES = [(s.value, s.value.title()) for s in WithdrawalStatus]

    wallet = models.ForeignKey(Wallet, on_delete=models.PROTECT, related_name="withdrawals")
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    bank_code = models.CharField(max_length=20)
    bank_name = models.CharField(max_length=120, blank=True, default="")
    account_number = models.CharField(max_length=20)
    account_name = models.CharField(max_length=200, blank=True, default="")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=WithdrawalStatus.PENDING.value)
    reference = models.CharField(max_length=64, unique=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="processed_withdrawals",
    )
    initiated_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["status", "initiated_at"], name="withdrawal_status_time_idx"),
        ]

    def __str__(self) -> str:
        return f"Withdrawal {self.reference} ({self.status})"
