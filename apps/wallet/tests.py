from __future__ import annotations

import random
import threading
import unittest
from decimal import Decimal

from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings
from rest_framework.test import APIClient

from apps.common.domain.errors import InsufficientFundsError, InvalidArgumentError, InvalidStateTransitionError
from apps.common.testing import make_user
from apps.wallet.application.use_cases.process_withdrawal import ProcessWithdrawalCommand, ProcessWithdrawalUseCase
from apps.wallet.application.use_cases.request_withdrawal import RequestWithdrawalCommand, RequestWithdrawalUseCase
from apps.wallet.domain.errors import LedgerImmutableError
from apps.wallet.domain.types import TransactionReason
from apps.wallet.models import Wallet, WalletTransaction, Withdrawal
from apps.wallet.services.wallet_service import WalletService


class WalletServiceTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.user = make_user("wallet-owner")

    def test_wallet_is_created_lazily_with_zero_balance(self):
        self.assertFalse(Wallet.objects.filter(user=self.user).exists())
        wallet = WalletService.get_or_create_wallet(self.user)
        self.assertEqual(wallet.balance, Decimal("0.00"))
        self.assertEqual(wallet.currency, "NGN")
        self.assertEqual(WalletService.get_or_create_wallet(self.user).id, wallet.id)

    def test_balance_always_equals_ledger_sum(self):
        rng = random.Random(20240611)
        wallet = WalletService.get_or_create_wallet(self.user)
        rejected = 0
        for _ in range(60):
            amount = Decimal(rng.randint(1, 50000)) / 100
            if rng.random() < 0.5:
                WalletService.credit(user=self.user, amount=amount, reason=TransactionReason.ADJUSTMENT)
            else:
                try:
                    WalletService.debit(user=self.user, amount=amount, reason=TransactionReason.PAYOUT)
                except InsufficientFundsError:
                    rejected += 1
            wallet.refresh_from_db()
            self.assertGreaterEqual(wallet.balance, Decimal("0.00"))
            self.assertEqual(wallet.balance, WalletService.recompute_balance(wallet))
        self.assertTrue(WalletService.balance_matches_ledger(wallet))

    def test_debit_beyond_balance_fails_closed(self):
        WalletService.credit(user=self.user, amount="100.00", reason=TransactionReason.ADJUSTMENT)
        with self.assertRaises(InsufficientFundsError):
            WalletService.debit(user=self.user, amount="100.01", reason=TransactionReason.PAYOUT)

        wallet = Wallet.objects.get(user=self.user)
        self.assertEqual(wallet.balance, Decimal("100.00"))
        self.assertEqual(WalletTransaction.objects.filter(wallet=wallet).count(), 1)

    def test_stale_balance_read_cannot_overdraft(self):
        WalletService.credit(user=self.user, amount="100.00", reason=TransactionReason.ADJUSTMENT)
        stale = Wallet.objects.get(user=self.user)

        WalletService.debit(user=self.user, amount="70.00", reason=TransactionReason.PAYOUT)
        self.assertEqual(stale.balance, Decimal("100.00"))
        with self.assertRaises(InsufficientFundsError):
            WalletService.debit(user=self.user, amount="70.00", reason=TransactionReason.PAYOUT)

        stale.refresh_from_db()
        self.assertEqual(stale.balance, Decimal("30.00"))

    def test_retry_with_same_reference_moves_money_once(self):
        first = WalletService.credit(
            user=self.user, amount="250.00", reason=TransactionReason.REFUND, reference="order:1:refund:payer"
        )
        second = WalletService.credit(
            user=self.user, amount="250.00", reason=TransactionReason.REFUND, reference="order:1:refund:payer"
        )
        self.assertEqual(first.id, second.id)
        wallet = Wallet.objects.get(user=self.user)
        self.assertEqual(wallet.balance, Decimal("250.00"))

        debit = WalletService.debit(
            user=self.user, amount="100.00", reason=TransactionReason.PAYOUT, reference="withdrawal:WD-1"
        )
        replay = WalletService.debit(
            user=self.user, amount="100.00", reason=TransactionReason.PAYOUT, reference="withdrawal:WD-1"
        )
        self.assertEqual(debit.id, replay.id)
        self.assertEqual(debit.amount, Decimal("-100.00"))
        wallet.refresh_from_db()
        self.assertEqual(wallet.balance, Decimal("150.00"))

    def test_malformed_amounts_are_rejected(self):
        for raw in (0, "-5", "abc", "1.001", None, True, "NaN"):
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidArgumentError):
                    WalletService.credit(user=self.user, amount=raw, reason=TransactionReason.ADJUSTMENT)
        self.assertEqual(WalletTransaction.objects.count(), 0)

    def test_unknown_reason_is_rejected(self):
        with self.assertRaises(InvalidArgumentError):
            WalletService.credit(user=self.user, amount="5.00", reason="GIFT")

    def test_ledger_rows_are_append_only(self):
        entry = WalletService.credit(user=self.user, amount="10.00", reason=TransactionReason.ADJUSTMENT)
        entry.description = "edited"
        with self.assertRaises(LedgerImmutableError):
            entry.save()
        with self.assertRaises(LedgerImmutableError):
            entry.delete()
        self.assertEqual(WalletTransaction.objects.get(id=entry.id).description, "")


@unittest.skipUnless(connection.vendor == "postgresql", "needs row-level concurrency from PostgreSQL")
class ConcurrentDebitTests(TransactionTestCase):
    def test_parallel_debits_never_overdraft(self):
        user = make_user("concurrent-owner")
        WalletService.credit(user=user, amount="100.00", reason=TransactionReason.ADJUSTMENT)

        rng = random.Random(99)
        amounts = [Decimal(rng.randint(1500, 4000)) / 100 for _ in range(12)]
        barrier = threading.Barrier(len(amounts))
        outcomes: list[str] = []
        lock = threading.Lock()

        def worker(amount):
            barrier.wait()
            try:
                WalletService.debit(user=user, amount=amount, reason=TransactionReason.PAYOUT)
                result = "ok"
            except InsufficientFundsError:
                result = "insufficient"
            finally:
                connection.close()
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=worker, args=(amount,)) for amount in amounts]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        wallet = Wallet.objects.get(user=user)
        self.assertEqual(len(outcomes), len(amounts))
        self.assertIn("insufficient", outcomes)
        self.assertGreaterEqual(wallet.balance, Decimal("0.00"))
        self.assertEqual(wallet.balance, WalletService.recompute_balance(wallet))
        debited = -sum(WalletTransaction.objects.filter(wallet=wallet, amount__lt=0).values_list("amount", flat=True))
        self.assertEqual(Decimal("100.00") - debited, wallet.balance)


@override_settings(WALLET_MIN_WITHDRAWAL="1000")
class WithdrawalTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.supplier = make_user("supplier-wd", role="SUPPLIER")
        self.admin = make_user("admin-wd", role="ADMIN")
        WalletService.credit(user=self.supplier, amount="5000.00", reason=TransactionReason.ORDER_PAYMENT)

    def _request(self, **overrides):
        params = {
            "user": self.supplier,
            "amount": "2000",
            "bank_code": "058",
            "account_number": "0123456789",
            "account_name": "Supplier WD",
        }
        params.update(overrides)
        return RequestWithdrawalUseCase.execute(RequestWithdrawalCommand(**params))

    def test_request_debits_wallet_and_records_withdrawal(self):
        withdrawal = self._request()
        self.assertEqual(withdrawal.status, "pending")
        self.assertTrue(withdrawal.reference.startswith("WD-"))
        wallet = Wallet.objects.get(user=self.supplier)
        self.assertEqual(wallet.balance, Decimal("3000.00"))
        payout = WalletTransaction.objects.get(wallet=wallet, reason=TransactionReason.PAYOUT.value)
        self.assertEqual(payout.amount, Decimal("-2000.00"))
        self.assertEqual(payout.reference, f"withdrawal:{withdrawal.reference}")

    def test_request_validation(self):
        with self.assertRaises(InvalidArgumentError):
            self._request(amount="999.99")
        with self.assertRaises(InvalidArgumentError):
            self._request(account_number="12345")
        with self.assertRaises(InsufficientFundsError):
            self._request(amount="6000")
        self.assertEqual(Withdrawal.objects.count(), 0)
        self.assertEqual(Wallet.objects.get(user=self.supplier).balance, Decimal("5000.00"))

    def test_failed_withdrawal_is_reversed_once(self):
        withdrawal = self._request()
        ProcessWithdrawalUseCase.execute(
            ProcessWithdrawalCommand(withdrawal_id=withdrawal.id, status="processing", admin=self.admin)
        )
        processed = ProcessWithdrawalUseCase.execute(
            ProcessWithdrawalCommand(withdrawal_id=withdrawal.id, status="failed", admin=self.admin)
        )
        self.assertEqual(processed.status, "failed")
        self.assertIsNotNone(processed.processed_at)

        wallet = Wallet.objects.get(user=self.supplier)
        self.assertEqual(wallet.balance, Decimal("5000.00"))
        self.assertTrue(WalletService.balance_matches_ledger(wallet))

        with self.assertRaises(InvalidStateTransitionError):
            ProcessWithdrawalUseCase.execute(
                ProcessWithdrawalCommand(withdrawal_id=withdrawal.id, status="credited", admin=self.admin)
            )


@override_settings(WALLET_MIN_WITHDRAWAL="1000")
class WalletApiTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client = APIClient()
        self.user = make_user("api-supplier", role="SUPPLIER")
        self.admin = make_user("api-admin", role="ADMIN")
        WalletService.credit(user=self.user, amount="1500.00", reason=TransactionReason.ORDER_PAYMENT)

    def test_requires_authentication(self):
        response = self.client.get("/api/wallet/")
        self.assertEqual(response.status_code, 401)
        payload = response.json()
        self.assertFalse(payload["success"])
        self.assertEqual(payload["error"]["kind"], "unauthorized")

    def test_wallet_and_transactions(self):
        self.client.force_authenticate(user=self.user)
        wallet = self.client.get("/api/wallet/").json()
        self.assertTrue(wallet["success"])
        self.assertEqual(wallet["data"]["wallet"]["balance"], "1500.00")

        transactions = self.client.get("/api/wallet/transactions/").json()["data"]["transactions"]
        self.assertEqual(len(transactions), 1)
        self.assertEqual(transactions[0]["kind"], "CREDIT")
        self.assertEqual(transactions[0]["reason"], "ORDER_PAYMENT")

    def test_withdrawal_flow_over_api(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.post(
            "/api/wallet/withdrawals/",
            data={"amount": "1200", "bank_code": "058", "account_number": "0123456789"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        withdrawal_id = response.json()["data"]["withdrawal"]["id"]

        too_much = self.client.post(
            "/api/wallet/withdrawals/",
            data={"amount": "1200", "bank_code": "058", "account_number": "0123456789"},
            format="json",
        )
        self.assertEqual(too_much.status_code, 409)
        self.assertEqual(too_much.json()["error"]["kind"], "insufficient_funds")

        forbidden = self.client.patch(
            f"/api/admin/withdrawals/{withdrawal_id}/", data={"status": "credited"}, format="json"
        )
        self.assertEqual(forbidden.status_code, 403)

        self.client.force_authenticate(user=self.admin)
        listed = self.client.get("/api/admin/withdrawals/?status=pending").json()["data"]["withdrawals"]
        self.assertEqual([w["id"] for w in listed], [withdrawal_id])
        done = self.client.patch(
            f"/api/admin/withdrawals/{withdrawal_id}/", data={"status": "credited"}, format="json"
        )
        self.assertEqual(done.status_code, 200)
        self.assertEqual(done.json()["data"]["withdrawal"]["status"], "credited")

    def test_invalid_withdrawal_input(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.post(
            "/api/wallet/withdrawals/",
            data={"amount": "1200", "account_number": "0123456789"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["field"], "bank_code")
