"""
End-to-end settlement scenarios across invoices, ledger and cash/bank.

Each scenario runs through the public services only and checks the
observable outcome on every side: invoice balance and status, ledger rows,
and cash/bank balances.
"""

from datetime import date

import pytest

from bursary_kernel.domain.dtos import InvoiceStatus, TxnKind
from bursary_kernel.exceptions import PeriodLockedError
from bursary_kernel.utils.idempotency import invoice_refund_marker
from tests.conftest import CASHIER, MAKER


class TestInvoiceScenarios:
    def test_partial_cash_payment(self, invoice_service, invoice_factory, ledger_selector):
        invoice = invoice_factory(1_000_000)

        settlement = invoice_service.add_payment(invoice.invoice_id, 400_000, "CASH", CASHIER)

        balance = settlement.balance
        assert (balance.net_total, balance.paid_net, balance.due) == (1_000_000, 400_000, 600_000)
        assert settlement.status == InvoiceStatus.PARTIAL
        rows = ledger_selector.list_transactions().items
        assert [(t.kind, t.amount) for t in rows] == [(TxnKind.INCOME, 400_000)]

    def test_refund_keeps_invoice_partial(
        self, invoice_service, invoice_factory, ledger_selector
    ):
        invoice = invoice_factory(1_000_000)
        paid = invoice_service.add_payment(invoice.invoice_id, 400_000, "CASH", CASHIER)

        refunded = invoice_service.add_refund(paid.payment_id, 100_000, CASHIER)

        assert (refunded.balance.paid_net, refunded.balance.due) == (300_000, 700_000)
        assert refunded.status == InvoiceStatus.PARTIAL
        expense = ledger_selector.list_transactions(kind=TxnKind.EXPENSE).items
        assert len(expense) == 1
        assert expense[0].amount == 100_000
        assert expense[0].reference_no == invoice_refund_marker(refunded.refund_id)

    def test_full_discount_is_paid_without_payments(self, invoice_service, invoice_factory):
        invoice = invoice_factory(500_000)

        settlement = invoice_service.add_discount(invoice.invoice_id, "Beasiswa", 500_000, CASHIER)

        assert settlement.balance.net_total == 0
        assert settlement.balance.paid_net == 0
        assert settlement.status == InvoiceStatus.PAID


class TestLedgerScenarios:
    def test_month_lock_blocks_today_but_not_next_month(
        self, period_lock_service, ledger_service, clock, income_account, cash_account
    ):
        today = clock.today()
        period_lock_service.create_lock(
            today.replace(day=1), date(today.year, today.month, 31), MAKER, reason="Tutup buku"
        )

        with pytest.raises(PeriodLockedError):
            ledger_service.create_transaction(
                TxnKind.INCOME, 10_000, income_account.id, cash_account.id, MAKER
            )

        txn = ledger_service.create_transaction(
            TxnKind.INCOME, 10_000, income_account.id, cash_account.id, MAKER,
            txn_date=date(today.year, today.month + 1, 1),
        )
        assert txn.txn_date == date(2024, 2, 1)

    def test_transfer_between_cash_and_bank(
        self, ledger_service, approve, account_service, transfer_account,
        cash_account, bank_account,
    ):
        transfer = ledger_service.create_transfer(
            transfer_account.id, cash_account.id, transfer_account.id, bank_account.id,
            200_000, MAKER,
        )

        approved = approve(transfer.outgoing.id)

        assert len(approved) == 2
        assert transfer.outgoing.transfer_pair_id == transfer.incoming.id
        assert transfer.incoming.transfer_pair_id == transfer.outgoing.id
        assert account_service.get_cash_bank_account(cash_account.id).balance == 800_000
        assert account_service.get_cash_bank_account(bank_account.id).balance == 200_000
