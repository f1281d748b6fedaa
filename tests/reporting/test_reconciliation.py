"""Reconciliation: stored cash/bank balances checked against approved entries."""

from datetime import date
from uuid import uuid4

import pytest

from bursary_kernel.domain.dtos import CashBankType, TxnKind
from bursary_kernel.exceptions import CashBankAccountNotFoundError, ValidationError
from bursary_kernel.models.finance_account import CashBankAccount
from tests.conftest import MAKER

JAN_START = date(2024, 1, 1)
JAN_END = date(2024, 1, 31)


@pytest.fixture
def activity(approved_entry, ledger_service, income_account, expense_account, cash_account):
    approved_entry(TxnKind.INCOME, 100_000, income_account, cash_account, date(2023, 12, 30))
    approved_entry(TxnKind.INCOME, 250_000, income_account, cash_account, date(2024, 1, 5))
    approved_entry(TxnKind.EXPENSE, 40_000, expense_account, cash_account, date(2024, 1, 5))
    approved_entry(TxnKind.EXPENSE, 60_000, expense_account, cash_account, date(2024, 2, 2))
    ledger_service.create_transaction(
        TxnKind.EXPENSE, 999, expense_account.id, cash_account.id, MAKER, txn_date=date(2024, 1, 6)
    )


class TestReconciliation:
    def test_figures_for_one_account(self, reconciliation_selector, cash_account, activity):
        report = reconciliation_selector.reconciliation(
            JAN_START, JAN_END, cash_bank_account_id=cash_account.id
        )

        (row,) = report.rows
        assert row.code == "CASH-MAIN"
        assert row.account_type == CashBankType.CASH
        assert row.opening_configured == 1_000_000
        assert row.opening_at_start == 1_100_000
        assert (row.period_in, row.period_out, row.period_net) == (250_000, 40_000, 210_000)
        assert row.closing_at_end == 1_310_000
        # February's expense is outside the range but inside the ledger balance.
        assert row.ledger_balance == row.balance == 1_250_000
        assert row.variance == 0

    def test_drifted_balance_shows_variance(
        self, session, reconciliation_selector, cash_account, activity
    ):
        session.get(CashBankAccount, cash_account.id).balance += 5_000
        session.flush()

        report = reconciliation_selector.reconciliation(JAN_START, JAN_END)

        row = next(r for r in report.rows if r.cash_bank_account_id == cash_account.id)
        assert row.variance == 5_000
        assert report.totals.variance == 5_000

    def test_transfers_move_both_accounts(
        self, reconciliation_selector, ledger_service, approve, transfer_account,
        cash_account, bank_account,
    ):
        result = ledger_service.create_transfer(
            transfer_account.id, cash_account.id, transfer_account.id, bank_account.id,
            300_000, MAKER,
        )
        approve(result.outgoing.id)

        report = reconciliation_selector.reconciliation(JAN_START, JAN_END)

        rows = {r.code: r for r in report.rows}
        assert [r.code for r in report.rows] == ["BANK-MAIN", "CASH-MAIN"]
        assert rows["BANK-MAIN"].period_in == 300_000
        assert rows["CASH-MAIN"].period_out == 300_000
        assert rows["BANK-MAIN"].variance == rows["CASH-MAIN"].variance == 0
        assert report.totals.period_net == 0
        assert report.totals.closing_at_end == 1_000_000

    def test_totals_are_sum_of_rows(
        self, reconciliation_selector, approved_entry, income_account, cash_account,
        bank_account, activity,
    ):
        approved_entry(TxnKind.INCOME, 70_000, income_account, bank_account)

        report = reconciliation_selector.reconciliation(JAN_START, JAN_END)

        assert report.totals.period_in == sum(r.period_in for r in report.rows) == 320_000
        assert report.totals.balance == sum(r.balance for r in report.rows)
        assert report.totals.ledger_balance == report.totals.balance

    def test_no_accounts_gives_empty_report(self, reconciliation_selector):
        report = reconciliation_selector.reconciliation(JAN_START, JAN_END)

        assert report.rows == ()
        assert report.totals.balance == report.totals.variance == 0

    def test_unknown_cash_bank(self, reconciliation_selector):
        with pytest.raises(CashBankAccountNotFoundError):
            reconciliation_selector.reconciliation(
                JAN_START, JAN_END, cash_bank_account_id=uuid4()
            )

    def test_inverted_range_rejected(self, reconciliation_selector):
        with pytest.raises(ValidationError):
            reconciliation_selector.reconciliation(JAN_END, JAN_START)
