"""Cash book: opening balance, running balance and daily/monthly grouping."""

from datetime import date
from uuid import uuid4

import pytest

from bursary_kernel.domain.dtos import TxnKind
from bursary_kernel.exceptions import CashBankAccountNotFoundError, ValidationError
from bursary_kernel.selectors.cash_book_selector import period_key
from tests.conftest import MAKER


@pytest.fixture
def january_activity(approved_entry, ledger_service, income_account, expense_account, cash_account):
    approved_entry(TxnKind.INCOME, 100_000, income_account, cash_account, date(2023, 12, 30))
    approved_entry(TxnKind.INCOME, 250_000, income_account, cash_account, date(2024, 1, 5))
    approved_entry(TxnKind.EXPENSE, 40_000, expense_account, cash_account, date(2024, 1, 5))
    approved_entry(TxnKind.EXPENSE, 60_000, expense_account, cash_account, date(2024, 2, 2))
    # Pending entries never appear.
    ledger_service.create_transaction(
        TxnKind.EXPENSE, 999, expense_account.id, cash_account.id, MAKER, txn_date=date(2024, 1, 6)
    )


def test_period_key():
    assert period_key(date(2024, 1, 5), "daily") == "2024-01-05"
    assert period_key(date(2024, 1, 5), "monthly") == "2024-01"


class TestCashBook:
    def test_opening_and_running_balance(self, cash_book_selector, january_activity):
        report = cash_book_selector.cash_book(date(2024, 1, 1), date(2024, 1, 31))

        assert report.opening_balance == 1_100_000
        assert [(e.debit, e.credit) for e in report.entries] == [(250_000, 0), (0, 40_000)]
        assert [e.running_balance for e in report.entries] == [1_350_000, 1_310_000]
        assert report.total_in == 250_000
        assert report.total_out == 40_000
        assert report.closing_balance == 1_310_000

    def test_entries_carry_codes(self, cash_book_selector, january_activity):
        report = cash_book_selector.cash_book(date(2024, 1, 1), date(2024, 1, 31))

        first = report.entries[0]
        assert first.account_code == "4200"
        assert first.cash_bank_code == "CASH-MAIN"
        assert first.kind == TxnKind.INCOME

    def test_monthly_grouping(self, cash_book_selector, january_activity):
        report = cash_book_selector.cash_book(
            date(2023, 12, 1), date(2024, 2, 29), group_by="monthly"
        )

        assert report.opening_balance == 1_000_000
        assert [(g.key, g.total_in, g.total_out, g.closing_balance) for g in report.groups] == [
            ("2023-12", 100_000, 0, 1_100_000),
            ("2024-01", 250_000, 40_000, 1_310_000),
            ("2024-02", 0, 60_000, 1_250_000),
        ]

    def test_closing_balance_matches_registry(
        self, cash_book_selector, account_service, cash_account, january_activity
    ):
        report = cash_book_selector.cash_book(
            date(2023, 1, 1), date(2024, 12, 31), cash_bank_account_id=cash_account.id
        )

        assert report.closing_balance == account_service.get_cash_bank_account(
            cash_account.id
        ).balance

    def test_filter_by_cash_bank(
        self, cash_book_selector, approved_entry, income_account, cash_account, bank_account
    ):
        approved_entry(TxnKind.INCOME, 5_000, income_account, bank_account)
        approved_entry(TxnKind.INCOME, 7_000, income_account, cash_account)

        bank = cash_book_selector.cash_book(
            date(2024, 1, 1), date(2024, 1, 31), cash_bank_account_id=bank_account.id
        )
        combined = cash_book_selector.cash_book(date(2024, 1, 1), date(2024, 1, 31))

        assert bank.opening_balance == 0
        assert [e.debit for e in bank.entries] == [5_000]
        assert combined.opening_balance == 1_000_000
        assert combined.closing_balance == 1_012_000

    def test_no_accounts_gives_empty_report(self, cash_book_selector):
        report = cash_book_selector.cash_book(date(2024, 1, 1), date(2024, 1, 31))

        assert report.entries == ()
        assert report.opening_balance == report.closing_balance == 0

    def test_unknown_cash_bank(self, cash_book_selector):
        with pytest.raises(CashBankAccountNotFoundError):
            cash_book_selector.cash_book(
                date(2024, 1, 1), date(2024, 1, 31), cash_bank_account_id=uuid4()
            )

    @pytest.mark.parametrize(
        "start, end, group_by",
        [
            (date(2024, 2, 1), date(2024, 1, 1), "daily"),
            (date(2024, 1, 1), date(2024, 1, 31), "weekly"),
        ],
    )
    def test_invalid_arguments(self, cash_book_selector, start, end, group_by):
        with pytest.raises(ValidationError):
            cash_book_selector.cash_book(start, end, group_by=group_by)
