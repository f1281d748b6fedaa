"""LedgerSelector lookups and the filtered, paginated transaction listing."""

from datetime import date
from uuid import uuid4

import pytest

from bursary_kernel.domain.dtos import ApprovalStatus, TxnKind
from bursary_kernel.exceptions import TransactionNotFoundError, ValidationError
from tests.conftest import MAKER


@pytest.fixture
def entries(ledger_service, approve, income_account, expense_account, cash_account, bank_account):
    def create(kind, amount, account, cash_bank, day):
        return ledger_service.create_transaction(
            kind, amount, account.id, cash_bank.id, MAKER, txn_date=date(2024, 1, day)
        )

    created = {
        "income_cash": create(TxnKind.INCOME, 10_000, income_account, cash_account, 3),
        "income_bank": create(TxnKind.INCOME, 20_000, income_account, bank_account, 4),
        "expense_cash": create(TxnKind.EXPENSE, 5_000, expense_account, cash_account, 4),
        "expense_late": create(TxnKind.EXPENSE, 7_000, expense_account, cash_account, 20),
    }
    approve(created["income_cash"].id)
    return created


class TestLedgerSelector:
    def test_get_transaction(self, ledger_selector, entries):
        txn = ledger_selector.get_transaction(entries["income_cash"].id)

        assert txn.approval_status == ApprovalStatus.APPROVED
        assert txn.amount == 10_000

    def test_get_unknown_transaction(self, ledger_selector):
        with pytest.raises(TransactionNotFoundError):
            ledger_selector.get_transaction(uuid4())

    def test_get_by_reference(self, ledger_selector, entries):
        ref = entries["expense_cash"].reference_no

        assert ledger_selector.get_by_reference(ref).id == entries["expense_cash"].id
        assert ledger_selector.get_by_reference("NOPE") is None

    def test_newest_first(self, ledger_selector, entries):
        page = ledger_selector.list_transactions()

        assert page.total == 4
        assert [t.txn_date.day for t in page.items] == [20, 4, 4, 3]
        # Same day: later reference first.
        assert page.items[1].reference_no > page.items[2].reference_no

    @pytest.mark.parametrize(
        "filters, expected",
        [
            ({"kind": "EXPENSE"}, {"expense_cash", "expense_late"}),
            ({"approval_status": ApprovalStatus.APPROVED}, {"income_cash"}),
            ({"start": date(2024, 1, 4), "end": date(2024, 1, 4)}, {"income_bank", "expense_cash"}),
            ({"start": date(2024, 1, 10)}, {"expense_late"}),
        ],
    )
    def test_filters(self, ledger_selector, entries, filters, expected):
        page = ledger_selector.list_transactions(**filters)

        names = {name for name, txn in entries.items() if txn.id in {t.id for t in page.items}}
        assert names == expected
        assert page.total == len(expected)

    def test_account_filters(self, ledger_selector, entries, bank_account, expense_account):
        assert ledger_selector.list_transactions(cash_bank_account_id=bank_account.id).total == 1
        assert ledger_selector.list_transactions(account_id=expense_account.id).total == 2

    def test_paging(self, ledger_selector, entries):
        first = ledger_selector.list_transactions(page=1, page_size=3)
        second = ledger_selector.list_transactions(page=2, page_size=3)

        assert len(first.items) == 3
        assert len(second.items) == 1
        assert first.total_pages == 2
        assert not {t.id for t in first.items} & {t.id for t in second.items}

    def test_invalid_paging(self, ledger_selector):
        with pytest.raises(ValidationError):
            ledger_selector.list_transactions(page_size=500)

    @pytest.mark.parametrize(
        "filters, field",
        [
            ({"kind": "REFUND"}, "kind"),
            ({"approval_status": "DONE"}, "approval_status"),
        ],
    )
    def test_unknown_enum_filter_rejected(self, ledger_selector, filters, field):
        with pytest.raises(ValidationError) as exc_info:
            ledger_selector.list_transactions(**filters)
        assert exc_info.value.field == field
