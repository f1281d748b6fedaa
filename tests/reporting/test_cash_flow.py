"""Cash-flow report: approved income/expense split into flow sections."""

from datetime import date

import pytest

from bursary_kernel.domain.dtos import CashFlowSection, FinanceAccountType, TxnKind
from bursary_kernel.exceptions import ValidationError
from bursary_kernel.selectors import flow_section
from tests.conftest import MAKER

JAN_START = date(2024, 1, 1)
JAN_END = date(2024, 1, 31)


@pytest.mark.parametrize(
    "account_type, category, expected",
    [
        (FinanceAccountType.INCOME, "Revenue", CashFlowSection.OPERATING),
        (FinanceAccountType.EXPENSE, None, CashFlowSection.OPERATING),
        (FinanceAccountType.EXPENSE, "Investasi Gedung", CashFlowSection.INVESTING),
        ("ASSET", "INVESTMENT", CashFlowSection.INVESTING),
        (FinanceAccountType.INCOME, "Pendanaan Yayasan", CashFlowSection.FINANCING),
        (FinanceAccountType.EXPENSE, "Financing cost", CashFlowSection.FINANCING),
        (FinanceAccountType.LIABILITY, None, CashFlowSection.FINANCING),
        (FinanceAccountType.EQUITY, "Modal", CashFlowSection.FINANCING),
        # Investment wording wins over the account type.
        (FinanceAccountType.LIABILITY, "Pinjaman investasi", CashFlowSection.INVESTING),
    ],
)
def test_flow_section(account_type, category, expected):
    assert flow_section(account_type, category) == expected


@pytest.fixture
def building_account(account_service):
    return account_service.create_account(
        "5900", "Renovasi Gedung", FinanceAccountType.EXPENSE, MAKER, category="Investasi"
    )


@pytest.fixture
def loan_account(account_service):
    return account_service.create_account(
        "2100", "Pinjaman Bank", FinanceAccountType.LIABILITY, MAKER
    )


@pytest.fixture
def january_flows(
    approved_entry, ledger_service, income_account, expense_account, building_account,
    loan_account, cash_account, bank_account,
):
    approved_entry(TxnKind.INCOME, 500_000, loan_account, bank_account, date(2024, 1, 2))
    approved_entry(TxnKind.INCOME, 300_000, income_account, cash_account, date(2024, 1, 3))
    approved_entry(TxnKind.INCOME, 200_000, income_account, bank_account, date(2024, 1, 9))
    approved_entry(TxnKind.EXPENSE, 50_000, expense_account, cash_account, date(2024, 1, 4))
    approved_entry(TxnKind.EXPENSE, 400_000, building_account, bank_account, date(2024, 1, 20))
    # Outside the range, or not approved: never counted.
    approved_entry(TxnKind.INCOME, 77_000, income_account, cash_account, date(2023, 12, 31))
    ledger_service.create_transaction(
        TxnKind.EXPENSE, 999, expense_account.id, cash_account.id, MAKER, txn_date=date(2024, 1, 5)
    )


def _sections(report):
    return {s.section: s for s in report.sections}


class TestCashFlow:
    def test_sections_in_fixed_order(self, cash_flow_selector):
        report = cash_flow_selector.cash_flow(JAN_START, JAN_END)

        assert [s.section for s in report.sections] == list(CashFlowSection)
        assert all(s.items == () and s.net == 0 for s in report.sections)
        assert (report.inflow, report.outflow, report.net) == (0, 0, 0)

    def test_entries_land_in_their_sections(self, cash_flow_selector, january_flows):
        sections = _sections(cash_flow_selector.cash_flow(JAN_START, JAN_END))

        operating = sections[CashFlowSection.OPERATING]
        assert (operating.inflow, operating.outflow, operating.net) == (500_000, 50_000, 450_000)
        assert operating.txn_count == 3
        assert [i.account.code for i in operating.items] == ["4200", "5200"]
        assert operating.items[0].inflow == 500_000

        investing = sections[CashFlowSection.INVESTING]
        assert (investing.inflow, investing.outflow, investing.net) == (0, 400_000, -400_000)
        assert investing.items[0].account.code == "5900"

        financing = sections[CashFlowSection.FINANCING]
        assert financing.net == 500_000
        assert financing.items[0].account.code == "2100"

    def test_totals_are_sum_of_sections(self, cash_flow_selector, january_flows):
        report = cash_flow_selector.cash_flow(JAN_START, JAN_END)

        assert report.inflow == sum(s.inflow for s in report.sections) == 1_000_000
        assert report.outflow == sum(s.outflow for s in report.sections) == 450_000
        assert report.net == 550_000

    def test_items_ordered_by_size_of_net(
        self, cash_flow_selector, approved_entry, income_account, expense_account, cash_account
    ):
        approved_entry(TxnKind.INCOME, 10_000, income_account, cash_account)
        approved_entry(TxnKind.EXPENSE, 90_000, expense_account, cash_account)

        operating = _sections(cash_flow_selector.cash_flow(JAN_START, JAN_END))[
            CashFlowSection.OPERATING
        ]

        assert [(i.account.code, i.net) for i in operating.items] == [
            ("5200", -90_000),
            ("4200", 10_000),
        ]

    def test_transfers_reported_apart(
        self, cash_flow_selector, ledger_service, approve, transfer_account,
        cash_account, bank_account,
    ):
        result = ledger_service.create_transfer(
            transfer_account.id, cash_account.id, transfer_account.id, bank_account.id,
            250_000, MAKER,
        )
        approve(result.outgoing.id)

        report = cash_flow_selector.cash_flow(JAN_START, JAN_END)

        assert (report.transfers_in, report.transfers_out) == (250_000, 250_000)
        assert all(s.items == () for s in report.sections)
        assert report.net == 0

    def test_inverted_range_rejected(self, cash_flow_selector):
        with pytest.raises(ValidationError):
            cash_flow_selector.cash_flow(JAN_END, JAN_START)
