"""
Module: bursary_kernel.selectors.cash_flow_selector
Responsibility: Cash-flow report -- APPROVED INCOME/EXPENSE entries in a
    date range, split into operating, investing and financing sections by
    the finance account they were booked against.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Every section appears, in OPERATING, INVESTING, FINANCING order, even
      when empty.
    - Transfers are reported separately and never reach a section or the
      totals.
    - inflow/outflow totals are the sums over the sections.
"""

from datetime import date

from sqlalchemy import func, select

from bursary_kernel.domain.dtos import (
    AccountRef,
    ApprovalStatus,
    CashFlowItem,
    CashFlowReport,
    CashFlowSection,
    CashFlowSectionTotals,
    FinanceAccountType,
    TxnKind,
)
from bursary_kernel.exceptions import ValidationError
from bursary_kernel.models.finance_account import FinanceAccount
from bursary_kernel.models.operational_txn import OperationalTxn
from bursary_kernel.selectors.base import BaseSelector

INVESTING_MARKERS = ("invest",)
FINANCING_MARKERS = ("pendanaan", "financing")


def flow_section(
    account_type: FinanceAccountType | str, category: str | None
) -> CashFlowSection:
    """
    Section for an account.

    A category mentioning investment wins; then financing categories and
    LIABILITY / EQUITY accounts are financing; everything else is operating.
    """
    text = (category or "").lower()
    if any(marker in text for marker in INVESTING_MARKERS):
        return CashFlowSection.INVESTING
    if any(marker in text for marker in FINANCING_MARKERS) or FinanceAccountType(
        account_type
    ) in (FinanceAccountType.LIABILITY, FinanceAccountType.EQUITY):
        return CashFlowSection.FINANCING
    return CashFlowSection.OPERATING


class CashFlowSelector(BaseSelector[OperationalTxn]):
    """Selector for the cash-flow report."""

    def cash_flow(self, start: date, end: date) -> CashFlowReport:
        """
        Build the cash-flow report for ``[start, end]``.

        Raises:
            ValidationError: start after end.
        """
        if start > end:
            raise ValidationError("start must not be after end", field="start")

        rows = self.session.execute(
            select(
                OperationalTxn.kind,
                FinanceAccount.id,
                FinanceAccount.code,
                FinanceAccount.name,
                FinanceAccount.account_type,
                FinanceAccount.category,
                func.sum(OperationalTxn.amount),
                func.count(),
            )
            .join(FinanceAccount, FinanceAccount.id == OperationalTxn.account_id)
            .where(OperationalTxn.approval_status == ApprovalStatus.APPROVED.value)
            .where(OperationalTxn.txn_date >= start)
            .where(OperationalTxn.txn_date <= end)
            .group_by(
                OperationalTxn.kind,
                FinanceAccount.id,
                FinanceAccount.code,
                FinanceAccount.name,
                FinanceAccount.account_type,
                FinanceAccount.category,
            )
        ).all()

        transfers_in = transfers_out = 0
        # section -> account id -> [ref, inflow, outflow, count]
        buckets: dict[CashFlowSection, dict] = {section: {} for section in CashFlowSection}
        for kind, account_id, code, name, account_type, category, amount, count in rows:
            amount = int(amount or 0)
            if kind == TxnKind.TRANSFER_IN:
                transfers_in += amount
                continue
            if kind == TxnKind.TRANSFER_OUT:
                transfers_out += amount
                continue

            bucket = buckets[flow_section(account_type, category)]
            entry = bucket.setdefault(
                account_id, [AccountRef(id=account_id, code=code, name=name), 0, 0, 0]
            )
            if kind == TxnKind.INCOME:
                entry[1] += amount
            else:
                entry[2] += amount
            entry[3] += count

        sections = tuple(
            self._section(section, bucket) for section, bucket in buckets.items()
        )
        inflow = sum(s.inflow for s in sections)
        outflow = sum(s.outflow for s in sections)
        return CashFlowReport(
            start=start,
            end=end,
            sections=sections,
            transfers_in=transfers_in,
            transfers_out=transfers_out,
            inflow=inflow,
            outflow=outflow,
            net=inflow - outflow,
        )

    @staticmethod
    def _section(section: CashFlowSection, bucket: dict) -> CashFlowSectionTotals:
        items = sorted(
            (
                CashFlowItem(
                    account=ref,
                    inflow=inflow,
                    outflow=outflow,
                    net=inflow - outflow,
                    txn_count=count,
                )
                for ref, inflow, outflow, count in bucket.values()
            ),
            key=lambda item: (-abs(item.net), item.account.code),
        )
        inflow = sum(i.inflow for i in items)
        outflow = sum(i.outflow for i in items)
        return CashFlowSectionTotals(
            section=section,
            inflow=inflow,
            outflow=outflow,
            net=inflow - outflow,
            txn_count=sum(i.txn_count for i in items),
            items=tuple(items),
        )
