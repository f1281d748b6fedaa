"""
Module: bursary_kernel.selectors.cash_book_selector
Responsibility: Cash book report -- APPROVED cash/bank movements over a date
    range with a running balance and daily or monthly subtotals.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - opening_balance = sum of opening balances + signed APPROVED entries
      dated before ``start``, over the selected cash/bank accounts.
    - closing_balance = opening_balance + total_in - total_out.
    - Each group's closing balance is the running balance after its last
      entry.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import aliased

from bursary_kernel.domain.balance import balance_delta
from bursary_kernel.domain.dtos import (
    ApprovalStatus,
    CashBookEntry,
    CashBookGroup,
    CashBookReport,
    TxnKind,
)
from bursary_kernel.exceptions import CashBankAccountNotFoundError, ValidationError
from bursary_kernel.models.finance_account import CashBankAccount, FinanceAccount
from bursary_kernel.models.operational_txn import OperationalTxn
from bursary_kernel.selectors.base import BaseSelector

GROUP_DAILY = "daily"
GROUP_MONTHLY = "monthly"


def period_key(txn_date: date, group_by: str) -> str:
    if group_by == GROUP_MONTHLY:
        return f"{txn_date:%Y-%m}"
    return f"{txn_date:%Y-%m-%d}"


class CashBookSelector(BaseSelector[OperationalTxn]):
    """Selector for the cash book report."""

    def cash_book(
        self,
        start: date,
        end: date,
        group_by: str = GROUP_DAILY,
        cash_bank_account_id: UUID | None = None,
    ) -> CashBookReport:
        """
        Build the cash book for ``[start, end]``.

        Raises:
            ValidationError: start after end or unknown ``group_by``.
            CashBankAccountNotFoundError: unknown ``cash_bank_account_id``.
        """
        if start > end:
            raise ValidationError("start must not be after end", field="start")
        if group_by not in (GROUP_DAILY, GROUP_MONTHLY):
            raise ValidationError(f"Invalid group_by: {group_by!r}", field="group_by")

        account_ids = self._cash_bank_ids(cash_bank_account_id)
        if not account_ids:
            return CashBookReport(
                start=start,
                end=end,
                group_by=group_by,
                opening_balance=0,
                closing_balance=0,
                total_in=0,
                total_out=0,
            )

        opening_balance = self._opening_balance(account_ids, start)

        cash_bank = aliased(CashBankAccount)
        rows = self.session.execute(
            select(OperationalTxn, FinanceAccount.code, cash_bank.code)
            .join(FinanceAccount, FinanceAccount.id == OperationalTxn.account_id)
            .join(cash_bank, cash_bank.id == OperationalTxn.cash_bank_account_id)
            .where(OperationalTxn.approval_status == ApprovalStatus.APPROVED.value)
            .where(OperationalTxn.cash_bank_account_id.in_(account_ids))
            .where(OperationalTxn.txn_date >= start)
            .where(OperationalTxn.txn_date <= end)
            .order_by(OperationalTxn.txn_date, OperationalTxn.created_at, OperationalTxn.reference_no)
        ).all()

        running = opening_balance
        total_in = total_out = 0
        entries: list[CashBookEntry] = []
        groups: dict[str, list[int]] = {}
        for txn, account_code, cash_bank_code in rows:
            delta = balance_delta(txn.kind, txn.amount)
            debit = delta if delta > 0 else 0
            credit = -delta if delta < 0 else 0
            running += delta
            total_in += debit
            total_out += credit
            entries.append(
                CashBookEntry(
                    txn_id=txn.id,
                    txn_date=txn.txn_date,
                    reference_no=txn.reference_no,
                    kind=TxnKind(txn.kind),
                    description=txn.description,
                    account_code=account_code,
                    cash_bank_code=cash_bank_code,
                    debit=debit,
                    credit=credit,
                    running_balance=running,
                )
            )
            bucket = groups.setdefault(period_key(txn.txn_date, group_by), [0, 0, 0])
            bucket[0] += debit
            bucket[1] += credit
            bucket[2] = running

        return CashBookReport(
            start=start,
            end=end,
            group_by=group_by,
            opening_balance=opening_balance,
            closing_balance=running,
            total_in=total_in,
            total_out=total_out,
            entries=tuple(entries),
            groups=tuple(
                CashBookGroup(key=key, total_in=t_in, total_out=t_out, closing_balance=closing)
                for key, (t_in, t_out, closing) in sorted(groups.items())
            ),
        )

    def _cash_bank_ids(self, cash_bank_account_id: UUID | None) -> list[UUID]:
        if cash_bank_account_id is not None:
            if self.session.get(CashBankAccount, cash_bank_account_id) is None:
                raise CashBankAccountNotFoundError(str(cash_bank_account_id))
            return [cash_bank_account_id]
        return list(self.session.execute(select(CashBankAccount.id)).scalars())

    def _opening_balance(self, account_ids: list[UUID], start: date) -> int:
        configured = self.session.execute(
            select(func.coalesce(func.sum(CashBankAccount.opening_balance), 0))
            .where(CashBankAccount.id.in_(account_ids))
        ).scalar_one()

        movements = self.session.execute(
            select(OperationalTxn.kind, func.sum(OperationalTxn.amount))
            .where(OperationalTxn.approval_status == ApprovalStatus.APPROVED.value)
            .where(OperationalTxn.cash_bank_account_id.in_(account_ids))
            .where(OperationalTxn.txn_date < start)
            .group_by(OperationalTxn.kind)
        )
        return int(configured) + sum(
            balance_delta(kind, int(amount or 0)) for kind, amount in movements
        )
