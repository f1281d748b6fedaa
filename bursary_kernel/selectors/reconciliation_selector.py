"""
Module: bursary_kernel.selectors.reconciliation_selector
Responsibility: Reconciliation report -- each cash/bank account's stored
    balance checked against the balance its APPROVED entries imply, with the
    opening, movement and closing figures for a date range.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - opening_at_start = opening_configured + signed APPROVED entries dated
      before ``start``.
    - closing_at_end = opening_at_start + period_in - period_out.
    - ledger_balance = opening_configured + every signed APPROVED entry.
    - variance = balance - ledger_balance.  A non-zero variance means the
      stored balance drifted from the ledger.
"""

from collections import defaultdict
from datetime import date
from uuid import UUID

from sqlalchemy import func, select

from bursary_kernel.domain.balance import balance_delta
from bursary_kernel.domain.dtos import (
    ApprovalStatus,
    CashBankType,
    ReconciliationReport,
    ReconciliationRow,
    ReconciliationTotals,
)
from bursary_kernel.exceptions import CashBankAccountNotFoundError, ValidationError
from bursary_kernel.models.finance_account import CashBankAccount
from bursary_kernel.models.operational_txn import OperationalTxn
from bursary_kernel.selectors.base import BaseSelector


class ReconciliationSelector(BaseSelector[CashBankAccount]):
    """Selector for the cash/bank reconciliation report."""

    def reconciliation(
        self,
        start: date,
        end: date,
        cash_bank_account_id: UUID | None = None,
    ) -> ReconciliationReport:
        """
        Reconcile every cash/bank account (or just one) for ``[start, end]``.

        Raises:
            ValidationError: start after end.
            CashBankAccountNotFoundError: unknown ``cash_bank_account_id``.
        """
        if start > end:
            raise ValidationError("start must not be after end", field="start")

        query = select(CashBankAccount).order_by(CashBankAccount.account_type, CashBankAccount.code)
        if cash_bank_account_id is not None:
            query = query.where(CashBankAccount.id == cash_bank_account_id)
        accounts = list(self.session.execute(query).scalars())
        if cash_bank_account_id is not None and not accounts:
            raise CashBankAccountNotFoundError(str(cash_bank_account_id))
        if not accounts:
            return ReconciliationReport(start=start, end=end)

        before, period_in, period_out, overall = self._movements(
            [a.id for a in accounts], start, end
        )

        rows = []
        for account in accounts:
            opening_at_start = account.opening_balance + before[account.id]
            period_net = period_in[account.id] - period_out[account.id]
            ledger_balance = account.opening_balance + overall[account.id]
            rows.append(
                ReconciliationRow(
                    cash_bank_account_id=account.id,
                    code=account.code,
                    name=account.name,
                    account_type=CashBankType(account.account_type),
                    opening_configured=account.opening_balance,
                    opening_at_start=opening_at_start,
                    period_in=period_in[account.id],
                    period_out=period_out[account.id],
                    period_net=period_net,
                    closing_at_end=opening_at_start + period_net,
                    ledger_balance=ledger_balance,
                    balance=account.balance,
                    variance=account.balance - ledger_balance,
                )
            )

        return ReconciliationReport(
            start=start,
            end=end,
            rows=tuple(rows),
            totals=ReconciliationTotals(
                opening_at_start=sum(r.opening_at_start for r in rows),
                period_in=sum(r.period_in for r in rows),
                period_out=sum(r.period_out for r in rows),
                period_net=sum(r.period_net for r in rows),
                closing_at_end=sum(r.closing_at_end for r in rows),
                ledger_balance=sum(r.ledger_balance for r in rows),
                balance=sum(r.balance for r in rows),
                variance=sum(r.variance for r in rows),
            ),
        )

    def _movements(self, account_ids: list[UUID], start: date, end: date):
        """Signed APPROVED totals per account: before start, in/out of range, all time."""
        rows = self.session.execute(
            select(
                OperationalTxn.cash_bank_account_id,
                OperationalTxn.kind,
                OperationalTxn.txn_date,
                func.sum(OperationalTxn.amount),
            )
            .where(OperationalTxn.approval_status == ApprovalStatus.APPROVED.value)
            .where(OperationalTxn.cash_bank_account_id.in_(account_ids))
            .group_by(
                OperationalTxn.cash_bank_account_id,
                OperationalTxn.kind,
                OperationalTxn.txn_date,
            )
        )

        before: dict[UUID, int] = defaultdict(int)
        period_in: dict[UUID, int] = defaultdict(int)
        period_out: dict[UUID, int] = defaultdict(int)
        overall: dict[UUID, int] = defaultdict(int)
        for account_id, kind, txn_date, amount in rows:
            delta = balance_delta(kind, int(amount or 0))
            overall[account_id] += delta
            if txn_date < start:
                before[account_id] += delta
            elif txn_date <= end:
                if delta > 0:
                    period_in[account_id] += delta
                else:
                    period_out[account_id] -= delta
        return before, period_in, period_out, overall
