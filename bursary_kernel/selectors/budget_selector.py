"""
Module: bursary_kernel.selectors.budget_selector
Responsibility: Budget listings and the budget-vs-actual report.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Actuals come only from APPROVED INCOME / EXPENSE entries dated inside
      the range.  Transfers are never counted.
    - A budget with no cash/bank account is compared with the account's
      actuals across every cash/bank account; a budget pinned to a
      cash/bank account is compared with that exact slice.
    - Actual-only slices are reported with budget 0, unless an
      all-cash/bank budget for the same kind and account already counts
      them.
    - variance = actual - budget; variance_pct is None when budget is 0.
    - Totals are the sums of the rows.
"""

from collections import defaultdict
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import func, or_, select

from bursary_kernel.domain.dtos import (
    AccountRef,
    ApprovalStatus,
    BudgetInfo,
    BudgetKind,
    BudgetVsActualReport,
    BudgetVsActualRow,
    BudgetVsActualTotals,
    Page,
    TxnKind,
)
from bursary_kernel.exceptions import ValidationError
from bursary_kernel.models.budget import FinanceBudget
from bursary_kernel.models.finance_account import CashBankAccount, FinanceAccount
from bursary_kernel.models.operational_txn import OperationalTxn
from bursary_kernel.selectors.base import BaseSelector
from bursary_kernel.selectors.ledger_selector import (
    DEFAULT_PAGE_SIZE,
    check_paging,
    parse_filter,
)

_PCT_QUANTUM = Decimal("0.01")

SliceKey = tuple[str, UUID, UUID | None]


def variance_percentage(variance: int, budget: int) -> Decimal | None:
    """variance / budget * 100, rounded half-up to two places."""
    if budget <= 0:
        return None
    return (Decimal(variance) * 100 / Decimal(budget)).quantize(
        _PCT_QUANTUM, rounding=ROUND_HALF_UP
    )


class BudgetSelector(BaseSelector[FinanceBudget]):
    """Selector for budgets and budget-vs-actual comparison."""

    def list_budgets(
        self,
        start: date | None = None,
        end: date | None = None,
        kind: BudgetKind | str | None = None,
        account_id: UUID | None = None,
        cash_bank_account_id: UUID | None = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[BudgetInfo]:
        """
        Budgets filtered by kind/account/cash-bank and, when both ``start``
        and ``end`` are given, by overlap with that range.
        """
        check_paging(page, page_size)

        conditions = []
        if kind is not None:
            conditions.append(FinanceBudget.kind == parse_filter(BudgetKind, kind, "kind").value)
        if account_id is not None:
            conditions.append(FinanceBudget.account_id == account_id)
        if cash_bank_account_id is not None:
            conditions.append(FinanceBudget.cash_bank_account_id == cash_bank_account_id)
        if start is not None and end is not None:
            conditions.append(FinanceBudget.period_start <= end)
            conditions.append(FinanceBudget.period_end >= start)

        total = self.session.execute(
            select(func.count()).select_from(FinanceBudget).where(*conditions)
        ).scalar_one()
        rows = self.session.execute(
            select(FinanceBudget)
            .where(*conditions)
            .order_by(FinanceBudget.period_start.desc(), FinanceBudget.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars()

        return Page(
            items=tuple(BudgetInfo.from_model(b) for b in rows),
            total=total,
            page=page,
            page_size=page_size,
        )

    def budget_vs_actual(
        self,
        start: date,
        end: date,
        kind: BudgetKind | str | None = None,
        cash_bank_account_id: UUID | None = None,
    ) -> BudgetVsActualReport:
        """
        Compare budgeted with realized amounts over ``[start, end]``.

        Raises:
            ValidationError: start after end or unknown ``kind``.
        """
        if start > end:
            raise ValidationError("start must not be after end", field="start")

        if kind is not None:
            kinds = [parse_filter(BudgetKind, kind, "kind").value]
        else:
            kinds = [k.value for k in BudgetKind]

        budgets = self._budgeted(start, end, kinds, cash_bank_account_id)
        actual_exact, actual_by_account = self._actuals(start, end, kinds, cash_bank_account_id)

        slices: dict[SliceKey, int] = dict(budgets)
        # Actuals already matched by an all-cash/bank budget get no extra row.
        broad = {(k, account_id) for k, account_id, cash_bank_id in budgets if cash_bank_id is None}
        for key in actual_exact:
            if (key[0], key[1]) not in broad:
                slices.setdefault(key, 0)

        accounts = self._account_refs(FinanceAccount, {key[1] for key in slices})
        cash_banks = self._account_refs(
            CashBankAccount, {key[2] for key in slices if key[2] is not None}
        )

        rows = []
        for (row_kind, account_id, cash_bank_id), budget in slices.items():
            if cash_bank_id is None:
                actual = actual_by_account.get((row_kind, account_id), 0)
            else:
                actual = actual_exact.get((row_kind, account_id, cash_bank_id), 0)
            variance = actual - budget
            rows.append(
                BudgetVsActualRow(
                    kind=BudgetKind(row_kind),
                    account=accounts[account_id],
                    cash_bank_account=cash_banks[cash_bank_id] if cash_bank_id else None,
                    budget=budget,
                    actual=actual,
                    variance=variance,
                    variance_pct=variance_percentage(variance, budget),
                )
            )
        rows.sort(key=lambda r: (r.kind.value, r.account.code))

        totals = BudgetVsActualTotals(
            budget=sum(r.budget for r in rows),
            actual=sum(r.actual for r in rows),
            variance=sum(r.variance for r in rows),
        )
        return BudgetVsActualReport(start=start, end=end, rows=tuple(rows), totals=totals)

    def _budgeted(
        self,
        start: date,
        end: date,
        kinds: list[str],
        cash_bank_account_id: UUID | None,
    ) -> dict[SliceKey, int]:
        query = (
            select(
                FinanceBudget.kind,
                FinanceBudget.account_id,
                FinanceBudget.cash_bank_account_id,
                func.sum(FinanceBudget.amount),
            )
            .where(FinanceBudget.kind.in_(kinds))
            .where(FinanceBudget.period_start <= end)
            .where(FinanceBudget.period_end >= start)
            .group_by(
                FinanceBudget.kind,
                FinanceBudget.account_id,
                FinanceBudget.cash_bank_account_id,
            )
        )
        if cash_bank_account_id is not None:
            query = query.where(
                or_(
                    FinanceBudget.cash_bank_account_id == cash_bank_account_id,
                    FinanceBudget.cash_bank_account_id.is_(None),
                )
            )
        return {
            (str(k), account_id, cash_bank_id): int(amount or 0)
            for k, account_id, cash_bank_id, amount in self.session.execute(query)
        }

    def _actuals(
        self,
        start: date,
        end: date,
        kinds: list[str],
        cash_bank_account_id: UUID | None,
    ) -> tuple[dict[SliceKey, int], dict[tuple[str, UUID], int]]:
        txn_kinds = [TxnKind(k).value for k in kinds]
        query = (
            select(
                OperationalTxn.kind,
                OperationalTxn.account_id,
                OperationalTxn.cash_bank_account_id,
                func.sum(OperationalTxn.amount),
            )
            .where(OperationalTxn.approval_status == ApprovalStatus.APPROVED.value)
            .where(OperationalTxn.kind.in_(txn_kinds))
            .where(OperationalTxn.txn_date >= start)
            .where(OperationalTxn.txn_date <= end)
            .group_by(
                OperationalTxn.kind,
                OperationalTxn.account_id,
                OperationalTxn.cash_bank_account_id,
            )
        )
        if cash_bank_account_id is not None:
            query = query.where(OperationalTxn.cash_bank_account_id == cash_bank_account_id)

        exact: dict[SliceKey, int] = {}
        by_account: dict[tuple[str, UUID], int] = defaultdict(int)
        for k, account_id, cash_bank_id, amount in self.session.execute(query):
            amount = int(amount or 0)
            exact[(str(k), account_id, cash_bank_id)] = amount
            by_account[(str(k), account_id)] += amount
        return exact, dict(by_account)

    def _account_refs(self, model, ids: set[UUID]) -> dict[UUID, AccountRef]:
        if not ids:
            return {}
        rows = self.session.execute(
            select(model.id, model.code, model.name).where(model.id.in_(ids))
        )
        return {row_id: AccountRef(id=row_id, code=code, name=name) for row_id, code, name in rows}
