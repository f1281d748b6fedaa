"""
BudgetService -- maintenance of planned income/expense amounts.

Budgets are only read by the budget-vs-actual report; nothing in the
posting paths touches them.  Referenced accounts must exist and be active
when a budget is created or re-pointed.
"""

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from bursary_kernel.domain.audit_events import BudgetCreated, BudgetDeleted, BudgetUpdated
from bursary_kernel.domain.clock import Clock, SystemClock
from bursary_kernel.domain.dtos import BudgetInfo, BudgetKind
from bursary_kernel.exceptions import BudgetNotFoundError, ValidationError
from bursary_kernel.logging_config import get_logger
from bursary_kernel.models.budget import FinanceBudget
from bursary_kernel.services.account_service import AccountService
from bursary_kernel.services.audit_service import AuditService
from bursary_kernel.services.base import BaseService, require_actor

logger = get_logger("services.budget")


def _budget_kind(value: BudgetKind | str) -> BudgetKind:
    if isinstance(value, BudgetKind):
        return value
    try:
        return BudgetKind(str(value).upper())
    except ValueError:
        raise ValidationError(f"Invalid budget kind: {value!r}", field="kind") from None


def _budget_amount(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError("amount must be a non-negative integer", field="amount")
    return value


def _check_period(period_start: date, period_end: date) -> None:
    if period_start > period_end:
        raise ValidationError("period_start must not be after period_end", field="period_start")


class BudgetService(BaseService[FinanceBudget]):
    """Create, update and delete FinanceBudget rows, with audit."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditService | None = None,
        accounts: AccountService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit or AuditService(session, self._clock)
        self._accounts = accounts or AccountService(session, self._clock, self._audit)

    def _get_budget(self, budget_id: UUID) -> FinanceBudget:
        budget = self.session.get(FinanceBudget, budget_id)
        if budget is None:
            raise BudgetNotFoundError(str(budget_id))
        return budget

    def create_budget(
        self,
        kind: BudgetKind | str,
        amount: int,
        account_id: UUID,
        period_start: date,
        period_end: date,
        actor_id: str,
        cash_bank_account_id: UUID | None = None,
        notes: str | None = None,
    ) -> BudgetInfo:
        actor = require_actor(actor_id)
        kind = _budget_kind(kind)
        amount = _budget_amount(amount)
        _check_period(period_start, period_end)
        self._accounts.validate_finance_account(account_id)
        if cash_bank_account_id is not None:
            self._accounts.validate_cash_bank_account(cash_bank_account_id)

        budget = FinanceBudget(
            period_start=period_start,
            period_end=period_end,
            kind=kind.value,
            amount=amount,
            account_id=account_id,
            cash_bank_account_id=cash_bank_account_id,
            notes=(notes or "").strip() or None,
            created_by=actor,
        )
        self.session.add(budget)
        self.session.flush()

        logger.info(
            "budget_created",
            extra={"budget_id": str(budget.id), "kind": kind.value, "amount": amount},
        )
        self._audit.record(
            actor,
            BudgetCreated(
                entity_id=budget.id,
                kind=kind.value,
                amount=amount,
                period_start=period_start,
                period_end=period_end,
                account_id=account_id,
                cash_bank_account_id=cash_bank_account_id,
            ),
        )
        return BudgetInfo.from_model(budget)

    def update_budget(
        self,
        budget_id: UUID,
        actor_id: str,
        kind: BudgetKind | str | None = None,
        amount: int | None = None,
        account_id: UUID | None = None,
        period_start: date | None = None,
        period_end: date | None = None,
        cash_bank_account_id: UUID | None = None,
        clear_cash_bank: bool = False,
        notes: str | None = None,
    ) -> BudgetInfo:
        """
        Update a budget.  Only supplied fields change; ``clear_cash_bank``
        widens the budget to all cash/bank accounts.
        """
        actor = require_actor(actor_id)
        budget = self._get_budget(budget_id)
        changes: dict = {}

        new_start = period_start or budget.period_start
        new_end = period_end or budget.period_end
        _check_period(new_start, new_end)

        if kind is not None:
            budget.kind = _budget_kind(kind).value
            changes["kind"] = budget.kind
        if amount is not None:
            budget.amount = _budget_amount(amount)
            changes["amount"] = budget.amount
        if account_id is not None:
            self._accounts.validate_finance_account(account_id)
            budget.account_id = account_id
            changes["account_id"] = account_id
        if period_start is not None:
            budget.period_start = period_start
            changes["period_start"] = period_start
        if period_end is not None:
            budget.period_end = period_end
            changes["period_end"] = period_end
        if clear_cash_bank:
            budget.cash_bank_account_id = None
            changes["cash_bank_account_id"] = None
        elif cash_bank_account_id is not None:
            self._accounts.validate_cash_bank_account(cash_bank_account_id)
            budget.cash_bank_account_id = cash_bank_account_id
            changes["cash_bank_account_id"] = cash_bank_account_id
        if notes is not None:
            budget.notes = notes.strip() or None
            changes["notes"] = budget.notes

        budget.updated_by = actor
        self.session.flush()

        logger.info(
            "budget_updated",
            extra={"budget_id": str(budget.id), "fields": sorted(changes)},
        )
        self._audit.record(actor, BudgetUpdated(entity_id=budget.id, changes=changes))
        return BudgetInfo.from_model(budget)

    def delete_budget(self, budget_id: UUID, actor_id: str) -> None:
        actor = require_actor(actor_id)
        budget = self._get_budget(budget_id)
        kind, amount = budget.kind, budget.amount

        self.session.delete(budget)
        self.session.flush()

        logger.info("budget_deleted", extra={"budget_id": str(budget_id)})
        self._audit.record(
            actor, BudgetDeleted(entity_id=budget_id, kind=str(kind), amount=amount)
        )
