"""
Module: bursary_kernel.models.budget
Responsibility: ORM persistence for planned income/expense amounts per
    finance account (optionally per cash/bank account) over a date range.
Architecture position: Kernel > Models.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from bursary_kernel.db.base import TrackedBase, UUIDString
from bursary_kernel.domain.dtos import BudgetKind


class FinanceBudget(TrackedBase):
    __tablename__ = "finance_budgets"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_budget_amount_non_negative"),
        CheckConstraint("period_start <= period_end", name="ck_budget_period_order"),
        Index("idx_budget_period", "period_start", "period_end"),
        Index("idx_budget_account", "account_id"),
    )

    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    kind: Mapped[BudgetKind] = mapped_column(String(20), nullable=False)

    amount: Mapped[int] = mapped_column(nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("finance_accounts.id"),
        nullable=False,
    )

    # Null = budget applies across all cash/bank accounts
    cash_bank_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("cash_bank_accounts.id"),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<FinanceBudget {self.kind} {self.amount} {self.period_start}..{self.period_end}>"
