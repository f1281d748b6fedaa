"""
Module: bursary_kernel.models.period_lock
Responsibility: ORM persistence for locked financial date ranges.
Architecture position: Kernel > Models.

Invariants enforced:
    - start_date <= end_date; both bounds inclusive.
    - Locks do not overlap (enforced by PeriodLockService.create_lock).

Audit relevance:
    No ledger-affecting write may carry a date inside a lock.
"""

from datetime import date

from sqlalchemy import CheckConstraint, Date, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from bursary_kernel.db.base import TrackedBase


class FinancePeriodLock(TrackedBase):
    __tablename__ = "finance_period_locks"

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_period_lock_order"),
        Index("idx_period_lock_range", "start_date", "end_date"),
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    locked_by: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<FinancePeriodLock {self.start_date}..{self.end_date}>"

    def contains_date(self, check_date: date) -> bool:
        """Check if a date falls within this lock (inclusive)."""
        return self.start_date <= check_date <= self.end_date
