"""
PeriodLockService -- locked financial periods and posting-date validation.

Responsibility:
    Maintains the set of locked date ranges and rejects any ledger-affecting
    write whose date falls inside one.

Architecture position:
    Kernel > Services -- imperative shell.  ``assert_period_unlocked`` is
    called by LedgerService, ApprovalService and InvoicePostingBridge inside
    the same transaction as the write it guards.

Invariants enforced:
    - Bounds are inclusive; a date equal to start or end is locked.
    - Locks never overlap.  Two ranges overlap if start1 <= end2 AND
      start2 <= end1.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - PeriodLockedError carrying the lock's start, end and reason.
    - PeriodLockOverlapError on create.
    - PeriodLockNotFoundError on delete.

Audit relevance:
    Lock creation and deletion are audited.  Rejections are logged at
    WARNING level as ``period_locked_rejected``.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from bursary_kernel.domain.audit_events import PeriodLockCreated, PeriodLockDeleted
from bursary_kernel.domain.clock import Clock, SystemClock
from bursary_kernel.domain.dtos import PeriodLockInfo
from bursary_kernel.exceptions import (
    PeriodLockedError,
    PeriodLockNotFoundError,
    PeriodLockOverlapError,
    ValidationError,
)
from bursary_kernel.logging_config import get_logger
from bursary_kernel.models.period_lock import FinancePeriodLock
from bursary_kernel.services.audit_service import AuditService
from bursary_kernel.services.base import BaseService, require_actor

logger = get_logger("services.period_lock")


class PeriodLockService(BaseService[FinancePeriodLock]):
    """Guard and maintenance for financial period locks."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit or AuditService(session, self._clock)

    def find_lock(self, check_date: date) -> FinancePeriodLock | None:
        """Return the lock containing ``check_date``, if any."""
        return self.session.execute(
            select(FinancePeriodLock)
            .where(FinancePeriodLock.start_date <= check_date)
            .where(FinancePeriodLock.end_date >= check_date)
            .order_by(FinancePeriodLock.start_date)
            .limit(1)
        ).scalar_one_or_none()

    def is_locked(self, check_date: date) -> bool:
        return self.find_lock(check_date) is not None

    def assert_period_unlocked(self, check_date: date) -> None:
        """
        Raise PeriodLockedError if ``check_date`` is inside a locked period.
        """
        lock = self.find_lock(check_date)
        if lock is None:
            return
        logger.warning(
            "period_locked_rejected",
            extra={
                "target_date": check_date.isoformat(),
                "lock_id": str(lock.id),
                "start_date": lock.start_date.isoformat(),
                "end_date": lock.end_date.isoformat(),
            },
        )
        raise PeriodLockedError(check_date, lock.start_date, lock.end_date, lock.reason)

    def list_locks(self) -> list[PeriodLockInfo]:
        locks = self.session.execute(
            select(FinancePeriodLock).order_by(FinancePeriodLock.start_date)
        ).scalars()
        return [PeriodLockInfo.from_model(lock) for lock in locks]

    def create_lock(
        self,
        start_date: date,
        end_date: date,
        actor_id: str,
        reason: str | None = None,
    ) -> PeriodLockInfo:
        """
        Lock an inclusive date range.

        Raises:
            ValidationError: start_date after end_date.
            PeriodLockOverlapError: range overlaps an existing lock.
        """
        actor = require_actor(actor_id)
        if start_date > end_date:
            raise ValidationError("start_date must not be after end_date", field="start_date")

        overlapping = self.session.execute(
            select(FinancePeriodLock)
            .where(FinancePeriodLock.start_date <= end_date)
            .where(FinancePeriodLock.end_date >= start_date)
            .limit(1)
        ).scalar_one_or_none()
        if overlapping is not None:
            raise PeriodLockOverlapError(start_date, end_date, str(overlapping.id))

        lock = FinancePeriodLock(
            start_date=start_date,
            end_date=end_date,
            reason=(reason or "").strip() or None,
            locked_by=actor,
            created_by=actor,
        )
        self.session.add(lock)
        self.session.flush()

        logger.info(
            "period_lock_created",
            extra={
                "lock_id": str(lock.id),
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
            },
        )
        self._audit.record(
            actor,
            PeriodLockCreated(
                entity_id=lock.id,
                start_date=start_date,
                end_date=end_date,
                reason=lock.reason,
            ),
        )
        return PeriodLockInfo.from_model(lock)

    def delete_lock(self, lock_id: UUID, actor_id: str) -> None:
        """Remove a lock, reopening its dates for posting."""
        actor = require_actor(actor_id)
        lock = self.session.get(FinancePeriodLock, lock_id)
        if lock is None:
            raise PeriodLockNotFoundError(str(lock_id))

        start_date, end_date = lock.start_date, lock.end_date
        self.session.delete(lock)
        self.session.flush()

        logger.info(
            "period_lock_deleted",
            extra={
                "lock_id": str(lock_id),
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
            },
        )
        self._audit.record(
            actor,
            PeriodLockDeleted(entity_id=lock_id, start_date=start_date, end_date=end_date),
        )
