"""
ApprovalService -- maker / checker / approver workflow for manual entries.

Responsibility:
    Moves PENDING operational entries through check -> approve, or to
    REJECTED.  Approval is the moment a manual entry moves its cash/bank
    balance.  Transfer legs are handled together as one approval group.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Three distinct identities: the maker cannot check, approve or reject;
      the checker cannot approve.
    - Every leg of the group must be PENDING.  Approval requires a prior
      check.
    - The period lock is asserted for every leg's date on check, approve
      and reject.
    - Approval applies each leg's balance delta through
      AccountService.apply_cash_bank_balance (row lock, non-negative).

Failure modes:
    - TransactionNotFoundError, NotEditableError (wrong state),
      ForbiddenError (segregation of duties), ValidationError (missing
      rejection reason), PeriodLockedError, InsufficientBalanceError,
      CashBankAccountInactiveError.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from bursary_kernel.domain.audit_events import (
    TransactionApproved,
    TransactionChecked,
    TransactionRejected,
)
from bursary_kernel.domain.clock import Clock, SystemClock
from bursary_kernel.domain.dtos import ApprovalStatus, OperationalTxnInfo, TxnKind
from bursary_kernel.exceptions import (
    ForbiddenError,
    NotEditableError,
    TransactionNotFoundError,
    ValidationError,
)
from bursary_kernel.logging_config import get_logger
from bursary_kernel.models.operational_txn import OperationalTxn
from bursary_kernel.services.account_service import AccountService
from bursary_kernel.services.audit_service import AuditService
from bursary_kernel.services.base import BaseService, require_actor
from bursary_kernel.services.period_lock_service import PeriodLockService

logger = get_logger("services.approval")


class ApprovalService(BaseService[OperationalTxn]):
    """Check, approve and reject PENDING operational entries."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditService | None = None,
        accounts: AccountService | None = None,
        period_locks: PeriodLockService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit or AuditService(session, self._clock)
        self._accounts = accounts or AccountService(session, self._clock, self._audit)
        self._period_locks = period_locks or PeriodLockService(session, self._clock, self._audit)

    def load_approval_group(self, txn_id: UUID) -> list[OperationalTxn]:
        """The entry plus its transfer pair (if any), outgoing leg first."""
        base = self.session.get(OperationalTxn, txn_id)
        if base is None:
            raise TransactionNotFoundError(str(txn_id))

        group = [base]
        if base.transfer_pair_id is not None and base.transfer_pair_id != base.id:
            pair = self.session.get(OperationalTxn, base.transfer_pair_id)
            if pair is not None:
                group.append(pair)
        group.sort(key=lambda t: 0 if TxnKind(t.kind).is_outflow else 1)
        return group

    def _assert_all_pending(self, group: list[OperationalTxn], action: str) -> None:
        for txn in group:
            if txn.approval_status != ApprovalStatus.PENDING:
                raise NotEditableError(
                    str(txn.id),
                    str(txn.approval_status),
                    f"Only pending transactions can be {action}",
                )

    def _assert_dates_unlocked(self, group: list[OperationalTxn]) -> None:
        for txn in group:
            self._period_locks.assert_period_unlocked(txn.txn_date)

    def check_transaction(self, txn_id: UUID, actor_id: str) -> list[OperationalTxnInfo]:
        """
        Record the checker's review of a PENDING group.

        Raises:
            NotEditableError: not PENDING or already checked.
            ForbiddenError: the actor is the maker.
        """
        actor = require_actor(actor_id)
        group = self.load_approval_group(txn_id)
        self._assert_all_pending(group, "checked")

        for txn in group:
            if txn.checked_by:
                raise NotEditableError(str(txn.id), "CHECKED", "Transaction already checked")
            if txn.created_by == actor:
                raise ForbiddenError(actor, "check transaction", "maker cannot check own transaction")
        self._assert_dates_unlocked(group)

        now = self._clock.now()
        for txn in group:
            txn.checked_by = actor
            txn.checked_at = now
            txn.updated_by = actor
        self.session.flush()

        logger.info(
            "transaction_checked",
            extra={"txn_id": str(txn_id), "group_size": len(group)},
        )
        self._audit.record(
            actor,
            TransactionChecked(
                entity_id=txn_id,
                reference_no=group[0].reference_no,
                group_ids=tuple(t.id for t in group),
            ),
        )
        return [OperationalTxnInfo.from_model(t) for t in group]

    def approve_transaction(self, txn_id: UUID, actor_id: str) -> list[OperationalTxnInfo]:
        """
        Approve a checked PENDING group and move its cash/bank balances.

        Raises:
            NotEditableError: not PENDING, not checked, or already approved.
            ForbiddenError: actor is the maker or the checker.
        """
        actor = require_actor(actor_id)
        group = self.load_approval_group(txn_id)
        self._assert_all_pending(group, "approved")

        for txn in group:
            if not txn.checked_by:
                raise NotEditableError(
                    str(txn.id), "UNCHECKED", "Transaction must be checked before approval"
                )
            if txn.approved_by:
                raise NotEditableError(str(txn.id), "APPROVED", "Transaction already approved")
            if txn.created_by == actor:
                raise ForbiddenError(
                    actor, "approve transaction", "maker cannot approve own transaction"
                )
            if txn.checked_by == actor:
                raise ForbiddenError(
                    actor, "approve transaction", "checker cannot also approve"
                )

        now = self._clock.now()
        for txn in group:
            self._period_locks.assert_period_unlocked(txn.txn_date)
            self._accounts.apply_cash_bank_balance(txn.kind, txn.amount, txn.cash_bank_account_id)
            txn.approval_status = ApprovalStatus.APPROVED.value
            txn.approved_by = actor
            txn.approved_at = now
            txn.updated_by = actor
        self.session.flush()

        logger.info(
            "transaction_approved",
            extra={"txn_id": str(txn_id), "group_size": len(group)},
        )
        self._audit.record(
            actor,
            TransactionApproved(
                entity_id=txn_id,
                reference_no=group[0].reference_no,
                group_ids=tuple(t.id for t in group),
            ),
        )
        return [OperationalTxnInfo.from_model(t) for t in group]

    def reject_transaction(
        self,
        txn_id: UUID,
        actor_id: str,
        reason: str,
    ) -> list[OperationalTxnInfo]:
        """
        Reject a PENDING group.  Balances are never touched.

        Raises:
            ValidationError: blank reason.
            ForbiddenError: the actor is the maker.
        """
        actor = require_actor(actor_id)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A rejection reason is required", field="reason")

        group = self.load_approval_group(txn_id)
        self._assert_all_pending(group, "rejected")
        for txn in group:
            if txn.created_by == actor:
                raise ForbiddenError(
                    actor, "reject transaction", "maker cannot reject own transaction"
                )
        self._assert_dates_unlocked(group)

        now = self._clock.now()
        for txn in group:
            txn.approval_status = ApprovalStatus.REJECTED.value
            txn.rejected_by = actor
            txn.rejected_at = now
            txn.rejected_reason = reason
            txn.updated_by = actor
        self.session.flush()

        logger.info(
            "transaction_rejected",
            extra={"txn_id": str(txn_id), "group_size": len(group)},
        )
        self._audit.record(
            actor,
            TransactionRejected(
                entity_id=txn_id,
                reference_no=group[0].reference_no,
                reason=reason,
                group_ids=tuple(t.id for t in group),
            ),
        )
        return [OperationalTxnInfo.from_model(t) for t in group]
