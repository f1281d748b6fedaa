"""
LedgerService -- manual operational ledger entries and transfers.

Responsibility:
    Creates PENDING income/expense entries and cash/bank transfer pairs, and
    edits the descriptive fields of entries that are still PENDING.
    Approval (which moves balances) lives in ApprovalService; invoice
    settlements are posted by InvoicePostingBridge.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Every write validates the finance account and cash/bank account are
      active and asserts the date is unlocked, in the same transaction.
    - reference_no is unique.  Generated numbers follow OPR-YYYYMMDD-NNNN
      from a locked per-day counter.  Replaying a reference with identical
      content returns the existing row; different content is a conflict.
    - Transfer legs are created together, cross-linked, both PENDING.
    - Only PENDING entries are editable, by the maker or a finance admin.

Failure modes:
    - UnauthorizedError, ValidationError, AccountNotFoundError,
      AccountInactiveError, PeriodLockedError, DuplicateReferenceError,
      SameCashBankTransferError, TransactionNotFoundError,
      NotEditableError, ForbiddenError.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bursary_kernel.domain.audit_events import (
    TransactionCreated,
    TransactionUpdated,
    TransferCreated,
)
from bursary_kernel.domain.clock import Clock, SystemClock
from bursary_kernel.domain.dtos import (
    ApprovalStatus,
    OperationalTxnInfo,
    TransferResult,
    TxnKind,
)
from bursary_kernel.domain.reference_numbers import (
    format_operational_reference,
    operational_sequence_name,
    transfer_leg_references,
)
from bursary_kernel.exceptions import (
    DuplicateReferenceError,
    ForbiddenError,
    NotEditableError,
    SameCashBankTransferError,
    TransactionNotFoundError,
    ValidationError,
)
from bursary_kernel.logging_config import LogContext, get_logger
from bursary_kernel.models.operational_txn import OperationalTxn
from bursary_kernel.services.account_service import AccountService
from bursary_kernel.services.audit_service import AuditService
from bursary_kernel.services.base import BaseService, require_actor
from bursary_kernel.services.period_lock_service import PeriodLockService
from bursary_kernel.services.sequence_service import SequenceService
from bursary_kernel.utils.idempotency import is_posting_marker

logger = get_logger("services.ledger")

ELEVATED_ROLES = frozenset({"admin", "finance"})
ELEVATED_PERMISSIONS = frozenset({"finance.manage"})


def has_elevated_access(roles: Iterable[str] = (), permissions: Iterable[str] = ()) -> bool:
    """Finance admins may edit entries they did not create."""
    return bool(ELEVATED_ROLES.intersection(roles) or ELEVATED_PERMISSIONS.intersection(permissions))


def _positive_amount(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("amount must be an integer", field="amount")
    if amount <= 0:
        raise ValidationError("amount must be greater than zero", field="amount")
    return amount


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip()
    return text or None


def _manual_reference(value: str | None) -> str | None:
    reference_no = _clean(value)
    if reference_no is not None and is_posting_marker(reference_no):
        raise ValidationError(
            f"Reference {reference_no!r} is reserved for invoice postings",
            field="reference_no",
        )
    return reference_no


class LedgerService(BaseService[OperationalTxn]):
    """Write side of the operational ledger for manual entries."""

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
        self._sequences = SequenceService(session)

    # =========================================================================
    # Lookups
    # =========================================================================

    def _get_txn(self, txn_id: UUID) -> OperationalTxn:
        txn = self.session.get(OperationalTxn, txn_id)
        if txn is None:
            raise TransactionNotFoundError(str(txn_id))
        return txn

    def find_by_reference(self, reference_no: str) -> OperationalTxn | None:
        return self.session.execute(
            select(OperationalTxn).where(OperationalTxn.reference_no == reference_no)
        ).scalar_one_or_none()

    def next_reference_no(self, txn_date: date) -> str:
        """Allocate the next free OPR-YYYYMMDD-NNNN reference."""
        while True:
            seq = self._sequences.next_value(operational_sequence_name(txn_date))
            reference_no = format_operational_reference(txn_date, seq)
            if self.find_by_reference(reference_no) is None:
                return reference_no

    # =========================================================================
    # Create
    # =========================================================================

    def create_transaction(
        self,
        kind: TxnKind | str,
        amount: int,
        account_id: UUID,
        cash_bank_account_id: UUID,
        actor_id: str,
        txn_date: date | None = None,
        reference_no: str | None = None,
        description: str | None = None,
        proof_url: str | None = None,
    ) -> OperationalTxnInfo:
        """
        Create a PENDING manual ledger entry.

        Postconditions:
            - Exactly one PENDING row and one audit event, or an existing
              row returned unchanged on an identical replay.
            - Cash/bank balances are untouched until approval.
        """
        actor = require_actor(actor_id)
        try:
            kind = TxnKind(kind)
        except ValueError:
            raise ValidationError(f"Invalid kind: {kind!r}", field="kind") from None
        amount = _positive_amount(amount)
        txn_date = txn_date or self._clock.today()
        reference_no = _manual_reference(reference_no)
        description = _clean(description)

        if reference_no is not None:
            existing = self.find_by_reference(reference_no)
            if existing is not None:
                return self._replay(
                    existing, kind, amount, account_id, cash_bank_account_id, txn_date
                )

        self._accounts.validate_finance_account(account_id)
        self._accounts.validate_cash_bank_account(cash_bank_account_id)
        self._period_locks.assert_period_unlocked(txn_date)

        if reference_no is None:
            reference_no = self.next_reference_no(txn_date)

        txn = OperationalTxn(
            txn_date=txn_date,
            kind=kind.value,
            amount=amount,
            account_id=account_id,
            cash_bank_account_id=cash_bank_account_id,
            reference_no=reference_no,
            description=description,
            proof_url=_clean(proof_url),
            approval_status=ApprovalStatus.PENDING.value,
            created_by=actor,
        )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(txn)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            # A concurrent writer took the reference between lookup and insert.
            savepoint.rollback()
            existing = self.find_by_reference(reference_no)
            if existing is None:
                raise
            return self._replay(existing, kind, amount, account_id, cash_bank_account_id, txn_date)

        with LogContext.bind(txn_id=str(txn.id), reference_no=reference_no):
            logger.info(
                "transaction_created",
                extra={"kind": kind.value, "amount": amount, "txn_date": txn_date.isoformat()},
            )
        self._audit.record(
            actor,
            TransactionCreated(
                entity_id=txn.id,
                reference_no=reference_no,
                kind=kind.value,
                amount=amount,
                txn_date=txn_date,
                approval_status=txn.approval_status,
            ),
        )
        return OperationalTxnInfo.from_model(txn)

    def _replay(
        self,
        existing: OperationalTxn,
        kind: TxnKind,
        amount: int,
        account_id: UUID,
        cash_bank_account_id: UUID,
        txn_date: date,
    ) -> OperationalTxnInfo:
        same = (
            existing.kind == kind.value
            and existing.amount == amount
            and existing.account_id == account_id
            and existing.cash_bank_account_id == cash_bank_account_id
            and existing.txn_date == txn_date
        )
        if not same:
            raise DuplicateReferenceError(existing.reference_no, str(existing.id))
        logger.info(
            "transaction_idempotent",
            extra={"txn_id": str(existing.id), "reference_no": existing.reference_no},
        )
        return OperationalTxnInfo.from_model(existing)

    def create_transfer(
        self,
        from_account_id: UUID,
        from_cash_bank_account_id: UUID,
        to_account_id: UUID,
        to_cash_bank_account_id: UUID,
        amount: int,
        actor_id: str,
        txn_date: date | None = None,
        reference_no: str | None = None,
        description: str | None = None,
    ) -> TransferResult:
        """
        Create a TRANSFER_OUT / TRANSFER_IN pair, both PENDING.

        References are ``<base>-OUT`` and ``<base>-IN``.  Both legs are
        validated and written in the caller's transaction; either both
        exist afterwards or neither does.
        """
        actor = require_actor(actor_id)
        amount = _positive_amount(amount)
        if from_cash_bank_account_id == to_cash_bank_account_id:
            raise SameCashBankTransferError(str(from_cash_bank_account_id))
        txn_date = txn_date or self._clock.today()
        description = _clean(description)

        self._accounts.validate_finance_account(from_account_id)
        self._accounts.validate_finance_account(to_account_id)
        self._accounts.validate_cash_bank_account(from_cash_bank_account_id)
        self._accounts.validate_cash_bank_account(to_cash_bank_account_id)
        self._period_locks.assert_period_unlocked(txn_date)

        base_reference = _manual_reference(reference_no) or self.next_reference_no(txn_date)
        out_reference, in_reference = transfer_leg_references(base_reference)
        for leg_reference in (out_reference, in_reference):
            _manual_reference(leg_reference)
            existing = self.find_by_reference(leg_reference)
            if existing is not None:
                raise DuplicateReferenceError(leg_reference, str(existing.id))

        outgoing = OperationalTxn(
            txn_date=txn_date,
            kind=TxnKind.TRANSFER_OUT.value,
            amount=amount,
            account_id=from_account_id,
            cash_bank_account_id=from_cash_bank_account_id,
            reference_no=out_reference,
            description=description,
            approval_status=ApprovalStatus.PENDING.value,
            created_by=actor,
        )
        incoming = OperationalTxn(
            txn_date=txn_date,
            kind=TxnKind.TRANSFER_IN.value,
            amount=amount,
            account_id=to_account_id,
            cash_bank_account_id=to_cash_bank_account_id,
            reference_no=in_reference,
            description=description,
            approval_status=ApprovalStatus.PENDING.value,
            created_by=actor,
        )
        self.session.add_all([outgoing, incoming])
        self.session.flush()

        outgoing.transfer_pair_id = incoming.id
        incoming.transfer_pair_id = outgoing.id
        self.session.flush()

        logger.info(
            "transfer_created",
            extra={
                "reference_no": base_reference,
                "outgoing_txn_id": str(outgoing.id),
                "incoming_txn_id": str(incoming.id),
                "amount": amount,
            },
        )
        self._audit.record(
            actor,
            TransferCreated(
                entity_id=outgoing.id,
                incoming_txn_id=incoming.id,
                reference_no=base_reference,
                amount=amount,
                txn_date=txn_date,
                from_cash_bank_account_id=from_cash_bank_account_id,
                to_cash_bank_account_id=to_cash_bank_account_id,
            ),
        )
        return TransferResult(
            outgoing=OperationalTxnInfo.from_model(outgoing),
            incoming=OperationalTxnInfo.from_model(incoming),
        )

    # =========================================================================
    # Edit
    # =========================================================================

    def update_pending_transaction(
        self,
        txn_id: UUID,
        actor_id: str,
        roles: Iterable[str] = (),
        permissions: Iterable[str] = (),
        txn_date: date | None = None,
        description: str | None = None,
        reference_no: str | None = None,
        proof_url: str | None = None,
    ) -> OperationalTxnInfo:
        """
        Edit the descriptive fields of a PENDING entry.

        Only fields passed as non-None change.  An empty string clears
        description or proof_url; reference_no cannot be cleared.
        Moving a transfer leg to another date moves the other leg with it.

        Raises:
            NotEditableError: the entry is APPROVED or REJECTED, or is a
                transfer leg whose partner no longer is PENDING.
            ForbiddenError: actor is neither the maker nor a finance admin.
            PeriodLockedError: current or new date is locked, for either leg.
        """
        actor = require_actor(actor_id)
        txn = self._get_txn(txn_id)

        if txn.approval_status != ApprovalStatus.PENDING:
            raise NotEditableError(
                str(txn.id),
                str(txn.approval_status),
                "Only pending transactions can be edited",
            )
        if txn.created_by != actor and not has_elevated_access(roles, permissions):
            raise ForbiddenError(
                actor, "edit transaction", "only the maker or a finance admin can edit"
            )

        self._period_locks.assert_period_unlocked(txn.txn_date)
        pair = None
        if txn_date is not None and txn_date != txn.txn_date:
            self._period_locks.assert_period_unlocked(txn_date)
            pair = self._transfer_pair(txn)
            if pair is not None:
                self._period_locks.assert_period_unlocked(pair.txn_date)

        new_reference = _manual_reference(reference_no)
        if new_reference is not None and new_reference != txn.reference_no:
            existing = self.find_by_reference(new_reference)
            if existing is not None:
                raise DuplicateReferenceError(new_reference, str(existing.id))

        before = self._editable_snapshot(txn)
        pair_before = self._editable_snapshot(pair) if pair is not None else None
        if txn_date is not None:
            txn.txn_date = txn_date
        if pair is not None:
            # Both legs of a transfer always share one date.
            pair.txn_date = txn_date
            pair.updated_by = actor
        if description is not None:
            txn.description = _clean(description)
        if new_reference is not None:
            txn.reference_no = new_reference
        if proof_url is not None:
            txn.proof_url = _clean(proof_url)
        txn.updated_by = actor
        self.session.flush()
        after = self._editable_snapshot(txn)

        logger.info(
            "transaction_updated",
            extra={
                "txn_id": str(txn.id),
                "fields": sorted(k for k in after if after[k] != before[k]),
                "paired_txn_id": str(pair.id) if pair is not None else None,
            },
        )
        self._audit.record(
            actor, TransactionUpdated(entity_id=txn.id, before=before, after=after)
        )
        if pair is not None:
            self._audit.record(
                actor,
                TransactionUpdated(
                    entity_id=pair.id, before=pair_before, after=self._editable_snapshot(pair)
                ),
            )
        return OperationalTxnInfo.from_model(txn)

    def _transfer_pair(self, txn: OperationalTxn) -> OperationalTxn | None:
        if txn.transfer_pair_id is None or txn.transfer_pair_id == txn.id:
            return None
        pair = self._get_txn(txn.transfer_pair_id)
        if pair.approval_status != ApprovalStatus.PENDING:
            raise NotEditableError(
                str(pair.id),
                str(pair.approval_status),
                "The other transfer leg is no longer pending",
            )
        return pair

    @staticmethod
    def _editable_snapshot(txn: OperationalTxn) -> dict:
        return {
            "txn_date": txn.txn_date.isoformat(),
            "description": txn.description,
            "reference_no": txn.reference_no,
            "proof_url": txn.proof_url,
        }
