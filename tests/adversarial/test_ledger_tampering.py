"""
Adversarial tests: tampering with finalized ledger rows and the audit trail.

Services refuse these edits up front; these tests go around the services
and mutate ORM rows directly, relying on the flush-time immutability
listeners to stop them.
"""

import pytest

from bursary_kernel.domain.audit_events import TransactionCreated
from bursary_kernel.domain.dtos import TxnKind
from bursary_kernel.exceptions import ImmutabilityViolationError
from bursary_kernel.models.audit_event import AuditEvent
from bursary_kernel.models.operational_txn import OperationalTxn
from bursary_kernel.services.audit_service import AuditService
from bursary_kernel.services.ledger_service import LedgerService
from tests.conftest import CHECKER, MAKER


@pytest.fixture
def pending(ledger_service, income_account, cash_account):
    return ledger_service.create_transaction(
        TxnKind.INCOME, 50_000, income_account.id, cash_account.id, MAKER
    )


class TestFinalizedTransactions:
    @pytest.mark.parametrize(
        "field, value",
        [("amount", 1), ("kind", "EXPENSE"), ("description", "diubah"), ("approval_status", "PENDING")],
    )
    def test_approved_row_cannot_change(self, session, approve, pending, field, value):
        approve(pending.id)
        txn = session.get(OperationalTxn, pending.id)

        setattr(txn, field, value)

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "OperationalTxn"

    def test_rejected_row_cannot_change(self, session, approval_service, pending):
        approval_service.reject_transaction(pending.id, CHECKER, "bukti tidak lengkap")
        txn = session.get(OperationalTxn, pending.id)

        txn.rejected_reason = "alasan lain"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_approved_row_cannot_be_deleted(self, session, approve, pending):
        approve(pending.id)

        session.delete(session.get(OperationalTxn, pending.id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_updated_by_may_change_on_final_row(self, session, approve, pending):
        approve(pending.id)
        txn = session.get(OperationalTxn, pending.id)

        txn.updated_by = "user-ops"
        session.flush()

    def test_pending_row_is_editable(self, session, pending):
        txn = session.get(OperationalTxn, pending.id)

        txn.description = "revisi"
        session.flush()

        assert session.get(OperationalTxn, pending.id).description == "revisi"


class TestAuditTrail:
    def test_audit_event_cannot_be_updated(self, session, audit_service, pending):
        (event,) = audit_service.get_trace(pending.id)

        event.actor_id = "someone-else"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "AuditEvent"

    def test_audit_event_cannot_be_deleted(self, session, audit_service, pending):
        (event,) = audit_service.get_trace(pending.id)

        session.delete(session.get(AuditEvent, event.id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class _BrokenSink:
    def write(self, actor_id, event_type, entity, entity_id, meta):
        raise RuntimeError("audit store unavailable")


class TestAuditFailure:
    def test_sink_failure_is_logged_and_swallowed(self, session, clock, captured_logs, pending):
        audit = AuditService(session, clock, sink=_BrokenSink())

        accepted = audit.record(
            MAKER,
            TransactionCreated(
                entity_id=pending.id,
                reference_no=pending.reference_no,
                kind=pending.kind.value,
                amount=pending.amount,
                txn_date=pending.txn_date,
                approval_status=pending.approval_status.value,
            ),
        )

        assert accepted is False
        failures = [r for r in captured_logs() if r["message"] == "audit_write_failed"]
        assert len(failures) == 1
        assert failures[0]["level"] == "WARNING"
        assert failures[0]["event_type"] == "operational_txn.created"

    def test_business_write_survives_audit_outage(
        self, session, clock, account_service, period_lock_service, income_account, cash_account
    ):
        ledger = LedgerService(
            session,
            clock,
            AuditService(session, clock, sink=_BrokenSink()),
            account_service,
            period_lock_service,
        )

        txn = ledger.create_transaction(
            TxnKind.INCOME, 10_000, income_account.id, cash_account.id, MAKER
        )

        assert session.get(OperationalTxn, txn.id) is not None
