"""
AuditService -- best-effort audit trail for every mutation.

Responsibility:
    Hands each typed audit payload (``domain/audit_events.py``) to an
    ``AuditSink``.  The default ``DatabaseAuditSink`` appends an AuditEvent
    row inside a savepoint of the caller's transaction.

Architecture position:
    Kernel > Services -- called by every write-side service after the
    entity change has been flushed.

Invariants enforced:
    - A sink failure never aborts the business operation: it is logged as
      ``audit_write_failed`` and swallowed.  The savepoint keeps a failed
      audit insert from poisoning the caller's transaction.
    - Audit events are append-only (db/immutability.py).
"""

from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from bursary_kernel.domain.audit_events import AuditPayload
from bursary_kernel.domain.clock import Clock, SystemClock
from bursary_kernel.logging_config import get_logger
from bursary_kernel.models.audit_event import AuditEvent
from bursary_kernel.services.sequence_service import SequenceService

logger = get_logger("services.audit")


class AuditSink(Protocol):
    """Generic audit-log collaborator."""

    def write(
        self,
        actor_id: str,
        event_type: str,
        entity: str,
        entity_id: UUID,
        meta: dict[str, Any],
    ) -> None: ...


class DatabaseAuditSink:
    """Writes AuditEvent rows in the caller's session, isolated by a savepoint."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequences = SequenceService(session)

    def write(
        self,
        actor_id: str,
        event_type: str,
        entity: str,
        entity_id: UUID,
        meta: dict[str, Any],
    ) -> None:
        with self._session.begin_nested():
            seq = self._sequences.next_value(SequenceService.AUDIT_EVENT)
            self._session.add(
                AuditEvent(
                    seq=seq,
                    entity=entity,
                    entity_id=entity_id,
                    event_type=event_type,
                    actor_id=actor_id,
                    occurred_at=self._clock.now(),
                    meta=meta,
                )
            )
            self._session.flush()


class AuditService:
    """
    Records audit payloads through a sink.

    Usage:
        audit = AuditService(session, clock)
        audit.record(actor_id, PaymentRecorded(entity_id=invoice.id, ...))
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sink: AuditSink | None = None,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._sink = sink or DatabaseAuditSink(session, self._clock)

    def record(self, actor_id: str, payload: AuditPayload) -> bool:
        """
        Write one audit event.

        Returns:
            True if the sink accepted the event, False if it failed.
        """
        try:
            self._sink.write(
                actor_id,
                payload.event_type,
                payload.entity,
                payload.entity_id,
                payload.to_meta(),
            )
        except Exception:
            logger.warning(
                "audit_write_failed",
                extra={
                    "event_type": payload.event_type,
                    "entity": payload.entity,
                    "entity_id": str(payload.entity_id),
                },
                exc_info=True,
            )
            return False

        logger.debug(
            "audit_event_recorded",
            extra={"event_type": payload.event_type, "entity_id": str(payload.entity_id)},
        )
        return True

    def get_trace(self, entity_id: UUID) -> list[AuditEvent]:
        """All audit events for an entity, oldest first."""
        return list(
            self.session.execute(
                select(AuditEvent)
                .where(AuditEvent.entity_id == entity_id)
                .order_by(AuditEvent.seq)
            ).scalars()
        )
