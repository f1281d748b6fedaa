"""
Module: bursary_kernel.models.audit_event
Responsibility: ORM persistence for the default audit sink.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit records are append-only; no UPDATE or DELETE (db/immutability.py).
    - seq is monotonically increasing, allocated by SequenceService.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from bursary_kernel.db.base import Base, UUIDString


class AuditEvent(Base):
    """
    One audit record: who did what to which entity.

    Contract:
        Written by DatabaseAuditSink.  Never updated or deleted.
    """

    __tablename__ = "audit_events"

    __table_args__ = (
        Index("idx_audit_entity", "entity", "entity_id"),
        Index("idx_audit_event_type", "event_type"),
        Index("idx_audit_occurred", "occurred_at"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    # e.g. "invoice", "operational_txn", "finance_account"
    entity: Mapped[str] = mapped_column(String(50), nullable=False)

    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # e.g. "invoice.payment_recorded"
    event_type: Mapped[str] = mapped_column(String(80), nullable=False)

    actor_id: Mapped[str] = mapped_column(String(100), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    meta: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<AuditEvent {self.seq} {self.event_type} on {self.entity}:{self.entity_id}>"
