"""
Module: bursary_kernel.models.sequence_counter
Responsibility: Named monotonic counters (reference numbers, invoice codes,
    audit sequence).  Row-level locking in SequenceService guarantees
    uniqueness under concurrency.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from bursary_kernel.db.base import Base


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    # e.g. "audit_event", "OPR-20240115"
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
