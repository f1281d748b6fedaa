"""
Module: bursary_kernel.models.operational_txn
Responsibility: ORM persistence for operational ledger entries -- single-sided
    cash/bank movements classified against a finance account.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/dtos.py only.

Invariants enforced:
    - reference_no is unique.  It doubles as the idempotency key for invoice
      postings (INVPAY:<payment_id>, INVREF:<refund_id>).
    - amount > 0; direction comes from kind.
    - Once APPROVED or REJECTED a row is immutable (db/immutability.py).
    - Transfer legs reference each other through transfer_pair_id.

Audit relevance:
    Only APPROVED rows move cash/bank balances and appear in reports.
    checked_by / approved_by / rejected_by record the maker-checker trail.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from bursary_kernel.db.base import TrackedBase, UUIDString
from bursary_kernel.domain.dtos import ApprovalStatus, TxnKind


class OperationalTxn(TrackedBase):
    """One operational ledger entry."""

    __tablename__ = "operational_txns"

    __table_args__ = (
        UniqueConstraint("reference_no", name="uq_operational_txn_reference"),
        CheckConstraint("amount > 0", name="ck_operational_txn_amount_positive"),
        Index("idx_operational_txn_date", "txn_date"),
        Index("idx_operational_txn_status", "approval_status"),
        Index("idx_operational_txn_account", "account_id"),
        Index("idx_operational_txn_cash_bank", "cash_bank_account_id"),
    )

    txn_date: Mapped[date] = mapped_column(Date, nullable=False)

    kind: Mapped[TxnKind] = mapped_column(String(20), nullable=False)

    amount: Mapped[int] = mapped_column(nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("finance_accounts.id"),
        nullable=False,
    )

    cash_bank_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("cash_bank_accounts.id"),
        nullable=False,
    )

    reference_no: Mapped[str] = mapped_column(String(100), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    proof_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    approval_status: Mapped[ApprovalStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ApprovalStatus.PENDING.value,
    )

    # Other leg of a transfer (null for INCOME/EXPENSE)
    transfer_pair_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    checked_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    checked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    approved_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    rejected_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<OperationalTxn {self.reference_no}: {self.kind} {self.amount}>"

    @property
    def is_pending(self) -> bool:
        return self.approval_status == ApprovalStatus.PENDING

    @property
    def is_approved(self) -> bool:
        return self.approval_status == ApprovalStatus.APPROVED
