"""
Module: bursary_kernel.models.invoice
Responsibility: ORM persistence for the invoice aggregate -- Invoice with its
    ordered items, discounts, payments and per-payment refunds.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/dtos.py (enumerations) only.

Invariants enforced:
    - gross_total is fixed at creation (sum of items) and never recomputed.
    - status is a cached derivation; InvoiceService.recalculate_status is the
      only writer (apart from voiding).  Balances are never stored.
    - Payment and refund amounts are strictly positive (CHECK constraints).
    - code is unique.

Audit relevance:
    Every payment/refund that moves real cash has a matching operational
    ledger row keyed by INVPAY:<payment_id> / INVREF:<refund_id>.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bursary_kernel.db.base import TrackedBase, UUIDString
from bursary_kernel.domain.dtos import InvoiceStatus, PaymentMethod


class Invoice(TrackedBase):
    """
    A bill issued to one student for one academic period.

    Guarantees:
        - status is one of OPEN, PARTIAL, PAID, VOID.
        - VOID is terminal.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("code", name="uq_invoice_code"),
        Index("idx_invoice_student", "student_id"),
        Index("idx_invoice_status", "status"),
        CheckConstraint("gross_total >= 0", name="ck_invoice_gross_non_negative"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    # Opaque references owned by the student/academic modules
    student_id: Mapped[str] = mapped_column(String(100), nullable=False)
    period_id: Mapped[str] = mapped_column(String(100), nullable=False)

    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    gross_total: Mapped[int] = mapped_column(nullable=False, default=0)

    status: Mapped[InvoiceStatus] = mapped_column(
        String(20),
        nullable=False,
        default=InvoiceStatus.OPEN.value,
    )

    void_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    voided_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    items: Mapped[list["InvoiceItem"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
        lazy="selectin",
    )

    discounts: Mapped[list["Discount"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    payments: Mapped[list["Payment"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.code}: {self.status}>"

    @property
    def is_void(self) -> bool:
        return self.status == InvoiceStatus.VOID


class InvoiceItem(TrackedBase):
    """One billed line; amount may be zero but never negative."""

    __tablename__ = "invoice_items"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_invoice_item_amount_non_negative"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id"),
        nullable=False,
        index=True,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[int] = mapped_column(nullable=False)

    invoice: Mapped["Invoice"] = relationship(back_populates="items")


class Discount(TrackedBase):
    __tablename__ = "invoice_discounts"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_discount_amount_non_negative"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[int] = mapped_column(nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    invoice: Mapped["Invoice"] = relationship(back_populates="discounts")


class Payment(TrackedBase):
    """
    Money received against an invoice.

    Only CASH, TRANSFER and GATEWAY payments are mirrored into the
    operational ledger; SCHOLARSHIP and ADJUSTMENT settle the invoice
    without moving cash.
    """

    __tablename__ = "invoice_payments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        Index("idx_payment_paid_at", "paid_at"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id"),
        nullable=False,
        index=True,
    )

    amount: Mapped[int] = mapped_column(nullable=False)

    method: Mapped[PaymentMethod] = mapped_column(String(20), nullable=False)

    # External reference (bank slip number, gateway transaction id)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    invoice: Mapped["Invoice"] = relationship(back_populates="payments")

    refunds: Mapped[list["Refund"]] = relationship(
        back_populates="payment",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Payment {self.amount} {self.method} on invoice {self.invoice_id}>"

    @property
    def refunded_total(self) -> int:
        return sum(r.amount for r in self.refunds)


class Refund(TrackedBase):
    """Money returned against one payment.  created_by is the processor."""

    __tablename__ = "invoice_refunds"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_refund_amount_positive"),
    )

    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("invoice_payments.id"),
        nullable=False,
        index=True,
    )

    amount: Mapped[int] = mapped_column(nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    refunded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    payment: Mapped["Payment"] = relationship(back_populates="refunds")

    @property
    def processed_by(self) -> str:
        return self.created_by
