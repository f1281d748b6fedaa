"""
InvoiceService -- invoice settlement entry points.

Responsibility:
    Creates invoices and records discounts, payments, refunds and voids.
    After every money-affecting write the invoice status is re-derived from
    SQL aggregates of all child rows, and cash-moving payments/refunds are
    mirrored into the operational ledger through InvoicePostingBridge.

Architecture position:
    Kernel > Services -- imperative shell.  Pure logic lives in
    domain/balance.py and domain/invoice_status.py.

Invariants enforced:
    - gross_total = sum of item amounts, fixed at creation.
    - Status is recomputed (never incremented) inside the same transaction
      as the write, so a retried write cannot double-count.
    - VOID is terminal: no discount or payment may be added afterwards.
    - Cumulative refunds of a payment never exceed the payment amount.
    - Payment/refund row, ledger entry and cash/bank balance are written in
      the caller's transaction: all or nothing.

Failure modes:
    - InvoiceNotFoundError, PaymentNotFoundError, DiscountNotFoundError.
    - InvoiceVoidError (NOT_EDITABLE).
    - ValidationError, RefundExceedsPaymentError.
    - Anything raised by the bridge (PeriodLockedError, AccountInactiveError,
      InsufficientBalanceError) aborts the whole mutation.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from bursary_kernel.domain.audit_events import (
    DiscountApplied,
    InvoiceCreated,
    InvoiceVoided,
    PaymentRecorded,
    RefundRecorded,
)
from bursary_kernel.domain.clock import Clock, SystemClock
from bursary_kernel.domain.dtos import (
    InvoiceBalance,
    InvoiceLine,
    InvoiceSettlement,
    InvoiceStatus,
    OperationalTxnInfo,
    PaymentMethod,
)
from bursary_kernel.domain.invoice_status import derive_invoice_status
from bursary_kernel.domain.reference_numbers import format_invoice_code, invoice_sequence_name
from bursary_kernel.exceptions import (
    DiscountNotFoundError,
    DuplicateCodeError,
    InvoiceNotFoundError,
    InvoiceVoidError,
    PaymentNotFoundError,
    RefundExceedsPaymentError,
    ValidationError,
)
from bursary_kernel.logging_config import LogContext, get_logger
from bursary_kernel.models.invoice import Discount, Invoice, InvoiceItem, Payment, Refund
from bursary_kernel.selectors.invoice_selector import InvoiceSelector
from bursary_kernel.services.audit_service import AuditService
from bursary_kernel.services.base import BaseService, require_actor
from bursary_kernel.services.posting_bridge import InvoicePostingBridge
from bursary_kernel.services.sequence_service import SequenceService

logger = get_logger("services.invoice")


def _amount(value: int, field: str, allow_zero: bool = False) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", field=field)
    if value < 0 or (value == 0 and not allow_zero):
        qualifier = "negative" if allow_zero else "zero or negative"
        raise ValidationError(f"{field} must not be {qualifier}", field=field)
    return value


def _required_text(value: str | None, field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} is required", field=field)
    return text


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class InvoiceService(BaseService[Invoice]):
    """
    Write side of invoice settlement.

    Every public mutation returns an ``InvoiceSettlement`` carrying the
    recomputed status and balance and, for payments and refunds, the
    ledger entry the bridge posted (None for SCHOLARSHIP / ADJUSTMENT).
    """

    def __init__(
        self,
        session: Session,
        posting_bridge: InvoicePostingBridge,
        clock: Clock | None = None,
        audit: AuditService | None = None,
    ):
        super().__init__(session)
        self._bridge = posting_bridge
        self._clock = clock or SystemClock()
        self._audit = audit or AuditService(session, self._clock)
        self._sequences = SequenceService(session)
        self._invoices = InvoiceSelector(session)

    # =========================================================================
    # Lookups and recomputation
    # =========================================================================

    def _get_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def _find_by_code(self, code: str) -> Invoice | None:
        return self.session.execute(
            select(Invoice).where(Invoice.code == code)
        ).scalar_one_or_none()

    def recalculate_status(self, invoice_id: UUID) -> tuple[InvoiceStatus, InvoiceBalance]:
        """
        Re-derive and persist the invoice status from SQL sums over all
        child rows.

        Idempotent: running it again without new child rows changes nothing.
        """
        invoice = self._get_invoice(invoice_id)
        balance = self._invoices.get_balance(invoice.id)
        status = derive_invoice_status(invoice.status, balance)
        if status != invoice.status:
            previous = invoice.status
            invoice.status = status.value
            self.session.flush()
            logger.info(
                "invoice_status_changed",
                extra={
                    "invoice_id": str(invoice.id),
                    "from_status": str(InvoiceStatus(previous).value),
                    "to_status": status.value,
                },
            )
        return status, balance

    def _settle(
        self,
        invoice: Invoice,
        ledger_txn: OperationalTxnInfo | None = None,
        payment_id: UUID | None = None,
        refund_id: UUID | None = None,
        discount_id: UUID | None = None,
    ) -> InvoiceSettlement:
        status, balance = self.recalculate_status(invoice.id)
        return InvoiceSettlement(
            invoice_id=invoice.id,
            invoice_code=invoice.code,
            status=status,
            balance=balance,
            ledger_txn=ledger_txn,
            payment_id=payment_id,
            refund_id=refund_id,
            discount_id=discount_id,
        )

    # =========================================================================
    # Invoice creation and voiding
    # =========================================================================

    def next_invoice_code(self, issue_date: date | None = None) -> str:
        issue_date = issue_date or self._clock.today()
        while True:
            seq = self._sequences.next_value(invoice_sequence_name(issue_date))
            code = format_invoice_code(issue_date, seq)
            if self._find_by_code(code) is None:
                return code

    def create_invoice(
        self,
        student_id: str,
        period_id: str,
        items: Sequence[InvoiceLine | tuple[str, int]],
        actor_id: str,
        due_date: date | None = None,
        code: str | None = None,
    ) -> InvoiceSettlement:
        """
        Create an invoice from its billed lines.

        A zero-gross invoice is PAID immediately.

        Raises:
            ValidationError: no items, blank item name, negative amount.
            DuplicateCodeError: ``code`` already used.
        """
        actor = require_actor(actor_id)
        student_id = _required_text(student_id, "student_id")
        period_id = _required_text(period_id, "period_id")

        lines = [line if isinstance(line, InvoiceLine) else InvoiceLine(*line) for line in items]
        if not lines:
            raise ValidationError("An invoice needs at least one item", field="items")
        cleaned = [
            (_required_text(line.name, "item name"), _amount(line.amount, "item amount", allow_zero=True))
            for line in lines
        ]

        code = _optional_text(code)
        if code is not None:
            if self._find_by_code(code) is not None:
                raise DuplicateCodeError("invoice", code)
        else:
            code = self.next_invoice_code()

        invoice = Invoice(
            code=code,
            student_id=student_id,
            period_id=period_id,
            due_date=due_date,
            gross_total=sum(amount for _, amount in cleaned),
            status=InvoiceStatus.OPEN.value,
            created_by=actor,
        )
        invoice.items = [
            InvoiceItem(position=position, name=name, amount=amount, created_by=actor)
            for position, (name, amount) in enumerate(cleaned)
        ]
        self.session.add(invoice)
        self.session.flush()

        settlement = self._settle(invoice)
        with LogContext.bind(invoice_id=str(invoice.id)):
            logger.info(
                "invoice_created",
                extra={
                    "code": code,
                    "gross_total": invoice.gross_total,
                    "item_count": len(cleaned),
                    "status": settlement.status.value,
                },
            )
        self._audit.record(
            actor,
            InvoiceCreated(
                entity_id=invoice.id,
                code=code,
                gross_total=invoice.gross_total,
                item_count=len(cleaned),
                status=settlement.status.value,
            ),
        )
        return settlement

    def void_invoice(
        self,
        invoice_id: UUID,
        actor_id: str,
        reason: str | None = None,
    ) -> InvoiceSettlement:
        """
        Mark an invoice VOID.  Terminal; later recomputation keeps it VOID.

        Ledger entries already posted for its payments are left untouched.
        """
        actor = require_actor(actor_id)
        invoice = self._get_invoice(invoice_id)
        if invoice.is_void:
            raise InvoiceVoidError(str(invoice.id))

        previous = InvoiceStatus(invoice.status).value
        invoice.status = InvoiceStatus.VOID.value
        invoice.void_reason = _optional_text(reason)
        invoice.voided_at = self._clock.now()
        invoice.voided_by = actor
        invoice.updated_by = actor
        self.session.flush()

        with LogContext.bind(invoice_id=str(invoice.id)):
            logger.info("invoice_voided", extra={"previous_status": previous})
        self._audit.record(
            actor,
            InvoiceVoided(entity_id=invoice.id, previous_status=previous, reason=invoice.void_reason),
        )
        return self._settle(invoice)

    # =========================================================================
    # Discounts
    # =========================================================================

    def _get_discount(self, invoice: Invoice, discount_id: UUID) -> Discount:
        discount = self.session.get(Discount, discount_id)
        if discount is None or discount.invoice_id != invoice.id:
            raise DiscountNotFoundError(str(discount_id))
        return discount

    def add_discount(
        self,
        invoice_id: UUID,
        name: str,
        amount: int,
        actor_id: str,
        reason: str | None = None,
    ) -> InvoiceSettlement:
        actor = require_actor(actor_id)
        invoice = self._get_invoice(invoice_id)
        if invoice.is_void:
            raise InvoiceVoidError(str(invoice.id))

        discount = Discount(
            name=_required_text(name, "name"),
            amount=_amount(amount, "amount", allow_zero=True),
            reason=_optional_text(reason),
            created_by=actor,
        )
        invoice.discounts.append(discount)
        self.session.flush()

        settlement = self._settle(invoice, discount_id=discount.id)
        self._log_discount(invoice, discount, "added", settlement, actor)
        return settlement

    def update_discount(
        self,
        invoice_id: UUID,
        discount_id: UUID,
        actor_id: str,
        name: str | None = None,
        amount: int | None = None,
        reason: str | None = None,
    ) -> InvoiceSettlement:
        """Change a discount.  Only arguments passed as non-None change."""
        actor = require_actor(actor_id)
        invoice = self._get_invoice(invoice_id)
        if invoice.is_void:
            raise InvoiceVoidError(str(invoice.id))
        discount = self._get_discount(invoice, discount_id)

        if name is not None:
            discount.name = _required_text(name, "name")
        if amount is not None:
            discount.amount = _amount(amount, "amount", allow_zero=True)
        if reason is not None:
            discount.reason = _optional_text(reason)
        discount.updated_by = actor
        self.session.flush()

        settlement = self._settle(invoice, discount_id=discount.id)
        self._log_discount(invoice, discount, "updated", settlement, actor)
        return settlement

    def remove_discount(
        self,
        invoice_id: UUID,
        discount_id: UUID,
        actor_id: str,
    ) -> InvoiceSettlement:
        actor = require_actor(actor_id)
        invoice = self._get_invoice(invoice_id)
        if invoice.is_void:
            raise InvoiceVoidError(str(invoice.id))
        discount = self._get_discount(invoice, discount_id)

        invoice.discounts.remove(discount)
        self.session.flush()

        settlement = self._settle(invoice, discount_id=discount_id)
        self._log_discount(invoice, discount, "removed", settlement, actor)
        return settlement

    def _log_discount(
        self,
        invoice: Invoice,
        discount: Discount,
        action: str,
        settlement: InvoiceSettlement,
        actor: str,
    ) -> None:
        with LogContext.bind(invoice_id=str(invoice.id)):
            logger.info(
                f"invoice_discount_{action}",
                extra={
                    "discount_id": str(discount.id),
                    "amount": discount.amount,
                    "status": settlement.status.value,
                },
            )
        self._audit.record(
            actor,
            DiscountApplied(
                entity_id=invoice.id,
                discount_id=discount.id,
                action=action,
                amount=discount.amount,
                status=settlement.status.value,
            ),
        )

    # =========================================================================
    # Payments and refunds
    # =========================================================================

    def add_payment(
        self,
        invoice_id: UUID,
        amount: int,
        method: PaymentMethod | str,
        actor_id: str,
        reference: str | None = None,
        paid_at: datetime | None = None,
    ) -> InvoiceSettlement:
        """
        Record a payment and post it to the ledger when it moves cash.

        Raises:
            InvoiceVoidError: the invoice is VOID.
            ValidationError: non-positive amount or unknown method.
        """
        actor = require_actor(actor_id)
        amount = _amount(amount, "amount")
        try:
            method = PaymentMethod(method if isinstance(method, PaymentMethod) else str(method).upper())
        except ValueError:
            raise ValidationError(f"Invalid payment method: {method!r}", field="method") from None

        invoice = self._get_invoice(invoice_id)
        if invoice.is_void:
            raise InvoiceVoidError(str(invoice.id))

        payment = Payment(
            amount=amount,
            method=method.value,
            reference=_optional_text(reference),
            paid_at=paid_at or self._clock.now(),
            created_by=actor,
        )
        invoice.payments.append(payment)
        self.session.flush()

        ledger_txn = self._bridge.post_payment(payment, invoice.code, actor)
        settlement = self._settle(invoice, ledger_txn=ledger_txn, payment_id=payment.id)

        with LogContext.bind(invoice_id=str(invoice.id)):
            logger.info(
                "invoice_payment_recorded",
                extra={
                    "payment_id": str(payment.id),
                    "amount": amount,
                    "method": method.value,
                    "status": settlement.status.value,
                    "due": settlement.balance.due,
                    "ledger_txn_id": str(ledger_txn.id) if ledger_txn else None,
                },
            )
        self._audit.record(
            actor,
            PaymentRecorded(
                entity_id=invoice.id,
                payment_id=payment.id,
                amount=amount,
                method=method.value,
                status=settlement.status.value,
                ledger_txn_id=ledger_txn.id if ledger_txn else None,
            ),
        )
        return settlement

    def add_refund(
        self,
        payment_id: UUID,
        amount: int,
        actor_id: str,
        reason: str | None = None,
        refunded_at: datetime | None = None,
    ) -> InvoiceSettlement:
        """
        Refund part or all of a payment.

        The payment row is locked while the cumulative refund total is
        checked, so two concurrent refunds cannot together exceed it.

        Raises:
            PaymentNotFoundError
            RefundExceedsPaymentError: cumulative refunds would exceed the
                payment amount.
        """
        actor = require_actor(actor_id)
        amount = _amount(amount, "amount")

        payment = self.session.execute(
            select(Payment).where(Payment.id == payment_id).with_for_update()
        ).scalar_one_or_none()
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))

        refunded = int(
            self.session.execute(
                select(func.coalesce(func.sum(Refund.amount), 0))
                .where(Refund.payment_id == payment.id)
            ).scalar_one()
        )
        if refunded + amount > payment.amount:
            raise RefundExceedsPaymentError(str(payment.id), payment.amount, refunded, amount)

        invoice = self._get_invoice(payment.invoice_id)
        refund = Refund(
            amount=amount,
            reason=_optional_text(reason),
            refunded_at=refunded_at or self._clock.now(),
            created_by=actor,
        )
        payment.refunds.append(refund)
        self.session.flush()

        ledger_txn = self._bridge.post_refund(refund, payment, invoice.code, actor)
        settlement = self._settle(
            invoice, ledger_txn=ledger_txn, payment_id=payment.id, refund_id=refund.id
        )

        with LogContext.bind(invoice_id=str(invoice.id)):
            logger.info(
                "invoice_refund_recorded",
                extra={
                    "payment_id": str(payment.id),
                    "refund_id": str(refund.id),
                    "amount": amount,
                    "status": settlement.status.value,
                    "due": settlement.balance.due,
                    "ledger_txn_id": str(ledger_txn.id) if ledger_txn else None,
                },
            )
        self._audit.record(
            actor,
            RefundRecorded(
                entity_id=invoice.id,
                payment_id=payment.id,
                refund_id=refund.id,
                amount=amount,
                status=settlement.status.value,
                ledger_txn_id=ledger_txn.id if ledger_txn else None,
            ),
        )
        return settlement
