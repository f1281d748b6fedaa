"""
Module: bursary_kernel.selectors.invoice_selector
Responsibility: Read-only invoice balance snapshots, re-derived from the
    persisted discount, payment and refund rows on every call.
"""

from uuid import UUID

from sqlalchemy import func, select

from bursary_kernel.domain.balance import compute_invoice_balance
from bursary_kernel.domain.dtos import InvoiceBalance, InvoiceStatus
from bursary_kernel.exceptions import InvoiceNotFoundError
from bursary_kernel.models.invoice import Discount, Invoice, Payment, Refund
from bursary_kernel.selectors.base import BaseSelector


class InvoiceSelector(BaseSelector[Invoice]):
    """Selector for invoice balances and statuses."""

    def get_balance(self, invoice_id: UUID) -> InvoiceBalance:
        gross_total = self.session.execute(
            select(Invoice.gross_total).where(Invoice.id == invoice_id)
        ).scalar_one_or_none()
        if gross_total is None:
            raise InvoiceNotFoundError(str(invoice_id))

        discount_total = self.session.execute(
            select(func.coalesce(func.sum(Discount.amount), 0))
            .where(Discount.invoice_id == invoice_id)
        ).scalar_one()
        payment_total = self.session.execute(
            select(func.coalesce(func.sum(Payment.amount), 0))
            .where(Payment.invoice_id == invoice_id)
        ).scalar_one()
        refund_total = self.session.execute(
            select(func.coalesce(func.sum(Refund.amount), 0))
            .join(Payment, Refund.payment_id == Payment.id)
            .where(Payment.invoice_id == invoice_id)
        ).scalar_one()

        return compute_invoice_balance(
            gross_total=gross_total,
            discount_total=int(discount_total),
            payment_total=int(payment_total),
            refund_total=int(refund_total),
        )

    def get_status(self, invoice_id: UUID) -> InvoiceStatus:
        status = self.session.execute(
            select(Invoice.status).where(Invoice.id == invoice_id)
        ).scalar_one_or_none()
        if status is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return InvoiceStatus(status)
