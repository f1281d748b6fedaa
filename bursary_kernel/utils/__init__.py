"""Utility modules for the bursary kernel."""

from bursary_kernel.utils.idempotency import (
    invoice_payment_marker,
    invoice_refund_marker,
    is_posting_marker,
    parse_posting_marker,
)

__all__ = [
    "invoice_payment_marker",
    "invoice_refund_marker",
    "is_posting_marker",
    "parse_posting_marker",
]
