"""
Pure domain layer.

This module contains enumerations, DTOs and settlement logic with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Everything here is immutable and deterministic; the clock is injected.
"""

from bursary_kernel.domain.balance import balance_delta, compute_invoice_balance, summarize_invoice
from bursary_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from bursary_kernel.domain.dtos import (
    ApprovalStatus,
    BudgetKind,
    CashBankType,
    FinanceAccountType,
    InvoiceBalance,
    InvoiceLine,
    InvoiceSettlement,
    InvoiceStatus,
    PaymentMethod,
    TxnKind,
)
from bursary_kernel.domain.invoice_status import derive_invoice_status
from bursary_kernel.domain.posting_targets import (
    AccountTarget,
    CashBankTarget,
    InvoicePostingTargets,
)

__all__ = [
    "AccountTarget",
    "ApprovalStatus",
    "BudgetKind",
    "CashBankTarget",
    "CashBankType",
    "Clock",
    "DeterministicClock",
    "FinanceAccountType",
    "InvoiceBalance",
    "InvoiceLine",
    "InvoicePostingTargets",
    "InvoiceSettlement",
    "InvoiceStatus",
    "PaymentMethod",
    "SystemClock",
    "TxnKind",
    "balance_delta",
    "compute_invoice_balance",
    "derive_invoice_status",
    "summarize_invoice",
]
