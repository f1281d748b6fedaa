"""ORM models for the bursary kernel."""

from bursary_kernel.models.audit_event import AuditEvent
from bursary_kernel.models.budget import FinanceBudget
from bursary_kernel.models.finance_account import CashBankAccount, FinanceAccount
from bursary_kernel.models.invoice import (
    Discount,
    Invoice,
    InvoiceItem,
    Payment,
    Refund,
)
from bursary_kernel.models.operational_txn import OperationalTxn
from bursary_kernel.models.period_lock import FinancePeriodLock
from bursary_kernel.models.sequence_counter import SequenceCounter

__all__ = [
    "AuditEvent",
    "CashBankAccount",
    "Discount",
    "FinanceAccount",
    "FinanceBudget",
    "FinancePeriodLock",
    "Invoice",
    "InvoiceItem",
    "OperationalTxn",
    "Payment",
    "Refund",
    "SequenceCounter",
]
