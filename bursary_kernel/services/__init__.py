"""Services for the bursary kernel (write side)."""

from bursary_kernel.services.account_service import AccountService
from bursary_kernel.services.approval_service import ApprovalService
from bursary_kernel.services.audit_service import AuditService, AuditSink, DatabaseAuditSink
from bursary_kernel.services.budget_service import BudgetService
from bursary_kernel.services.invoice_service import InvoiceService
from bursary_kernel.services.ledger_service import LedgerService, has_elevated_access
from bursary_kernel.services.period_lock_service import PeriodLockService
from bursary_kernel.services.posting_bridge import InvoicePostingBridge
from bursary_kernel.services.sequence_service import SequenceService

__all__ = [
    "AccountService",
    "ApprovalService",
    "AuditService",
    "AuditSink",
    "BudgetService",
    "DatabaseAuditSink",
    "InvoicePostingBridge",
    "InvoiceService",
    "LedgerService",
    "PeriodLockService",
    "SequenceService",
    "has_elevated_access",
]
