"""Read-only query selectors for the bursary kernel."""

from bursary_kernel.selectors.base import BaseSelector
from bursary_kernel.selectors.budget_selector import BudgetSelector, variance_percentage
from bursary_kernel.selectors.cash_book_selector import CashBookSelector
from bursary_kernel.selectors.cash_flow_selector import CashFlowSelector, flow_section
from bursary_kernel.selectors.invoice_selector import InvoiceSelector
from bursary_kernel.selectors.ledger_selector import LedgerSelector
from bursary_kernel.selectors.reconciliation_selector import ReconciliationSelector

__all__ = [
    "BaseSelector",
    "BudgetSelector",
    "CashBookSelector",
    "CashFlowSelector",
    "InvoiceSelector",
    "LedgerSelector",
    "ReconciliationSelector",
    "flow_section",
    "variance_percentage",
]
