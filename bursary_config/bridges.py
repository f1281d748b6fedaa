"""
Config -> Kernel Bridges.

Converts configuration artifacts into kernel inputs.  These live in
bursary_config (the producer) because the kernel must NEVER import
bursary_config.

Usage:
    from bursary_config import get_active_config
    from bursary_config.bridges import build_posting_targets

    targets = build_posting_targets(get_active_config())
    bridge = InvoicePostingBridge(session, targets, clock)
"""

from __future__ import annotations

from bursary_config.schema import BursaryConfiguration
from bursary_kernel.domain.dtos import CashBankType, FinanceAccountType, PaymentMethod
from bursary_kernel.domain.posting_targets import (
    AccountTarget,
    CashBankTarget,
    InvoicePostingTargets,
)


def build_posting_targets(config: BursaryConfiguration) -> InvoicePostingTargets:
    """Build the bridge's InvoicePostingTargets from a loaded configuration."""
    posting = config.invoice_posting

    cash_bank = {
        key: CashBankTarget(
            code=target.code,
            name=target.name,
            account_type=CashBankType(target.account_type),
        )
        for key, target in posting.cash_bank_accounts.items()
    }

    return InvoicePostingTargets(
        income_account=AccountTarget(
            code=posting.income_account.code,
            name=posting.income_account.name,
            account_type=FinanceAccountType(posting.income_account.account_type),
            category=posting.income_account.category,
        ),
        refund_account=AccountTarget(
            code=posting.refund_account.code,
            name=posting.refund_account.name,
            account_type=FinanceAccountType(posting.refund_account.account_type),
            category=posting.refund_account.category,
        ),
        cash_bank_routes={
            PaymentMethod(method): cash_bank[route]
            for method, route in posting.method_routes.items()
        },
    )
