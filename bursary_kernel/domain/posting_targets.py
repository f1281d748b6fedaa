"""
Posting targets -- where invoice settlements land in the operational ledger.

Responsibility:
    Immutable description of the finance accounts and cash/bank accounts the
    InvoicePostingBridge posts to.  Built once from configuration
    (``bursary_config.bridges.build_posting_targets``) and injected; the
    kernel never reads configuration files or environment variables itself.

Invariants enforced:
    - Only CASH, TRANSFER and GATEWAY can be routed to a cash/bank account.
      SCHOLARSHIP and ADJUSTMENT never move cash.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from bursary_kernel.domain.dtos import (
    LEDGER_ELIGIBLE_METHODS,
    CashBankType,
    FinanceAccountType,
    PaymentMethod,
)
from bursary_kernel.exceptions import ValidationError


@dataclass(frozen=True)
class AccountTarget:
    """Chart-of-accounts row to ensure and post against."""

    code: str
    name: str
    account_type: FinanceAccountType
    category: str | None = None


@dataclass(frozen=True)
class CashBankTarget:
    code: str
    name: str
    account_type: CashBankType


@dataclass(frozen=True)
class InvoicePostingTargets:
    income_account: AccountTarget
    refund_account: AccountTarget
    cash_bank_routes: Mapping[PaymentMethod, CashBankTarget]

    def __post_init__(self) -> None:
        routes = {PaymentMethod(k): v for k, v in self.cash_bank_routes.items()}
        ineligible = sorted(m.value for m in routes if m not in LEDGER_ELIGIBLE_METHODS)
        if ineligible:
            raise ValidationError(
                f"Payment methods {ineligible} cannot be routed to a cash/bank account",
                field="cash_bank_routes",
            )
        object.__setattr__(self, "cash_bank_routes", MappingProxyType(routes))

    def cash_bank_for(self, method: PaymentMethod | str) -> CashBankTarget:
        """Return the cash/bank target for a ledger-eligible payment method."""
        payment_method = PaymentMethod(method)
        target = self.cash_bank_routes.get(payment_method)
        if target is None:
            raise ValidationError(
                f"No cash/bank account configured for payment method {payment_method.value}",
                field="method",
            )
        return target
