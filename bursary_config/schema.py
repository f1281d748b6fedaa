"""
Bursary configuration schema.

Frozen dataclasses produced by the loader from YAML (plus environment
overrides).  These are the human-authored source shape; bridges.py turns
them into kernel inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class AccountTargetDef:
    """Finance account used by invoice postings."""

    code: str
    name: str
    account_type: str
    category: str | None = None


@dataclass(frozen=True)
class CashBankTargetDef:
    code: str
    name: str
    account_type: str  # CASH or BANK


@dataclass(frozen=True)
class InvoicePostingConfig:
    """
    Posting targets for invoice payments and refunds.

    ``method_routes`` maps a payment method (CASH, TRANSFER, GATEWAY) to a
    key of ``cash_bank_accounts``.
    """

    income_account: AccountTargetDef
    refund_account: AccountTargetDef
    cash_bank_accounts: dict[str, CashBankTargetDef] = field(default_factory=dict)
    method_routes: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class BursaryConfiguration:
    """Root configuration artifact."""

    config_id: str
    version: int
    invoice_posting: InvoicePostingConfig
    source_path: str | None = None
    overrides: tuple[str, ...] = ()
