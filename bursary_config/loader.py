"""
Configuration Loader (``bursary_config.loader``).

Responsibility
--------------
Loads a YAML configuration set, applies ``BURSARY_*`` environment overrides
and parses the result into ``bursary_config.schema`` dataclasses.  The single
public entry point for runtime config is ``bursary_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Only CASH, TRANSFER and GATEWAY may be routed to a cash/bank account.
* Every parsed object is a frozen dataclass from ``schema.py``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from bursary_config.schema import (
    AccountTargetDef,
    BursaryConfiguration,
    CashBankTargetDef,
    InvoicePostingConfig,
)

ROUTABLE_METHODS = frozenset({"CASH", "TRANSFER", "GATEWAY"})
NON_CASH_METHODS = frozenset({"SCHOLARSHIP", "ADJUSTMENT"})
CASH_BANK_TYPES = frozenset({"CASH", "BANK"})

# env var -> (section path under invoice_posting, field)
ENV_OVERRIDES: dict[str, tuple[tuple[str, ...], str]] = {
    "BURSARY_INVOICE_INCOME_ACCOUNT_CODE": (("income_account",), "code"),
    "BURSARY_INVOICE_INCOME_ACCOUNT_NAME": (("income_account",), "name"),
    "BURSARY_INVOICE_REFUND_ACCOUNT_CODE": (("refund_account",), "code"),
    "BURSARY_INVOICE_REFUND_ACCOUNT_NAME": (("refund_account",), "name"),
    "BURSARY_INVOICE_CASH_ACCOUNT_CODE": (("cash_bank_accounts", "cash"), "code"),
    "BURSARY_INVOICE_CASH_ACCOUNT_NAME": (("cash_bank_accounts", "cash"), "name"),
    "BURSARY_INVOICE_BANK_ACCOUNT_CODE": (("cash_bank_accounts", "bank"), "code"),
    "BURSARY_INVOICE_BANK_ACCOUNT_NAME": (("cash_bank_accounts", "bank"), "name"),
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def apply_env_overrides(
    data: dict[str, Any],
    environ: Mapping[str, str],
) -> tuple[dict[str, Any], tuple[str, ...]]:
    """
    Return a copy of ``data`` with ``BURSARY_INVOICE_*`` overrides applied.

    Blank values are ignored.  The second element lists the variables used.
    """
    result = copy.deepcopy(data)
    applied: list[str] = []
    posting = result.setdefault("invoice_posting", {})
    for var, (path, key) in ENV_OVERRIDES.items():
        value = (environ.get(var) or "").strip()
        if not value:
            continue
        section = posting
        for part in path:
            section = section.setdefault(part, {})
        section[key] = value
        applied.append(var)
    return result, tuple(applied)


def parse_account_target(data: dict[str, Any], expected_type: str) -> AccountTargetDef:
    account_type = str(data.get("account_type", expected_type)).upper()
    if account_type != expected_type:
        raise ValueError(
            f"Account {data.get('code')!r} must be of type {expected_type}, got {account_type}"
        )
    return AccountTargetDef(
        code=str(data["code"]).strip(),
        name=str(data["name"]).strip(),
        account_type=account_type,
        category=data.get("category"),
    )


def parse_cash_bank_target(data: dict[str, Any]) -> CashBankTargetDef:
    account_type = str(data["account_type"]).upper()
    if account_type not in CASH_BANK_TYPES:
        raise ValueError(f"Cash/bank account type must be CASH or BANK, got {account_type}")
    return CashBankTargetDef(
        code=str(data["code"]).strip(),
        name=str(data["name"]).strip(),
        account_type=account_type,
    )


def parse_invoice_posting(data: dict[str, Any]) -> InvoicePostingConfig:
    """
    Parse the ``invoice_posting`` section.

    Raises:
        ValueError: on non-cash methods in ``method_routes``, unknown
            methods, or routes to undeclared cash/bank accounts.
    """
    cash_bank_accounts = {
        key: parse_cash_bank_target(value)
        for key, value in (data.get("cash_bank_accounts") or {}).items()
    }

    method_routes: dict[str, str] = {}
    for method, route in (data.get("method_routes") or {}).items():
        method_name = str(method).upper()
        if method_name in NON_CASH_METHODS:
            raise ValueError(
                f"Payment method {method_name} does not move cash and cannot be routed"
            )
        if method_name not in ROUTABLE_METHODS:
            raise ValueError(f"Unknown payment method in method_routes: {method_name}")
        if route not in cash_bank_accounts:
            raise ValueError(
                f"method_routes.{method_name} refers to undeclared cash/bank account {route!r}"
            )
        method_routes[method_name] = route

    return InvoicePostingConfig(
        income_account=parse_account_target(data["income_account"], "INCOME"),
        refund_account=parse_account_target(data["refund_account"], "EXPENSE"),
        cash_bank_accounts=cash_bank_accounts,
        method_routes=method_routes,
    )


def load_configuration(
    path: Path,
    environ: Mapping[str, str] | None = None,
) -> BursaryConfiguration:
    """Load, override and parse one configuration set file."""
    raw = load_yaml_file(path)
    data, overrides = apply_env_overrides(raw, environ or {})
    return BursaryConfiguration(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        invoice_posting=parse_invoice_posting(data["invoice_posting"]),
        source_path=str(path),
        overrides=overrides,
    )
