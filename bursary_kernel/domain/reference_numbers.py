"""
Human-readable reference numbers and codes.

    Manual ledger entries:   OPR-YYYYMMDD-NNNN
    Transfer legs:           <base>-OUT / <base>-IN
    Invoices:                INV-YYYYMMDD-NNNNN
"""

from datetime import date

OPERATIONAL_PREFIX = "OPR"
INVOICE_PREFIX = "INV"
TRANSFER_OUT_SUFFIX = "-OUT"
TRANSFER_IN_SUFFIX = "-IN"


def operational_sequence_name(txn_date: date) -> str:
    """Counter name for one day of manual reference numbers."""
    return f"{OPERATIONAL_PREFIX}-{txn_date:%Y%m%d}"


def format_operational_reference(txn_date: date, sequence: int) -> str:
    return f"{OPERATIONAL_PREFIX}-{txn_date:%Y%m%d}-{sequence:04d}"


def transfer_leg_references(base_reference: str) -> tuple[str, str]:
    """Return (outgoing, incoming) references for a transfer pair."""
    return (
        f"{base_reference}{TRANSFER_OUT_SUFFIX}",
        f"{base_reference}{TRANSFER_IN_SUFFIX}",
    )


def invoice_sequence_name(issue_date: date) -> str:
    return f"{INVOICE_PREFIX}-{issue_date:%Y%m%d}"


def format_invoice_code(issue_date: date, sequence: int) -> str:
    return f"{INVOICE_PREFIX}-{issue_date:%Y%m%d}-{sequence:05d}"
