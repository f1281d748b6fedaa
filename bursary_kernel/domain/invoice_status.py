"""
Invoice status state machine.

Status is a pure function of the current status and the derived balance:

    VOID                      -> VOID (terminal, overrides recomputation)
    net_total <= 0            -> PAID
    paid_net  <= 0            -> OPEN
    paid_net  >= net_total    -> PAID
    otherwise                 -> PARTIAL

Transitions between OPEN, PARTIAL and PAID are therefore reversible:
refunds and added discounts move an invoice back and forth.
"""

from bursary_kernel.domain.dtos import InvoiceBalance, InvoiceStatus


def derive_invoice_status(
    current: InvoiceStatus | str | None,
    balance: InvoiceBalance,
) -> InvoiceStatus:
    """Return the status an invoice should have given its balance."""
    if current is not None and InvoiceStatus(current) == InvoiceStatus.VOID:
        return InvoiceStatus.VOID
    if balance.net_total <= 0:
        return InvoiceStatus.PAID
    if balance.paid_net <= 0:
        return InvoiceStatus.OPEN
    if balance.paid_net >= balance.net_total:
        return InvoiceStatus.PAID
    return InvoiceStatus.PARTIAL
