"""
Balance -- Invoice balance calculator and ledger balance deltas.

Responsibility:
    Derives the money snapshot of an invoice from its gross, discount,
    payment and refund totals, and gives the signed effect an operational
    ledger entry has on its cash/bank account.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - net_total = max(0, gross - discounts)
    - paid_net  = payments - refunds
    - due       = max(0, net_total - paid_net)
    - overpaid  = max(0, paid_net - net_total)
    - Every input is clamped to >= 0 before use.  This is the ONLY place
      in the system where clamping is performed.
"""

from collections.abc import Iterable
from typing import Any

from bursary_kernel.domain.dtos import InvoiceBalance, TxnKind


def _clamp(value: int | None) -> int:
    return max(0, value or 0)


def compute_invoice_balance(
    gross_total: int | None,
    discount_total: int | None = 0,
    payment_total: int | None = 0,
    refund_total: int | None = 0,
) -> InvoiceBalance:
    """
    Compute the derived balance of an invoice.

    Preconditions: none; missing or negative totals are treated as 0.
    Postconditions: due and overpaid are never both positive.
    """
    gross = _clamp(gross_total)
    discounts = _clamp(discount_total)
    payments = _clamp(payment_total)
    refunds = _clamp(refund_total)

    net_total = max(0, gross - discounts)
    paid_net = payments - refunds

    return InvoiceBalance(
        gross_total=gross,
        discount_total=discounts,
        net_total=net_total,
        payment_total=payments,
        refund_total=refunds,
        paid_net=paid_net,
        due=max(0, net_total - paid_net),
        overpaid=max(0, paid_net - net_total),
    )


def summarize_invoice(invoice: Any) -> InvoiceBalance:
    """
    Re-derive the balance from an invoice with its children loaded.

    Accepts anything shaped like the Invoice aggregate: ``gross_total``,
    ``discounts`` (each with ``amount``), ``payments`` (each with ``amount``
    and ``refunds``).
    """
    payments = list(invoice.payments)
    return compute_invoice_balance(
        gross_total=invoice.gross_total,
        discount_total=_sum_amounts(invoice.discounts),
        payment_total=_sum_amounts(payments),
        refund_total=sum(_sum_amounts(p.refunds) for p in payments),
    )


def _sum_amounts(rows: Iterable[Any]) -> int:
    return sum(row.amount or 0 for row in rows)


def balance_delta(kind: TxnKind | str, amount: int) -> int:
    """
    Signed effect of a ledger entry on its cash/bank account balance.

    EXPENSE and TRANSFER_OUT reduce the balance; INCOME and TRANSFER_IN
    increase it.  The sign of ``amount`` itself is ignored.
    """
    magnitude = abs(amount)
    return -magnitude if TxnKind(kind).is_outflow else magnitude
