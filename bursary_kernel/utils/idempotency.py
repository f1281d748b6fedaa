"""
Idempotency marker utilities.

A marker ties an operational ledger entry to the invoice event that caused
it.  It is stored as the entry's ``reference_no`` and protected by a unique
constraint, so the same payment or refund always resolves to the same row,
even under retries and concurrent requests.
"""

from uuid import UUID

PAYMENT_PREFIX = "INVPAY"
REFUND_PREFIX = "INVREF"

_PREFIXES = frozenset({PAYMENT_PREFIX, REFUND_PREFIX})


def invoice_payment_marker(payment_id: UUID | str) -> str:
    """
    Marker for the ledger entry mirroring an invoice payment.

    Example:
        >>> invoice_payment_marker(uuid)
        "INVPAY:550e8400-e29b-41d4-a716-446655440000"
    """
    return f"{PAYMENT_PREFIX}:{payment_id}"


def invoice_refund_marker(refund_id: UUID | str) -> str:
    """Marker for the ledger entry mirroring a refund."""
    return f"{REFUND_PREFIX}:{refund_id}"


def is_posting_marker(reference_no: str) -> bool:
    """True when ``reference_no`` has the reserved invoice posting form."""
    try:
        parse_posting_marker(reference_no)
    except ValueError:
        return False
    return True


def parse_posting_marker(marker: str) -> tuple[str, str]:
    """
    Split a marker into (prefix, event_id).

    Raises:
        ValueError: If the marker is not an invoice posting marker.
    """
    parts = marker.split(":", 1)
    if len(parts) != 2 or parts[0] not in _PREFIXES or not parts[1]:
        raise ValueError(f"Invalid posting marker format: {marker}")
    return parts[0], parts[1]
