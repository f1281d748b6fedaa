"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Once a ledger entry has been approved it has already moved a cash/bank
balance.  Editing its amount, kind or accounts afterwards would silently
break ``balance = opening_balance + sum(approved entries)``.  Rejected entries
are equally final: they record a decision.  Audit events are append-only.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check the rules:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity           | When Immutable                      | Why
-----------------|-------------------------------------|---------------------------
OperationalTxn   | After status APPROVED or REJECTED   | Balance already moved / decision recorded
AuditEvent       | ALWAYS (from creation)              | Audit trail is append-only

===============================================================================
DESIGN DECISIONS
===============================================================================

1. updated_at/updated_by may change on finalized rows: they are audit
   metadata, not financial data.

2. "Was final" is checked, not "is final".  The approval workflow itself
   must move PENDING -> APPROVED; only changes AFTER that transition are
   blocked.  Attribute history tells the two apart.

===============================================================================
USAGE
===============================================================================

    from bursary_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from bursary_kernel.exceptions import ImmutabilityViolationError
from bursary_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_METADATA_FIELDS = ("updated_at", "updated_by")
_FINAL_STATUSES = ("APPROVED", "REJECTED")


def _as_str(value) -> str:
    return getattr(value, "value", value)


def _check_operational_txn_immutability(mapper, connection, target):
    """
    Prevent updates to APPROVED or REJECTED OperationalTxn rows.

    PENDING -> APPROVED and PENDING -> REJECTED are allowed (that IS the
    workflow); any change after that is blocked.
    """
    status_history = get_history(target, "approval_status")

    was_final_before = False
    if status_history.deleted:
        was_final_before = _as_str(status_history.deleted[0]) in _FINAL_STATUSES
    elif not status_history.added:
        was_final_before = _as_str(target.approval_status) in _FINAL_STATUSES

    if not was_final_before:
        return

    insp = inspect(target)
    for attr in insp.attrs:
        if attr.key in _AUDIT_METADATA_FIELDS:
            continue
        if attr.history.has_changes():
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "OperationalTxn",
                    "entity_id": str(target.id),
                    "operation": "UPDATE",
                    "field": attr.key,
                },
            )
            raise ImmutabilityViolationError(
                entity_type="OperationalTxn",
                entity_id=str(target.id),
                reason=f"Cannot modify field '{attr.key}' on a finalized transaction",
            )


def _check_operational_txn_delete(mapper, connection, target):
    """Finalized ledger rows cannot be deleted."""
    if _as_str(target.approval_status) in _FINAL_STATUSES:
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "OperationalTxn",
                "entity_id": str(target.id),
                "operation": "DELETE",
            },
        )
        raise ImmutabilityViolationError(
            entity_type="OperationalTxn",
            entity_id=str(target.id),
            reason="Finalized transactions cannot be deleted",
        )


def _check_audit_event_immutability(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "AuditEvent",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="AuditEvent",
        entity_id=str(target.id),
        reason="Audit events are immutable and cannot be modified",
    )


def _check_audit_event_delete(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "AuditEvent",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="AuditEvent",
        entity_id=str(target.id),
        reason="Audit events cannot be deleted",
    )


_LISTENERS = (
    ("OperationalTxn", "before_update", _check_operational_txn_immutability),
    ("OperationalTxn", "before_delete", _check_operational_txn_delete),
    ("AuditEvent", "before_update", _check_audit_event_immutability),
    ("AuditEvent", "before_delete", _check_audit_event_delete),
)


def _targets():
    from bursary_kernel.models.audit_event import AuditEvent
    from bursary_kernel.models.operational_txn import OperationalTxn

    return {"OperationalTxn": OperationalTxn, "AuditEvent": AuditEvent}


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners (idempotent).

    Call once at application startup, after models are importable.
    """
    targets = _targets()
    for name, event_name, listener_fn in _LISTENERS:
        target = targets[name]
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests.
    """
    targets = _targets()
    for name, event_name, listener_fn in _LISTENERS:
        _safe_remove_listener(targets[name], event_name, listener_fn)
