"""
Audit event payloads -- a closed set of typed records.

Responsibility:
    Every create/update/delete performed by the services produces exactly one
    of the payload types below.  Each type fixes its ``event_type`` and
    ``entity`` name; instance fields are the structured metadata.  Payloads
    are serialized to a JSON-safe dict only at the sink boundary
    (``to_meta``).

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Consumed by services/audit_service.py.
"""

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar
from uuid import UUID


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass(frozen=True)
class AuditPayload:
    """Base for all audit payloads."""

    event_type: ClassVar[str] = "unknown"
    entity: ClassVar[str] = "unknown"

    entity_id: UUID

    def to_meta(self) -> dict[str, Any]:
        return {
            f.name: _jsonable(getattr(self, f.name))
            for f in fields(self)
            if f.name != "entity_id"
        }


# Chart of accounts


@dataclass(frozen=True)
class FinanceAccountCreated(AuditPayload):
    event_type: ClassVar[str] = "finance_account.created"
    entity: ClassVar[str] = "finance_account"

    code: str
    name: str
    account_type: str
    parent_id: UUID | None = None


@dataclass(frozen=True)
class FinanceAccountUpdated(AuditPayload):
    event_type: ClassVar[str] = "finance_account.updated"
    entity: ClassVar[str] = "finance_account"

    changes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FinanceAccountDeleted(AuditPayload):
    event_type: ClassVar[str] = "finance_account.deleted"
    entity: ClassVar[str] = "finance_account"

    code: str


@dataclass(frozen=True)
class CashBankAccountCreated(AuditPayload):
    event_type: ClassVar[str] = "cash_bank_account.created"
    entity: ClassVar[str] = "cash_bank_account"

    code: str
    name: str
    account_type: str
    opening_balance: int


@dataclass(frozen=True)
class CashBankAccountUpdated(AuditPayload):
    event_type: ClassVar[str] = "cash_bank_account.updated"
    entity: ClassVar[str] = "cash_bank_account"

    changes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CashBankAccountDeleted(AuditPayload):
    event_type: ClassVar[str] = "cash_bank_account.deleted"
    entity: ClassVar[str] = "cash_bank_account"

    code: str


# Operational ledger


@dataclass(frozen=True)
class TransactionCreated(AuditPayload):
    event_type: ClassVar[str] = "operational_txn.created"
    entity: ClassVar[str] = "operational_txn"

    reference_no: str
    kind: str
    amount: int
    txn_date: date
    approval_status: str
    source: str = "manual"


@dataclass(frozen=True)
class TransferCreated(AuditPayload):
    event_type: ClassVar[str] = "operational_txn.transfer_created"
    entity: ClassVar[str] = "operational_txn"

    incoming_txn_id: UUID
    reference_no: str
    amount: int
    txn_date: date
    from_cash_bank_account_id: UUID
    to_cash_bank_account_id: UUID


@dataclass(frozen=True)
class TransactionUpdated(AuditPayload):
    event_type: ClassVar[str] = "operational_txn.updated"
    entity: ClassVar[str] = "operational_txn"

    before: dict[str, Any] = field(default_factory=dict)
    after: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TransactionChecked(AuditPayload):
    event_type: ClassVar[str] = "operational_txn.checked"
    entity: ClassVar[str] = "operational_txn"

    reference_no: str
    group_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class TransactionApproved(AuditPayload):
    event_type: ClassVar[str] = "operational_txn.approved"
    entity: ClassVar[str] = "operational_txn"

    reference_no: str
    group_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class TransactionRejected(AuditPayload):
    event_type: ClassVar[str] = "operational_txn.rejected"
    entity: ClassVar[str] = "operational_txn"

    reference_no: str
    reason: str
    group_ids: tuple[UUID, ...] = ()


# Period locks


@dataclass(frozen=True)
class PeriodLockCreated(AuditPayload):
    event_type: ClassVar[str] = "period_lock.created"
    entity: ClassVar[str] = "finance_period_lock"

    start_date: date
    end_date: date
    reason: str | None = None


@dataclass(frozen=True)
class PeriodLockDeleted(AuditPayload):
    event_type: ClassVar[str] = "period_lock.deleted"
    entity: ClassVar[str] = "finance_period_lock"

    start_date: date
    end_date: date


# Budgets


@dataclass(frozen=True)
class BudgetCreated(AuditPayload):
    event_type: ClassVar[str] = "budget.created"
    entity: ClassVar[str] = "finance_budget"

    kind: str
    amount: int
    period_start: date
    period_end: date
    account_id: UUID
    cash_bank_account_id: UUID | None = None


@dataclass(frozen=True)
class BudgetUpdated(AuditPayload):
    event_type: ClassVar[str] = "budget.updated"
    entity: ClassVar[str] = "finance_budget"

    changes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BudgetDeleted(AuditPayload):
    event_type: ClassVar[str] = "budget.deleted"
    entity: ClassVar[str] = "finance_budget"

    kind: str
    amount: int


# Invoices


@dataclass(frozen=True)
class InvoiceCreated(AuditPayload):
    event_type: ClassVar[str] = "invoice.created"
    entity: ClassVar[str] = "invoice"

    code: str
    gross_total: int
    item_count: int
    status: str


@dataclass(frozen=True)
class DiscountApplied(AuditPayload):
    """A discount was added, changed or removed (``action``)."""

    event_type: ClassVar[str] = "invoice.discount_changed"
    entity: ClassVar[str] = "invoice"

    discount_id: UUID
    action: str
    amount: int
    status: str


@dataclass(frozen=True)
class PaymentRecorded(AuditPayload):
    event_type: ClassVar[str] = "invoice.payment_recorded"
    entity: ClassVar[str] = "invoice"

    payment_id: UUID
    amount: int
    method: str
    status: str
    ledger_txn_id: UUID | None = None


@dataclass(frozen=True)
class RefundRecorded(AuditPayload):
    event_type: ClassVar[str] = "invoice.refund_recorded"
    entity: ClassVar[str] = "invoice"

    payment_id: UUID
    refund_id: UUID
    amount: int
    status: str
    ledger_txn_id: UUID | None = None


@dataclass(frozen=True)
class InvoiceVoided(AuditPayload):
    event_type: ClassVar[str] = "invoice.voided"
    entity: ClassVar[str] = "invoice"

    previous_status: str
    reason: str | None = None
