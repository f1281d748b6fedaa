"""
DTOs -- Pure domain value types and data transfer objects.

Responsibility:
    Defines the enumerations shared by every layer (invoice status, payment
    method, account and transaction kinds, approval status) and the immutable
    data structures returned by services and selectors.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  ``from_model`` converters exist as boundary
    helpers but are only invoked from the service and selector layers.

Invariants enforced:
    - Every monetary field is an ``int`` in the smallest currency unit.
    - DTOs are frozen; callers cannot mutate a snapshot after it is returned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar
from uuid import UUID

if TYPE_CHECKING:
    from bursary_kernel.models.budget import FinanceBudget
    from bursary_kernel.models.finance_account import CashBankAccount, FinanceAccount
    from bursary_kernel.models.operational_txn import OperationalTxn
    from bursary_kernel.models.period_lock import FinancePeriodLock


# =============================================================================
# Enumerations
# =============================================================================


class InvoiceStatus(str, Enum):
    """Derived settlement state of an invoice.  VOID is terminal."""

    OPEN = "OPEN"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    VOID = "VOID"


class PaymentMethod(str, Enum):
    """How a payment was settled.  Only some methods move real cash."""

    CASH = "CASH"
    TRANSFER = "TRANSFER"
    GATEWAY = "GATEWAY"
    SCHOLARSHIP = "SCHOLARSHIP"
    ADJUSTMENT = "ADJUSTMENT"

    @property
    def is_ledger_eligible(self) -> bool:
        return self in LEDGER_ELIGIBLE_METHODS


LEDGER_ELIGIBLE_METHODS: frozenset[PaymentMethod] = frozenset(
    {PaymentMethod.CASH, PaymentMethod.TRANSFER, PaymentMethod.GATEWAY}
)


class FinanceAccountType(str, Enum):
    """Chart-of-accounts classification."""

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class CashBankType(str, Enum):
    CASH = "CASH"
    BANK = "BANK"


class TxnKind(str, Enum):
    """Direction of an operational ledger entry."""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"

    @property
    def is_outflow(self) -> bool:
        return self in (TxnKind.EXPENSE, TxnKind.TRANSFER_OUT)


class ApprovalStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class BudgetKind(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class CashFlowSection(str, Enum):
    """Cash-flow statement section an account's movements are reported under."""

    OPERATING = "OPERATING"
    INVESTING = "INVESTING"
    FINANCING = "FINANCING"


# =============================================================================
# Invoice settlement
# =============================================================================


@dataclass(frozen=True)
class InvoiceBalance:
    """
    Derived money snapshot for one invoice.

    Produced only by ``compute_invoice_balance``; never stored.
    """

    gross_total: int
    discount_total: int
    net_total: int
    payment_total: int
    refund_total: int
    paid_net: int
    due: int
    overpaid: int


@dataclass(frozen=True)
class InvoiceSettlement:
    """Result of an invoice mutation: new status, balance and ledger row (if any)."""

    invoice_id: UUID
    invoice_code: str
    status: InvoiceStatus
    balance: InvoiceBalance
    ledger_txn: OperationalTxnInfo | None = None
    payment_id: UUID | None = None
    refund_id: UUID | None = None
    discount_id: UUID | None = None


@dataclass(frozen=True)
class InvoiceLine:
    """One billed line supplied when an invoice is created."""

    name: str
    amount: int


# =============================================================================
# Chart of accounts / cash-bank
# =============================================================================


@dataclass(frozen=True)
class FinanceAccountInfo:
    id: UUID
    code: str
    name: str
    account_type: FinanceAccountType
    category: str | None
    parent_id: UUID | None
    is_active: bool

    @classmethod
    def from_model(cls, model: FinanceAccount) -> FinanceAccountInfo:
        return cls(
            id=model.id,
            code=model.code,
            name=model.name,
            account_type=FinanceAccountType(model.account_type),
            category=model.category,
            parent_id=model.parent_id,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class CashBankAccountInfo:
    id: UUID
    code: str
    name: str
    account_type: CashBankType
    bank_name: str | None
    account_number: str | None
    owner_name: str | None
    opening_balance: int
    balance: int
    is_active: bool

    @classmethod
    def from_model(cls, model: CashBankAccount) -> CashBankAccountInfo:
        return cls(
            id=model.id,
            code=model.code,
            name=model.name,
            account_type=CashBankType(model.account_type),
            bank_name=model.bank_name,
            account_number=model.account_number,
            owner_name=model.owner_name,
            opening_balance=model.opening_balance,
            balance=model.balance,
            is_active=model.is_active,
        )


# =============================================================================
# Operational ledger
# =============================================================================


@dataclass(frozen=True)
class OperationalTxnInfo:
    """Read-only view of one operational ledger row."""

    id: UUID
    txn_date: date
    kind: TxnKind
    amount: int
    account_id: UUID
    cash_bank_account_id: UUID
    reference_no: str
    description: str | None
    proof_url: str | None
    approval_status: ApprovalStatus
    transfer_pair_id: UUID | None
    created_by: str
    checked_by: str | None = None
    checked_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejected_reason: str | None = None

    @classmethod
    def from_model(cls, model: OperationalTxn) -> OperationalTxnInfo:
        return cls(
            id=model.id,
            txn_date=model.txn_date,
            kind=TxnKind(model.kind),
            amount=model.amount,
            account_id=model.account_id,
            cash_bank_account_id=model.cash_bank_account_id,
            reference_no=model.reference_no,
            description=model.description,
            proof_url=model.proof_url,
            approval_status=ApprovalStatus(model.approval_status),
            transfer_pair_id=model.transfer_pair_id,
            created_by=model.created_by,
            checked_by=model.checked_by,
            checked_at=model.checked_at,
            approved_by=model.approved_by,
            approved_at=model.approved_at,
            rejected_by=model.rejected_by,
            rejected_at=model.rejected_at,
            rejected_reason=model.rejected_reason,
        )


@dataclass(frozen=True)
class TransferResult:
    """Both legs of a cash/bank transfer, created together."""

    outgoing: OperationalTxnInfo
    incoming: OperationalTxnInfo


T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    items: tuple[T, ...]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size


# =============================================================================
# Period locks / budgets
# =============================================================================


@dataclass(frozen=True)
class PeriodLockInfo:
    id: UUID
    start_date: date
    end_date: date
    reason: str | None
    locked_by: str

    @classmethod
    def from_model(cls, model: FinancePeriodLock) -> PeriodLockInfo:
        return cls(
            id=model.id,
            start_date=model.start_date,
            end_date=model.end_date,
            reason=model.reason,
            locked_by=model.locked_by,
        )


@dataclass(frozen=True)
class BudgetInfo:
    id: UUID
    period_start: date
    period_end: date
    kind: BudgetKind
    amount: int
    account_id: UUID
    cash_bank_account_id: UUID | None
    notes: str | None

    @classmethod
    def from_model(cls, model: FinanceBudget) -> BudgetInfo:
        return cls(
            id=model.id,
            period_start=model.period_start,
            period_end=model.period_end,
            kind=BudgetKind(model.kind),
            amount=model.amount,
            account_id=model.account_id,
            cash_bank_account_id=model.cash_bank_account_id,
            notes=model.notes,
        )


@dataclass(frozen=True)
class AccountRef:
    """Code/name pair used in report rows."""

    id: UUID
    code: str
    name: str


@dataclass(frozen=True)
class BudgetVsActualRow:
    kind: BudgetKind
    account: AccountRef
    cash_bank_account: AccountRef | None
    budget: int
    actual: int
    variance: int
    variance_pct: Decimal | None


@dataclass(frozen=True)
class BudgetVsActualTotals:
    budget: int
    actual: int
    variance: int


@dataclass(frozen=True)
class BudgetVsActualReport:
    start: date
    end: date
    rows: tuple[BudgetVsActualRow, ...]
    totals: BudgetVsActualTotals


# =============================================================================
# Cash book
# =============================================================================


@dataclass(frozen=True)
class CashBookEntry:
    txn_id: UUID
    txn_date: date
    reference_no: str
    kind: TxnKind
    description: str | None
    account_code: str
    cash_bank_code: str
    debit: int
    credit: int
    running_balance: int


@dataclass(frozen=True)
class CashBookGroup:
    """Totals for one day (``YYYY-MM-DD``) or month (``YYYY-MM``)."""

    key: str
    total_in: int
    total_out: int
    closing_balance: int


@dataclass(frozen=True)
class CashBookReport:
    start: date
    end: date
    group_by: str
    opening_balance: int
    closing_balance: int
    total_in: int
    total_out: int
    entries: tuple[CashBookEntry, ...] = field(default_factory=tuple)
    groups: tuple[CashBookGroup, ...] = field(default_factory=tuple)


# =============================================================================
# Reconciliation
# =============================================================================


@dataclass(frozen=True)
class ReconciliationRow:
    """
    One cash/bank account reconciled against its approved ledger entries.

    ``ledger_balance`` is what the ledger says the balance should be today;
    ``variance`` is the stored balance minus that figure and is 0 whenever
    the cash/bank balance invariant holds.
    """

    cash_bank_account_id: UUID
    code: str
    name: str
    account_type: CashBankType
    opening_configured: int
    opening_at_start: int
    period_in: int
    period_out: int
    period_net: int
    closing_at_end: int
    ledger_balance: int
    balance: int
    variance: int


@dataclass(frozen=True)
class ReconciliationTotals:
    opening_at_start: int = 0
    period_in: int = 0
    period_out: int = 0
    period_net: int = 0
    closing_at_end: int = 0
    ledger_balance: int = 0
    balance: int = 0
    variance: int = 0


@dataclass(frozen=True)
class ReconciliationReport:
    start: date
    end: date
    rows: tuple[ReconciliationRow, ...] = field(default_factory=tuple)
    totals: ReconciliationTotals = field(default_factory=ReconciliationTotals)


# =============================================================================
# Cash flow
# =============================================================================


@dataclass(frozen=True)
class CashFlowItem:
    account: AccountRef
    inflow: int
    outflow: int
    net: int
    txn_count: int


@dataclass(frozen=True)
class CashFlowSectionTotals:
    section: CashFlowSection
    inflow: int
    outflow: int
    net: int
    txn_count: int
    items: tuple[CashFlowItem, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CashFlowReport:
    """
    APPROVED INCOME/EXPENSE movements grouped into cash-flow sections.

    Transfers between cash/bank accounts do not change the school's cash
    position, so they are reported apart and excluded from the totals.
    """

    start: date
    end: date
    sections: tuple[CashFlowSectionTotals, ...]
    transfers_in: int
    transfers_out: int
    inflow: int
    outflow: int
    net: int
