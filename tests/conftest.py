"""
Pytest fixtures for the bursary ledger test suite.

Provides:
- A fresh database per test (SQLite in memory by default)
- Services wired to a deterministic clock
- Seeded chart-of-accounts and cash/bank fixtures

Environment Variables:
- DATABASE_URL: run against another database (e.g. PostgreSQL) instead of
  in-memory SQLite.  Tables are created and dropped around every test.
"""

import json
import logging
import os
from datetime import date
from io import StringIO

import pytest
from sqlalchemy.orm import Session

from bursary_config import get_active_config, reset_active_config
from bursary_config.bridges import build_posting_targets
from bursary_kernel.db.engine import create_engine_from_url, create_tables, drop_tables
from bursary_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from bursary_kernel.domain.clock import DeterministicClock
from bursary_kernel.domain.dtos import CashBankType, FinanceAccountType
from bursary_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from bursary_kernel.selectors import (
    BudgetSelector,
    CashBookSelector,
    CashFlowSelector,
    InvoiceSelector,
    LedgerSelector,
    ReconciliationSelector,
)
from bursary_kernel.services import (
    AccountService,
    ApprovalService,
    AuditService,
    BudgetService,
    InvoicePostingBridge,
    InvoiceService,
    LedgerService,
    PeriodLockService,
)

MAKER = "user-maker"
CHECKER = "user-checker"
APPROVER = "user-approver"
CASHIER = "user-cashier"

TODAY = date(2024, 1, 15)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture bursary_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, invoice_service):
            invoice_service.add_payment(...)
            logs = captured_logs()
            assert any(r["message"] == "invoice_ledger_posted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("bursary_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _immutability_listeners():
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()


@pytest.fixture
def engine():
    database_url = os.environ.get("DATABASE_URL") or "sqlite:///:memory:"
    engine = create_engine_from_url(database_url)
    create_tables(engine)
    yield engine
    drop_tables(engine)
    engine.dispose()


@pytest.fixture
def session(engine) -> Session:
    """
    A session on a fresh schema.

    Services only flush; tests that need durability call ``session.commit()``.
    """
    session = Session(bind=engine, expire_on_commit=False)
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture
def active_config():
    reset_active_config()
    config = get_active_config(environ={})
    yield config
    reset_active_config()


@pytest.fixture
def posting_targets(active_config):
    return build_posting_targets(active_config)


# =============================================================================
# Services and selectors
# =============================================================================


@pytest.fixture
def audit_service(session, clock):
    return AuditService(session, clock)


@pytest.fixture
def account_service(session, clock, audit_service):
    return AccountService(session, clock, audit_service)


@pytest.fixture
def period_lock_service(session, clock, audit_service):
    return PeriodLockService(session, clock, audit_service)


@pytest.fixture
def ledger_service(session, clock, audit_service, account_service, period_lock_service):
    return LedgerService(session, clock, audit_service, account_service, period_lock_service)


@pytest.fixture
def approval_service(session, clock, audit_service, account_service, period_lock_service):
    return ApprovalService(session, clock, audit_service, account_service, period_lock_service)


@pytest.fixture
def budget_service(session, clock, audit_service, account_service):
    return BudgetService(session, clock, audit_service, account_service)


@pytest.fixture
def posting_bridge(
    session, posting_targets, clock, audit_service, account_service, period_lock_service
):
    return InvoicePostingBridge(
        session, posting_targets, clock, audit_service, account_service, period_lock_service
    )


@pytest.fixture
def invoice_service(session, posting_bridge, clock, audit_service):
    return InvoiceService(session, posting_bridge, clock, audit_service)


@pytest.fixture
def invoice_selector(session):
    return InvoiceSelector(session)


@pytest.fixture
def ledger_selector(session):
    return LedgerSelector(session)


@pytest.fixture
def budget_selector(session):
    return BudgetSelector(session)


@pytest.fixture
def cash_book_selector(session):
    return CashBookSelector(session)


@pytest.fixture
def reconciliation_selector(session):
    return ReconciliationSelector(session)


@pytest.fixture
def cash_flow_selector(session):
    return CashFlowSelector(session)


# =============================================================================
# Seed data
# =============================================================================


@pytest.fixture
def income_account(account_service):
    return account_service.create_account(
        "4200", "Donasi", FinanceAccountType.INCOME, MAKER, category="Revenue"
    )


@pytest.fixture
def expense_account(account_service):
    return account_service.create_account(
        "5200", "Alat Tulis Kantor", FinanceAccountType.EXPENSE, MAKER, category="Expense"
    )


@pytest.fixture
def transfer_account(account_service):
    return account_service.create_account(
        "1900", "Mutasi Kas", FinanceAccountType.ASSET, MAKER
    )


@pytest.fixture
def cash_account(account_service):
    return account_service.create_cash_bank_account(
        "CASH-MAIN", "Kas Utama", CashBankType.CASH, MAKER, opening_balance=1_000_000
    )


@pytest.fixture
def bank_account(account_service):
    return account_service.create_cash_bank_account(
        "BANK-MAIN",
        "Bank Utama",
        CashBankType.BANK,
        MAKER,
        opening_balance=0,
        bank_name="Bank Contoh",
        account_number="1234567890",
    )


@pytest.fixture
def approve(approval_service):
    """Check and approve an entry with two distinct non-maker identities."""

    def _approve(txn_id):
        approval_service.check_transaction(txn_id, CHECKER)
        return approval_service.approve_transaction(txn_id, APPROVER)

    return _approve


@pytest.fixture
def approved_entry(ledger_service, approve):
    """Create a manual entry and carry it through to APPROVED."""

    def _create(kind, amount, account, cash_bank, txn_date=TODAY, **kwargs):
        txn = ledger_service.create_transaction(
            kind, amount, account.id, cash_bank.id, MAKER, txn_date=txn_date, **kwargs
        )
        return approve(txn.id)[0]

    return _create


@pytest.fixture
def invoice_factory(invoice_service):
    """Create an invoice billed ``amounts`` (one line per amount)."""

    def _create(*amounts, student_id="STU-001", period_id="2024-S1", **kwargs):
        items = [(f"Item {i + 1}", amount) for i, amount in enumerate(amounts)]
        return invoice_service.create_invoice(student_id, period_id, items, CASHIER, **kwargs)

    return _create
