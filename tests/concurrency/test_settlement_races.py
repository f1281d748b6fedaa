"""
Concurrent settlement against a real PostgreSQL database.

Two workers, each with its own session and transaction, hit the same
payment at the same moment.  The unique reference_no and the row locks on
payments and cash/bank balances must make the outcome identical to running
them one after the other.

Run with DATABASE_URL pointing at PostgreSQL; skipped otherwise.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from threading import Barrier

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from bursary_kernel.domain.clock import DeterministicClock
from bursary_kernel.exceptions import RefundExceedsPaymentError
from bursary_kernel.models.invoice import Invoice, Payment
from bursary_kernel.models.operational_txn import OperationalTxn
from bursary_kernel.services import (
    AccountService,
    AuditService,
    InvoicePostingBridge,
    InvoiceService,
    PeriodLockService,
)
from tests.conftest import CASHIER

pytestmark = pytest.mark.postgres

WORKERS = 2


@pytest.fixture
def session_factory(engine):
    if engine.dialect.name != "postgresql":
        pytest.skip("requires PostgreSQL (set DATABASE_URL)")
    return sessionmaker(bind=engine, expire_on_commit=False)


def _wire(session: Session, targets) -> tuple[InvoiceService, InvoicePostingBridge]:
    clock = DeterministicClock()
    audit = AuditService(session, clock)
    accounts = AccountService(session, clock, audit)
    locks = PeriodLockService(session, clock, audit)
    bridge = InvoicePostingBridge(session, targets, clock, audit, accounts, locks)
    return InvoiceService(session, bridge, clock, audit), bridge


@pytest.fixture
def paid_invoice(session_factory, posting_targets):
    """
    A committed invoice with one posted payment (which provisions the posting
    targets) and one raw CASH payment that has not been posted yet.
    """
    with session_factory() as session:
        invoices, _ = _wire(session, posting_targets)
        created = invoices.create_invoice("STU-001", "2024-S1", [("SPP", 1_000_000)], CASHIER)
        invoices.add_payment(created.invoice_id, 100_000, "CASH", CASHIER)

        invoice = session.get(Invoice, created.invoice_id)
        unposted = Payment(
            amount=300_000,
            method="CASH",
            paid_at=datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc),
            created_by=CASHIER,
        )
        invoice.payments.append(unposted)
        session.commit()
        return invoice.id, invoice.code, unposted.id


def _run_concurrently(fn):
    barrier = Barrier(WORKERS)

    def worker(_):
        barrier.wait()
        try:
            return fn()
        except Exception as exc:
            return exc

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        return list(pool.map(worker, range(WORKERS)))


def test_concurrent_posting_of_one_payment(session_factory, posting_targets, paid_invoice):
    _, invoice_code, payment_id = paid_invoice

    def post():
        with session_factory() as session:
            _, bridge = _wire(session, posting_targets)
            txn = bridge.post_payment(session.get(Payment, payment_id), invoice_code, CASHIER)
            session.commit()
            return txn.id

    results = _run_concurrently(post)

    assert all(not isinstance(r, Exception) for r in results), results
    assert len(set(results)) == 1

    with session_factory() as session:
        rows = session.execute(
            select(func.count()).select_from(OperationalTxn)
        ).scalar_one()
        accounts = AccountService(session)
        cash = accounts.find_cash_bank_by_code(posting_targets.cash_bank_for("CASH").code)
        assert rows == 2
        assert cash.balance == 400_000


def test_concurrent_refunds_cannot_exceed_payment(session_factory, posting_targets, paid_invoice):
    invoice_id, _, _ = paid_invoice
    with session_factory() as session:
        payment_id = session.execute(
            select(Payment.id).where(Payment.invoice_id == invoice_id, Payment.amount == 100_000)
        ).scalar_one()

    def refund():
        with session_factory() as session:
            invoices, _ = _wire(session, posting_targets)
            settlement = invoices.add_refund(payment_id, 60_000, CASHIER)
            session.commit()
            return settlement

    results = _run_concurrently(refund)

    errors = [r for r in results if isinstance(r, Exception)]
    assert len(errors) == 1
    assert isinstance(errors[0], RefundExceedsPaymentError)
    assert errors[0].refunded == 60_000
