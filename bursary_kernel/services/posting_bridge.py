"""
InvoicePostingBridge -- mirrors settled invoice cash into the operational ledger.

Responsibility:
    Turns a recorded Payment (INCOME) or Refund (EXPENSE) into exactly one
    pre-APPROVED OperationalTxn and moves the routed cash/bank balance,
    when the payment method actually moves cash.

Architecture position:
    Kernel > Services -- imperative shell.  Called by InvoiceService inside
    the same transaction as the payment/refund insert.  Posting targets are
    injected (``InvoicePostingTargets``); this module never reads
    configuration.

Invariants enforced:
    - Marker ``INVPAY:<payment_id>`` / ``INVREF:<refund_id>`` is the entry's
      reference_no.  At most one entry per marker; a repeat call returns the
      existing entry and changes nothing.
    - SCHOLARSHIP and ADJUSTMENT never post.
    - Period lock is asserted on the settlement date (paid_at / refunded_at).
    - Balance adjustment and entry insert happen in one savepoint; a lost
      race on the marker rolls both back and returns the winner's row.

Failure modes:
    - AccountInactiveError / CashBankAccountInactiveError: a configured
      target was deactivated.
    - PeriodLockedError, InsufficientBalanceError.
    - ValidationError: no cash/bank route for the method.
"""

from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bursary_kernel.domain.audit_events import TransactionCreated
from bursary_kernel.domain.clock import Clock, SystemClock
from bursary_kernel.domain.dtos import (
    ApprovalStatus,
    OperationalTxnInfo,
    PaymentMethod,
    TxnKind,
)
from bursary_kernel.domain.posting_targets import AccountTarget, InvoicePostingTargets
from bursary_kernel.logging_config import LogContext, get_logger
from bursary_kernel.models.invoice import Payment, Refund
from bursary_kernel.models.operational_txn import OperationalTxn
from bursary_kernel.services.account_service import AccountService
from bursary_kernel.services.audit_service import AuditService
from bursary_kernel.services.base import require_actor
from bursary_kernel.services.period_lock_service import PeriodLockService
from bursary_kernel.utils.idempotency import invoice_payment_marker, invoice_refund_marker

logger = get_logger("services.posting_bridge")


def _settlement_date(value: datetime | date) -> date:
    return value.date() if isinstance(value, datetime) else value


class InvoicePostingBridge:
    """
    Idempotent invoice-to-ledger posting.

    Usage:
        bridge = InvoicePostingBridge(session, targets, clock)
        txn = bridge.post_payment(payment, invoice.code, actor_id)
    """

    def __init__(
        self,
        session: Session,
        targets: InvoicePostingTargets,
        clock: Clock | None = None,
        audit: AuditService | None = None,
        accounts: AccountService | None = None,
        period_locks: PeriodLockService | None = None,
    ):
        self.session = session
        self._targets = targets
        self._clock = clock or SystemClock()
        self._audit = audit or AuditService(session, self._clock)
        self._accounts = accounts or AccountService(session, self._clock, self._audit)
        self._period_locks = period_locks or PeriodLockService(session, self._clock, self._audit)

    @property
    def targets(self) -> InvoicePostingTargets:
        return self._targets

    def find_posting(self, marker: str) -> OperationalTxn | None:
        return self.session.execute(
            select(OperationalTxn).where(OperationalTxn.reference_no == marker)
        ).scalar_one_or_none()

    def post_payment(
        self,
        payment: Payment,
        invoice_code: str,
        actor_id: str,
    ) -> OperationalTxnInfo | None:
        """
        Post an INCOME entry for a payment.

        Returns:
            The ledger entry, or None when the method does not move cash.
        """
        method = PaymentMethod(payment.method)
        return self._post(
            marker=invoice_payment_marker(payment.id),
            kind=TxnKind.INCOME,
            amount=payment.amount,
            method=method,
            account_target=self._targets.income_account,
            settled_on=_settlement_date(payment.paid_at),
            description=f"Pembayaran tagihan {invoice_code} ({method.value})",
            actor_id=actor_id,
            source="invoice_payment",
        )

    def post_refund(
        self,
        refund: Refund,
        payment: Payment,
        invoice_code: str,
        actor_id: str,
    ) -> OperationalTxnInfo | None:
        """Post an EXPENSE entry for a refund, routed by the payment's method."""
        method = PaymentMethod(payment.method)
        return self._post(
            marker=invoice_refund_marker(refund.id),
            kind=TxnKind.EXPENSE,
            amount=refund.amount,
            method=method,
            account_target=self._targets.refund_account,
            settled_on=_settlement_date(refund.refunded_at),
            description=f"Refund pembayaran tagihan {invoice_code} ({method.value})",
            actor_id=actor_id,
            source="invoice_refund",
        )

    def _post(
        self,
        marker: str,
        kind: TxnKind,
        amount: int,
        method: PaymentMethod,
        account_target: AccountTarget,
        settled_on: date,
        description: str,
        actor_id: str,
        source: str,
    ) -> OperationalTxnInfo | None:
        actor = require_actor(actor_id)
        if not method.is_ledger_eligible:
            logger.debug(
                "ledger_posting_skipped",
                extra={"reference_no": marker, "method": method.value},
            )
            return None

        existing = self.find_posting(marker)
        if existing is not None:
            return self._idempotent(existing)

        cash_bank_target = self._targets.cash_bank_for(method)
        account = self._accounts.ensure_finance_account(
            account_target.code,
            account_target.name,
            account_target.account_type,
            actor,
            category=account_target.category,
        )
        cash_bank = self._accounts.ensure_cash_bank_account(
            cash_bank_target.code,
            cash_bank_target.name,
            cash_bank_target.account_type,
            actor,
        )
        self._accounts.validate_finance_account(account.id)
        self._accounts.validate_cash_bank_account(cash_bank.id)
        self._period_locks.assert_period_unlocked(settled_on)

        now = self._clock.now()
        txn = OperationalTxn(
            txn_date=settled_on,
            kind=kind.value,
            amount=amount,
            account_id=account.id,
            cash_bank_account_id=cash_bank.id,
            reference_no=marker,
            description=description,
            approval_status=ApprovalStatus.APPROVED.value,
            created_by=actor,
            checked_by=actor,
            checked_at=now,
            approved_by=actor,
            approved_at=now,
        )
        try:
            with self.session.begin_nested():
                new_balance = self._accounts.apply_cash_bank_balance(kind, amount, cash_bank.id)
                self.session.add(txn)
                self.session.flush()
        except IntegrityError:
            existing = self.find_posting(marker)
            if existing is None:
                raise
            return self._idempotent(existing)

        with LogContext.bind(txn_id=str(txn.id), reference_no=marker):
            logger.info(
                "invoice_ledger_posted",
                extra={
                    "kind": kind.value,
                    "amount": amount,
                    "method": method.value,
                    "cash_bank_code": cash_bank.code,
                    "balance": new_balance,
                },
            )
        self._audit.record(
            actor,
            TransactionCreated(
                entity_id=txn.id,
                reference_no=marker,
                kind=kind.value,
                amount=amount,
                txn_date=settled_on,
                approval_status=txn.approval_status,
                source=source,
            ),
        )
        return OperationalTxnInfo.from_model(txn)

    def _idempotent(self, existing: OperationalTxn) -> OperationalTxnInfo:
        logger.info(
            "ledger_posting_idempotent",
            extra={"txn_id": str(existing.id), "reference_no": existing.reference_no},
        )
        return OperationalTxnInfo.from_model(existing)
