"""
Module: bursary_kernel.selectors.ledger_selector
Responsibility: Read-only listing and lookup of operational ledger entries.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Listings are ordered by txn_date DESC, then created_at DESC, so the
      newest entries come first and paging is stable.
    - page >= 1 and 1 <= page_size <= MAX_PAGE_SIZE.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import func, select

from bursary_kernel.domain.dtos import ApprovalStatus, OperationalTxnInfo, Page, TxnKind
from bursary_kernel.exceptions import TransactionNotFoundError, ValidationError
from bursary_kernel.models.operational_txn import OperationalTxn
from bursary_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def check_paging(page: int, page_size: int) -> None:
    if page < 1:
        raise ValidationError("page must be at least 1", field="page")
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise ValidationError(
            f"page_size must be between 1 and {MAX_PAGE_SIZE}", field="page_size"
        )


def parse_filter(enum_type, value, field: str):
    """Coerce a listing filter to ``enum_type``; unknown values are a ValidationError."""
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(str(value).strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid {field}: {value!r}", field=field) from None


class LedgerSelector(BaseSelector[OperationalTxn]):
    """Selector for operational ledger entries."""

    def get_transaction(self, txn_id: UUID) -> OperationalTxnInfo:
        txn = self.session.get(OperationalTxn, txn_id)
        if txn is None:
            raise TransactionNotFoundError(str(txn_id))
        return OperationalTxnInfo.from_model(txn)

    def get_by_reference(self, reference_no: str) -> OperationalTxnInfo | None:
        txn = self.session.execute(
            select(OperationalTxn).where(OperationalTxn.reference_no == reference_no)
        ).scalar_one_or_none()
        return OperationalTxnInfo.from_model(txn) if txn else None

    def list_transactions(
        self,
        kind: TxnKind | str | None = None,
        account_id: UUID | None = None,
        cash_bank_account_id: UUID | None = None,
        approval_status: ApprovalStatus | str | None = None,
        start: date | None = None,
        end: date | None = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[OperationalTxnInfo]:
        """
        Filtered, paginated listing.  ``start`` / ``end`` are inclusive.
        """
        check_paging(page, page_size)

        conditions = []
        if kind is not None:
            conditions.append(OperationalTxn.kind == parse_filter(TxnKind, kind, "kind").value)
        if account_id is not None:
            conditions.append(OperationalTxn.account_id == account_id)
        if cash_bank_account_id is not None:
            conditions.append(OperationalTxn.cash_bank_account_id == cash_bank_account_id)
        if approval_status is not None:
            conditions.append(
                OperationalTxn.approval_status
                == parse_filter(ApprovalStatus, approval_status, "approval_status").value
            )
        if start is not None:
            conditions.append(OperationalTxn.txn_date >= start)
        if end is not None:
            conditions.append(OperationalTxn.txn_date <= end)

        total = self.session.execute(
            select(func.count()).select_from(OperationalTxn).where(*conditions)
        ).scalar_one()

        rows = self.session.execute(
            select(OperationalTxn)
            .where(*conditions)
            .order_by(
                OperationalTxn.txn_date.desc(),
                OperationalTxn.created_at.desc(),
                OperationalTxn.reference_no.desc(),
            )
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars()

        return Page(
            items=tuple(OperationalTxnInfo.from_model(txn) for txn in rows),
            total=total,
            page=page,
            page_size=page_size,
        )
