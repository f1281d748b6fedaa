"""
Module: bursary_kernel.models.finance_account
Responsibility: ORM persistence for the chart of accounts (FinanceAccount)
    and the cash/bank accounts whose balances the operational ledger moves.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/dtos.py only.

Invariants enforced:
    - code is unique per table.
    - FinanceAccount.parent_id forms a tree (no self-parent, no cycles);
      enforced by AccountService, not by the schema.
    - CashBankAccount.balance = opening_balance + sum of signed APPROVED
      ledger entries.  Only AccountService.apply_cash_bank_balance writes it.
    - balance >= 0 (CHECK constraint and service guard).

Failure modes:
    - AccountNotFoundError / CashBankAccountNotFoundError on unknown ids.
    - AccountInactiveError / CashBankAccountInactiveError when posting to a
      deactivated account.
"""

from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bursary_kernel.db.base import TrackedBase, UUIDString
from bursary_kernel.domain.dtos import CashBankType, FinanceAccountType


class FinanceAccount(TrackedBase):
    """
    Chart-of-accounts node, the classification target of every ledger row.

    Guarantees:
        - account_type is one of ASSET, LIABILITY, EQUITY, INCOME, EXPENSE.
    """

    __tablename__ = "finance_accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_finance_account_code"),
        Index("idx_finance_account_type", "account_type"),
        Index("idx_finance_account_parent", "parent_id"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[FinanceAccountType] = mapped_column(String(20), nullable=False)

    # Free-form grouping label (e.g. "Revenue", "Expense")
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    parent_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<FinanceAccount {self.code}: {self.name}>"


class CashBankAccount(TrackedBase):
    """A physical cash box or bank account with a running balance."""

    __tablename__ = "cash_bank_accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_cash_bank_account_code"),
        CheckConstraint("opening_balance >= 0", name="ck_cash_bank_opening_non_negative"),
        CheckConstraint("balance >= 0", name="ck_cash_bank_balance_non_negative"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[CashBankType] = mapped_column(String(10), nullable=False)

    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    owner_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    opening_balance: Mapped[int] = mapped_column(nullable=False, default=0)
    balance: Mapped[int] = mapped_column(nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<CashBankAccount {self.code}: {self.balance}>"
