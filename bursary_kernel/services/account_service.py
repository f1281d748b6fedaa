"""
AccountService -- chart of accounts and cash/bank registry.

Responsibility:
    Maintains the FinanceAccount tree and the CashBankAccount register:
    create/update/delete with audit, active-status validation before every
    posting, create-if-missing for configured posting targets, and the
    single writer of cash/bank running balances.

Architecture position:
    Kernel > Services -- imperative shell.  Called by LedgerService,
    ApprovalService, InvoicePostingBridge and BudgetService.

Invariants enforced:
    - Codes are trimmed and unique.
    - No account is its own parent; re-parenting never creates a cycle.
      The ancestor walk is bounded by the number of accounts.
    - Nodes with children, ledger transactions or budgets are not deleted.
    - balance = opening_balance + sum of signed APPROVED entries, and never
      drops below zero.  The row is locked (FOR UPDATE) while it changes.
    - ensure_* never reactivates a deactivated account.

Failure modes:
    - AccountNotFoundError / CashBankAccountNotFoundError.
    - AccountInactiveError / CashBankAccountInactiveError.
    - DuplicateCodeError, SelfParentError, CircularParentError,
      AccountInUseError, InsufficientBalanceError, ValidationError.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bursary_kernel.domain.audit_events import (
    CashBankAccountCreated,
    CashBankAccountDeleted,
    CashBankAccountUpdated,
    FinanceAccountCreated,
    FinanceAccountDeleted,
    FinanceAccountUpdated,
)
from bursary_kernel.domain.balance import balance_delta
from bursary_kernel.domain.clock import Clock, SystemClock
from bursary_kernel.domain.dtos import (
    CashBankAccountInfo,
    CashBankType,
    FinanceAccountInfo,
    FinanceAccountType,
    TxnKind,
)
from bursary_kernel.exceptions import (
    AccountInactiveError,
    AccountInUseError,
    AccountNotFoundError,
    CashBankAccountInactiveError,
    CashBankAccountNotFoundError,
    CircularParentError,
    DuplicateCodeError,
    InsufficientBalanceError,
    SelfParentError,
    ValidationError,
)
from bursary_kernel.logging_config import get_logger
from bursary_kernel.models.budget import FinanceBudget
from bursary_kernel.models.finance_account import CashBankAccount, FinanceAccount
from bursary_kernel.models.operational_txn import OperationalTxn
from bursary_kernel.services.audit_service import AuditService
from bursary_kernel.services.base import BaseService, require_actor

logger = get_logger("services.account")


def _required_text(value: str | None, field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} is required", field=field)
    return text


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip()
    return text or None


def _non_negative_amount(value: int, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", field=field)
    if value < 0:
        raise ValidationError(f"{field} cannot be negative", field=field)
    return value


def _parse_enum(enum_type, value, field: str):
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(str(value).upper())
    except ValueError:
        raise ValidationError(f"Invalid {field}: {value!r}", field=field) from None


class AccountService(BaseService[FinanceAccount]):
    """
    Registry for finance accounts and cash/bank accounts.

    Returns FinanceAccountInfo / CashBankAccountInfo DTOs from public
    CRUD methods; the ``validate_*`` and ``ensure_*`` helpers return ORM
    rows for use inside the same transaction.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit or AuditService(session, self._clock)

    # =========================================================================
    # Finance accounts
    # =========================================================================

    def _get_account(self, account_id: UUID) -> FinanceAccount:
        account = self.session.get(FinanceAccount, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def get_account(self, account_id: UUID) -> FinanceAccountInfo:
        return FinanceAccountInfo.from_model(self._get_account(account_id))

    def find_account_by_code(self, code: str) -> FinanceAccount | None:
        return self.session.execute(
            select(FinanceAccount).where(FinanceAccount.code == code.strip())
        ).scalar_one_or_none()

    def list_accounts(self, active_only: bool = False) -> list[FinanceAccountInfo]:
        stmt = select(FinanceAccount)
        if active_only:
            stmt = stmt.where(FinanceAccount.is_active == True)  # noqa: E712
        stmt = stmt.order_by(FinanceAccount.code)
        return [FinanceAccountInfo.from_model(a) for a in self.session.execute(stmt).scalars()]

    def create_account(
        self,
        code: str,
        name: str,
        account_type: FinanceAccountType | str,
        actor_id: str,
        category: str | None = None,
        parent_id: UUID | None = None,
        is_active: bool = True,
    ) -> FinanceAccountInfo:
        """
        Create a chart-of-accounts node.

        Raises:
            ValidationError: blank code/name or unknown type.
            DuplicateCodeError: code already exists.
            AccountNotFoundError: parent does not exist.
        """
        actor = require_actor(actor_id)
        code = _required_text(code, "code")
        name = _required_text(name, "name")
        account_type = _parse_enum(FinanceAccountType, account_type, "account_type")

        if self.find_account_by_code(code) is not None:
            raise DuplicateCodeError("Finance account", code)
        if parent_id is not None:
            self._get_account(parent_id)

        account = FinanceAccount(
            code=code,
            name=name,
            account_type=account_type.value,
            category=_optional_text(category),
            parent_id=parent_id,
            is_active=is_active,
            created_by=actor,
        )
        self.session.add(account)
        self.session.flush()

        logger.info(
            "finance_account_created",
            extra={"account_id": str(account.id), "code": code, "account_type": account_type.value},
        )
        self._audit.record(
            actor,
            FinanceAccountCreated(
                entity_id=account.id,
                code=code,
                name=name,
                account_type=account_type.value,
                parent_id=parent_id,
            ),
        )
        return FinanceAccountInfo.from_model(account)

    def update_account(
        self,
        account_id: UUID,
        actor_id: str,
        name: str | None = None,
        account_type: FinanceAccountType | str | None = None,
        category: str | None = None,
        parent_id: UUID | None = None,
        clear_parent: bool = False,
        is_active: bool | None = None,
    ) -> FinanceAccountInfo:
        """
        Update a chart-of-accounts node.  Only supplied fields change.

        Raises:
            SelfParentError: parent_id == account_id.
            CircularParentError: the new parent descends from this account.
        """
        actor = require_actor(actor_id)
        account = self._get_account(account_id)
        changes: dict = {}

        if name is not None:
            account.name = _required_text(name, "name")
            changes["name"] = account.name
        if account_type is not None:
            account.account_type = _parse_enum(
                FinanceAccountType, account_type, "account_type"
            ).value
            changes["account_type"] = account.account_type
        if category is not None:
            account.category = _optional_text(category)
            changes["category"] = account.category
        if clear_parent:
            account.parent_id = None
            changes["parent_id"] = None
        elif parent_id is not None:
            self._assert_valid_parent(account.id, parent_id)
            account.parent_id = parent_id
            changes["parent_id"] = parent_id
        if is_active is not None:
            account.is_active = is_active
            changes["is_active"] = is_active

        account.updated_by = actor
        self.session.flush()

        logger.info(
            "finance_account_updated",
            extra={"account_id": str(account.id), "fields": sorted(changes)},
        )
        self._audit.record(actor, FinanceAccountUpdated(entity_id=account.id, changes=changes))
        return FinanceAccountInfo.from_model(account)

    def _assert_valid_parent(self, account_id: UUID, parent_id: UUID) -> None:
        if parent_id == account_id:
            raise SelfParentError(str(account_id))
        self._get_account(parent_id)

        parents = dict(
            self.session.execute(select(FinanceAccount.id, FinanceAccount.parent_id)).all()
        )
        node: UUID | None = parent_id
        for _ in range(len(parents) + 1):
            if node is None:
                return
            if node == account_id:
                raise CircularParentError(str(account_id), str(parent_id))
            node = parents.get(node)
        # Walk exceeded the node count: the existing tree already has a loop.
        raise CircularParentError(str(account_id), str(parent_id))

    def delete_account(self, account_id: UUID, actor_id: str) -> None:
        """
        Delete a chart-of-accounts node.

        Raises:
            AccountInUseError: the node has children, transactions or budgets.
        """
        actor = require_actor(actor_id)
        account = self._get_account(account_id)

        if self._count(FinanceAccount, FinanceAccount.parent_id == account.id):
            raise AccountInUseError(str(account.id), "account has child accounts")
        if self._count(OperationalTxn, OperationalTxn.account_id == account.id):
            raise AccountInUseError(str(account.id), "account has ledger transactions")
        if self._count(FinanceBudget, FinanceBudget.account_id == account.id):
            raise AccountInUseError(str(account.id), "account has budgets")

        code = account.code
        self.session.delete(account)
        self.session.flush()

        logger.info("finance_account_deleted", extra={"account_id": str(account_id), "code": code})
        self._audit.record(actor, FinanceAccountDeleted(entity_id=account_id, code=code))

    def validate_finance_account(self, account_id: UUID) -> FinanceAccount:
        """Return the account if it exists and is active."""
        account = self._get_account(account_id)
        if not account.is_active:
            raise AccountInactiveError(str(account.id), account.code)
        return account

    def ensure_finance_account(
        self,
        code: str,
        name: str,
        account_type: FinanceAccountType | str,
        actor_id: str,
        category: str | None = None,
    ) -> FinanceAccount:
        """
        Return the account with ``code``, creating it if missing.

        An existing row is returned as-is, even when deactivated; the
        caller's validation decides whether it may be posted to.
        """
        existing = self.find_account_by_code(code)
        if existing is not None:
            return existing

        savepoint = self.session.begin_nested()
        try:
            account = FinanceAccount(
                code=code.strip(),
                name=name.strip(),
                account_type=FinanceAccountType(account_type).value,
                category=category,
                is_active=True,
                created_by=actor_id,
            )
            self.session.add(account)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            existing = self.find_account_by_code(code)
            if existing is None:
                raise
            return existing

        logger.info(
            "finance_account_auto_created",
            extra={"account_id": str(account.id), "code": account.code},
        )
        self._audit.record(
            actor_id,
            FinanceAccountCreated(
                entity_id=account.id,
                code=account.code,
                name=account.name,
                account_type=account.account_type,
            ),
        )
        return account

    # =========================================================================
    # Cash/bank accounts
    # =========================================================================

    def _get_cash_bank(self, cash_bank_account_id: UUID) -> CashBankAccount:
        account = self.session.get(CashBankAccount, cash_bank_account_id)
        if account is None:
            raise CashBankAccountNotFoundError(str(cash_bank_account_id))
        return account

    def get_cash_bank_account(self, cash_bank_account_id: UUID) -> CashBankAccountInfo:
        return CashBankAccountInfo.from_model(self._get_cash_bank(cash_bank_account_id))

    def find_cash_bank_by_code(self, code: str) -> CashBankAccount | None:
        return self.session.execute(
            select(CashBankAccount).where(CashBankAccount.code == code.strip())
        ).scalar_one_or_none()

    def list_cash_bank_accounts(self, active_only: bool = False) -> list[CashBankAccountInfo]:
        stmt = select(CashBankAccount)
        if active_only:
            stmt = stmt.where(CashBankAccount.is_active == True)  # noqa: E712
        stmt = stmt.order_by(CashBankAccount.code)
        return [CashBankAccountInfo.from_model(a) for a in self.session.execute(stmt).scalars()]

    def create_cash_bank_account(
        self,
        code: str,
        name: str,
        account_type: CashBankType | str,
        actor_id: str,
        opening_balance: int = 0,
        bank_name: str | None = None,
        account_number: str | None = None,
        owner_name: str | None = None,
        is_active: bool = True,
    ) -> CashBankAccountInfo:
        """
        Register a cash box or bank account.  balance starts at opening_balance.
        """
        actor = require_actor(actor_id)
        code = _required_text(code, "code")
        name = _required_text(name, "name")
        account_type = _parse_enum(CashBankType, account_type, "account_type")
        opening_balance = _non_negative_amount(opening_balance, "opening_balance")
        if self.find_cash_bank_by_code(code) is not None:
            raise DuplicateCodeError("Cash/bank account", code)

        account = CashBankAccount(
            code=code,
            name=name,
            account_type=account_type.value,
            bank_name=_optional_text(bank_name),
            account_number=_optional_text(account_number),
            owner_name=_optional_text(owner_name),
            opening_balance=opening_balance,
            balance=opening_balance,
            is_active=is_active,
            created_by=actor,
        )
        self.session.add(account)
        self.session.flush()

        logger.info(
            "cash_bank_account_created",
            extra={
                "cash_bank_account_id": str(account.id),
                "code": code,
                "opening_balance": opening_balance,
            },
        )
        self._audit.record(
            actor,
            CashBankAccountCreated(
                entity_id=account.id,
                code=code,
                name=name,
                account_type=account_type.value,
                opening_balance=opening_balance,
            ),
        )
        return CashBankAccountInfo.from_model(account)

    def update_cash_bank_account(
        self,
        cash_bank_account_id: UUID,
        actor_id: str,
        name: str | None = None,
        account_type: CashBankType | str | None = None,
        bank_name: str | None = None,
        account_number: str | None = None,
        owner_name: str | None = None,
        is_active: bool | None = None,
    ) -> CashBankAccountInfo:
        """Update descriptive fields.  The balance is never edited directly."""
        actor = require_actor(actor_id)
        account = self._get_cash_bank(cash_bank_account_id)
        changes: dict = {}

        if name is not None:
            account.name = _required_text(name, "name")
            changes["name"] = account.name
        if account_type is not None:
            account.account_type = _parse_enum(CashBankType, account_type, "account_type").value
            changes["account_type"] = account.account_type
        if bank_name is not None:
            account.bank_name = _optional_text(bank_name)
            changes["bank_name"] = account.bank_name
        if account_number is not None:
            account.account_number = _optional_text(account_number)
            changes["account_number"] = account.account_number
        if owner_name is not None:
            account.owner_name = _optional_text(owner_name)
            changes["owner_name"] = account.owner_name
        if is_active is not None:
            account.is_active = is_active
            changes["is_active"] = is_active

        account.updated_by = actor
        self.session.flush()

        logger.info(
            "cash_bank_account_updated",
            extra={"cash_bank_account_id": str(account.id), "fields": sorted(changes)},
        )
        self._audit.record(actor, CashBankAccountUpdated(entity_id=account.id, changes=changes))
        return CashBankAccountInfo.from_model(account)

    def delete_cash_bank_account(self, cash_bank_account_id: UUID, actor_id: str) -> None:
        actor = require_actor(actor_id)
        account = self._get_cash_bank(cash_bank_account_id)

        if self._count(OperationalTxn, OperationalTxn.cash_bank_account_id == account.id):
            raise AccountInUseError(str(account.id), "cash/bank account has ledger transactions")
        if self._count(FinanceBudget, FinanceBudget.cash_bank_account_id == account.id):
            raise AccountInUseError(str(account.id), "cash/bank account has budgets")

        code = account.code
        self.session.delete(account)
        self.session.flush()

        logger.info(
            "cash_bank_account_deleted",
            extra={"cash_bank_account_id": str(cash_bank_account_id), "code": code},
        )
        self._audit.record(actor, CashBankAccountDeleted(entity_id=cash_bank_account_id, code=code))

    def validate_cash_bank_account(self, cash_bank_account_id: UUID) -> CashBankAccount:
        account = self._get_cash_bank(cash_bank_account_id)
        if not account.is_active:
            raise CashBankAccountInactiveError(str(account.id), account.code)
        return account

    def ensure_cash_bank_account(
        self,
        code: str,
        name: str,
        account_type: CashBankType | str,
        actor_id: str,
    ) -> CashBankAccount:
        """Return the cash/bank account with ``code``, creating it (balance 0) if missing."""
        existing = self.find_cash_bank_by_code(code)
        if existing is not None:
            return existing

        savepoint = self.session.begin_nested()
        try:
            account = CashBankAccount(
                code=code.strip(),
                name=name.strip(),
                account_type=CashBankType(account_type).value,
                opening_balance=0,
                balance=0,
                is_active=True,
                created_by=actor_id,
            )
            self.session.add(account)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            existing = self.find_cash_bank_by_code(code)
            if existing is None:
                raise
            return existing

        logger.info(
            "cash_bank_account_auto_created",
            extra={"cash_bank_account_id": str(account.id), "code": account.code},
        )
        self._audit.record(
            actor_id,
            CashBankAccountCreated(
                entity_id=account.id,
                code=account.code,
                name=account.name,
                account_type=account.account_type,
                opening_balance=0,
            ),
        )
        return account

    def apply_cash_bank_balance(
        self,
        kind: TxnKind | str,
        amount: int,
        cash_bank_account_id: UUID,
    ) -> int:
        """
        Move a cash/bank balance by the signed effect of one ledger entry.

        The account row is locked for the rest of the transaction.

        Returns:
            The new balance.

        Raises:
            CashBankAccountInactiveError: the account is deactivated.
            InsufficientBalanceError: the balance would drop below zero.
        """
        account = self.session.execute(
            select(CashBankAccount)
            .where(CashBankAccount.id == cash_bank_account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if account is None:
            raise CashBankAccountNotFoundError(str(cash_bank_account_id))
        if not account.is_active:
            raise CashBankAccountInactiveError(str(account.id), account.code)

        delta = balance_delta(kind, amount)
        new_balance = account.balance + delta
        if new_balance < 0:
            logger.warning(
                "insufficient_balance_rejected",
                extra={
                    "cash_bank_account_id": str(account.id),
                    "balance": account.balance,
                    "delta": delta,
                },
            )
            raise InsufficientBalanceError(str(account.id), account.balance, delta)

        account.balance = new_balance
        self.session.flush()

        logger.info(
            "cash_bank_balance_applied",
            extra={
                "cash_bank_account_id": str(account.id),
                "kind": TxnKind(kind).value,
                "delta": delta,
                "balance": new_balance,
            },
        )
        return new_balance

    def _count(self, model, criterion) -> int:
        return self.session.execute(
            select(func.count()).select_from(model).where(criterion)
        ).scalar_one()
