"""
Typed Exception Hierarchy for the Bursary Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP handlers, batch jobs, tests) must be able to tell a locked
period from an inactive account without parsing message strings.  Every
exception therefore carries:

  1. A TYPED class (catch by type, not message)
  2. A ``code`` class attribute (specific, machine-readable)
  3. A ``kind`` class attribute (the coarse error taxonomy used by callers
     to choose a response: 400, 404, 409, ...)
  4. Structured DATA as instance attributes

Example:
    try:
        ledger.create_transaction(...)
    except PeriodLockedError as e:
        api_response(kind=e.kind, code=e.code, start=e.start_date, end=e.end_date)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BursaryKernelError (base)
    |
    +-- ValidationError                    kind=VALIDATION_ERROR
    |   +-- SelfParentError
    |   +-- InsufficientBalanceError
    |   +-- RefundExceedsPaymentError
    |   +-- SameCashBankTransferError
    |
    +-- NotFoundError                      kind=NOT_FOUND
    |   +-- AccountNotFoundError
    |   +-- CashBankAccountNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- DiscountNotFoundError
    |   +-- BudgetNotFoundError
    |   +-- PeriodLockNotFoundError
    |
    +-- AccountInactiveError               kind=ACCOUNT_INACTIVE
    |   +-- CashBankAccountInactiveError
    |
    +-- PeriodLockedError                  kind=PERIOD_LOCKED
    |
    +-- NotEditableError                   kind=NOT_EDITABLE
    |   +-- InvoiceVoidError
    |
    +-- ForbiddenError                     kind=FORBIDDEN
    |
    +-- ConflictError                      kind=CONFLICT
    |   +-- DuplicateCodeError
    |   +-- DuplicateReferenceError
    |   +-- CircularParentError
    |   +-- AccountInUseError
    |   +-- PeriodLockOverlapError
    |
    +-- UnauthorizedError                  kind=UNAUTHORIZED
    |
    +-- ImmutabilityViolationError         kind=INTERNAL

Idempotent redelivery of an already-posted invoice payment or refund is NOT
an error: the existing ledger row is returned.
"""

from datetime import date


class BursaryKernelError(Exception):
    """
    Base exception for all bursary kernel errors.

    All subclasses define a ``code`` and inherit or define a ``kind``.
    """

    code: str = "BURSARY_KERNEL_ERROR"
    kind: str = "INTERNAL"


# Validation


class ValidationError(BursaryKernelError):
    """Input failed a precondition; nothing was written."""

    code: str = "VALIDATION_ERROR"
    kind: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class SelfParentError(ValidationError):
    """A finance account cannot be its own parent."""

    code: str = "SELF_PARENT"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(
            f"Account {account_id} cannot be its own parent", field="parent_id"
        )


class InsufficientBalanceError(ValidationError):
    """Applying a ledger delta would drive a cash/bank balance negative."""

    code: str = "INSUFFICIENT_BALANCE"

    def __init__(self, cash_bank_account_id: str, balance: int, delta: int):
        self.cash_bank_account_id = cash_bank_account_id
        self.balance = balance
        self.delta = delta
        super().__init__(
            f"Insufficient balance on cash/bank account {cash_bank_account_id}: "
            f"balance={balance}, delta={delta}"
        )


class RefundExceedsPaymentError(ValidationError):
    """Cumulative refunds would exceed the refunded payment."""

    code: str = "REFUND_EXCEEDS_PAYMENT"

    def __init__(self, payment_id: str, payment_amount: int, refunded: int, requested: int):
        self.payment_id = payment_id
        self.payment_amount = payment_amount
        self.refunded = refunded
        self.requested = requested
        super().__init__(
            f"Refund of {requested} exceeds remaining amount on payment {payment_id} "
            f"(paid={payment_amount}, already refunded={refunded})",
            field="amount",
        )


class SameCashBankTransferError(ValidationError):
    """Both legs of a transfer reference the same cash/bank account."""

    code: str = "SAME_CASH_BANK_TRANSFER"

    def __init__(self, cash_bank_account_id: str):
        self.cash_bank_account_id = cash_bank_account_id
        super().__init__(
            f"Transfer source and destination are the same cash/bank account "
            f"{cash_bank_account_id}"
        )


# Not found


class NotFoundError(BursaryKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"
    kind: str = "NOT_FOUND"
    entity: str = "Entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} not found: {entity_id}")


class AccountNotFoundError(NotFoundError):
    code: str = "ACCOUNT_NOT_FOUND"
    entity: str = "Finance account"


class CashBankAccountNotFoundError(NotFoundError):
    code: str = "CASH_BANK_ACCOUNT_NOT_FOUND"
    entity: str = "Cash/bank account"


class TransactionNotFoundError(NotFoundError):
    code: str = "TRANSACTION_NOT_FOUND"
    entity: str = "Operational transaction"


class InvoiceNotFoundError(NotFoundError):
    code: str = "INVOICE_NOT_FOUND"
    entity: str = "Invoice"


class PaymentNotFoundError(NotFoundError):
    code: str = "PAYMENT_NOT_FOUND"
    entity: str = "Payment"


class DiscountNotFoundError(NotFoundError):
    code: str = "DISCOUNT_NOT_FOUND"
    entity: str = "Discount"


class BudgetNotFoundError(NotFoundError):
    code: str = "BUDGET_NOT_FOUND"
    entity: str = "Budget"


class PeriodLockNotFoundError(NotFoundError):
    code: str = "PERIOD_LOCK_NOT_FOUND"
    entity: str = "Period lock"


# Inactive accounts


class AccountInactiveError(BursaryKernelError):
    """Finance account is deactivated and cannot receive postings."""

    code: str = "ACCOUNT_INACTIVE"
    kind: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_id: str, account_code: str | None = None):
        self.account_id = account_id
        self.account_code = account_code
        super().__init__(
            f"Finance account {account_code or account_id} is inactive"
        )


class CashBankAccountInactiveError(AccountInactiveError):
    """Cash/bank account is deactivated."""

    code: str = "CASH_BANK_ACCOUNT_INACTIVE"

    def __init__(self, account_id: str, account_code: str | None = None):
        self.account_id = account_id
        self.account_code = account_code
        BursaryKernelError.__init__(
            self, f"Cash/bank account {account_code or account_id} is inactive"
        )


# Period lock


class PeriodLockedError(BursaryKernelError):
    """The target date falls inside a locked financial period."""

    code: str = "PERIOD_LOCKED"
    kind: str = "PERIOD_LOCKED"

    def __init__(
        self,
        target_date: date,
        start_date: date,
        end_date: date,
        reason: str | None = None,
    ):
        self.target_date = target_date
        self.start_date = start_date
        self.end_date = end_date
        self.reason = reason
        message = (
            f"Period {start_date.isoformat()} to {end_date.isoformat()} is locked"
        )
        if reason:
            message += f": {reason}"
        super().__init__(message)


# State


class NotEditableError(BursaryKernelError):
    """Entity is in a state that does not allow the requested change."""

    code: str = "NOT_EDITABLE"
    kind: str = "NOT_EDITABLE"

    def __init__(self, entity_id: str, state: str, message: str | None = None):
        self.entity_id = entity_id
        self.state = state
        super().__init__(message or f"{entity_id} is {state} and cannot be modified")


class InvoiceVoidError(NotEditableError):
    """Discounts and payments cannot be added to a void invoice."""

    code: str = "INVOICE_VOID"

    def __init__(self, invoice_id: str):
        super().__init__(invoice_id, "VOID", f"Invoice {invoice_id} is void")


class ForbiddenError(BursaryKernelError):
    """Actor is identified but not permitted to perform the operation."""

    code: str = "FORBIDDEN"
    kind: str = "FORBIDDEN"

    def __init__(self, actor_id: str, action: str, reason: str):
        self.actor_id = actor_id
        self.action = action
        self.reason = reason
        super().__init__(f"Actor {actor_id} may not {action}: {reason}")


class UnauthorizedError(BursaryKernelError):
    """No acting identity was supplied."""

    code: str = "UNAUTHORIZED"
    kind: str = "UNAUTHORIZED"

    def __init__(self, message: str = "An actor identity is required"):
        super().__init__(message)


# Conflicts


class ConflictError(BursaryKernelError):
    """The write conflicts with existing state."""

    code: str = "CONFLICT"
    kind: str = "CONFLICT"


class DuplicateCodeError(ConflictError):
    """A unique code (account, cash/bank, invoice) is already taken."""

    code: str = "DUPLICATE_CODE"

    def __init__(self, entity: str, entity_code: str):
        self.entity = entity
        self.entity_code = entity_code
        super().__init__(f"{entity} code already exists: {entity_code}")


class DuplicateReferenceError(ConflictError):
    """Reference number is taken by a transaction with a different payload."""

    code: str = "DUPLICATE_REFERENCE"

    def __init__(self, reference_no: str, existing_txn_id: str):
        self.reference_no = reference_no
        self.existing_txn_id = existing_txn_id
        super().__init__(
            f"Reference number {reference_no} already used by transaction "
            f"{existing_txn_id} with different content"
        )


class CircularParentError(ConflictError):
    """Re-parenting would create a cycle in the chart of accounts."""

    code: str = "CIRCULAR_PARENT"

    def __init__(self, account_id: str, parent_id: str):
        self.account_id = account_id
        self.parent_id = parent_id
        super().__init__(
            f"Setting parent {parent_id} on account {account_id} would create a cycle"
        )


class AccountInUseError(ConflictError):
    """Account cannot be deleted while other rows reference it."""

    code: str = "ACCOUNT_IN_USE"

    def __init__(self, account_id: str, reason: str):
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"Account {account_id} cannot be deleted: {reason}")


class PeriodLockOverlapError(ConflictError):
    """A new period lock overlaps an existing one."""

    code: str = "PERIOD_LOCK_OVERLAP"

    def __init__(self, start_date: date, end_date: date, existing_lock_id: str):
        self.start_date = start_date
        self.end_date = end_date
        self.existing_lock_id = existing_lock_id
        super().__init__(
            f"Period lock {start_date.isoformat()} to {end_date.isoformat()} "
            f"overlaps existing lock {existing_lock_id}"
        )


# Immutability


class ImmutabilityViolationError(BursaryKernelError):
    """Attempted to modify a finalized record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
