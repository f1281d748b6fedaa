"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service.  Services receive a SQLAlchemy ``Session``
    and use ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback themselves.  The caller
      (``session_scope()`` or the test harness) owns commit/rollback, so
      an invoice payment, its ledger row and the cash/bank balance change
      commit or roll back together.
    - Every mutating call names an actor; a blank actor is rejected with
      UnauthorizedError before anything is written.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from bursary_kernel.db.base import Base
from bursary_kernel.exceptions import UnauthorizedError

ModelType = TypeVar("ModelType", bound=Base)


def require_actor(actor_id: str | None) -> str:
    """Return the stripped actor id or raise UnauthorizedError."""
    actor = (actor_id or "").strip()
    if not actor:
        raise UnauthorizedError()
    return actor


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only (read) methods -- those belong
          in ``bursary_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
