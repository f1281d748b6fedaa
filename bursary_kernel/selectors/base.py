"""
Module: bursary_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the query side of the kernel: listings, balance snapshots
    and reports, with no mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and domain/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors accept a Session from the caller but never
      call session.add(), session.delete(), session.commit() or
      session.flush().
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
    - Reports re-aggregate from persisted rows; cached totals are not
      trusted.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from bursary_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Non-goals:
        - BaseSelector does NOT define any query methods; subclasses
          implement the domain-specific queries.
    """

    def __init__(self, session: Session):
        self.session = session
