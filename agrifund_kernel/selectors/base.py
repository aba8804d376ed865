"""
Module: agrifund_kernel.selectors.base
Responsibility: Base for the read-only query classes over projects, funding,
    milestones and the culture catalog.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    the pure domain.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but MUST NOT
      call session.add(), session.delete(), session.commit(), or session.flush().
    - DTO return convention: Selectors return frozen dataclasses or computed
      results, NOT raw ORM model instances.
    - No stored balances: funding figures are always summed from Investment
      rows at read time.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from agrifund_kernel.db.base import Base
from agrifund_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Read-side base.  ``clock`` decides "today" for derived fields such as overdue."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()
