"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write service in the kernel layer.  All concrete services inherit
    from BaseService, receiving a SQLAlchemy ``Session`` that they use
    via ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback themselves.  The caller
      (LifecycleEngine, the catalog bridge, or the test harness) owns
      commit/rollback.
    - Single writer per project: every mutation of a project or of its
      dependants first reloads the project row with SELECT ... FOR UPDATE
      through ``_get_project_for_update()``.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from agrifund_kernel.db.base import Base
from agrifund_kernel.domain.clock import Clock, SystemClock
from agrifund_kernel.exceptions import ProjectNotFoundError
from agrifund_kernel.models.project import Project

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Write-side base.  Holds the caller's session and the injected clock.

    Subclasses add rows and flush.  Queries that feed screens or reports
    belong to the selectors in ``agrifund_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()

    def _get_project_for_update(self, project_id: UUID) -> Project:
        """Load a project with a row lock, or raise ProjectNotFoundError."""
        project = self.session.execute(
            select(Project).where(Project.id == project_id).with_for_update()
        ).scalar_one_or_none()
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        return project
