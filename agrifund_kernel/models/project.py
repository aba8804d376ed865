"""
Module: agrifund_kernel.models.project
Responsibility: ORM persistence for projects and their crop assignments.
Architecture position: Kernel > Models.  May import from db/ and the
    status enums in domain/dtos.py.

Invariants enforced:
    - surface_ha > 0 (ck_project_surface_positive).
    - A culture appears at most once per project (uq_project_culture).
    - cost_target is NULL until validation, then frozen: it is written once
      by ProjectLifecycleService.validate() and never recomputed.
    - ProjectCulture.previsional_cost / previsional_yield are snapshots taken
      when the culture is attached; they are not live-recomputed from the
      catalog.

Failure modes:
    - IllegalTransitionError when a lifecycle action is attempted outside its
      guard (raised by the service layer, never by the model).

Audit relevance:
    status is the single source of truth for the lifecycle.  Validation,
    launch and completion stamp who acted and when.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agrifund_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from agrifund_kernel.domain.dtos import ProjectStatus


class Project(TrackedBase):
    """
    A land-backed crop project proposed by a farmer.

    Guarantees:
        - status only changes through ProjectLifecycleService.
        - cost_target is set exactly once, at validation.
        - launch_date is set exactly once, at production launch.
    """

    __tablename__ = "projects"

    __table_args__ = (
        CheckConstraint("surface_ha > 0", name="ck_project_surface_positive"),
        Index("idx_project_status", "status"),
        Index("idx_project_farmer", "farmer_id"),
        Index("idx_project_technician", "technician_id"),
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    status: Mapped[ProjectStatus] = mapped_column(
        String(20),
        default=ProjectStatus.PENDING,
        nullable=False,
    )

    surface_ha: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)

    # Frozen at validation
    cost_target: Mapped[Decimal | None] = mapped_column(nullable=True)

    farmer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    technician_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    supervisor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    terrain_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    location_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Validation decision
    signed_contract_ref: Mapped[str | None] = mapped_column(String(500), nullable=True)
    rejection_report: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    validated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    validated_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Production
    launch_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    launched_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    completion_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    cultures: Mapped[list["ProjectCulture"]] = relationship(
        "ProjectCulture",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by=lambda: [ProjectCulture.created_at, ProjectCulture.id],
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Project {self.id}: {ProjectStatus(self.status).value}>"

    @property
    def current_status(self) -> ProjectStatus:
        """Status as an enum, whether loaded from the DB or freshly assigned."""
        return ProjectStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.current_status in (ProjectStatus.REJECTED, ProjectStatus.COMPLETED)


class ProjectCulture(TrackedBase):
    """
    A (project, culture) pairing with previsional economics captured at
    attachment time, plus harvest actuals recorded later.
    """

    __tablename__ = "project_cultures"

    __table_args__ = (
        UniqueConstraint("project_id", "culture_id", name="uq_project_culture"),
        Index("idx_project_culture_project", "project_id"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )
    culture_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("cultures.id"),
        nullable=False,
    )

    previsional_cost: Mapped[Decimal] = mapped_column(nullable=False)
    previsional_yield: Mapped[Decimal] = mapped_column(nullable=False)

    actual_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    actual_yield: Mapped[Decimal | None] = mapped_column(nullable=True)
    harvest_recorded_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )

    project: Mapped[Project] = relationship("Project", back_populates="cultures")
