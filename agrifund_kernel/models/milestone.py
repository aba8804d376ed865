"""
Module: agrifund_kernel.models.milestone
Responsibility: ORM persistence for scheduled milestones -- the concrete
    calendar materialized at production launch, technician reports, and the
    milestone payment-request sub-state.
Architecture position: Kernel > Models.  May import from db/ and the
    status enums in domain/dtos.py.

Invariants enforced:
    - One row per (project culture, template): uq_milestone_culture_template.
      Double materialization of a calendar is impossible at the DB level.
    - projected_date is written at launch and never edited afterwards.
    - actual_date is written once (AlreadyReportedError on a second report).
    - payment_status only moves SCHEDULED -> AWAITING_PAYMENT -> PAID.

Non-goals:
    - The display classification (completed / overdue / normal) is NOT
      stored.  It is derived on every read from the dates and the clock.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from agrifund_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from agrifund_kernel.domain.dtos import MilestonePaymentStatus


class ScheduledMilestone(TrackedBase):
    """
    A concrete agricultural task for one culture of a launched project.
    """

    __tablename__ = "scheduled_milestones"

    __table_args__ = (
        UniqueConstraint(
            "project_culture_id", "template_id", name="uq_milestone_culture_template"
        ),
        Index("idx_milestone_project", "project_id"),
        Index("idx_milestone_payment_status", "payment_status"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )
    project_culture_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("project_cultures.id"),
        nullable=False,
    )
    culture_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("cultures.id"),
        nullable=False,
    )
    template_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("milestone_templates.id"),
        nullable=False,
    )

    # Copied from the template at launch
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    action: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    offset_days: Mapped[int] = mapped_column(Integer, nullable=False)
    budget_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    projected_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Technician report
    actual_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    report: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    photo_refs: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    reported_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Payment request
    payment_status: Mapped[MilestonePaymentStatus] = mapped_column(
        String(20),
        default=MilestonePaymentStatus.SCHEDULED,
        nullable=False,
    )
    payment_requested_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    payment_requested_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    paid_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    payment_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<ScheduledMilestone {self.name} {self.projected_date}>"

    @property
    def is_reported(self) -> bool:
        return self.actual_date is not None

    @property
    def current_payment_status(self) -> MilestonePaymentStatus:
        return MilestonePaymentStatus(self.payment_status)
