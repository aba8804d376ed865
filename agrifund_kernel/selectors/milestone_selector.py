"""
Module: agrifund_kernel.selectors.milestone_selector
Responsibility: Read views over scheduled milestones: a project's calendar,
    the financier's payment queue and a technician's work list.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Classification (completed / overdue / normal) is computed here on
      every read from the injected clock.  It is never persisted.
"""

from uuid import UUID

from sqlalchemy import select

from agrifund_kernel.domain.dtos import MilestoneInfo, MilestonePaymentStatus, ProjectStatus
from agrifund_kernel.domain.scheduling import classify_milestone
from agrifund_kernel.exceptions import MilestoneNotFoundError, ProjectNotFoundError
from agrifund_kernel.models.milestone import ScheduledMilestone
from agrifund_kernel.models.project import Project
from agrifund_kernel.selectors.base import BaseSelector


class MilestoneSelector(BaseSelector[ScheduledMilestone]):
    """Queries over scheduled milestones."""

    def _to_info(self, milestone: ScheduledMilestone) -> MilestoneInfo:
        return MilestoneInfo.from_model(
            milestone,
            classify_milestone(
                milestone.projected_date, milestone.actual_date, self._clock.today()
            ),
        )

    def get_milestone(self, milestone_id: UUID) -> MilestoneInfo:
        milestone = self.session.get(ScheduledMilestone, milestone_id)
        if milestone is None:
            raise MilestoneNotFoundError(str(milestone_id))
        return self._to_info(milestone)

    def milestone_list(self, project_id: UUID) -> list[MilestoneInfo]:
        """
        Calendar of a project, by projected date then offset then name.

        Empty before production launch.
        """
        if self.session.get(Project, project_id) is None:
            raise ProjectNotFoundError(str(project_id))
        milestones = self.session.execute(
            select(ScheduledMilestone)
            .where(ScheduledMilestone.project_id == project_id)
            .order_by(
                ScheduledMilestone.projected_date,
                ScheduledMilestone.offset_days,
                ScheduledMilestone.name,
            )
        ).scalars().all()
        return [self._to_info(m) for m in milestones]

    def payment_queue(self) -> list[MilestoneInfo]:
        """Milestones awaiting payment, oldest projected date first."""
        milestones = self.session.execute(
            select(ScheduledMilestone)
            .where(
                ScheduledMilestone.payment_status
                == MilestonePaymentStatus.AWAITING_PAYMENT.value
            )
            .order_by(ScheduledMilestone.projected_date, ScheduledMilestone.name)
        ).scalars().all()
        return [self._to_info(m) for m in milestones]

    def technician_milestones(
        self, technician_id: UUID, include_completed: bool = False
    ) -> list[MilestoneInfo]:
        """
        Milestones of the in-production projects assigned to a technician.

        Reported milestones are left out unless ``include_completed``.
        """
        stmt = (
            select(ScheduledMilestone)
            .join(Project, Project.id == ScheduledMilestone.project_id)
            .where(
                Project.technician_id == technician_id,
                Project.status == ProjectStatus.IN_PRODUCTION.value,
            )
            .order_by(ScheduledMilestone.projected_date, ScheduledMilestone.name)
        )
        if not include_completed:
            stmt = stmt.where(ScheduledMilestone.actual_date.is_(None))
        return [self._to_info(m) for m in self.session.execute(stmt).scalars().all()]
