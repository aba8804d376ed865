"""
MilestoneSchedulerService -- calendar derivation and technician reports.

Responsibility:
    Previews and materializes the per-culture milestone calendar of a
    project from its launch date, and records technician reports against
    scheduled milestones.

Architecture position:
    Kernel > Services -- imperative shell.  Date arithmetic and
    classification are delegated to domain/scheduling.py.

Invariants enforced:
    - A calendar is materialized at most once per project.  The service
      refuses a project that already has milestones, and the
      (project culture, template) unique constraint backs this up at the
      database level.
    - actual_date is written once and never precedes the launch date.
    - Projected dates are fixed at materialization.  Before launch they can
      only be shaped through preview overrides.

Failure modes:
    - IllegalTransitionError when materializing twice.
    - MilestoneNotFoundError, AlreadyReportedError, DateOutOfRangeError.
"""

from collections.abc import Sequence
from datetime import date
from uuid import UUID

from sqlalchemy import func, select

from agrifund_kernel.domain.dtos import (
    CalendarEntry,
    MilestoneInfo,
    MilestonePaymentStatus,
    MilestoneTemplateInfo,
    ProjectCultureInfo,
)
from agrifund_kernel.domain.scheduling import CalendarOverrides, build_calendar, classify_milestone
from agrifund_kernel.exceptions import (
    AlreadyReportedError,
    DateOutOfRangeError,
    IllegalTransitionError,
    MilestoneNotFoundError,
    ProjectNotFoundError,
)
from agrifund_kernel.logging_config import get_logger
from agrifund_kernel.models.culture import MilestoneTemplate
from agrifund_kernel.models.milestone import ScheduledMilestone
from agrifund_kernel.models.project import Project
from agrifund_kernel.services.base import BaseService

logger = get_logger("services.milestone_scheduler")


class MilestoneSchedulerService(BaseService[ScheduledMilestone]):
    """
    Service for the milestone calendar.

    Contract:
        ``preview_calendar`` performs no writes.  ``materialize_calendar`` and
        ``record_report`` flush within the caller's transaction.
    """

    def preview_calendar(
        self,
        project_id: UUID,
        launch_date: date,
        overrides: CalendarOverrides | None = None,
    ) -> tuple[CalendarEntry, ...]:
        """
        Compute the projected calendar for a launch date without writing.

        Args:
            project_id: Project to preview.
            launch_date: Candidate production start.
            overrides: Dates chosen by field staff, keyed by
                (culture_id, template_id).

        Raises:
            ProjectNotFoundError: Unknown project.
            DateOutOfRangeError: Override dated before launch_date.
            UnknownCalendarOverrideError: Override for a pair not in the calendar.
        """
        project = self.session.get(Project, project_id)
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        return build_calendar(
            launch_date,
            project.surface_ha,
            self._calendar_inputs(project),
            overrides,
        )

    def materialize_calendar(
        self,
        project_id: UUID,
        launch_date: date,
        actor_id: UUID,
        overrides: CalendarOverrides | None = None,
    ) -> tuple[CalendarEntry, ...]:
        """
        Create one ScheduledMilestone per (project culture, template).

        Only called from ProjectLifecycleService.launch_production, inside
        the launch transaction.

        Raises:
            IllegalTransitionError: The project already has a calendar.
        """
        project = self._get_project_for_update(project_id)

        existing = self.session.execute(
            select(func.count())
            .select_from(ScheduledMilestone)
            .where(ScheduledMilestone.project_id == project.id)
        ).scalar_one()
        if existing:
            raise IllegalTransitionError(
                str(project_id),
                project.current_status.value,
                "materialize calendar",
                f"calendar already materialized ({existing} milestones)",
            )

        entries = build_calendar(
            launch_date,
            project.surface_ha,
            self._calendar_inputs(project),
            overrides,
        )
        for entry in entries:
            self.session.add(
                ScheduledMilestone(
                    project_id=project.id,
                    project_culture_id=entry.project_culture_id,
                    culture_id=entry.culture_id,
                    template_id=entry.template_id,
                    name=entry.name,
                    action=entry.action,
                    offset_days=entry.offset_days,
                    budget_amount=entry.budget_amount,
                    projected_date=entry.projected_date,
                    payment_status=MilestonePaymentStatus.SCHEDULED.value,
                    created_by_id=actor_id,
                )
            )
        self.session.flush()

        logger.info(
            "calendar_materialized",
            extra={
                "project_id": str(project_id),
                "milestone_count": len(entries),
                "launch_date": launch_date.isoformat(),
            },
        )
        return entries

    def record_report(
        self,
        milestone_id: UUID,
        actual_date: date,
        report_text: str,
        actor_id: UUID,
        photo_refs: Sequence[str] = (),
    ) -> MilestoneInfo:
        """
        Record the technician's completion report for a milestone.

        Raises:
            MilestoneNotFoundError: Unknown milestone.
            AlreadyReportedError: actual_date already recorded.
            DateOutOfRangeError: actual_date precedes the launch date.
        """
        milestone, project = self.get_milestone_for_update(milestone_id)

        if milestone.actual_date is not None:
            logger.warning(
                "milestone_report_rejected",
                extra={
                    "milestone_id": str(milestone_id),
                    "error_code": AlreadyReportedError.code,
                },
            )
            raise AlreadyReportedError(str(milestone_id), milestone.actual_date.isoformat())

        if project.launch_date is None or actual_date < project.launch_date:
            logger.warning(
                "milestone_report_rejected",
                extra={
                    "milestone_id": str(milestone_id),
                    "error_code": DateOutOfRangeError.code,
                },
            )
            raise DateOutOfRangeError(
                str(milestone_id),
                actual_date.isoformat(),
                project.launch_date.isoformat() if project.launch_date else "none",
            )

        milestone.actual_date = actual_date
        milestone.report = report_text
        milestone.photo_refs = list(photo_refs)
        milestone.reported_by_id = actor_id
        milestone.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "milestone_reported",
            extra={
                "milestone_id": str(milestone_id),
                "project_id": str(project.id),
                "actual_date": actual_date.isoformat(),
            },
        )
        return self.to_info(milestone)

    def get_milestone_for_update(
        self, milestone_id: UUID
    ) -> tuple[ScheduledMilestone, Project]:
        """Lock the owning project row, then load the milestone."""
        project_id = self.session.execute(
            select(ScheduledMilestone.project_id).where(ScheduledMilestone.id == milestone_id)
        ).scalar_one_or_none()
        if project_id is None:
            raise MilestoneNotFoundError(str(milestone_id))
        project = self._get_project_for_update(project_id)
        milestone = self.session.execute(
            select(ScheduledMilestone)
            .where(ScheduledMilestone.id == milestone_id)
            .with_for_update()
        ).scalar_one()
        return milestone, project

    def to_info(self, milestone: ScheduledMilestone) -> MilestoneInfo:
        return MilestoneInfo.from_model(
            milestone,
            classify_milestone(
                milestone.projected_date, milestone.actual_date, self._clock.today()
            ),
        )

    def _calendar_inputs(
        self, project: Project
    ) -> list[tuple[ProjectCultureInfo, list[MilestoneTemplateInfo]]]:
        inputs = []
        for project_culture in project.cultures:
            templates = self.session.execute(
                select(MilestoneTemplate)
                .where(MilestoneTemplate.culture_id == project_culture.culture_id)
                .order_by(MilestoneTemplate.offset_days, MilestoneTemplate.name)
            ).scalars().all()
            inputs.append(
                (
                    ProjectCultureInfo.from_model(project_culture),
                    [MilestoneTemplateInfo.from_model(t) for t in templates],
                )
            )
        return inputs
