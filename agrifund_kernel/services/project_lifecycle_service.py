"""
ProjectLifecycleService -- the project state machine.

Responsibility:
    Creates and edits pending projects, applies the validation decision
    (accept into funding or reject), launches production once fully funded
    and completes the project once every milestone is reported.  Also
    assigns field staff, withdraws pending projects and records harvests.

Architecture position:
    Kernel > Services -- imperative shell.  Allowed edges come from
    PROJECT_LIFECYCLE in domain/workflow.py; funding math from
    domain/funding.py; calendar creation from MilestoneSchedulerService.

Invariants enforced:
    - Every lifecycle action reloads the project row with SELECT ... FOR
      UPDATE before checking its guard, so concurrent duplicates see the
      committed status and fail with IllegalTransitionError.
    - accept freezes cost_target = sum of previsional costs.  It is never
      recomputed afterwards.
    - launch_production sets the launch date and materializes the calendar
      in the same transaction.
    - A failed guard raises before any mutation.

Failure modes:
    - IllegalTransitionError (state, action, violated precondition).
    - InvalidSurfaceError, DuplicateCultureError, UnauthorizedError.
    - ProjectNotFoundError, CultureNotFoundError,
      ProjectCultureNotFoundError.

Audit relevance:
    validated_by_id / validated_at, launched_by_id and completion_date
    record who moved the project and when.
"""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import NoReturn
from uuid import UUID

from sqlalchemy import func, select

from agrifund_kernel.db.types import round_money, to_decimal
from agrifund_kernel.domain import funding
from agrifund_kernel.domain.dtos import (
    Actor,
    CultureEconomics,
    ProjectCultureInfo,
    ProjectInfo,
    ProjectStatus,
    Role,
)
from agrifund_kernel.domain.scheduling import CalendarOverrides
from agrifund_kernel.domain.workflow import (
    ACTION_ACCEPT,
    ACTION_COMPLETE,
    ACTION_LAUNCH,
    ACTION_REJECT,
    PROJECT_LIFECYCLE,
    Transition,
)
from agrifund_kernel.exceptions import (
    CultureNotFoundError,
    DuplicateCultureError,
    IllegalTransitionError,
    InvalidSurfaceError,
    ProjectCultureNotFoundError,
    UnauthorizedError,
)
from agrifund_kernel.logging_config import get_logger
from agrifund_kernel.models.culture import Culture
from agrifund_kernel.models.milestone import ScheduledMilestone
from agrifund_kernel.models.project import Project, ProjectCulture
from agrifund_kernel.selectors.funding_selector import FundingSelector
from agrifund_kernel.services.base import BaseService
from agrifund_kernel.services.milestone_scheduler import MilestoneSchedulerService

logger = get_logger("services.project_lifecycle")

_FIELD_STAFF = (Role.TECHNICIAN, Role.SUPERVISOR)


class ProjectLifecycleService(BaseService[Project]):
    """
    Service for the project lifecycle.

    Contract:
        Every public method flushes within the caller's transaction and
        returns a frozen ``ProjectInfo`` (or ``ProjectCultureInfo``).

    Non-goals:
        - Does NOT notify anyone.  LifecycleEngine emits notifications
          after commit.
        - Does NOT check role tables.  ActorAuthority does that upstream;
          this service enforces ownership rules that depend on stored data.
    """

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._scheduler = MilestoneSchedulerService(session, self._clock)
        self._funding = FundingSelector(session, self._clock)

    # ------------------------------------------------------------------
    # Pending-phase editing
    # ------------------------------------------------------------------

    def create_project(
        self,
        farmer_id: UUID,
        terrain_ref: str,
        surface_ha: Decimal | int | str,
        culture_ids: Sequence[UUID] = (),
        title: str = "",
        description: str | None = None,
        location_ref: str | None = None,
    ) -> ProjectInfo:
        """
        Create a PENDING project with its initial cultures.

        Raises:
            InvalidSurfaceError: surface_ha <= 0.
            CultureNotFoundError: Unknown culture id.
            DuplicateCultureError: Same culture listed twice.
        """
        surface = self._valid_surface(surface_ha)

        project = Project(
            title=title,
            description=description,
            status=ProjectStatus.PENDING.value,
            surface_ha=surface,
            farmer_id=farmer_id,
            terrain_ref=terrain_ref,
            location_ref=location_ref,
            created_by_id=farmer_id,
        )
        self.session.add(project)
        self.session.flush()

        for culture_id in culture_ids:
            self._attach_culture(project, culture_id, farmer_id)
        self.session.flush()

        logger.info(
            "project_created",
            extra={
                "project_id": str(project.id),
                "surface_ha": str(surface),
                "culture_count": len(culture_ids),
            },
        )
        return ProjectInfo.from_model(project)

    def add_culture(self, project_id: UUID, culture_id: UUID, actor: Actor) -> ProjectInfo:
        """Attach a culture to a pending project, snapshotting its economics."""
        project = self._get_project_for_update(project_id)
        self._require_editable(project, actor, "add culture")
        self._attach_culture(project, culture_id, actor.actor_id)
        project.updated_by_id = actor.actor_id
        self.session.flush()

        logger.info(
            "project_culture_added",
            extra={"project_id": str(project_id), "culture_id": str(culture_id)},
        )
        return ProjectInfo.from_model(project)

    def remove_culture(self, project_id: UUID, culture_id: UUID, actor: Actor) -> ProjectInfo:
        """Detach a culture from a pending project."""
        project = self._get_project_for_update(project_id)
        self._require_editable(project, actor, "remove culture")

        match = next((pc for pc in project.cultures if pc.culture_id == culture_id), None)
        if match is None:
            raise ProjectCultureNotFoundError(f"{project_id}/{culture_id}")
        project.cultures.remove(match)
        project.updated_by_id = actor.actor_id
        self.session.flush()

        logger.info(
            "project_culture_removed",
            extra={"project_id": str(project_id), "culture_id": str(culture_id)},
        )
        return ProjectInfo.from_model(project)

    def update_surface(
        self, project_id: UUID, surface_ha: Decimal | int | str, actor: Actor
    ) -> ProjectInfo:
        """
        Change the surface of a pending project.

        Previsional cost and yield of every culture are recomputed from the
        current catalog.
        """
        surface = self._valid_surface(surface_ha)
        project = self._get_project_for_update(project_id)
        self._require_editable(project, actor, "update surface")

        project.surface_ha = surface
        for project_culture in project.cultures:
            economics = self._culture_economics(project_culture.culture_id)
            project_culture.previsional_cost = funding.previsional_cost(economics, surface)
            project_culture.previsional_yield = funding.previsional_yield(economics, surface)
            project_culture.updated_by_id = actor.actor_id
        project.updated_by_id = actor.actor_id
        self.session.flush()

        logger.info(
            "project_surface_updated",
            extra={"project_id": str(project_id), "surface_ha": str(surface)},
        )
        return ProjectInfo.from_model(project)

    def assign_field_staff(
        self,
        project_id: UUID,
        actor: Actor,
        technician_id: UUID | None = None,
        supervisor_id: UUID | None = None,
    ) -> ProjectInfo:
        """Assign a technician and/or supervisor to a non-terminal project."""
        project = self._get_project_for_update(project_id)
        if project.is_terminal:
            raise IllegalTransitionError(
                str(project_id),
                project.current_status.value,
                "assign field staff",
                "project is in a terminal state",
            )
        if technician_id is not None:
            project.technician_id = technician_id
        if supervisor_id is not None:
            project.supervisor_id = supervisor_id
        project.updated_by_id = actor.actor_id
        self.session.flush()

        logger.info(
            "field_staff_assigned",
            extra={
                "project_id": str(project_id),
                "technician_id": str(project.technician_id) if project.technician_id else None,
                "supervisor_id": str(project.supervisor_id) if project.supervisor_id else None,
            },
        )
        return ProjectInfo.from_model(project)

    def withdraw_project(self, project_id: UUID, actor: Actor) -> ProjectInfo:
        """
        Physically delete a PENDING project.

        Pending projects cannot hold investments or milestones, so nothing
        else references them.
        """
        project = self._get_project_for_update(project_id)
        if project.current_status != ProjectStatus.PENDING:
            raise IllegalTransitionError(
                str(project_id),
                project.current_status.value,
                "withdraw",
                "only pending projects can be withdrawn",
            )
        if actor.role == Role.FARMER and project.farmer_id != actor.actor_id:
            raise UnauthorizedError(
                str(actor.actor_id), actor.role.value, "withdraw project", "not the project owner"
            )

        snapshot = ProjectInfo.from_model(project)
        self.session.delete(project)
        self.session.flush()

        logger.info("project_withdrawn", extra={"project_id": str(project_id)})
        return snapshot

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    def validate(
        self,
        project_id: UUID,
        actor: Actor,
        accept: bool,
        signed_contract_ref: str | None = None,
        report: str | None = None,
    ) -> ProjectInfo:
        """
        Apply the field validation decision.

        Accepting moves PENDING -> FUNDING and freezes the cost target.
        Rejecting moves PENDING -> REJECTED and stores the report.

        Raises:
            IllegalTransitionError: Not PENDING, no culture attached, or an
                empty signed contract reference on accept.
        """
        project = self._get_project_for_update(project_id)
        action = ACTION_ACCEPT if accept else ACTION_REJECT
        transition = self._require_transition(project, action)

        if accept:
            if not project.cultures:
                self._reject(project, action, "project has no culture attached")
            contract = (signed_contract_ref or "").strip()
            if not contract:
                self._reject(project, action, "a signed contract reference is required")
            project.cost_target = funding.cost_target_of(
                [pc.previsional_cost for pc in project.cultures]
            )
            project.signed_contract_ref = contract
        else:
            project.rejection_report = report or ""

        project.status = transition.to_state
        project.validated_at = self._clock.now()
        project.validated_by_id = actor.actor_id
        project.updated_by_id = actor.actor_id
        self.session.flush()

        logger.info(
            "project_validated" if accept else "project_rejected",
            extra={
                "project_id": str(project_id),
                "cost_target": str(project.cost_target) if accept else None,
            },
        )
        return ProjectInfo.from_model(project)

    def launch_production(
        self,
        project_id: UUID,
        launch_date: date,
        actor: Actor,
        overrides: CalendarOverrides | None = None,
    ) -> ProjectInfo:
        """
        Move FUNDING -> IN_PRODUCTION and materialize the milestone calendar.

        Raises:
            IllegalTransitionError: Not FUNDING, or not fully funded.
        """
        project = self._get_project_for_update(project_id)
        transition = self._require_transition(project, ACTION_LAUNCH)

        current = self._funding.sum_pledges(project.id)
        if not funding.is_fully_funded(project.cost_target, current):
            self._reject(
                project,
                ACTION_LAUNCH,
                f"project is not fully funded "
                f"({funding.funding_percentage(project.cost_target, current)}%, "
                f"gap {funding.funding_gap(project.cost_target, current)})",
            )

        project.launch_date = launch_date
        project.launched_by_id = actor.actor_id
        self._scheduler.materialize_calendar(
            project.id, launch_date, actor.actor_id, overrides
        )
        project.status = transition.to_state
        project.updated_by_id = actor.actor_id
        self.session.flush()

        logger.info(
            "production_launched",
            extra={"project_id": str(project_id), "launch_date": launch_date.isoformat()},
        )
        return ProjectInfo.from_model(project)

    def complete_project(self, project_id: UUID, actor: Actor) -> ProjectInfo:
        """
        Move IN_PRODUCTION -> COMPLETED once every milestone is reported.

        Raises:
            IllegalTransitionError: Not IN_PRODUCTION, or milestones pending.
        """
        project = self._get_project_for_update(project_id)
        transition = self._require_transition(project, ACTION_COMPLETE)

        unreported = self.session.execute(
            select(func.count())
            .select_from(ScheduledMilestone)
            .where(
                ScheduledMilestone.project_id == project.id,
                ScheduledMilestone.actual_date.is_(None),
            )
        ).scalar_one()
        if unreported:
            self._reject(
                project,
                ACTION_COMPLETE,
                f"{unreported} milestone(s) have no actual date",
            )

        project.status = transition.to_state
        project.completion_date = self._clock.today()
        project.updated_by_id = actor.actor_id
        self.session.flush()

        logger.info("project_completed", extra={"project_id": str(project_id)})
        return ProjectInfo.from_model(project)

    def record_harvest(
        self,
        project_culture_id: UUID,
        actor: Actor,
        actual_yield: Decimal | int | str,
        actual_cost: Decimal | int | str | None = None,
    ) -> ProjectCultureInfo:
        """
        Record the harvested yield (and optionally the real cost) of a culture.

        Allowed while IN_PRODUCTION or COMPLETED.
        """
        project_id = self.session.execute(
            select(ProjectCulture.project_id).where(ProjectCulture.id == project_culture_id)
        ).scalar_one_or_none()
        if project_id is None:
            raise ProjectCultureNotFoundError(str(project_culture_id))
        project = self._get_project_for_update(project_id)
        if project.current_status not in (ProjectStatus.IN_PRODUCTION, ProjectStatus.COMPLETED):
            self._reject(project, "record harvest", "project is not in production")

        harvested = to_decimal(actual_yield)
        if harvested < 0:
            raise ValueError(f"actual_yield must be >= 0, got {harvested}")
        project_culture = next(pc for pc in project.cultures if pc.id == project_culture_id)
        project_culture.actual_yield = harvested
        if actual_cost is not None:
            cost = to_decimal(actual_cost)
            if cost < 0:
                raise ValueError(f"actual_cost must be >= 0, got {cost}")
            project_culture.actual_cost = round_money(cost)
        project_culture.harvest_recorded_at = self._clock.now()
        project_culture.updated_by_id = actor.actor_id
        self.session.flush()

        logger.info(
            "harvest_recorded",
            extra={
                "project_id": str(project_id),
                "project_culture_id": str(project_culture_id),
                "actual_yield": str(harvested),
            },
        )
        return ProjectCultureInfo.from_model(project_culture)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_transition(self, project: Project, action: str) -> Transition:
        transition = PROJECT_LIFECYCLE.find(project.current_status.value, action)
        if transition is None:
            allowed_from = ", ".join(PROJECT_LIFECYCLE.sources_of(action)) or "none"
            self._reject(project, action, f"only allowed from: {allowed_from}")
        return transition

    def _reject(self, project: Project, action: str, reason: str) -> NoReturn:
        logger.warning(
            "transition_rejected",
            extra={
                "project_id": str(project.id),
                "action": action,
                "error_code": IllegalTransitionError.code,
                "reason": reason,
            },
        )
        raise IllegalTransitionError(
            str(project.id), project.current_status.value, action, reason
        )

    def _require_editable(self, project: Project, actor: Actor, operation: str) -> None:
        if project.current_status != ProjectStatus.PENDING:
            self._reject(project, operation, "project can only be edited while pending")
        if actor.role == Role.FARMER and project.farmer_id != actor.actor_id:
            raise UnauthorizedError(
                str(actor.actor_id), actor.role.value, operation, "not the project owner"
            )
        if actor.role != Role.FARMER and actor.role not in _FIELD_STAFF:
            raise UnauthorizedError(str(actor.actor_id), actor.role.value, operation)

    def _attach_culture(self, project: Project, culture_id: UUID, actor_id: UUID) -> None:
        if any(pc.culture_id == culture_id for pc in project.cultures):
            raise DuplicateCultureError(str(project.id), str(culture_id))
        economics = self._culture_economics(culture_id)
        project.cultures.append(
            ProjectCulture(
                project_id=project.id,
                culture_id=culture_id,
                previsional_cost=funding.previsional_cost(economics, project.surface_ha),
                previsional_yield=funding.previsional_yield(economics, project.surface_ha),
                created_by_id=actor_id,
            )
        )

    def _culture_economics(self, culture_id: UUID) -> CultureEconomics:
        culture = self.session.get(Culture, culture_id)
        if culture is None:
            raise CultureNotFoundError(str(culture_id))
        return CultureEconomics.from_model(culture)

    @staticmethod
    def _valid_surface(surface_ha: Decimal | int | str) -> Decimal:
        surface = to_decimal(surface_ha)
        if surface <= 0:
            raise InvalidSurfaceError(str(surface))
        return surface
