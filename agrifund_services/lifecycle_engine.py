"""
agrifund_services.lifecycle_engine -- Transaction-owning engine facade.

Responsibility:
    The single entry point callers use to drive projects through their
    lifecycle.  For every operation it binds the log context, checks the
    actor's role, serializes writers of the same project, runs the kernel
    services inside one ``session_scope()`` and, once committed, hands the
    resulting notifications to the sink.

Architecture position:
    Services -- orchestration over the kernel.  Kernel services flush and
    never commit; this class owns commit and rollback.

Invariants enforced:
    - Single writer per project: the in-process project lock is held for the
      whole transaction, and kernel writes reload the project row with
      SELECT ... FOR UPDATE.
    - A rejected operation rolls back entirely and emits no notification.
    - Notifications are published only after commit.  Sink failures are
      logged and never surface to the caller.

Failure modes:
    - Every typed AgriFundError raised by the kernel propagates unchanged.
    - UnauthorizedError from ActorAuthority before any transaction opens.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from agrifund_kernel.db.engine import get_session_factory, init_engine_from_url, session_scope
from agrifund_kernel.domain.clock import Clock, SystemClock
from agrifund_kernel.domain.dtos import (
    Actor,
    CalendarEntry,
    CostReferenceInfo,
    CultureEconomics,
    FundingSnapshot,
    InvestmentInfo,
    InvestorPosition,
    MilestoneInfo,
    MilestoneTemplateInfo,
    ProjectCultureInfo,
    ProjectEconomics,
    ProjectInfo,
    ProjectStatus,
    ProjectSummary,
    Role,
)
from agrifund_kernel.domain.scheduling import CalendarOverrides
from agrifund_kernel.logging_config import LogContext, configure_logging, get_logger
from agrifund_kernel.selectors.catalog_selector import CatalogSelector
from agrifund_kernel.selectors.funding_selector import FundingSelector
from agrifund_kernel.selectors.milestone_selector import MilestoneSelector
from agrifund_kernel.selectors.project_selector import ProjectSelector
from agrifund_kernel.services.catalog_service import CatalogService
from agrifund_kernel.services.funding_ledger import FundingLedgerService
from agrifund_kernel.services.milestone_scheduler import MilestoneSchedulerService
from agrifund_kernel.services.payment_request_service import PaymentRequestService
from agrifund_kernel.services.project_lifecycle_service import ProjectLifecycleService
from agrifund_services.authority import ActorAuthority
from agrifund_services.notifications import (
    LoggingNotificationSink,
    NotificationEvent,
    NotificationKind,
    NotificationSink,
    build_sink,
)
from agrifund_services.project_locks import ProjectLockRegistry

logger = get_logger("services.lifecycle_engine")

T = TypeVar("T")

# A unit of work returns its result and the events to publish after commit.
Work = Callable[[Session], tuple[T, list[NotificationEvent]]]


class LifecycleEngine:
    """
    Facade over the kernel services for one database.

    Contract:
        Receives the session factory, Clock, NotificationSink,
        ActorAuthority and ProjectLockRegistry via constructor injection.
        Write methods take the acting ``Actor`` first.  Read methods take no
        actor and may run concurrently.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        sink: NotificationSink | None = None,
        authority: ActorAuthority | None = None,
        locks: ProjectLockRegistry | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._sink = sink if sink is not None else LoggingNotificationSink()
        self._authority = authority or ActorAuthority()
        self._locks = locks or ProjectLockRegistry()

    @classmethod
    def from_settings(cls, settings, clock: Clock | None = None) -> LifecycleEngine:
        """Initialize the database engine and logging from EngineSettings."""
        configure_logging(level=settings.log_level)
        db = settings.database
        init_engine_from_url(
            db.url,
            echo=db.echo,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
        )
        return cls(
            get_session_factory(),
            clock=clock,
            sink=build_sink(settings.notification_sink),
        )

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def sink(self) -> NotificationSink:
        return self._sink

    # ------------------------------------------------------------------
    # Catalog administration
    # ------------------------------------------------------------------

    def register_culture(
        self,
        actor: Actor,
        code: str,
        name: str,
        cost_per_ha: Decimal | int | str,
        yield_per_ha: Decimal | int | str,
        price_per_ton: Decimal | int | str,
        technical_sheet_ref: str | None = None,
    ) -> CultureEconomics:
        def work(session: Session):
            culture = CatalogService(session, self._clock).register_culture(
                code=code,
                name=name,
                cost_per_ha=cost_per_ha,
                yield_per_ha=yield_per_ha,
                price_per_ton=price_per_ton,
                actor_id=actor.actor_id,
                technical_sheet_ref=technical_sheet_ref,
            )
            return culture, []

        return self._execute("register_culture", actor, None, work)

    def update_culture_economics(
        self,
        actor: Actor,
        culture_id: UUID,
        cost_per_ha: Decimal | int | str | None = None,
        yield_per_ha: Decimal | int | str | None = None,
        price_per_ton: Decimal | int | str | None = None,
        technical_sheet_ref: str | None = None,
    ) -> CultureEconomics:
        """Edit catalog economics.  Frozen cost targets are unaffected."""

        def work(session: Session):
            culture = CatalogService(session, self._clock).update_culture_economics(
                culture_id,
                actor.actor_id,
                cost_per_ha=cost_per_ha,
                yield_per_ha=yield_per_ha,
                price_per_ton=price_per_ton,
                technical_sheet_ref=technical_sheet_ref,
            )
            return culture, []

        return self._execute("update_culture_economics", actor, None, work)

    def add_milestone_template(
        self, actor: Actor, culture_id: UUID, name: str, action: str, offset_days: int
    ) -> MilestoneTemplateInfo:
        def work(session: Session):
            template = CatalogService(session, self._clock).add_milestone_template(
                culture_id, name, action, offset_days, actor.actor_id
            )
            return template, []

        return self._execute("add_milestone_template", actor, None, work)

    def add_cost_reference(
        self,
        actor: Actor,
        template_id: UUID,
        expense_type: str,
        amount_per_ha: Decimal | int | str,
        unit: str | None = None,
    ) -> CostReferenceInfo:
        def work(session: Session):
            reference = CatalogService(session, self._clock).add_cost_reference(
                template_id, expense_type, amount_per_ha, actor.actor_id, unit=unit
            )
            return reference, []

        return self._execute("add_cost_reference", actor, None, work)

    def list_cultures(self) -> list[CultureEconomics]:
        return self._read(lambda s: CatalogSelector(s, self._clock).list_cultures())

    def get_culture_economics(self, culture_id: UUID) -> CultureEconomics:
        return self._read(
            lambda s: CatalogSelector(s, self._clock).get_culture_economics(culture_id)
        )

    def get_culture_by_code(self, code: str) -> CultureEconomics | None:
        return self._read(lambda s: CatalogSelector(s, self._clock).get_culture_by_code(code))

    def list_milestone_templates(self, culture_id: UUID) -> list[MilestoneTemplateInfo]:
        return self._read(
            lambda s: CatalogSelector(s, self._clock).list_milestone_templates(culture_id)
        )

    def list_cost_references(self, template_id: UUID) -> list[CostReferenceInfo]:
        return self._read(
            lambda s: CatalogSelector(s, self._clock).list_cost_references(template_id)
        )

    # ------------------------------------------------------------------
    # Project editing
    # ------------------------------------------------------------------

    def create_project(
        self,
        actor: Actor,
        terrain_ref: str,
        surface_ha: Decimal | int | str,
        culture_ids: Sequence[UUID] = (),
        title: str = "",
        description: str | None = None,
        location_ref: str | None = None,
    ) -> ProjectInfo:
        """Create a pending project owned by the acting farmer."""

        def work(session: Session):
            project = ProjectLifecycleService(session, self._clock).create_project(
                farmer_id=actor.actor_id,
                terrain_ref=terrain_ref,
                surface_ha=surface_ha,
                culture_ids=culture_ids,
                title=title,
                description=description,
                location_ref=location_ref,
            )
            return project, []

        return self._execute("create_project", actor, None, work)

    def add_culture(self, actor: Actor, project_id: UUID, culture_id: UUID) -> ProjectInfo:
        def work(session: Session):
            project = ProjectLifecycleService(session, self._clock).add_culture(
                project_id, culture_id, actor
            )
            return project, []

        return self._execute("add_culture", actor, project_id, work)

    def remove_culture(self, actor: Actor, project_id: UUID, culture_id: UUID) -> ProjectInfo:
        def work(session: Session):
            project = ProjectLifecycleService(session, self._clock).remove_culture(
                project_id, culture_id, actor
            )
            return project, []

        return self._execute("remove_culture", actor, project_id, work)

    def update_surface(
        self, actor: Actor, project_id: UUID, surface_ha: Decimal | int | str
    ) -> ProjectInfo:
        def work(session: Session):
            project = ProjectLifecycleService(session, self._clock).update_surface(
                project_id, surface_ha, actor
            )
            return project, []

        return self._execute("update_surface", actor, project_id, work)

    def assign_field_staff(
        self,
        actor: Actor,
        project_id: UUID,
        technician_id: UUID | None = None,
        supervisor_id: UUID | None = None,
    ) -> ProjectInfo:
        def work(session: Session):
            project = ProjectLifecycleService(session, self._clock).assign_field_staff(
                project_id, actor, technician_id=technician_id, supervisor_id=supervisor_id
            )
            return project, []

        return self._execute("assign_field_staff", actor, project_id, work)

    def withdraw_project(self, actor: Actor, project_id: UUID) -> ProjectInfo:
        """Delete a pending project.  Returns its last state."""

        def work(session: Session):
            project = ProjectLifecycleService(session, self._clock).withdraw_project(
                project_id, actor
            )
            return project, []

        return self._execute("withdraw_project", actor, project_id, work)

    def record_harvest(
        self,
        actor: Actor,
        project_culture_id: UUID,
        actual_yield: Decimal | int | str,
        actual_cost: Decimal | int | str | None = None,
    ) -> ProjectCultureInfo:
        project_id = self._read(
            lambda s: ProjectSelector(s, self._clock).project_id_of_culture(project_culture_id)
        )

        def work(session: Session):
            culture = ProjectLifecycleService(session, self._clock).record_harvest(
                project_culture_id, actor, actual_yield, actual_cost
            )
            return culture, []

        return self._execute("record_harvest", actor, project_id, work)

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    def validate_project(
        self,
        actor: Actor,
        project_id: UUID,
        accept: bool,
        signed_contract_ref: str | None = None,
        report: str | None = None,
    ) -> ProjectInfo:
        """
        Accept (PENDING -> FUNDING) or reject (PENDING -> REJECTED).

        The farmer is notified of the decision, with the report on reject.
        """

        def work(session: Session):
            project = ProjectLifecycleService(session, self._clock).validate(
                project_id,
                actor,
                accept,
                signed_contract_ref=signed_contract_ref,
                report=report,
            )
            if accept:
                event = self._event(
                    NotificationKind.PROJECT_VALIDATED,
                    project,
                    recipient_ids=(project.farmer_id,),
                    message=f"Project '{project.title}' validated and open for funding",
                    payload={"cost_target": project.cost_target},
                )
            else:
                event = self._event(
                    NotificationKind.PROJECT_REJECTED,
                    project,
                    recipient_ids=(project.farmer_id,),
                    message=project.rejection_report or "",
                )
            return project, [event]

        result = self._execute("validate_project", actor, project_id, work)
        self._emit_transition_trace(
            project_id, ProjectStatus.PENDING.value, result.status.value,
            "accept" if accept else "reject",
        )
        return result

    def launch_production(
        self,
        actor: Actor,
        project_id: UUID,
        launch_date: date,
        overrides: CalendarOverrides | None = None,
    ) -> ProjectInfo:
        """
        FUNDING -> IN_PRODUCTION with calendar materialization.

        The farmer, the investors and the assigned technician are notified.
        """

        def work(session: Session):
            project = ProjectLifecycleService(session, self._clock).launch_production(
                project_id, launch_date, actor, overrides
            )
            investors = FundingSelector(session, self._clock).investor_ids(project_id)
            recipients = [project.farmer_id, *investors]
            if project.technician_id is not None:
                recipients.append(project.technician_id)
            event = self._event(
                NotificationKind.PRODUCTION_LAUNCHED,
                project,
                recipient_ids=tuple(recipients),
                message=f"Production of '{project.title}' starts on {launch_date.isoformat()}",
                payload={"launch_date": launch_date},
            )
            return project, [event]

        result = self._execute("launch_production", actor, project_id, work)
        self._emit_transition_trace(
            project_id, ProjectStatus.FUNDING.value, result.status.value, "launch_production"
        )
        return result

    def complete_project(self, actor: Actor, project_id: UUID) -> ProjectInfo:
        """IN_PRODUCTION -> COMPLETED once every milestone is reported."""

        def work(session: Session):
            project = ProjectLifecycleService(session, self._clock).complete_project(
                project_id, actor
            )
            investors = FundingSelector(session, self._clock).investor_ids(project_id)
            event = self._event(
                NotificationKind.PROJECT_COMPLETED,
                project,
                recipient_ids=(project.farmer_id, *investors),
                message=f"Project '{project.title}' is completed",
            )
            return project, [event]

        result = self._execute("complete_project", actor, project_id, work)
        self._emit_transition_trace(
            project_id, ProjectStatus.IN_PRODUCTION.value, result.status.value, "complete"
        )
        return result

    # ------------------------------------------------------------------
    # Funding
    # ------------------------------------------------------------------

    def record_investment(
        self, actor: Actor, project_id: UUID, amount: Decimal | int | str
    ) -> InvestmentInfo:
        """Append a pending pledge from the acting investor."""

        def work(session: Session):
            investment = FundingLedgerService(session, self._clock).record_investment(
                project_id, actor.actor_id, amount
            )
            return investment, []

        return self._execute("record_investment", actor, project_id, work)

    def mark_investment_paid(
        self, actor: Actor, investment_id: UUID, transaction_ref: str
    ) -> InvestmentInfo:
        project_id = self._project_of_investment(investment_id)

        def work(session: Session):
            investment = FundingLedgerService(session, self._clock).mark_investment_paid(
                investment_id, transaction_ref, actor_id=actor.actor_id
            )
            return investment, []

        return self._execute("mark_investment_paid", actor, project_id, work)

    def record_gateway_result(
        self, investment_id: UUID, transaction_ref: str, success: bool
    ) -> InvestmentInfo:
        """
        Payment-gateway callback.  Trusted system boundary, no actor role.

        Only the reference and the success flag are recorded.
        """
        project_id = self._project_of_investment(investment_id)

        def work(session: Session):
            investment = FundingLedgerService(session, self._clock).record_gateway_result(
                investment_id, transaction_ref, success
            )
            return investment, []

        return self._execute("record_gateway_result", None, project_id, work)

    def current_funding(self, project_id: UUID) -> Decimal:
        return self._read(lambda s: FundingSelector(s, self._clock).current_funding(project_id))

    def paid_funding(self, project_id: UUID) -> Decimal:
        return self._read(lambda s: FundingSelector(s, self._clock).paid_funding(project_id))

    def funding_gap(self, project_id: UUID) -> Decimal:
        return self._read(lambda s: FundingSelector(s, self._clock).funding_gap(project_id))

    def funding_percentage(self, project_id: UUID) -> int:
        return self._read(
            lambda s: FundingSelector(s, self._clock).funding_percentage(project_id)
        )

    def funding_snapshot(self, project_id: UUID) -> FundingSnapshot:
        return self._read(lambda s: FundingSelector(s, self._clock).snapshot(project_id))

    def list_investments(self, project_id: UUID) -> list[InvestmentInfo]:
        return self._read(lambda s: FundingSelector(s, self._clock).list_investments(project_id))

    def investor_portfolio(self, investor_id: UUID) -> list[InvestorPosition]:
        return self._read(
            lambda s: FundingSelector(s, self._clock).investor_portfolio(investor_id)
        )

    # ------------------------------------------------------------------
    # Milestones and payment requests
    # ------------------------------------------------------------------

    def preview_calendar(
        self,
        actor: Actor,
        project_id: UUID,
        launch_date: date,
        overrides: CalendarOverrides | None = None,
    ) -> tuple[CalendarEntry, ...]:
        """Projected calendar for a candidate launch date.  No writes."""
        self._authority.require(actor, "preview_calendar")
        return self._read(
            lambda s: MilestoneSchedulerService(s, self._clock).preview_calendar(
                project_id, launch_date, overrides
            )
        )

    def record_report(
        self,
        actor: Actor,
        milestone_id: UUID,
        actual_date: date,
        report_text: str,
        photo_refs: Sequence[str] = (),
    ) -> MilestoneInfo:
        """Record a completion report.  Farmer and investors are notified."""
        project_id = self._project_of_milestone(milestone_id)

        def work(session: Session):
            milestone = MilestoneSchedulerService(session, self._clock).record_report(
                milestone_id, actual_date, report_text, actor.actor_id, photo_refs
            )
            project = ProjectSelector(session, self._clock).get_project(project_id)
            investors = FundingSelector(session, self._clock).investor_ids(project_id)
            event = self._event(
                NotificationKind.MILESTONE_REPORTED,
                project,
                recipient_ids=(project.farmer_id, *investors),
                message=f"Milestone '{milestone.name}' reported on {actual_date.isoformat()}",
                payload={"milestone_id": milestone.id},
            )
            return milestone, [event]

        return self._execute("record_report", actor, project_id, work)

    def request_payment(self, actor: Actor, milestone_id: UUID) -> MilestoneInfo:
        """
        SCHEDULED -> AWAITING_PAYMENT.

        The project's supervisor and every financier are notified.
        """
        project_id = self._project_of_milestone(milestone_id)

        def work(session: Session):
            milestone = PaymentRequestService(session, self._clock).request_payment(
                milestone_id, actor
            )
            project = ProjectSelector(session, self._clock).get_project(project_id)
            recipients = (project.supervisor_id,) if project.supervisor_id else ()
            event = self._event(
                NotificationKind.PAYMENT_REQUESTED,
                project,
                recipient_ids=recipients,
                recipient_roles=(Role.FINANCIER.value,),
                message=f"Payment requested for milestone '{milestone.name}'",
                payload={"milestone_id": milestone.id, "budget_amount": milestone.budget_amount},
            )
            return milestone, [event]

        return self._execute("request_payment", actor, project_id, work)

    def mark_milestone_paid(
        self, actor: Actor, milestone_id: UUID, payment_ref: str | None = None
    ) -> MilestoneInfo:
        """AWAITING_PAYMENT -> PAID.  Idempotent on PAID."""
        project_id = self._project_of_milestone(milestone_id)

        def work(session: Session):
            before = MilestoneSelector(session, self._clock).get_milestone(milestone_id)
            milestone = PaymentRequestService(session, self._clock).mark_paid(
                milestone_id, actor.actor_id, payment_ref
            )
            if before.payment_status == milestone.payment_status:
                return milestone, []
            project = ProjectSelector(session, self._clock).get_project(project_id)
            recipients = [project.farmer_id]
            if milestone.payment_requested_by_id is not None:
                recipients.append(milestone.payment_requested_by_id)
            event = self._event(
                NotificationKind.MILESTONE_PAID,
                project,
                recipient_ids=tuple(recipients),
                message=f"Milestone '{milestone.name}' has been paid",
                payload={"milestone_id": milestone.id, "payment_ref": milestone.payment_ref},
            )
            return milestone, [event]

        return self._execute("mark_milestone_paid", actor, project_id, work)

    def get_milestone(self, milestone_id: UUID) -> MilestoneInfo:
        return self._read(lambda s: MilestoneSelector(s, self._clock).get_milestone(milestone_id))

    def milestone_list(self, project_id: UUID) -> list[MilestoneInfo]:
        return self._read(lambda s: MilestoneSelector(s, self._clock).milestone_list(project_id))

    def payment_queue(self) -> list[MilestoneInfo]:
        return self._read(lambda s: MilestoneSelector(s, self._clock).payment_queue())

    def technician_milestones(
        self, technician_id: UUID, include_completed: bool = False
    ) -> list[MilestoneInfo]:
        return self._read(
            lambda s: MilestoneSelector(s, self._clock).technician_milestones(
                technician_id, include_completed
            )
        )

    # ------------------------------------------------------------------
    # Project reads
    # ------------------------------------------------------------------

    def get_project(self, project_id: UUID) -> ProjectInfo:
        return self._read(lambda s: ProjectSelector(s, self._clock).get_project(project_id))

    def project_status(self, project_id: UUID) -> ProjectStatus:
        return self._read(lambda s: ProjectSelector(s, self._clock).project_status(project_id))

    def list_projects(
        self,
        status: ProjectStatus | None = None,
        farmer_id: UUID | None = None,
        technician_id: UUID | None = None,
    ) -> list[ProjectInfo]:
        return self._read(
            lambda s: ProjectSelector(s, self._clock).list_projects(
                status=status, farmer_id=farmer_id, technician_id=technician_id
            )
        )

    def project_economics(self, project_id: UUID) -> ProjectEconomics:
        return self._read(
            lambda s: ProjectSelector(s, self._clock).project_economics(project_id)
        )

    def project_summary(self, project_id: UUID) -> ProjectSummary:
        return self._read(lambda s: ProjectSelector(s, self._clock).project_summary(project_id))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _execute(
        self,
        operation: str,
        actor: Actor | None,
        project_id: UUID | None,
        work: Work[T],
    ) -> T:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor.actor_id) if actor else None,
            actor_role=actor.role.value if actor else None,
            project_id=str(project_id) if project_id else None,
            operation=operation,
        ):
            if actor is not None:
                self._authority.require(actor, operation)
            started = time.monotonic()
            with self._project_lock(project_id):
                with session_scope(self._session_factory) as session:
                    result, events = work(session)
            logger.debug(
                "operation_committed",
                extra={"duration_ms": round((time.monotonic() - started) * 1000, 2)},
            )
            self._publish(events)
            return result

    def _read(self, query: Callable[[Session], T]) -> T:
        with session_scope(self._session_factory) as session:
            return query(session)

    @contextmanager
    def _project_lock(self, project_id: UUID | None) -> Iterator[None]:
        if project_id is None:
            yield
            return
        with self._locks.hold(project_id):
            yield

    def _project_of_milestone(self, milestone_id: UUID) -> UUID:
        return self._read(
            lambda s: MilestoneSelector(s, self._clock).get_milestone(milestone_id).project_id
        )

    def _project_of_investment(self, investment_id: UUID) -> UUID:
        return self._read(
            lambda s: FundingSelector(s, self._clock).get_investment(investment_id).project_id
        )

    def _event(
        self,
        kind: NotificationKind,
        project: ProjectInfo,
        recipient_ids: tuple[UUID, ...] = (),
        recipient_roles: tuple[str, ...] = (),
        message: str = "",
        payload: dict | None = None,
    ) -> NotificationEvent:
        # Investors may hold several pledges; notify each once, in order
        unique = tuple(dict.fromkeys(recipient_ids))
        return NotificationEvent(
            kind=kind,
            project_id=project.id,
            occurred_at=self._clock.now(),
            recipient_ids=unique,
            recipient_roles=recipient_roles,
            message=message,
            payload=dict(payload or {}),
        )

    def _publish(self, events: list[NotificationEvent]) -> None:
        for event in events:
            try:
                self._sink.publish(event)
            except Exception:
                logger.exception(
                    "notification_failed",
                    extra={"kind": event.kind.value, "notified_project_id": str(event.project_id)},
                )

    def _emit_transition_trace(
        self, project_id: UUID, from_state: str, to_state: str, action: str
    ) -> None:
        logger.info(
            "lifecycle_transition",
            extra={
                "trace_type": "LIFECYCLE_TRANSITION",
                "transitioned_project_id": str(project_id),
                "from_state": from_state,
                "to_state": to_state,
                "action": action,
            },
        )
