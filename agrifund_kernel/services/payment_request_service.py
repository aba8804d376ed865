"""
PaymentRequestService -- milestone payment-request workflow.

Responsibility:
    Moves a reported milestone through SCHEDULED -> AWAITING_PAYMENT -> PAID
    following the MILESTONE_PAYMENT workflow.

Architecture position:
    Kernel > Services -- imperative shell.  Role checks live in
    agrifund_services.authority; this service only enforces the rules that
    depend on stored data (assigned technician).

Invariants enforced:
    - A payment is requested only once the milestone has an actual date.
    - A milestone is requested at most once.
    - mark_paid() is idempotent on PAID and refused from SCHEDULED.

Failure modes:
    - NotYetReportedError, AlreadyRequestedError, IllegalTransitionError,
      MilestoneNotFoundError, UnauthorizedError.
"""

from uuid import UUID

from agrifund_kernel.domain.clock import Clock
from agrifund_kernel.domain.dtos import Actor, MilestoneInfo, MilestonePaymentStatus
from agrifund_kernel.domain.workflow import (
    ACTION_MARK_PAID,
    ACTION_REQUEST_PAYMENT,
    MILESTONE_PAYMENT,
)
from agrifund_kernel.exceptions import (
    AlreadyRequestedError,
    IllegalTransitionError,
    NotYetReportedError,
    UnauthorizedError,
)
from agrifund_kernel.logging_config import get_logger
from agrifund_kernel.models.milestone import ScheduledMilestone
from agrifund_kernel.services.base import BaseService
from agrifund_kernel.services.milestone_scheduler import MilestoneSchedulerService

logger = get_logger("services.payment_request")


class PaymentRequestService(BaseService[ScheduledMilestone]):
    """
    Service for milestone payment requests.

    Contract:
        Flushes within the caller's transaction and returns ``MilestoneInfo``.
    """

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._scheduler = MilestoneSchedulerService(session, self._clock)

    def request_payment(self, milestone_id: UUID, actor: Actor) -> MilestoneInfo:
        """
        Ask the financier to pay a reported milestone.

        When the project has an assigned technician, only that technician
        may ask.

        Raises:
            NotYetReportedError: No actual date yet.
            AlreadyRequestedError: Status is AWAITING_PAYMENT or PAID.
            UnauthorizedError: Actor is not the assigned technician.
        """
        milestone, project = self._scheduler.get_milestone_for_update(milestone_id)

        if project.technician_id is not None and project.technician_id != actor.actor_id:
            raise UnauthorizedError(
                str(actor.actor_id),
                actor.role.value,
                "request payment",
                "only the project's assigned technician may request payment",
            )

        if milestone.actual_date is None:
            logger.warning(
                "payment_request_rejected",
                extra={
                    "milestone_id": str(milestone_id),
                    "error_code": NotYetReportedError.code,
                },
            )
            raise NotYetReportedError(str(milestone_id))

        current = milestone.current_payment_status
        transition = MILESTONE_PAYMENT.find(current.value, ACTION_REQUEST_PAYMENT)
        if transition is None:
            logger.warning(
                "payment_request_rejected",
                extra={
                    "milestone_id": str(milestone_id),
                    "error_code": AlreadyRequestedError.code,
                },
            )
            raise AlreadyRequestedError(str(milestone_id), current.value)

        milestone.payment_status = transition.to_state
        milestone.payment_requested_by_id = actor.actor_id
        milestone.payment_requested_at = self._clock.now()
        milestone.updated_by_id = actor.actor_id
        self.session.flush()

        logger.info(
            "milestone_payment_requested",
            extra={"milestone_id": str(milestone_id), "project_id": str(project.id)},
        )
        return self._scheduler.to_info(milestone)

    def mark_paid(
        self,
        milestone_id: UUID,
        actor_id: UUID,
        payment_ref: str | None = None,
    ) -> MilestoneInfo:
        """
        Settle a requested milestone payment.

        Idempotent: a milestone already PAID is returned unchanged.

        Raises:
            IllegalTransitionError: Payment was never requested.
        """
        milestone, project = self._scheduler.get_milestone_for_update(milestone_id)
        current = milestone.current_payment_status

        if current == MilestonePaymentStatus.PAID:
            logger.info(
                "milestone_already_paid",
                extra={"milestone_id": str(milestone_id)},
            )
            return self._scheduler.to_info(milestone)

        transition = MILESTONE_PAYMENT.find(current.value, ACTION_MARK_PAID)
        if transition is None:
            logger.warning(
                "milestone_payment_rejected",
                extra={
                    "milestone_id": str(milestone_id),
                    "error_code": IllegalTransitionError.code,
                },
            )
            raise IllegalTransitionError(
                str(milestone_id),
                current.value,
                ACTION_MARK_PAID,
                "payment has not been requested",
                entity_type="milestone",
            )

        milestone.payment_status = transition.to_state
        milestone.paid_by_id = actor_id
        milestone.paid_at = self._clock.now()
        milestone.payment_ref = payment_ref.strip() if payment_ref else None
        milestone.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "milestone_paid",
            extra={"milestone_id": str(milestone_id), "project_id": str(project.id)},
        )
        return self._scheduler.to_info(milestone)
