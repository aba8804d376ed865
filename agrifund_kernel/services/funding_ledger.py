"""
FundingLedgerService -- append-only ledger of investor pledges.

Responsibility:
    Records pledges against projects in their funding phase, marks them paid
    once a payment gateway confirms, and keeps the trail of every gateway
    result handed to the engine.

Architecture position:
    Kernel > Services -- imperative shell.  Aggregates (current funding, gap,
    percentage) are derived by FundingSelector; this service never stores a
    balance.

Invariants enforced:
    - amount > 0.
    - Pledges are only accepted while the project is FUNDING.  The project
      row is locked first so a pledge cannot interleave with a launch.
    - mark_investment_paid() is idempotent for the same reference and
      refuses a different one.
    - No notification is emitted from the ledger itself.

Failure modes:
    - InvalidAmountError, ProjectNotFundableError, ProjectNotFoundError.
    - InvestmentNotFoundError, PaymentConflictError,
      InvalidPaymentReferenceError.
"""

from decimal import Decimal
from uuid import UUID

from agrifund_kernel.db.types import to_decimal
from agrifund_kernel.domain.dtos import InvestmentInfo, InvestmentPaymentStatus, ProjectStatus
from agrifund_kernel.exceptions import (
    InvalidAmountError,
    InvalidPaymentReferenceError,
    InvestmentNotFoundError,
    PaymentConflictError,
    ProjectNotFundableError,
)
from agrifund_kernel.logging_config import get_logger
from agrifund_kernel.models.investment import Investment, InvestmentPaymentAttempt
from agrifund_kernel.services.base import BaseService

logger = get_logger("services.funding_ledger")


class FundingLedgerService(BaseService[Investment]):
    """
    Service for the funding ledger.

    Contract:
        Write methods flush within the caller's transaction and return
        frozen ``InvestmentInfo`` DTOs.
    """

    def record_investment(
        self,
        project_id: UUID,
        investor_id: UUID,
        amount: Decimal | int | str,
    ) -> InvestmentInfo:
        """
        Append a pending pledge.

        Over-funding is accepted: nothing caps the sum of pledges.

        Raises:
            InvalidAmountError: amount <= 0.
            ProjectNotFoundError: Unknown project.
            ProjectNotFundableError: Project is not FUNDING.
        """
        value = to_decimal(amount)
        if value <= 0:
            logger.warning(
                "investment_rejected",
                extra={"project_id": str(project_id), "error_code": InvalidAmountError.code},
            )
            raise InvalidAmountError(str(value))

        project = self._get_project_for_update(project_id)
        if project.current_status != ProjectStatus.FUNDING:
            logger.warning(
                "investment_rejected",
                extra={
                    "project_id": str(project_id),
                    "error_code": ProjectNotFundableError.code,
                    "status": project.current_status.value,
                },
            )
            raise ProjectNotFundableError(str(project_id), project.current_status.value)

        investment = Investment(
            project_id=project.id,
            investor_id=investor_id,
            amount=value,
            decided_at=self._clock.now(),
            payment_status=InvestmentPaymentStatus.PENDING.value,
            created_by_id=investor_id,
        )
        self.session.add(investment)
        self.session.flush()

        logger.info(
            "investment_recorded",
            extra={
                "project_id": str(project_id),
                "investment_id": str(investment.id),
                "amount": str(value),
            },
        )
        return InvestmentInfo.from_model(investment)

    def mark_investment_paid(
        self,
        investment_id: UUID,
        transaction_ref: str,
        actor_id: UUID | None = None,
    ) -> InvestmentInfo:
        """
        Mark a pledge as paid with the gateway's transaction reference.

        Idempotent: marking again with the same reference returns the
        investment unchanged.

        Raises:
            InvestmentNotFoundError: Unknown investment.
            InvalidPaymentReferenceError: Empty or blank reference.
            PaymentConflictError: Already paid with a different reference.
        """
        investment = self._get_investment(investment_id)
        ref = (transaction_ref or "").strip()
        if not ref:
            raise InvalidPaymentReferenceError(str(investment_id))

        if investment.is_paid:
            if investment.transaction_ref == ref:
                logger.info(
                    "investment_already_paid",
                    extra={"investment_id": str(investment_id)},
                )
                return InvestmentInfo.from_model(investment)
            logger.warning(
                "investment_payment_conflict",
                extra={
                    "investment_id": str(investment_id),
                    "error_code": PaymentConflictError.code,
                },
            )
            raise PaymentConflictError(
                str(investment_id), investment.transaction_ref or "", ref
            )

        investment.payment_status = InvestmentPaymentStatus.PAID.value
        investment.transaction_ref = ref
        investment.paid_at = self._clock.now()
        investment.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "investment_paid",
            extra={
                "investment_id": str(investment_id),
                "project_id": str(investment.project_id),
                "transaction_ref": ref,
            },
        )
        return InvestmentInfo.from_model(investment)

    def record_gateway_result(
        self,
        investment_id: UUID,
        transaction_ref: str,
        success: bool,
        actor_id: UUID | None = None,
    ) -> InvestmentInfo:
        """
        Intake of a payment-gateway result.

        Every result is appended to the attempt trail.  A successful result
        then marks the investment paid; a failed one leaves it pending.
        """
        investment = self._get_investment(investment_id)
        ref = (transaction_ref or "").strip()
        if not ref:
            raise InvalidPaymentReferenceError(str(investment_id))

        attempt = InvestmentPaymentAttempt(
            investment_id=investment.id,
            transaction_ref=ref,
            succeeded=success,
            recorded_at=self._clock.now(),
            created_by_id=actor_id or investment.investor_id,
        )
        self.session.add(attempt)
        self.session.flush()

        if not success:
            logger.warning(
                "investment_payment_failed",
                extra={"investment_id": str(investment_id), "transaction_ref": ref},
            )
            return InvestmentInfo.from_model(investment)

        return self.mark_investment_paid(investment_id, ref, actor_id=actor_id)

    def _get_investment(self, investment_id: UUID) -> Investment:
        investment = self.session.get(Investment, investment_id, with_for_update=True)
        if investment is None:
            raise InvestmentNotFoundError(str(investment_id))
        return investment
