"""
Typed Exception Hierarchy for the AgriFund Kernel.

Every rejected operation raises a TYPED exception carrying a class-level
``code`` (machine-readable, API-safe) and structured attributes.  Callers
catch by type, never by parsing messages:

    try:
        engine.launch_production(actor, project_id, launch_date)
    except IllegalTransitionError as e:
        render_error(code=e.code, state=e.current_state, reason=e.reason)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    AgriFundError (base)
    |
    +-- LifecycleError
    |   +-- IllegalTransitionError
    |   +-- InvalidSurfaceError
    |   +-- DuplicateCultureError
    |
    +-- FundingError
    |   +-- InvalidAmountError
    |   +-- ProjectNotFundableError
    |   +-- PaymentConflictError
    |   +-- InvalidPaymentReferenceError
    |
    +-- MilestoneError
    |   +-- AlreadyReportedError
    |   +-- DateOutOfRangeError
    |   +-- UnknownCalendarOverrideError
    |   +-- NotYetReportedError
    |   +-- AlreadyRequestedError
    |
    +-- NotFoundError
    |   +-- ProjectNotFoundError
    |   +-- ProjectCultureNotFoundError
    |   +-- CultureNotFoundError
    |   +-- MilestoneTemplateNotFoundError
    |   +-- InvestmentNotFoundError
    |   +-- MilestoneNotFoundError
    |
    +-- UnauthorizedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category   | Code                       | When Raised
-----------|----------------------------|--------------------------------------------
Lifecycle  | ILLEGAL_TRANSITION         | Action attempted outside its guard
           | INVALID_SURFACE            | Project surface is not > 0
           | DUPLICATE_CULTURE          | Culture already attached to the project
-----------|----------------------------|--------------------------------------------
Funding    | INVALID_AMOUNT             | Investment amount <= 0
           | PROJECT_NOT_FUNDABLE       | Project is not in the funding phase
           | PAYMENT_CONFLICT           | Paid investment re-marked with another ref
           | INVALID_PAYMENT_REFERENCE  | Empty transaction reference
-----------|----------------------------|--------------------------------------------
Milestone  | ALREADY_REPORTED           | Actual date already recorded
           | DATE_OUT_OF_RANGE          | Actual or override date precedes launch
           | UNKNOWN_CALENDAR_OVERRIDE  | Override for a pair not in the calendar
           | NOT_YET_REPORTED           | Payment requested before the report
           | ALREADY_REQUESTED          | Payment already requested or paid
-----------|----------------------------|--------------------------------------------
Lookup     | *_NOT_FOUND                | Unknown id
-----------|----------------------------|--------------------------------------------
Access     | UNAUTHORIZED               | Actor role not allowed for the operation

All of these are local, recoverable conditions.  None is fatal to the
process, and a rejected operation never leaves a partial write behind.
"""


class AgriFundError(Exception):
    """
    Base exception for all AgriFund kernel errors.

    All subclasses must define a ``code`` class attribute.
    """

    code: str = "AGRIFUND_ERROR"


# Lifecycle exceptions


class LifecycleError(AgriFundError):
    """Base exception for project lifecycle errors."""

    code: str = "LIFECYCLE_ERROR"


class IllegalTransitionError(LifecycleError):
    """
    A state transition was attempted outside its guard.

    Carries the entity, its current state, the attempted action and the
    violated precondition.  The operation performed no mutation.
    """

    code: str = "ILLEGAL_TRANSITION"

    def __init__(
        self,
        entity_id: str,
        current_state: str,
        action: str,
        reason: str,
        entity_type: str = "project",
    ):
        self.entity_id = entity_id
        self.entity_type = entity_type
        self.current_state = current_state
        self.action = action
        self.reason = reason
        super().__init__(
            f"Cannot {action} {entity_type} {entity_id} in state "
            f"'{current_state}': {reason}"
        )


class InvalidSurfaceError(LifecycleError):
    """Project surface must be strictly positive."""

    code: str = "INVALID_SURFACE"

    def __init__(self, surface_ha: str):
        self.surface_ha = surface_ha
        super().__init__(f"Surface must be > 0 ha, got {surface_ha}")


class DuplicateCultureError(LifecycleError):
    """Culture is already attached to the project."""

    code: str = "DUPLICATE_CULTURE"

    def __init__(self, project_id: str, culture_id: str):
        self.project_id = project_id
        self.culture_id = culture_id
        super().__init__(
            f"Culture {culture_id} is already part of project {project_id}"
        )


# Funding exceptions


class FundingError(AgriFundError):
    """Base exception for funding ledger errors."""

    code: str = "FUNDING_ERROR"


class InvalidAmountError(FundingError):
    """Investment amount must be strictly positive."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: str):
        self.amount = amount
        super().__init__(f"Investment amount must be > 0, got {amount}")


class ProjectNotFundableError(FundingError):
    """Project is not in its funding phase."""

    code: str = "PROJECT_NOT_FUNDABLE"

    def __init__(self, project_id: str, status: str):
        self.project_id = project_id
        self.status = status
        super().__init__(
            f"Project {project_id} is not open for funding (status: {status})"
        )


class PaymentConflictError(FundingError):
    """Paid investment re-marked with a different transaction reference."""

    code: str = "PAYMENT_CONFLICT"

    def __init__(self, investment_id: str, existing_ref: str, new_ref: str):
        self.investment_id = investment_id
        self.existing_ref = existing_ref
        self.new_ref = new_ref
        super().__init__(
            f"Investment {investment_id} already paid with reference "
            f"{existing_ref}, cannot re-mark with {new_ref}"
        )


class InvalidPaymentReferenceError(FundingError):
    """Transaction reference is empty."""

    code: str = "INVALID_PAYMENT_REFERENCE"

    def __init__(self, investment_id: str):
        self.investment_id = investment_id
        super().__init__(
            f"A non-empty transaction reference is required for investment {investment_id}"
        )


# Milestone exceptions


class MilestoneError(AgriFundError):
    """Base exception for milestone and payment-request errors."""

    code: str = "MILESTONE_ERROR"


class AlreadyReportedError(MilestoneError):
    """Milestone already has an actual completion date."""

    code: str = "ALREADY_REPORTED"

    def __init__(self, milestone_id: str, actual_date: str):
        self.milestone_id = milestone_id
        self.actual_date = actual_date
        super().__init__(
            f"Milestone {milestone_id} was already reported on {actual_date}"
        )


class DateOutOfRangeError(MilestoneError):
    """Reported or overridden date precedes the project's launch date."""

    code: str = "DATE_OUT_OF_RANGE"

    def __init__(
        self,
        milestone_id: str,
        actual_date: str,
        launch_date: str,
        date_kind: str = "Actual date",
    ):
        self.milestone_id = milestone_id
        self.actual_date = actual_date
        self.launch_date = launch_date
        super().__init__(
            f"{date_kind} {actual_date} for milestone {milestone_id} "
            f"precedes launch date {launch_date}"
        )


class UnknownCalendarOverrideError(MilestoneError):
    """Calendar override keyed to a (culture, template) pair outside the project."""

    code: str = "UNKNOWN_CALENDAR_OVERRIDE"

    def __init__(self, pairs: list[tuple[str, str]]):
        self.pairs = pairs
        super().__init__(
            f"Calendar overrides reference unknown (culture, template) pairs: {pairs}"
        )


class NotYetReportedError(MilestoneError):
    """Payment requested for a milestone without a recorded report."""

    code: str = "NOT_YET_REPORTED"

    def __init__(self, milestone_id: str):
        self.milestone_id = milestone_id
        super().__init__(f"Milestone {milestone_id} has no recorded report yet")


class AlreadyRequestedError(MilestoneError):
    """Payment already requested (or already paid) for the milestone."""

    code: str = "ALREADY_REQUESTED"

    def __init__(self, milestone_id: str, payment_status: str):
        self.milestone_id = milestone_id
        self.payment_status = payment_status
        super().__init__(
            f"Payment for milestone {milestone_id} already requested "
            f"(status: {payment_status})"
        )


# Lookup exceptions


class NotFoundError(AgriFundError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class ProjectNotFoundError(NotFoundError):
    code: str = "PROJECT_NOT_FOUND"
    entity_type: str = "Project"


class ProjectCultureNotFoundError(NotFoundError):
    code: str = "PROJECT_CULTURE_NOT_FOUND"
    entity_type: str = "Project culture"


class CultureNotFoundError(NotFoundError):
    code: str = "CULTURE_NOT_FOUND"
    entity_type: str = "Culture"


class MilestoneTemplateNotFoundError(NotFoundError):
    code: str = "MILESTONE_TEMPLATE_NOT_FOUND"
    entity_type: str = "Milestone template"


class InvestmentNotFoundError(NotFoundError):
    code: str = "INVESTMENT_NOT_FOUND"
    entity_type: str = "Investment"


class MilestoneNotFoundError(NotFoundError):
    code: str = "MILESTONE_NOT_FOUND"
    entity_type: str = "Milestone"


# Access exceptions


class UnauthorizedError(AgriFundError):
    """Actor's role does not permit the operation."""

    code: str = "UNAUTHORIZED"

    def __init__(self, actor_id: str, role: str, operation: str, reason: str = ""):
        self.actor_id = actor_id
        self.role = role
        self.operation = operation
        self.reason = reason
        message = f"Actor {actor_id} with role '{role}' may not {operation}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
