"""
agrifund_services.authority -- Runtime role enforcement at the engine boundary.

Responsibility:
    Check that an actor, acting under one role, is allowed to perform an
    engine operation.  Lifecycle and payment-request operations take their
    roles from the workflow transitions in agrifund_kernel.domain.workflow;
    the remaining operations are listed in OPERATION_ROLES.

Architecture position:
    Services layer.  Called by LifecycleEngine before it opens a
    transaction.

Invariants:
    - The kernel does not resolve actor identity; the caller supplies an
      explicit Actor(actor_id, role).
    - Rules that depend on stored data (owning farmer, assigned
      technician) are enforced by the kernel services, not here.
"""

from __future__ import annotations

from agrifund_kernel.domain.dtos import Actor, Role
from agrifund_kernel.domain.workflow import (
    ACTION_ACCEPT,
    ACTION_COMPLETE,
    ACTION_LAUNCH,
    ACTION_MARK_PAID,
    ACTION_REQUEST_PAYMENT,
    MILESTONE_PAYMENT,
    PROJECT_LIFECYCLE,
    Workflow,
)
from agrifund_kernel.exceptions import UnauthorizedError
from agrifund_kernel.logging_config import get_logger

logger = get_logger("services.authority")

# operation -> (workflow, action) whose transition declares the allowed roles
WORKFLOW_OPERATIONS: dict[str, tuple[Workflow, str]] = {
    "validate_project": (PROJECT_LIFECYCLE, ACTION_ACCEPT),
    "launch_production": (PROJECT_LIFECYCLE, ACTION_LAUNCH),
    "complete_project": (PROJECT_LIFECYCLE, ACTION_COMPLETE),
    "request_payment": (MILESTONE_PAYMENT, ACTION_REQUEST_PAYMENT),
    "mark_milestone_paid": (MILESTONE_PAYMENT, ACTION_MARK_PAID),
}

_FIELD_STAFF = frozenset({Role.TECHNICIAN, Role.SUPERVISOR})

OPERATION_ROLES: dict[str, frozenset[Role]] = {
    # Project editing
    "create_project": frozenset({Role.FARMER}),
    "add_culture": frozenset({Role.FARMER}) | _FIELD_STAFF,
    "remove_culture": frozenset({Role.FARMER}) | _FIELD_STAFF,
    "update_surface": frozenset({Role.FARMER}) | _FIELD_STAFF,
    "assign_field_staff": frozenset({Role.SUPERVISOR}),
    "withdraw_project": frozenset({Role.FARMER, Role.SUPERVISOR}),
    "record_harvest": _FIELD_STAFF,
    # Calendar
    "preview_calendar": _FIELD_STAFF,
    "record_report": _FIELD_STAFF,
    # Funding
    "record_investment": frozenset({Role.INVESTOR}),
    "mark_investment_paid": frozenset({Role.FINANCIER}),
    # Catalog administration
    "register_culture": frozenset({Role.SUPERVISOR}),
    "update_culture_economics": frozenset({Role.SUPERVISOR}),
    "add_milestone_template": frozenset({Role.SUPERVISOR}),
    "add_cost_reference": frozenset({Role.SUPERVISOR}),
}


def roles_for(operation: str) -> frozenset[Role]:
    """Roles allowed to perform ``operation``.

    Raises:
        KeyError: If the operation is unknown.
    """
    if operation in WORKFLOW_OPERATIONS:
        workflow, action = WORKFLOW_OPERATIONS[operation]
        transition = next(t for t in workflow.transitions if t.action == action)
        return frozenset(Role(r) for r in transition.roles)
    return OPERATION_ROLES[operation]


class ActorAuthority:
    """Role table lookup for engine operations.

    ``overrides`` replaces the allowed roles of individual operations.
    """

    def __init__(self, overrides: dict[str, frozenset[Role]] | None = None) -> None:
        self._overrides = dict(overrides or {})

    def allowed_roles(self, operation: str) -> frozenset[Role]:
        if operation in self._overrides:
            return self._overrides[operation]
        return roles_for(operation)

    def check(self, actor: Actor, operation: str) -> tuple[bool, str]:
        """Return (allowed, reason).  reason is empty when allowed."""
        allowed = self.allowed_roles(operation)
        if actor.role in allowed:
            return (True, "")
        expected = ", ".join(sorted(r.value for r in allowed))
        return (False, f"requires one of: {expected}")

    def require(self, actor: Actor, operation: str) -> None:
        """Raise UnauthorizedError unless the actor's role is allowed."""
        allowed, reason = self.check(actor, operation)
        if not allowed:
            logger.warning(
                "authorization_denied",
                extra={
                    "operation": operation,
                    "role": actor.role.value,
                    "error_code": UnauthorizedError.code,
                },
            )
            raise UnauthorizedError(str(actor.actor_id), actor.role.value, operation, reason)
