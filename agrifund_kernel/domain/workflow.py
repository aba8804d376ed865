"""
Canonical workflow types (``agrifund_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for state machines, plus the two workflows the engine
runs: the project lifecycle and the milestone payment request.  Services
look transitions up here instead of hard-coding allowed edges.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass

from agrifund_kernel.domain.dtos import MilestonePaymentStatus, ProjectStatus, Role


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the owning service does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``roles`` lists the actor roles allowed to fire it (empty means any).
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    roles: tuple[str, ...] = ()


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for an entity lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state!r} has outgoing transition"
                )

    def find(self, from_state: str, action: str) -> Transition | None:
        """Return the transition for ``action`` out of ``from_state``, if any."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def actions_from(self, state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == state)

    def sources_of(self, action: str) -> tuple[str, ...]:
        """States out of which ``action`` is defined."""
        return tuple(t.from_state for t in self.transitions if t.action == action)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------

HAS_CULTURES = Guard(
    "has_cultures",
    "Project has at least one culture attached",
)
HAS_SIGNED_CONTRACT = Guard(
    "has_signed_contract",
    "A non-empty signed contract reference is supplied",
)
FULLY_FUNDED = Guard(
    "fully_funded",
    "Funding percentage has reached 100",
)
ALL_MILESTONES_REPORTED = Guard(
    "all_milestones_reported",
    "Every scheduled milestone has an actual completion date",
)
REPORT_RECORDED = Guard(
    "report_recorded",
    "Milestone has an actual completion date",
)

_FIELD_STAFF = (Role.TECHNICIAN.value, Role.SUPERVISOR.value)

# ---------------------------------------------------------------------------
# Project lifecycle
# ---------------------------------------------------------------------------

ACTION_ACCEPT = "accept"
ACTION_REJECT = "reject"
ACTION_LAUNCH = "launch_production"
ACTION_COMPLETE = "complete"

PROJECT_LIFECYCLE = Workflow(
    name="project_lifecycle",
    description="Proposal, validation, funding, production and completion of a project",
    initial_state=ProjectStatus.PENDING.value,
    states=tuple(s.value for s in ProjectStatus),
    transitions=(
        Transition(
            ProjectStatus.PENDING.value,
            ProjectStatus.FUNDING.value,
            action=ACTION_ACCEPT,
            guard=HAS_CULTURES,
            roles=_FIELD_STAFF,
        ),
        Transition(
            ProjectStatus.PENDING.value,
            ProjectStatus.REJECTED.value,
            action=ACTION_REJECT,
            roles=_FIELD_STAFF,
        ),
        Transition(
            ProjectStatus.FUNDING.value,
            ProjectStatus.IN_PRODUCTION.value,
            action=ACTION_LAUNCH,
            guard=FULLY_FUNDED,
            roles=_FIELD_STAFF,
        ),
        Transition(
            ProjectStatus.IN_PRODUCTION.value,
            ProjectStatus.COMPLETED.value,
            action=ACTION_COMPLETE,
            guard=ALL_MILESTONES_REPORTED,
            roles=(Role.TECHNICIAN.value,),
        ),
    ),
    terminal_states=(ProjectStatus.REJECTED.value, ProjectStatus.COMPLETED.value),
)

# ---------------------------------------------------------------------------
# Milestone payment request
# ---------------------------------------------------------------------------

ACTION_REQUEST_PAYMENT = "request_payment"
ACTION_MARK_PAID = "mark_paid"

MILESTONE_PAYMENT = Workflow(
    name="milestone_payment",
    description="Technician payment request for a reported milestone",
    initial_state=MilestonePaymentStatus.SCHEDULED.value,
    states=tuple(s.value for s in MilestonePaymentStatus),
    transitions=(
        Transition(
            MilestonePaymentStatus.SCHEDULED.value,
            MilestonePaymentStatus.AWAITING_PAYMENT.value,
            action=ACTION_REQUEST_PAYMENT,
            guard=REPORT_RECORDED,
            roles=(Role.TECHNICIAN.value,),
        ),
        Transition(
            MilestonePaymentStatus.AWAITING_PAYMENT.value,
            MilestonePaymentStatus.PAID.value,
            action=ACTION_MARK_PAID,
            roles=(Role.FINANCIER.value,),
        ),
    ),
    terminal_states=(MilestonePaymentStatus.PAID.value,),
)
