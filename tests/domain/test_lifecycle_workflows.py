"""
Tests for the workflow definitions, clock and actor DTO.

Verifies:
- PROJECT_LIFECYCLE edges and terminal states
- MILESTONE_PAYMENT edges
- Workflow construction rejects malformed definitions
- DeterministicClock is controllable
"""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

from agrifund_kernel.domain.clock import DeterministicClock, SystemClock
from agrifund_kernel.domain.dtos import Actor, MilestonePaymentStatus, ProjectStatus, Role
from agrifund_kernel.domain.workflow import (
    ACTION_ACCEPT,
    ACTION_COMPLETE,
    ACTION_LAUNCH,
    ACTION_MARK_PAID,
    ACTION_REJECT,
    ACTION_REQUEST_PAYMENT,
    MILESTONE_PAYMENT,
    PROJECT_LIFECYCLE,
    Transition,
    Workflow,
)


class TestProjectLifecycle:

    @pytest.mark.parametrize(
        "from_state, action, to_state",
        [
            (ProjectStatus.PENDING, ACTION_ACCEPT, ProjectStatus.FUNDING),
            (ProjectStatus.PENDING, ACTION_REJECT, ProjectStatus.REJECTED),
            (ProjectStatus.FUNDING, ACTION_LAUNCH, ProjectStatus.IN_PRODUCTION),
            (ProjectStatus.IN_PRODUCTION, ACTION_COMPLETE, ProjectStatus.COMPLETED),
        ],
    )
    def test_allowed_edges(self, from_state, action, to_state):
        transition = PROJECT_LIFECYCLE.find(from_state.value, action)
        assert transition is not None
        assert transition.to_state == to_state.value

    @pytest.mark.parametrize(
        "from_state, action",
        [
            (ProjectStatus.FUNDING, ACTION_ACCEPT),
            (ProjectStatus.PENDING, ACTION_LAUNCH),
            (ProjectStatus.IN_PRODUCTION, ACTION_LAUNCH),
            (ProjectStatus.FUNDING, ACTION_COMPLETE),
            (ProjectStatus.REJECTED, ACTION_ACCEPT),
        ],
    )
    def test_forbidden_edges(self, from_state, action):
        assert PROJECT_LIFECYCLE.find(from_state.value, action) is None

    def test_terminal_states_have_no_actions(self):
        for state in (ProjectStatus.REJECTED, ProjectStatus.COMPLETED):
            assert PROJECT_LIFECYCLE.is_terminal(state.value)
            assert PROJECT_LIFECYCLE.actions_from(state.value) == ()

    def test_complete_is_technician_only(self):
        transition = PROJECT_LIFECYCLE.find(ProjectStatus.IN_PRODUCTION.value, ACTION_COMPLETE)
        assert transition.roles == (Role.TECHNICIAN.value,)

    def test_sources_of_launch(self):
        assert PROJECT_LIFECYCLE.sources_of(ACTION_LAUNCH) == (ProjectStatus.FUNDING.value,)


class TestMilestonePayment:

    def test_request_then_pay(self):
        requested = MILESTONE_PAYMENT.find(
            MilestonePaymentStatus.SCHEDULED.value, ACTION_REQUEST_PAYMENT
        )
        paid = MILESTONE_PAYMENT.find(requested.to_state, ACTION_MARK_PAID)
        assert requested.to_state == MilestonePaymentStatus.AWAITING_PAYMENT.value
        assert paid.to_state == MilestonePaymentStatus.PAID.value

    def test_cannot_pay_without_request(self):
        assert MILESTONE_PAYMENT.find(MilestonePaymentStatus.SCHEDULED.value, ACTION_MARK_PAID) is None

    def test_cannot_request_twice(self):
        assert (
            MILESTONE_PAYMENT.find(
                MilestonePaymentStatus.AWAITING_PAYMENT.value, ACTION_REQUEST_PAYMENT
            )
            is None
        )


class TestWorkflowValidation:

    def test_unknown_initial_state(self):
        with pytest.raises(ValueError, match="initial state"):
            Workflow("w", "", "nowhere", ("a",), ())

    def test_transition_to_unknown_state(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow("w", "", "a", ("a",), (Transition("a", "b", action="go"),))

    def test_terminal_state_with_outgoing_transition(self):
        with pytest.raises(ValueError, match="terminal"):
            Workflow(
                "w", "", "a", ("a", "b"),
                (Transition("b", "a", action="back"),),
                terminal_states=("b",),
            )


class TestClock:

    def test_deterministic_default(self):
        clock = DeterministicClock()
        assert clock.now() == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert clock.today() == date(2024, 1, 1)

    def test_advance_days(self):
        clock = DeterministicClock()
        clock.advance_days(31)
        assert clock.today() == date(2024, 2, 1)

    def test_set_date(self):
        clock = DeterministicClock()
        clock.set_date(date(2025, 6, 30))
        assert clock.today() == date(2025, 6, 30)

    def test_system_clock_is_aware(self):
        assert SystemClock().now().tzinfo is not None


class TestActor:

    def test_role_string_is_coerced(self):
        actor = Actor(uuid4(), "financier")
        assert actor.role is Role.FINANCIER

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            Actor(uuid4(), "admin")
