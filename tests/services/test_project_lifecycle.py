"""
Tests for ProjectLifecycleService.

Verifies:
- Creation snapshots previsional cost and yield per culture
- Pending-phase editing rules and ownership
- validate(accept) freezes the cost target; later catalog edits never move it
- validate(reject) stores the report
- launch_production needs full funding and materializes the calendar once
- complete_project needs every milestone reported
- Failed guards leave the project untouched
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from agrifund_kernel.domain.dtos import Actor, ProjectStatus, Role
from agrifund_kernel.exceptions import (
    CultureNotFoundError,
    DuplicateCultureError,
    IllegalTransitionError,
    InvalidSurfaceError,
    ProjectCultureNotFoundError,
    ProjectNotFoundError,
    UnauthorizedError,
)
from agrifund_kernel.selectors.funding_selector import FundingSelector
from agrifund_kernel.selectors.milestone_selector import MilestoneSelector
from agrifund_kernel.selectors.project_selector import ProjectSelector
from agrifund_kernel.services.catalog_service import CatalogService


@pytest.fixture
def project_selector(session, deterministic_clock):
    return ProjectSelector(session, deterministic_clock)


@pytest.fixture
def funding_selector(session, deterministic_clock):
    return FundingSelector(session, deterministic_clock)


class TestCreateProject:

    def test_previsional_values_scale_with_surface(self, pending_project):
        assert pending_project.status == ProjectStatus.PENDING
        assert pending_project.cost_target is None
        (culture,) = pending_project.cultures
        assert culture.previsional_cost == Decimal("200000")
        assert culture.previsional_yield == Decimal("4")

    @pytest.mark.parametrize("surface", [Decimal("0"), Decimal("-1.5")])
    def test_surface_must_be_positive(self, lifecycle_service, seeded_catalog, farmer, surface):
        with pytest.raises(InvalidSurfaceError):
            lifecycle_service.create_project(farmer.actor_id, "T", surface)

    def test_unknown_culture(self, lifecycle_service, seeded_catalog, farmer):
        with pytest.raises(CultureNotFoundError):
            lifecycle_service.create_project(farmer.actor_id, "T", Decimal("1"), [uuid4()])

    def test_same_culture_twice(self, lifecycle_service, test_culture, farmer):
        with pytest.raises(DuplicateCultureError):
            lifecycle_service.create_project(
                farmer.actor_id, "T", Decimal("1"),
                [test_culture.culture_id, test_culture.culture_id],
            )


class TestPendingEditing:

    def test_add_and_remove_culture(self, lifecycle_service, pending_project, seeded_catalog, farmer):
        maize = seeded_catalog["MAIZE"]
        project = lifecycle_service.add_culture(pending_project.id, maize.culture_id, farmer)
        assert len(project.cultures) == 2

        project = lifecycle_service.remove_culture(pending_project.id, maize.culture_id, farmer)
        assert [c.culture_id for c in project.cultures] == [pending_project.cultures[0].culture_id]

    def test_remove_missing_culture(self, lifecycle_service, pending_project, seeded_catalog, farmer):
        with pytest.raises(ProjectCultureNotFoundError):
            lifecycle_service.remove_culture(
                pending_project.id, seeded_catalog["MAIZE"].culture_id, farmer
            )

    def test_other_farmer_cannot_edit(self, lifecycle_service, pending_project, seeded_catalog):
        intruder = Actor(uuid4(), Role.FARMER)
        with pytest.raises(UnauthorizedError):
            lifecycle_service.add_culture(
                pending_project.id, seeded_catalog["MAIZE"].culture_id, intruder
            )

    def test_technician_may_edit(self, lifecycle_service, pending_project, seeded_catalog, technician):
        project = lifecycle_service.add_culture(
            pending_project.id, seeded_catalog["MAIZE"].culture_id, technician
        )
        assert len(project.cultures) == 2

    def test_update_surface_recomputes_previsional(
        self, lifecycle_service, pending_project, farmer
    ):
        project = lifecycle_service.update_surface(pending_project.id, Decimal("3"), farmer)
        assert project.surface_ha == Decimal("3")
        assert project.cultures[0].previsional_cost == Decimal("300000")
        assert project.cultures[0].previsional_yield == Decimal("6")

    def test_no_editing_after_validation(self, lifecycle_service, funding_project, farmer):
        with pytest.raises(IllegalTransitionError):
            lifecycle_service.update_surface(funding_project.id, Decimal("5"), farmer)

    def test_withdraw_pending(self, lifecycle_service, project_selector, pending_project, farmer):
        lifecycle_service.withdraw_project(pending_project.id, farmer)
        with pytest.raises(ProjectNotFoundError):
            project_selector.get_project(pending_project.id)

    def test_withdraw_after_validation(self, lifecycle_service, funding_project, farmer):
        with pytest.raises(IllegalTransitionError):
            lifecycle_service.withdraw_project(funding_project.id, farmer)

    def test_assign_field_staff(self, lifecycle_service, pending_project, supervisor):
        tech_id = uuid4()
        project = lifecycle_service.assign_field_staff(
            pending_project.id, supervisor, technician_id=tech_id, supervisor_id=supervisor.actor_id
        )
        assert project.technician_id == tech_id
        assert project.supervisor_id == supervisor.actor_id


class TestValidate:

    def test_accept_freezes_cost_target(self, funding_project):
        assert funding_project.status == ProjectStatus.FUNDING
        assert funding_project.cost_target == Decimal("200000")
        assert funding_project.signed_contract_ref == "CTR-1"
        assert funding_project.validated_at is not None

    def test_cost_target_survives_catalog_edit(
        self, session, funding_project, project_selector, test_culture, test_actor_id
    ):
        CatalogService(session).update_culture_economics(
            test_culture.culture_id, test_actor_id, cost_per_ha=Decimal("999999")
        )
        assert project_selector.get_project(funding_project.id).cost_target == Decimal("200000")

    def test_reject_stores_report(self, lifecycle_service, pending_project, supervisor):
        project = lifecycle_service.validate(
            pending_project.id, supervisor, accept=False, report="Terrain flooded"
        )
        assert project.status == ProjectStatus.REJECTED
        assert project.rejection_report == "Terrain flooded"
        assert project.cost_target is None

    def test_accept_without_contract(self, lifecycle_service, project_selector, pending_project, technician):
        with pytest.raises(IllegalTransitionError, match="signed contract"):
            lifecycle_service.validate(
                pending_project.id, technician, accept=True, signed_contract_ref="  "
            )
        assert project_selector.project_status(pending_project.id) == ProjectStatus.PENDING

    def test_accept_without_cultures(self, lifecycle_service, seeded_catalog, farmer, technician):
        project = lifecycle_service.create_project(farmer.actor_id, "T", Decimal("1"))
        with pytest.raises(IllegalTransitionError, match="no culture"):
            lifecycle_service.validate(project.id, technician, accept=True, signed_contract_ref="C")

    def test_second_decision_rejected(self, lifecycle_service, funding_project, technician):
        with pytest.raises(IllegalTransitionError) as exc_info:
            lifecycle_service.validate(
                funding_project.id, technician, accept=False, report="changed my mind"
            )
        assert exc_info.value.current_state == "funding"
        assert exc_info.value.action == "reject"


class TestLaunchProduction:

    def test_launch_when_fully_funded(self, in_production_project, session, deterministic_clock):
        assert in_production_project.status == ProjectStatus.IN_PRODUCTION
        assert in_production_project.launch_date == date(2024, 1, 1)
        milestones = MilestoneSelector(session, deterministic_clock).milestone_list(
            in_production_project.id
        )
        assert [m.projected_date for m in milestones] == [
            date(2024, 1, 1),
            date(2024, 1, 31),
            date(2024, 3, 31),
        ]
        assert all(m.budget_amount == Decimal("20000") for m in milestones)

    def test_launch_when_percentage_rounds_to_hundred(
        self, lifecycle_service, ledger_service, funding_selector, funding_project, investor, technician
    ):
        ledger_service.record_investment(funding_project.id, investor.actor_id, Decimal("199000"))
        assert funding_selector.funding_percentage(funding_project.id) == 100
        assert funding_selector.funding_gap(funding_project.id) == Decimal("1000")

        launched = lifecycle_service.launch_production(funding_project.id, date(2024, 1, 1), technician)
        assert launched.status == ProjectStatus.IN_PRODUCTION

    def test_launch_underfunded(
        self, lifecycle_service, ledger_service, project_selector, funding_project, investor, technician
    ):
        ledger_service.record_investment(funding_project.id, investor.actor_id, Decimal("198000"))
        with pytest.raises(IllegalTransitionError, match="not fully funded"):
            lifecycle_service.launch_production(funding_project.id, date(2024, 1, 1), technician)
        assert project_selector.project_status(funding_project.id) == ProjectStatus.FUNDING

    def test_launch_twice(self, lifecycle_service, in_production_project, technician, session):
        with pytest.raises(IllegalTransitionError):
            lifecycle_service.launch_production(
                in_production_project.id, date(2024, 2, 1), technician
            )

    def test_launch_pending(self, lifecycle_service, pending_project, technician):
        with pytest.raises(IllegalTransitionError, match="only allowed from: funding"):
            lifecycle_service.launch_production(pending_project.id, date(2024, 1, 1), technician)


class TestCompleteProject:

    def test_incomplete_milestones_block_completion(
        self, lifecycle_service, in_production_project, technician
    ):
        with pytest.raises(IllegalTransitionError, match="3 milestone"):
            lifecycle_service.complete_project(in_production_project.id, technician)

    def test_complete_after_all_reports(
        self, lifecycle_service, scheduler_service, session, deterministic_clock,
        in_production_project, technician,
    ):
        for m in MilestoneSelector(session, deterministic_clock).milestone_list(
            in_production_project.id
        ):
            scheduler_service.record_report(m.id, m.projected_date, "done", technician.actor_id)

        deterministic_clock.set_date(date(2024, 4, 15))
        project = lifecycle_service.complete_project(in_production_project.id, technician)
        assert project.status == ProjectStatus.COMPLETED
        assert project.completion_date == date(2024, 4, 15)


class TestHarvest:

    def test_record_harvest(self, lifecycle_service, in_production_project, technician):
        culture = in_production_project.cultures[0]
        result = lifecycle_service.record_harvest(
            culture.id, technician, Decimal("3.8"), actual_cost=Decimal("190000")
        )
        assert result.actual_yield == Decimal("3.8")
        assert result.actual_cost == Decimal("190000")
        assert result.has_harvest

    def test_harvest_before_production(self, lifecycle_service, funding_project, technician):
        with pytest.raises(IllegalTransitionError):
            lifecycle_service.record_harvest(funding_project.cultures[0].id, technician, 1)

    def test_negative_yield(self, lifecycle_service, in_production_project, technician):
        with pytest.raises(ValueError):
            lifecycle_service.record_harvest(
                in_production_project.cultures[0].id, technician, Decimal("-1")
            )


class TestProjectReads:

    def test_economics_before_validation(self, project_selector, pending_project):
        economics = project_selector.project_economics(pending_project.id)
        assert economics.previsional_cost == Decimal("200000")
        assert economics.expected_yield == Decimal("4")
        assert economics.expected_revenue == Decimal("600000")
        assert economics.expected_margin == Decimal("400000")

    def test_summary_counts_milestones(
        self, project_selector, in_production_project, deterministic_clock
    ):
        deterministic_clock.set_date(date(2024, 2, 15))
        summary = project_selector.project_summary(in_production_project.id)
        assert summary.milestone_count == 3
        assert summary.milestones_overdue == 2
        assert summary.milestones_completed == 0
        assert summary.funding.is_fully_funded

    def test_list_projects_by_status(self, project_selector, funding_project, lifecycle_service, farmer):
        lifecycle_service.create_project(farmer.actor_id, "T2", Decimal("1"))
        funding = project_selector.list_projects(status=ProjectStatus.FUNDING)
        assert [p.id for p in funding] == [funding_project.id]
        assert len(project_selector.list_projects(farmer_id=farmer.actor_id)) == 2
