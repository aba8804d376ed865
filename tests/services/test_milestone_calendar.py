"""
Tests for MilestoneSchedulerService and MilestoneSelector.

Verifies:
- preview_calendar writes nothing and honours overrides
- Overrides chosen before launch become the projected dates
- record_report round-trips, once only, never before launch
- Classification is derived from the clock at read time
"""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from agrifund_kernel.domain.dtos import MilestoneClassification, MilestonePaymentStatus
from agrifund_kernel.exceptions import (
    AlreadyReportedError,
    DateOutOfRangeError,
    IllegalTransitionError,
    MilestoneNotFoundError,
    ProjectNotFoundError,
    UnknownCalendarOverrideError,
)
from agrifund_kernel.models.milestone import ScheduledMilestone
from agrifund_kernel.selectors.catalog_selector import CatalogSelector
from agrifund_kernel.selectors.milestone_selector import MilestoneSelector


@pytest.fixture
def milestone_selector(session, deterministic_clock):
    return MilestoneSelector(session, deterministic_clock)


def _milestone_count(session, project_id) -> int:
    return session.execute(
        select(func.count())
        .select_from(ScheduledMilestone)
        .where(ScheduledMilestone.project_id == project_id)
    ).scalar_one()


class TestPreviewCalendar:

    def test_preview_has_no_side_effects(self, scheduler_service, session, funding_project):
        entries = scheduler_service.preview_calendar(funding_project.id, date(2024, 1, 1))
        assert [e.projected_date for e in entries] == [
            date(2024, 1, 1),
            date(2024, 1, 31),
            date(2024, 3, 31),
        ]
        assert _milestone_count(session, funding_project.id) == 0

    def test_preview_with_override(
        self, scheduler_service, session, funding_project, test_culture
    ):
        templates = CatalogSelector(session).list_milestone_templates(test_culture.culture_id)
        weeding = [t for t in templates if t.offset_days == 30][0]
        entries = scheduler_service.preview_calendar(
            funding_project.id,
            date(2024, 1, 1),
            overrides={(test_culture.culture_id, weeding.id): date(2024, 2, 5)},
        )
        moved = [e for e in entries if e.template_id == weeding.id][0]
        assert moved.projected_date == date(2024, 2, 5)
        assert moved.overridden

    def test_preview_unknown_project(self, scheduler_service, session):
        with pytest.raises(ProjectNotFoundError):
            scheduler_service.preview_calendar(uuid4(), date(2024, 1, 1))

    def test_preview_override_before_launch(
        self, scheduler_service, session, funding_project, test_culture
    ):
        templates = CatalogSelector(session).list_milestone_templates(test_culture.culture_id)
        with pytest.raises(DateOutOfRangeError, match="Override 2023-12-01"):
            scheduler_service.preview_calendar(
                funding_project.id,
                date(2024, 1, 1),
                overrides={(test_culture.culture_id, templates[0].id): date(2023, 12, 1)},
            )

    def test_preview_override_for_foreign_template(
        self, scheduler_service, funding_project, test_culture
    ):
        with pytest.raises(UnknownCalendarOverrideError) as exc_info:
            scheduler_service.preview_calendar(
                funding_project.id,
                date(2024, 1, 1),
                overrides={(test_culture.culture_id, uuid4()): date(2024, 2, 1)},
            )
        assert exc_info.value.code == "UNKNOWN_CALENDAR_OVERRIDE"

    def test_override_applied_at_launch(
        self, lifecycle_service, ledger_service, milestone_selector, session,
        funding_project, test_culture, investor, technician,
    ):
        templates = CatalogSelector(session).list_milestone_templates(test_culture.culture_id)
        harvest = [t for t in templates if t.offset_days == 90][0]
        ledger_service.record_investment(funding_project.id, investor.actor_id, 200000)
        lifecycle_service.launch_production(
            funding_project.id,
            date(2024, 1, 1),
            technician,
            overrides={(test_culture.culture_id, harvest.id): date(2024, 4, 20)},
        )
        milestones = milestone_selector.milestone_list(funding_project.id)
        assert milestones[-1].template_id == harvest.id
        assert milestones[-1].projected_date == date(2024, 4, 20)


class TestMaterialize:

    def test_one_milestone_per_template(self, session, in_production_project, milestone_selector):
        milestones = milestone_selector.milestone_list(in_production_project.id)
        assert len(milestones) == 3
        assert {m.payment_status for m in milestones} == {MilestonePaymentStatus.SCHEDULED}
        assert [m.name for m in milestones] == ["Sowing", "Weeding", "Harvest"]

    def test_second_materialization_refused(
        self, scheduler_service, session, in_production_project, technician
    ):
        with pytest.raises(IllegalTransitionError, match="already materialized"):
            scheduler_service.materialize_calendar(
                in_production_project.id, date(2024, 1, 1), technician.actor_id
            )
        assert _milestone_count(session, in_production_project.id) == 3

    def test_no_milestones_before_launch(self, milestone_selector, funding_project):
        assert milestone_selector.milestone_list(funding_project.id) == []


class TestRecordReport:

    def test_report_round_trip(
        self, scheduler_service, milestone_selector, in_production_project, technician
    ):
        first = milestone_selector.milestone_list(in_production_project.id)[0]
        scheduler_service.record_report(
            first.id, date(2024, 1, 3), "Sowed 2 ha", technician.actor_id,
            photo_refs=["photos/1.jpg", "photos/2.jpg"],
        )
        reread = milestone_selector.get_milestone(first.id)
        assert reread.actual_date == date(2024, 1, 3)
        assert reread.report == "Sowed 2 ha"
        assert reread.photo_refs == ("photos/1.jpg", "photos/2.jpg")
        assert reread.classification == MilestoneClassification.COMPLETED

    def test_second_report_rejected(
        self, scheduler_service, milestone_selector, in_production_project, technician
    ):
        first = milestone_selector.milestone_list(in_production_project.id)[0]
        scheduler_service.record_report(first.id, date(2024, 1, 3), "ok", technician.actor_id)
        with pytest.raises(AlreadyReportedError):
            scheduler_service.record_report(first.id, date(2024, 1, 4), "again", technician.actor_id)
        assert milestone_selector.get_milestone(first.id).actual_date == date(2024, 1, 3)

    def test_report_before_launch_rejected(
        self, scheduler_service, milestone_selector, in_production_project, technician
    ):
        first = milestone_selector.milestone_list(in_production_project.id)[0]
        with pytest.raises(DateOutOfRangeError):
            scheduler_service.record_report(first.id, date(2023, 12, 31), "early", technician.actor_id)

    def test_unknown_milestone(self, scheduler_service, session, technician):
        with pytest.raises(MilestoneNotFoundError):
            scheduler_service.record_report(uuid4(), date(2024, 1, 1), "?", technician.actor_id)


class TestClassificationAndQueues:

    def test_overdue_follows_clock(
        self, milestone_selector, in_production_project, deterministic_clock
    ):
        deterministic_clock.set_date(date(2024, 2, 1))
        classes = [
            m.classification for m in milestone_selector.milestone_list(in_production_project.id)
        ]
        assert classes == [
            MilestoneClassification.OVERDUE,
            MilestoneClassification.OVERDUE,
            MilestoneClassification.NORMAL,
        ]

    def test_technician_milestones(
        self, scheduler_service, milestone_selector, in_production_project, technician
    ):
        first = milestone_selector.milestone_list(in_production_project.id)[0]
        scheduler_service.record_report(first.id, date(2024, 1, 2), "ok", technician.actor_id)

        open_items = milestone_selector.technician_milestones(technician.actor_id)
        assert len(open_items) == 2
        everything = milestone_selector.technician_milestones(
            technician.actor_id, include_completed=True
        )
        assert len(everything) == 3
        assert milestone_selector.technician_milestones(uuid4()) == []
