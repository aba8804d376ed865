"""
Scheduling -- Pure milestone calendar arithmetic.

Responsibility:
    Derives the projected calendar of a project from its launch date, the
    milestone templates of each attached culture and any per-milestone date
    overrides chosen before launch.  Classifies scheduled milestones for
    display.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The caller supplies
    "today"; nothing here reads the clock.

Invariants enforced:
    - projected_date = launch_date + offset_days unless overridden.
    - An override never precedes the launch date.
    - Classification is COMPLETED when an actual date exists, OVERDUE when
      there is none and today is strictly after the projected date, NORMAL
      otherwise.  It is computed, never stored.

Failure modes:
    - DateOutOfRangeError for an override dated before the launch date.
    - UnknownCalendarOverrideError for an override keyed to a (culture,
      template) pair that is not part of the calendar.
"""

from collections.abc import Mapping, Sequence
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from agrifund_kernel.db.types import round_money
from agrifund_kernel.domain.dtos import (
    CalendarEntry,
    MilestoneClassification,
    MilestoneTemplateInfo,
    ProjectCultureInfo,
)
from agrifund_kernel.exceptions import DateOutOfRangeError, UnknownCalendarOverrideError

CalendarOverrides = Mapping[tuple[UUID, UUID], date]


def projected_date(launch_date: date, offset_days: int) -> date:
    """Launch date plus a non-negative day offset."""
    if offset_days < 0:
        raise ValueError(f"Milestone offset must be >= 0, got {offset_days}")
    return launch_date + timedelta(days=offset_days)


def milestone_budget(template: MilestoneTemplateInfo, surface_ha: Decimal) -> Decimal:
    return round_money(template.budget_per_ha * surface_ha)


def build_calendar(
    launch_date: date,
    surface_ha: Decimal,
    cultures: Sequence[tuple[ProjectCultureInfo, Sequence[MilestoneTemplateInfo]]],
    overrides: CalendarOverrides | None = None,
) -> tuple[CalendarEntry, ...]:
    """
    Compute one CalendarEntry per (project culture, template).

    Args:
        launch_date: Production start date.
        surface_ha: Project surface, used for milestone budgets.
        cultures: Each project culture with its catalog templates.
        overrides: Projected dates chosen before launch, keyed by
            (culture_id, template_id).

    Returns:
        Entries ordered by projected date, then offset, then name.
    """
    overrides = dict(overrides or {})
    known: set[tuple[UUID, UUID]] = set()
    entries: list[CalendarEntry] = []

    for project_culture, templates in cultures:
        for template in templates:
            key = (project_culture.culture_id, template.id)
            known.add(key)
            default_date = projected_date(launch_date, template.offset_days)
            chosen = overrides.get(key)
            if chosen is not None and chosen < launch_date:
                raise DateOutOfRangeError(
                    str(template.id), str(chosen), str(launch_date), date_kind="Override"
                )
            entries.append(
                CalendarEntry(
                    project_culture_id=project_culture.id,
                    culture_id=project_culture.culture_id,
                    template_id=template.id,
                    name=template.name,
                    action=template.action,
                    offset_days=template.offset_days,
                    projected_date=chosen if chosen is not None else default_date,
                    budget_amount=milestone_budget(template, surface_ha),
                    overridden=chosen is not None and chosen != default_date,
                )
            )

    unknown = set(overrides) - known
    if unknown:
        raise UnknownCalendarOverrideError(sorted((str(c), str(t)) for c, t in unknown))

    entries.sort(key=lambda e: (e.projected_date, e.offset_days, e.name))
    return tuple(entries)


def classify_milestone(
    projected: date,
    actual: date | None,
    today: date,
) -> MilestoneClassification:
    """Display classification of a milestone."""
    if actual is not None:
        return MilestoneClassification.COMPLETED
    if today > projected:
        return MilestoneClassification.OVERDUE
    return MilestoneClassification.NORMAL
