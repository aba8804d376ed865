"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures returned by services and
    selectors: catalog economics, project and culture snapshots, investment
    records, funding snapshots, calendar entries and scheduled milestones.
    Also owns the status enums shared by the ORM models and the workflow
    definitions.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the service and selector layers (never from domain logic).

Invariants enforced:
    - DTOs are frozen; collections are tuples.
    - Money and quantities are Decimal, never float.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from agrifund_kernel.models.culture import Culture as CultureModel
    from agrifund_kernel.models.culture import MilestoneCostReference as CostReferenceModel
    from agrifund_kernel.models.culture import MilestoneTemplate as MilestoneTemplateModel
    from agrifund_kernel.models.investment import Investment as InvestmentModel
    from agrifund_kernel.models.milestone import ScheduledMilestone as ScheduledMilestoneModel
    from agrifund_kernel.models.project import Project as ProjectModel
    from agrifund_kernel.models.project import ProjectCulture as ProjectCultureModel


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ProjectStatus(str, Enum):
    """
    Lifecycle status of a project.

    Contract:
        PENDING -> FUNDING | REJECTED; FUNDING -> IN_PRODUCTION;
        IN_PRODUCTION -> COMPLETED.  REJECTED and COMPLETED are terminal.
    """

    PENDING = "pending"
    FUNDING = "funding"
    REJECTED = "rejected"
    IN_PRODUCTION = "in_production"
    COMPLETED = "completed"


class InvestmentPaymentStatus(str, Enum):
    """Payment status of an investor pledge."""

    PENDING = "pending"
    PAID = "paid"


class MilestonePaymentStatus(str, Enum):
    """Payment-request sub-state of a scheduled milestone."""

    SCHEDULED = "scheduled"
    AWAITING_PAYMENT = "awaiting_payment"
    PAID = "paid"


class MilestoneClassification(str, Enum):
    """Display classification of a milestone.  Derived, never stored."""

    COMPLETED = "completed"
    OVERDUE = "overdue"
    NORMAL = "normal"


class Role(str, Enum):
    """Actor roles known to the engine."""

    FARMER = "farmer"
    TECHNICIAN = "technician"
    SUPERVISOR = "supervisor"
    INVESTOR = "investor"
    FINANCIER = "financier"


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of an operation, as resolved upstream."""

    actor_id: UUID
    role: Role

    def __post_init__(self) -> None:
        # Accept plain strings from callers
        if not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role(self.role))


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CultureEconomics:
    """Reference economics of a culture, per hectare."""

    culture_id: UUID
    code: str
    name: str
    cost_per_ha: Decimal
    yield_per_ha: Decimal
    price_per_ton: Decimal
    technical_sheet_ref: str | None = None

    @classmethod
    def from_model(cls, model: CultureModel) -> CultureEconomics:
        return cls(
            culture_id=model.id,
            code=model.code,
            name=model.name,
            cost_per_ha=model.cost_per_ha,
            yield_per_ha=model.yield_per_ha,
            price_per_ton=model.price_per_ton,
            technical_sheet_ref=model.technical_sheet_ref,
        )


@dataclass(frozen=True)
class CostReferenceInfo:
    """A per-hectare expense attached to a milestone template."""

    id: UUID
    template_id: UUID
    expense_type: str
    amount_per_ha: Decimal
    unit: str | None = None

    @classmethod
    def from_model(cls, model: CostReferenceModel) -> CostReferenceInfo:
        return cls(
            id=model.id,
            template_id=model.template_id,
            expense_type=model.expense_type,
            amount_per_ha=model.amount_per_ha,
            unit=model.unit,
        )


@dataclass(frozen=True)
class MilestoneTemplateInfo:
    """
    Pure domain representation of a milestone template.

    ``budget_per_ha`` is the sum of the template's cost references.
    """

    id: UUID
    culture_id: UUID
    name: str
    action: str
    offset_days: int
    budget_per_ha: Decimal = Decimal("0")

    @classmethod
    def from_model(cls, model: MilestoneTemplateModel) -> MilestoneTemplateInfo:
        budget = sum(
            (ref.amount_per_ha for ref in model.cost_references), Decimal("0")
        )
        return cls(
            id=model.id,
            culture_id=model.culture_id,
            name=model.name,
            action=model.action,
            offset_days=model.offset_days,
            budget_per_ha=budget,
        )


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProjectCultureInfo:
    """A culture attached to a project with its previsional and actual figures."""

    id: UUID
    project_id: UUID
    culture_id: UUID
    previsional_cost: Decimal
    previsional_yield: Decimal
    actual_cost: Decimal | None = None
    actual_yield: Decimal | None = None

    @property
    def has_harvest(self) -> bool:
        return self.actual_yield is not None

    @classmethod
    def from_model(cls, model: ProjectCultureModel) -> ProjectCultureInfo:
        return cls(
            id=model.id,
            project_id=model.project_id,
            culture_id=model.culture_id,
            previsional_cost=model.previsional_cost,
            previsional_yield=model.previsional_yield,
            actual_cost=model.actual_cost,
            actual_yield=model.actual_yield,
        )


@dataclass(frozen=True)
class ProjectInfo:
    """
    Pure domain representation of a project.

    Contract:
        Immutable snapshot of project state at read time.  Lifecycle rules
        are enforced by ProjectLifecycleService, not by this DTO.
    """

    id: UUID
    title: str
    status: ProjectStatus
    surface_ha: Decimal
    farmer_id: UUID
    terrain_ref: str
    cost_target: Decimal | None = None
    technician_id: UUID | None = None
    supervisor_id: UUID | None = None
    location_ref: str | None = None
    description: str | None = None
    signed_contract_ref: str | None = None
    rejection_report: str | None = None
    validated_at: datetime | None = None
    validated_by_id: UUID | None = None
    launch_date: date | None = None
    completion_date: date | None = None
    cultures: tuple[ProjectCultureInfo, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.status in (ProjectStatus.REJECTED, ProjectStatus.COMPLETED)

    @classmethod
    def from_model(cls, model: ProjectModel) -> ProjectInfo:
        return cls(
            id=model.id,
            title=model.title,
            status=ProjectStatus(model.status),
            surface_ha=model.surface_ha,
            farmer_id=model.farmer_id,
            terrain_ref=model.terrain_ref,
            cost_target=model.cost_target,
            technician_id=model.technician_id,
            supervisor_id=model.supervisor_id,
            location_ref=model.location_ref,
            description=model.description,
            signed_contract_ref=model.signed_contract_ref,
            rejection_report=model.rejection_report,
            validated_at=model.validated_at,
            validated_by_id=model.validated_by_id,
            launch_date=model.launch_date,
            completion_date=model.completion_date,
            cultures=tuple(ProjectCultureInfo.from_model(pc) for pc in model.cultures),
        )


# ---------------------------------------------------------------------------
# Funding
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InvestmentInfo:
    """An investor pledge as recorded in the ledger."""

    id: UUID
    project_id: UUID
    investor_id: UUID
    amount: Decimal
    decided_at: datetime
    payment_status: InvestmentPaymentStatus
    transaction_ref: str | None = None
    paid_at: datetime | None = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == InvestmentPaymentStatus.PAID

    @classmethod
    def from_model(cls, model: InvestmentModel) -> InvestmentInfo:
        return cls(
            id=model.id,
            project_id=model.project_id,
            investor_id=model.investor_id,
            amount=model.amount,
            decided_at=model.decided_at,
            payment_status=InvestmentPaymentStatus(model.payment_status),
            transaction_ref=model.transaction_ref,
            paid_at=model.paid_at,
        )


@dataclass(frozen=True)
class FundingSnapshot:
    """
    Funding position of a project at read time.

    Guarantees:
        - 0 <= percentage <= 100.
        - gap >= 0.
    """

    project_id: UUID
    cost_target: Decimal | None
    current_funding: Decimal
    paid_funding: Decimal
    gap: Decimal
    percentage: int

    @property
    def is_fully_funded(self) -> bool:
        return self.cost_target is not None and self.percentage >= 100


@dataclass(frozen=True)
class InvestorPosition:
    """One line of an investor's portfolio: a project and the sums pledged to it."""

    project_id: UUID
    project_title: str
    project_status: ProjectStatus
    pledged: Decimal
    paid: Decimal
    investment_count: int


# ---------------------------------------------------------------------------
# Calendar and milestones
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CalendarEntry:
    """A projected milestone, before or at materialization."""

    project_culture_id: UUID
    culture_id: UUID
    template_id: UUID
    name: str
    action: str
    offset_days: int
    projected_date: date
    budget_amount: Decimal = Decimal("0")
    overridden: bool = False


@dataclass(frozen=True)
class MilestoneInfo:
    """
    Pure domain representation of a scheduled milestone.

    ``classification`` is computed at read time from the dates and the
    clock; it is never persisted.
    """

    id: UUID
    project_id: UUID
    project_culture_id: UUID
    culture_id: UUID
    template_id: UUID
    name: str
    action: str
    offset_days: int
    projected_date: date
    budget_amount: Decimal
    payment_status: MilestonePaymentStatus
    classification: MilestoneClassification
    actual_date: date | None = None
    report: str | None = None
    photo_refs: tuple[str, ...] = ()
    payment_requested_by_id: UUID | None = None
    paid_by_id: UUID | None = None
    payment_ref: str | None = None

    @classmethod
    def from_model(
        cls,
        model: ScheduledMilestoneModel,
        classification: MilestoneClassification,
    ) -> MilestoneInfo:
        return cls(
            id=model.id,
            project_id=model.project_id,
            project_culture_id=model.project_culture_id,
            culture_id=model.culture_id,
            template_id=model.template_id,
            name=model.name,
            action=model.action,
            offset_days=model.offset_days,
            projected_date=model.projected_date,
            budget_amount=model.budget_amount,
            payment_status=MilestonePaymentStatus(model.payment_status),
            classification=classification,
            actual_date=model.actual_date,
            report=model.report,
            photo_refs=tuple(model.photo_refs or ()),
            payment_requested_by_id=model.payment_requested_by_id,
            paid_by_id=model.paid_by_id,
            payment_ref=model.payment_ref,
        )


# ---------------------------------------------------------------------------
# Composite read views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProjectEconomics:
    """
    Expected economics of a project.

    expected_revenue = sum over cultures of previsional yield x price per ton.
    expected_margin = expected_revenue - cost basis, where the cost basis is
    the frozen cost target once validated and the previsional cost before.
    """

    project_id: UUID
    cost_target: Decimal | None
    previsional_cost: Decimal
    expected_yield: Decimal
    expected_revenue: Decimal
    expected_margin: Decimal
    actual_yield: Decimal | None = None
    actual_cost: Decimal | None = None


@dataclass(frozen=True)
class ProjectSummary:
    """Everything a project page needs in one read."""

    project: ProjectInfo
    funding: FundingSnapshot
    milestone_count: int
    milestones_completed: int
    milestones_overdue: int
    milestones_awaiting_payment: int
