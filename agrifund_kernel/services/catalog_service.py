"""
CatalogService -- administration of the culture catalog.

Responsibility:
    Registers cultures with their reference economics, attaches milestone
    templates and per-hectare cost references, and edits culture economics.

Architecture position:
    Kernel > Services -- imperative shell, owns catalog writes.
    Reads (template listings, economics lookups) live in CatalogSelector.

Invariants enforced:
    - Culture codes are unique; template offsets are >= 0; a template name
      is unique within its culture.
    - Economics are non-negative Decimals.
    - Editing culture economics never touches existing projects: their
      previsional figures and frozen cost targets are snapshots.

Failure modes:
    - CultureNotFoundError / MilestoneTemplateNotFoundError for unknown ids.
    - ValueError for negative values, a negative offset or a duplicate
      code, template name or expense type.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from agrifund_kernel.db.types import to_decimal
from agrifund_kernel.domain.dtos import (
    CostReferenceInfo,
    CultureEconomics,
    MilestoneTemplateInfo,
)
from agrifund_kernel.exceptions import CultureNotFoundError, MilestoneTemplateNotFoundError
from agrifund_kernel.logging_config import get_logger
from agrifund_kernel.models.culture import Culture, MilestoneCostReference, MilestoneTemplate
from agrifund_kernel.services.base import BaseService

logger = get_logger("services.catalog")


def _non_negative(name: str, value: Decimal | int | str) -> Decimal:
    amount = to_decimal(value)
    if amount < 0:
        raise ValueError(f"{name} must be >= 0, got {amount}")
    return amount


class CatalogService(BaseService[Culture]):
    """
    Service for catalog administration.

    Contract:
        Every write method flushes and returns a frozen DTO.
    """

    def register_culture(
        self,
        code: str,
        name: str,
        cost_per_ha: Decimal | int | str,
        yield_per_ha: Decimal | int | str,
        price_per_ton: Decimal | int | str,
        actor_id: UUID,
        technical_sheet_ref: str | None = None,
    ) -> CultureEconomics:
        """
        Add a culture to the catalog.

        Raises:
            ValueError: Blank code, negative economics, or code already taken.
        """
        code = code.strip()
        if not code:
            raise ValueError("Culture code must not be blank")
        if self._get_culture_by_code(code) is not None:
            raise ValueError(f"Culture code already registered: {code}")

        culture = Culture(
            code=code,
            name=name,
            cost_per_ha=_non_negative("cost_per_ha", cost_per_ha),
            yield_per_ha=_non_negative("yield_per_ha", yield_per_ha),
            price_per_ton=_non_negative("price_per_ton", price_per_ton),
            technical_sheet_ref=technical_sheet_ref,
            created_by_id=actor_id,
        )
        self.session.add(culture)
        self.session.flush()

        logger.info(
            "culture_registered",
            extra={"culture_id": str(culture.id), "culture_code": code},
        )
        return CultureEconomics.from_model(culture)

    def update_culture_economics(
        self,
        culture_id: UUID,
        actor_id: UUID,
        cost_per_ha: Decimal | int | str | None = None,
        yield_per_ha: Decimal | int | str | None = None,
        price_per_ton: Decimal | int | str | None = None,
        technical_sheet_ref: str | None = None,
    ) -> CultureEconomics:
        """
        Edit reference economics.  Only the supplied fields change.

        Existing projects keep their snapshots.
        """
        culture = self._get_culture(culture_id)
        if cost_per_ha is not None:
            culture.cost_per_ha = _non_negative("cost_per_ha", cost_per_ha)
        if yield_per_ha is not None:
            culture.yield_per_ha = _non_negative("yield_per_ha", yield_per_ha)
        if price_per_ton is not None:
            culture.price_per_ton = _non_negative("price_per_ton", price_per_ton)
        if technical_sheet_ref is not None:
            culture.technical_sheet_ref = technical_sheet_ref
        culture.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "culture_economics_updated",
            extra={"culture_id": str(culture_id)},
        )
        return CultureEconomics.from_model(culture)

    def add_milestone_template(
        self,
        culture_id: UUID,
        name: str,
        action: str,
        offset_days: int,
        actor_id: UUID,
    ) -> MilestoneTemplateInfo:
        """
        Attach a milestone template to a culture.

        Raises:
            CultureNotFoundError: Unknown culture.
            ValueError: Negative offset or duplicate name within the culture.
        """
        culture = self._get_culture(culture_id)
        if offset_days < 0:
            raise ValueError(f"Milestone offset must be >= 0, got {offset_days}")
        if any(t.name == name for t in culture.templates):
            raise ValueError(f"Template {name!r} already exists for culture {culture.code}")

        template = MilestoneTemplate(
            culture=culture,
            name=name,
            action=action,
            offset_days=offset_days,
            created_by_id=actor_id,
        )
        self.session.add(template)
        self.session.flush()

        logger.info(
            "milestone_template_added",
            extra={
                "culture_id": str(culture_id),
                "template_id": str(template.id),
                "offset_days": offset_days,
            },
        )
        return MilestoneTemplateInfo.from_model(template)

    def add_cost_reference(
        self,
        template_id: UUID,
        expense_type: str,
        amount_per_ha: Decimal | int | str,
        actor_id: UUID,
        unit: str | None = None,
    ) -> CostReferenceInfo:
        """
        Attach a per-hectare reference expense to a template.

        Raises:
            MilestoneTemplateNotFoundError: Unknown template.
            ValueError: Negative amount or expense type already present.
        """
        template = self.session.get(MilestoneTemplate, template_id)
        if template is None:
            raise MilestoneTemplateNotFoundError(str(template_id))
        if any(ref.expense_type == expense_type for ref in template.cost_references):
            raise ValueError(
                f"Expense type {expense_type!r} already referenced for template {template_id}"
            )

        reference = MilestoneCostReference(
            template=template,
            expense_type=expense_type,
            amount_per_ha=_non_negative("amount_per_ha", amount_per_ha),
            unit=unit,
            created_by_id=actor_id,
        )
        self.session.add(reference)
        self.session.flush()

        logger.info(
            "cost_reference_added",
            extra={"template_id": str(template_id), "expense_type": expense_type},
        )
        return CostReferenceInfo.from_model(reference)

    def _get_culture(self, culture_id: UUID) -> Culture:
        culture = self.session.get(Culture, culture_id)
        if culture is None:
            raise CultureNotFoundError(str(culture_id))
        return culture

    def _get_culture_by_code(self, code: str) -> Culture | None:
        return self.session.execute(
            select(Culture).where(Culture.code == code)
        ).scalar_one_or_none()
