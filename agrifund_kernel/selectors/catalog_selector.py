"""
Module: agrifund_kernel.selectors.catalog_selector
Responsibility: Read access to the culture catalog.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Templates are listed by ascending day offset, ties broken by name.
"""

from uuid import UUID

from sqlalchemy import select

from agrifund_kernel.domain.dtos import CostReferenceInfo, CultureEconomics, MilestoneTemplateInfo
from agrifund_kernel.exceptions import CultureNotFoundError, MilestoneTemplateNotFoundError
from agrifund_kernel.models.culture import Culture, MilestoneCostReference, MilestoneTemplate
from agrifund_kernel.selectors.base import BaseSelector


class CatalogSelector(BaseSelector[Culture]):
    """Queries over cultures, milestone templates and cost references."""

    def get_culture_economics(self, culture_id: UUID) -> CultureEconomics:
        """
        Reference economics of a culture.

        Raises:
            CultureNotFoundError: Unknown culture.
        """
        culture = self.session.get(Culture, culture_id)
        if culture is None:
            raise CultureNotFoundError(str(culture_id))
        return CultureEconomics.from_model(culture)

    def get_culture_by_code(self, code: str) -> CultureEconomics | None:
        culture = self.session.execute(
            select(Culture).where(Culture.code == code)
        ).scalar_one_or_none()
        return CultureEconomics.from_model(culture) if culture is not None else None

    def list_cultures(self) -> list[CultureEconomics]:
        cultures = self.session.execute(select(Culture).order_by(Culture.name)).scalars().all()
        return [CultureEconomics.from_model(c) for c in cultures]

    def list_milestone_templates(self, culture_id: UUID) -> list[MilestoneTemplateInfo]:
        """
        Templates of a culture, ascending by day offset then name.

        Raises:
            CultureNotFoundError: Unknown culture.
        """
        if self.session.get(Culture, culture_id) is None:
            raise CultureNotFoundError(str(culture_id))
        templates = self.session.execute(
            select(MilestoneTemplate)
            .where(MilestoneTemplate.culture_id == culture_id)
            .order_by(MilestoneTemplate.offset_days, MilestoneTemplate.name)
        ).scalars().all()
        return [MilestoneTemplateInfo.from_model(t) for t in templates]

    def list_cost_references(self, template_id: UUID) -> list[CostReferenceInfo]:
        if self.session.get(MilestoneTemplate, template_id) is None:
            raise MilestoneTemplateNotFoundError(str(template_id))
        references = self.session.execute(
            select(MilestoneCostReference)
            .where(MilestoneCostReference.template_id == template_id)
            .order_by(MilestoneCostReference.expense_type)
        ).scalars().all()
        return [CostReferenceInfo.from_model(r) for r in references]
