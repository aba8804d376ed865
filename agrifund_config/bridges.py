"""
Config -> Kernel Bridges.

Functions that write configuration artifacts into the kernel.  These live in
agrifund_config (the producer) because the kernel must NEVER import
agrifund_config.

Usage:
    from agrifund_config import load_catalog
    from agrifund_config.bridges import seed_catalog

    with session_scope() as session:
        seed_catalog(session, load_catalog(path))
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from agrifund_config.schema import CatalogDefinition
from agrifund_kernel.logging_config import get_logger
from agrifund_kernel.selectors.catalog_selector import CatalogSelector
from agrifund_kernel.services.catalog_service import CatalogService

logger = get_logger("config.bridges")

# Creator recorded on rows written by configuration rather than by a person.
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


@dataclass(frozen=True)
class SeedResult:
    """Counts of catalog rows written by one seed_catalog() call."""

    cultures_created: int = 0
    templates_created: int = 0
    cost_references_created: int = 0

    @property
    def is_noop(self) -> bool:
        return not (self.cultures_created or self.templates_created or self.cost_references_created)


def seed_catalog(
    session: Session,
    catalog: CatalogDefinition,
    actor_id: UUID = SYSTEM_ACTOR_ID,
) -> SeedResult:
    """
    Write catalog definitions through CatalogService.

    Idempotent: cultures are matched by code, templates by name within
    their culture, cost references by expense type within their template.
    Existing rows are left untouched, so re-seeding never rewrites catalog
    economics that an administrator has since edited.

    The caller owns the transaction.
    """
    service = CatalogService(session)
    selector = CatalogSelector(session)
    cultures = templates = references = 0

    for culture_def in catalog.cultures:
        culture = selector.get_culture_by_code(culture_def.code)
        if culture is None:
            culture = service.register_culture(
                code=culture_def.code,
                name=culture_def.name,
                cost_per_ha=culture_def.cost_per_ha,
                yield_per_ha=culture_def.yield_per_ha,
                price_per_ton=culture_def.price_per_ton,
                actor_id=actor_id,
                technical_sheet_ref=culture_def.technical_sheet_ref,
            )
            cultures += 1

        existing = {t.name: t for t in selector.list_milestone_templates(culture.culture_id)}
        for milestone_def in culture_def.milestones:
            template = existing.get(milestone_def.name)
            if template is None:
                template = service.add_milestone_template(
                    culture_id=culture.culture_id,
                    name=milestone_def.name,
                    action=milestone_def.action,
                    offset_days=milestone_def.offset_days,
                    actor_id=actor_id,
                )
                templates += 1

            known_types = {r.expense_type for r in selector.list_cost_references(template.id)}
            for ref_def in milestone_def.cost_references:
                if ref_def.expense_type in known_types:
                    continue
                service.add_cost_reference(
                    template_id=template.id,
                    expense_type=ref_def.expense_type,
                    amount_per_ha=ref_def.amount_per_ha,
                    actor_id=actor_id,
                    unit=ref_def.unit,
                )
                references += 1

    result = SeedResult(
        cultures_created=cultures,
        templates_created=templates,
        cost_references_created=references,
    )
    logger.info(
        "catalog_seeded",
        extra={
            "catalog_checksum": catalog.checksum,
            "cultures_created": cultures,
            "templates_created": templates,
            "cost_references_created": references,
        },
    )
    return result
