"""
Module: agrifund_kernel.models.culture
Responsibility: ORM persistence for the culture catalog -- crop types with
    reference economics, their milestone templates, and the per-hectare cost
    references attached to each template.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Culture.code is unique (uq_culture_code).
    - MilestoneTemplate.offset_days >= 0 (ck_template_offset_non_negative).
    - A template name is unique within its culture.

Audit relevance:
    The catalog is reference data.  Projects snapshot culture economics at
    creation and freeze their cost target at validation, so later catalog
    edits never rewrite funded commitments.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agrifund_kernel.db.base import TrackedBase, UUIDString


class Culture(TrackedBase):
    """
    A crop type with reference economics.

    Guarantees:
        - code is unique across the catalog.
        - cost_per_ha, yield_per_ha (tonnes) and price_per_ton are Decimal.
    """

    __tablename__ = "cultures"

    __table_args__ = (
        UniqueConstraint("code", name="uq_culture_code"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    cost_per_ha: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    yield_per_ha: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    price_per_ton: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    technical_sheet_ref: Mapped[str | None] = mapped_column(String(500), nullable=True)

    templates: Mapped[list["MilestoneTemplate"]] = relationship(
        "MilestoneTemplate",
        back_populates="culture",
        order_by=lambda: [MilestoneTemplate.offset_days, MilestoneTemplate.name],
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Culture {self.code}: {self.cost_per_ha}/ha>"


class MilestoneTemplate(TrackedBase):
    """
    A template agricultural task for a culture, offset from production launch.
    """

    __tablename__ = "milestone_templates"

    __table_args__ = (
        UniqueConstraint("culture_id", "name", name="uq_template_culture_name"),
        CheckConstraint("offset_days >= 0", name="ck_template_offset_non_negative"),
        Index("idx_template_culture_offset", "culture_id", "offset_days"),
    )

    culture_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("cultures.id"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    action: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    offset_days: Mapped[int] = mapped_column(Integer, nullable=False)

    culture: Mapped[Culture] = relationship("Culture", back_populates="templates")
    cost_references: Mapped[list["MilestoneCostReference"]] = relationship(
        "MilestoneCostReference",
        back_populates="template",
        order_by="MilestoneCostReference.expense_type",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<MilestoneTemplate {self.name} +{self.offset_days}d>"


class MilestoneCostReference(TrackedBase):
    """
    Reference expense for a milestone template, per hectare.

    The budget of a scheduled milestone is the sum of its template's
    amounts per hectare multiplied by the project surface.
    """

    __tablename__ = "milestone_cost_references"

    __table_args__ = (
        UniqueConstraint("template_id", "expense_type", name="uq_cost_ref_template_type"),
    )

    template_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("milestone_templates.id"),
        nullable=False,
    )
    expense_type: Mapped[str] = mapped_column(String(100), nullable=False)
    amount_per_ha: Mapped[Decimal] = mapped_column(nullable=False)
    unit: Mapped[str | None] = mapped_column(String(50), nullable=True)

    template: Mapped[MilestoneTemplate] = relationship(
        "MilestoneTemplate", back_populates="cost_references"
    )
