"""
Module: agrifund_kernel.selectors.project_selector
Responsibility: Read views over projects: status, listings, economics and
    the one-call project summary.
Architecture position: Kernel > Selectors.  Composes FundingSelector and
    MilestoneSelector for the summary.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from agrifund_kernel.db.types import round_money
from agrifund_kernel.domain.dtos import (
    MilestoneClassification,
    MilestonePaymentStatus,
    ProjectEconomics,
    ProjectInfo,
    ProjectStatus,
    ProjectSummary,
)
from agrifund_kernel.exceptions import ProjectCultureNotFoundError, ProjectNotFoundError
from agrifund_kernel.models.culture import Culture
from agrifund_kernel.models.project import Project, ProjectCulture
from agrifund_kernel.selectors.base import BaseSelector
from agrifund_kernel.selectors.funding_selector import FundingSelector
from agrifund_kernel.selectors.milestone_selector import MilestoneSelector


class ProjectSelector(BaseSelector[Project]):
    """Queries over projects."""

    def get_project(self, project_id: UUID) -> ProjectInfo:
        return ProjectInfo.from_model(self._get_project(project_id))

    def project_status(self, project_id: UUID) -> ProjectStatus:
        return self._get_project(project_id).current_status

    def list_projects(
        self,
        status: ProjectStatus | None = None,
        farmer_id: UUID | None = None,
        technician_id: UUID | None = None,
    ) -> list[ProjectInfo]:
        stmt = select(Project).order_by(Project.created_at, Project.id)
        if status is not None:
            stmt = stmt.where(Project.status == ProjectStatus(status).value)
        if farmer_id is not None:
            stmt = stmt.where(Project.farmer_id == farmer_id)
        if technician_id is not None:
            stmt = stmt.where(Project.technician_id == technician_id)
        return [ProjectInfo.from_model(p) for p in self.session.execute(stmt).scalars().all()]

    def project_economics(self, project_id: UUID) -> ProjectEconomics:
        """
        Expected yield, revenue and margin of a project.

        Revenue uses the catalog's current price per ton.  The cost basis is
        the frozen cost target once validated, the previsional cost before.
        """
        project = self._get_project(project_id)
        previsional_cost = Decimal("0")
        expected_yield = Decimal("0")
        expected_revenue = Decimal("0")
        actual_yield: Decimal | None = None
        actual_cost: Decimal | None = None

        for project_culture in project.cultures:
            culture = self.session.get(Culture, project_culture.culture_id)
            previsional_cost += project_culture.previsional_cost
            expected_yield += project_culture.previsional_yield
            expected_revenue += project_culture.previsional_yield * culture.price_per_ton
            if project_culture.actual_yield is not None:
                actual_yield = (actual_yield or Decimal("0")) + project_culture.actual_yield
            if project_culture.actual_cost is not None:
                actual_cost = (actual_cost or Decimal("0")) + project_culture.actual_cost

        cost_basis = (
            project.cost_target if project.cost_target is not None else previsional_cost
        )
        expected_revenue = round_money(expected_revenue)
        return ProjectEconomics(
            project_id=project.id,
            cost_target=project.cost_target,
            previsional_cost=round_money(previsional_cost),
            expected_yield=expected_yield,
            expected_revenue=expected_revenue,
            expected_margin=round_money(expected_revenue - cost_basis),
            actual_yield=actual_yield,
            actual_cost=actual_cost,
        )

    def project_summary(self, project_id: UUID) -> ProjectSummary:
        project = self.get_project(project_id)
        milestones = MilestoneSelector(self.session, self._clock).milestone_list(project_id)
        return ProjectSummary(
            project=project,
            funding=FundingSelector(self.session, self._clock).snapshot(project_id),
            milestone_count=len(milestones),
            milestones_completed=sum(
                1 for m in milestones
                if m.classification == MilestoneClassification.COMPLETED
            ),
            milestones_overdue=sum(
                1 for m in milestones
                if m.classification == MilestoneClassification.OVERDUE
            ),
            milestones_awaiting_payment=sum(
                1 for m in milestones
                if m.payment_status == MilestonePaymentStatus.AWAITING_PAYMENT
            ),
        )

    def project_id_of_culture(self, project_culture_id: UUID) -> UUID:
        """Owning project of a project culture."""
        project_id = self.session.execute(
            select(ProjectCulture.project_id).where(ProjectCulture.id == project_culture_id)
        ).scalar_one_or_none()
        if project_id is None:
            raise ProjectCultureNotFoundError(str(project_culture_id))
        return project_id

    def _get_project(self, project_id: UUID) -> Project:
        project = self.session.get(Project, project_id)
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        return project
