"""
Module: agrifund_kernel.selectors.funding_selector
Responsibility: Funding aggregates derived from the investment ledger.
Architecture position: Kernel > Selectors.  Arithmetic is delegated to
    domain/funding.py.

Invariants enforced:
    - current funding = sum of ALL pledges, pending and paid.
    - paid funding = sum of PAID pledges only.
    - percentage in [0, 100]; gap >= 0.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from agrifund_kernel.domain import funding
from agrifund_kernel.domain.dtos import (
    FundingSnapshot,
    InvestmentInfo,
    InvestmentPaymentStatus,
    InvestorPosition,
    ProjectStatus,
)
from agrifund_kernel.exceptions import InvestmentNotFoundError, ProjectNotFoundError
from agrifund_kernel.models.investment import Investment
from agrifund_kernel.models.project import Project
from agrifund_kernel.selectors.base import BaseSelector


class FundingSelector(BaseSelector[Investment]):
    """Read-side of the funding ledger."""

    def sum_pledges(self, project_id: UUID, paid_only: bool = False) -> Decimal:
        """Sum of pledge amounts.  Does not check that the project exists."""
        stmt = select(func.coalesce(func.sum(Investment.amount), 0)).where(
            Investment.project_id == project_id
        )
        if paid_only:
            stmt = stmt.where(Investment.payment_status == InvestmentPaymentStatus.PAID.value)
        total = self.session.execute(stmt).scalar_one()
        return total if isinstance(total, Decimal) else Decimal(str(total))

    def current_funding(self, project_id: UUID) -> Decimal:
        self._get_project(project_id)
        return self.sum_pledges(project_id)

    def paid_funding(self, project_id: UUID) -> Decimal:
        self._get_project(project_id)
        return self.sum_pledges(project_id, paid_only=True)

    def funding_gap(self, project_id: UUID) -> Decimal:
        project = self._get_project(project_id)
        return funding.funding_gap(project.cost_target, self.sum_pledges(project_id))

    def funding_percentage(self, project_id: UUID) -> int:
        project = self._get_project(project_id)
        return funding.funding_percentage(project.cost_target, self.sum_pledges(project_id))

    def snapshot(self, project_id: UUID) -> FundingSnapshot:
        project = self._get_project(project_id)
        return funding.build_snapshot(
            project.id,
            project.cost_target,
            self.sum_pledges(project_id),
            self.sum_pledges(project_id, paid_only=True),
        )

    def get_investment(self, investment_id: UUID) -> InvestmentInfo:
        investment = self.session.get(Investment, investment_id)
        if investment is None:
            raise InvestmentNotFoundError(str(investment_id))
        return InvestmentInfo.from_model(investment)

    def list_investments(self, project_id: UUID) -> list[InvestmentInfo]:
        """Pledges of a project, oldest decision first."""
        self._get_project(project_id)
        investments = self.session.execute(
            select(Investment)
            .where(Investment.project_id == project_id)
            .order_by(Investment.decided_at, Investment.id)
        ).scalars().all()
        return [InvestmentInfo.from_model(i) for i in investments]

    def investor_ids(self, project_id: UUID) -> list[UUID]:
        """Distinct investors of a project."""
        return list(
            self.session.execute(
                select(Investment.investor_id)
                .where(Investment.project_id == project_id)
                .distinct()
            ).scalars()
        )

    def investor_portfolio(self, investor_id: UUID) -> list[InvestorPosition]:
        """One line per project the investor has pledged to."""
        rows = self.session.execute(
            select(Investment, Project.title, Project.status)
            .join(Project, Project.id == Investment.project_id)
            .where(Investment.investor_id == investor_id)
            .order_by(Investment.decided_at, Investment.id)
        ).all()

        positions: dict[UUID, dict] = {}
        for investment, title, status in rows:
            line = positions.setdefault(
                investment.project_id,
                {
                    "title": title,
                    "status": ProjectStatus(status),
                    "pledged": Decimal("0"),
                    "paid": Decimal("0"),
                    "count": 0,
                },
            )
            line["pledged"] += investment.amount
            if investment.is_paid:
                line["paid"] += investment.amount
            line["count"] += 1

        return [
            InvestorPosition(
                project_id=project_id,
                project_title=line["title"],
                project_status=line["status"],
                pledged=line["pledged"],
                paid=line["paid"],
                investment_count=line["count"],
            )
            for project_id, line in positions.items()
        ]

    def _get_project(self, project_id: UUID) -> Project:
        project = self.session.get(Project, project_id)
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        return project
