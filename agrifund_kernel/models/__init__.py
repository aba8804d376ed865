"""ORM models for the AgriFund kernel."""

from agrifund_kernel.models.culture import Culture, MilestoneCostReference, MilestoneTemplate
from agrifund_kernel.models.investment import (
    Investment,
    InvestmentPaymentAttempt,
    InvestmentPaymentStatus,
)
from agrifund_kernel.models.milestone import MilestonePaymentStatus, ScheduledMilestone
from agrifund_kernel.models.project import Project, ProjectCulture, ProjectStatus


def import_all_models() -> None:
    """Ensure every model module is imported so Base.metadata knows all tables."""
    # Imports above register the tables; this hook exists for create/drop callers.
    return None


__all__ = [
    "Culture",
    "Investment",
    "InvestmentPaymentAttempt",
    "InvestmentPaymentStatus",
    "MilestoneCostReference",
    "MilestonePaymentStatus",
    "MilestoneTemplate",
    "Project",
    "ProjectCulture",
    "ProjectStatus",
    "ScheduledMilestone",
    "import_all_models",
]
