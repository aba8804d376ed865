"""Read-only selectors returning DTOs."""

from agrifund_kernel.selectors.catalog_selector import CatalogSelector
from agrifund_kernel.selectors.funding_selector import FundingSelector
from agrifund_kernel.selectors.milestone_selector import MilestoneSelector
from agrifund_kernel.selectors.project_selector import ProjectSelector

__all__ = [
    "CatalogSelector",
    "FundingSelector",
    "MilestoneSelector",
    "ProjectSelector",
]
