"""Kernel write services.  All flush within the caller's transaction."""

from agrifund_kernel.services.catalog_service import CatalogService
from agrifund_kernel.services.funding_ledger import FundingLedgerService
from agrifund_kernel.services.milestone_scheduler import MilestoneSchedulerService
from agrifund_kernel.services.payment_request_service import PaymentRequestService
from agrifund_kernel.services.project_lifecycle_service import ProjectLifecycleService

__all__ = [
    "CatalogService",
    "FundingLedgerService",
    "MilestoneSchedulerService",
    "PaymentRequestService",
    "ProjectLifecycleService",
]
