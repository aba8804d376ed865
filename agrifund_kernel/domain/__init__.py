"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.  Time enters only
through an injected Clock.
"""

from agrifund_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from agrifund_kernel.domain.dtos import (
    Actor,
    CalendarEntry,
    CostReferenceInfo,
    CultureEconomics,
    FundingSnapshot,
    InvestmentInfo,
    InvestmentPaymentStatus,
    InvestorPosition,
    MilestoneClassification,
    MilestoneInfo,
    MilestonePaymentStatus,
    MilestoneTemplateInfo,
    ProjectCultureInfo,
    ProjectEconomics,
    ProjectInfo,
    ProjectStatus,
    ProjectSummary,
    Role,
)
from agrifund_kernel.domain.workflow import (
    MILESTONE_PAYMENT,
    PROJECT_LIFECYCLE,
    Guard,
    Transition,
    Workflow,
)

__all__ = [
    "Actor",
    "CalendarEntry",
    "Clock",
    "CostReferenceInfo",
    "CultureEconomics",
    "DeterministicClock",
    "FundingSnapshot",
    "Guard",
    "InvestmentInfo",
    "InvestmentPaymentStatus",
    "InvestorPosition",
    "MILESTONE_PAYMENT",
    "MilestoneClassification",
    "MilestoneInfo",
    "MilestonePaymentStatus",
    "MilestoneTemplateInfo",
    "PROJECT_LIFECYCLE",
    "ProjectCultureInfo",
    "ProjectEconomics",
    "ProjectInfo",
    "ProjectStatus",
    "ProjectSummary",
    "Role",
    "SystemClock",
    "Transition",
    "Workflow",
]
