"""
Module: agrifund_kernel.models.investment
Responsibility: ORM persistence for the funding ledger -- investor pledges
    and the append-only trail of payment-gateway results.
Architecture position: Kernel > Models.  May import from db/ and the
    status enums in domain/dtos.py.

Invariants enforced:
    - amount > 0 (ck_investment_amount_positive).
    - The ledger is append-only: there is no stored balance.  Aggregate
      funding is always derived by summing Investment.amount.
    - Once payment_status is PAID, only transaction_ref may change (and only
      to the same value, see FundingLedgerService.mark_investment_paid).

Audit relevance:
    InvestmentPaymentAttempt keeps every gateway result handed to the engine,
    successful or not, so a disputed payment can be traced.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from agrifund_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from agrifund_kernel.domain.dtos import InvestmentPaymentStatus


class Investment(TrackedBase):
    """
    An investor's pledge against a project in its funding phase.
    """

    __tablename__ = "investments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_investment_amount_positive"),
        Index("idx_investment_project", "project_id"),
        Index("idx_investment_investor", "investor_id"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )
    investor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    decided_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    payment_status: Mapped[InvestmentPaymentStatus] = mapped_column(
        String(20),
        default=InvestmentPaymentStatus.PENDING,
        nullable=False,
    )
    transaction_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    def __repr__(self) -> str:
        return f"<Investment {self.id}: {self.amount} ({self.payment_status})>"

    @property
    def is_paid(self) -> bool:
        return InvestmentPaymentStatus(self.payment_status) == InvestmentPaymentStatus.PAID


class InvestmentPaymentAttempt(TrackedBase):
    """Append-only record of one payment-gateway result."""

    __tablename__ = "investment_payment_attempts"

    __table_args__ = (
        Index("idx_payment_attempt_investment", "investment_id"),
    )

    investment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("investments.id"),
        nullable=False,
    )
    transaction_ref: Mapped[str] = mapped_column(String(255), nullable=False)
    succeeded: Mapped[bool] = mapped_column(Boolean, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
