"""
Unit tests for the pure funding arithmetic.

Verifies:
- Gap is never negative and zero without a frozen target
- Percentage is clamped to [0, 100] and rounds half up
- The launch guard is the rounded percentage reaching 100
- Previsional figures scale with the surface
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from agrifund_kernel.domain.dtos import CultureEconomics
from agrifund_kernel.domain.funding import (
    build_snapshot,
    cost_target_of,
    funding_gap,
    funding_percentage,
    is_fully_funded,
    previsional_cost,
    previsional_yield,
)


def _economics(cost="100000", yield_="2", price="150000") -> CultureEconomics:
    return CultureEconomics(
        culture_id=uuid4(),
        code="C",
        name="Crop",
        cost_per_ha=Decimal(cost),
        yield_per_ha=Decimal(yield_),
        price_per_ton=Decimal(price),
    )


class TestFundingGap:

    def test_gap_is_remaining_amount(self):
        assert funding_gap(Decimal("200000"), Decimal("80000")) == Decimal("120000")

    def test_gap_is_zero_when_over_funded(self):
        assert funding_gap(Decimal("200000"), Decimal("250000")) == Decimal("0")

    def test_gap_is_zero_without_target(self):
        assert funding_gap(None, Decimal("5000")) == Decimal("0")


class TestFundingPercentage:

    @pytest.mark.parametrize(
        "target, current, expected",
        [
            ("200000", "0", 0),
            ("200000", "80000", 40),
            ("200000", "200000", 100),
            ("200000", "500000", 100),
            ("3", "1", 33),
            ("8", "1", 13),  # 12.5 rounds half up
            ("200", "199", 100),  # 99.5 rounds to 100
        ],
    )
    def test_percentage(self, target, current, expected):
        assert funding_percentage(Decimal(target), Decimal(current)) == expected

    def test_zero_target_gives_zero(self):
        assert funding_percentage(Decimal("0"), Decimal("100")) == 0

    def test_missing_target_gives_zero(self):
        assert funding_percentage(None, Decimal("100")) == 0


class TestIsFullyFunded:

    def test_exact_funding(self):
        assert is_fully_funded(Decimal("200000"), Decimal("200000"))

    def test_over_funding(self):
        assert is_fully_funded(Decimal("200000"), Decimal("200001"))

    def test_rounded_up_to_hundred(self):
        """99.5% rounds half up to 100 and launches with a gap left."""
        assert funding_percentage(Decimal("200"), Decimal("199")) == 100
        assert funding_gap(Decimal("200"), Decimal("199")) == Decimal("1")
        assert is_fully_funded(Decimal("200"), Decimal("199"))

    def test_just_below_rounding(self):
        assert funding_percentage(Decimal("200"), Decimal("198")) == 99
        assert not is_fully_funded(Decimal("200"), Decimal("198"))

    def test_no_target(self):
        assert not is_fully_funded(None, Decimal("1"))


class TestSnapshot:

    def test_snapshot_fields(self):
        project_id = uuid4()
        snap = build_snapshot(project_id, Decimal("200000"), Decimal("80000"), Decimal("30000"))
        assert snap.project_id == project_id
        assert snap.gap == Decimal("120000")
        assert snap.percentage == 40
        assert snap.paid_funding == Decimal("30000")
        assert not snap.is_fully_funded

    def test_fully_funded_snapshot(self):
        snap = build_snapshot(uuid4(), Decimal("200000"), Decimal("200000"), Decimal("0"))
        assert snap.is_fully_funded


class TestPrevisionalFigures:

    def test_cost_scales_with_surface(self):
        assert previsional_cost(_economics(), Decimal("2")) == Decimal("200000.00")

    def test_fractional_surface_rounds_to_cents(self):
        assert previsional_cost(_economics(cost="333.333"), Decimal("1.5")) == Decimal("500.00")

    def test_yield_keeps_four_places(self):
        assert previsional_yield(_economics(yield_="4.5"), Decimal("0.3333")) == Decimal("1.4999")

    def test_cost_target_is_sum(self):
        assert cost_target_of([Decimal("100.10"), Decimal("200.20")]) == Decimal("300.30")

    def test_cost_target_of_nothing(self):
        assert cost_target_of([]) == Decimal("0.00")
