"""
Funding -- Pure funding-position arithmetic.

Responsibility:
    Computes the funding gap and percentage of a project from its frozen
    cost target and the sum of its pledges, and the previsional figures of a
    culture attached to a surface.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - funding_percentage() is always in [0, 100], whatever the over-funding.
    - funding_gap() is never negative.
    - A target of zero or a target not yet frozen gives a percentage of 0.
"""

from decimal import Decimal
from uuid import UUID

from agrifund_kernel.db.types import round_money, round_percentage
from agrifund_kernel.domain.dtos import CultureEconomics, FundingSnapshot

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def funding_gap(cost_target: Decimal | None, current_funding: Decimal) -> Decimal:
    """max(0, cost_target - current_funding).  No target means no gap yet."""
    if cost_target is None:
        return _ZERO
    return max(_ZERO, cost_target - current_funding)


def funding_percentage(cost_target: Decimal | None, current_funding: Decimal) -> int:
    """
    min(100, round-half-up(current / target x 100)).

    Returns 0 when the target is zero or not yet frozen.
    """
    if cost_target is None or cost_target <= _ZERO:
        return 0
    raw = round_percentage(current_funding / cost_target * _HUNDRED)
    return max(0, min(100, raw))


def is_fully_funded(cost_target: Decimal | None, current_funding: Decimal) -> bool:
    """Launch guard: the displayed percentage has reached 100."""
    if cost_target is None:
        return False
    return funding_percentage(cost_target, current_funding) >= 100


def build_snapshot(
    project_id: UUID,
    cost_target: Decimal | None,
    current_funding: Decimal,
    paid_funding: Decimal,
) -> FundingSnapshot:
    return FundingSnapshot(
        project_id=project_id,
        cost_target=cost_target,
        current_funding=current_funding,
        paid_funding=paid_funding,
        gap=funding_gap(cost_target, current_funding),
        percentage=funding_percentage(cost_target, current_funding),
    )


def previsional_cost(economics: CultureEconomics, surface_ha: Decimal) -> Decimal:
    """Culture cost per hectare x surface, rounded to cents."""
    return round_money(economics.cost_per_ha * surface_ha)


def previsional_yield(economics: CultureEconomics, surface_ha: Decimal) -> Decimal:
    """Culture yield per hectare (tonnes) x surface."""
    return round_money(economics.yield_per_ha * surface_ha, decimal_places=4)


def cost_target_of(previsional_costs: list[Decimal]) -> Decimal:
    """The project cost target: sum of its cultures' previsional costs."""
    return round_money(sum(previsional_costs, _ZERO))
