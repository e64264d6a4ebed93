"""
Purchase Optimizer — Budget-constrained replenishment plan.

Tiered, ratio-greedy allocation:
  1. Tier every SKU by status:
       essential    status CRITICAL
       recommended  status LOW
       optional     status OK and margin > 0
  2. Within a tier, rank by margin / unit cost (descending), ties by
     product code (ascending).
  3. Walk essential → recommended → optional and fund up to each SKU's
     recommended_order_qty. When the full quantity does not fit, fund the
     largest whole quantity that does, then move on.

Optimal for the continuous relaxation, a close integer approximation
otherwise. Never spends past the budget: total_cost ≤ budget always.
A budget too small for any unit returns an empty plan.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal, Protocol

import structlog

logger = structlog.get_logger()

PriorityTier = Literal["essential", "recommended", "optional"]

TIER_ORDER: tuple[PriorityTier, ...] = ("essential", "recommended", "optional")


class PurchaseCandidate(Protocol):
    """The slice of an SKU forecast the optimizer needs."""

    product_code: str
    product_name: str
    status: str
    purchase_price: float
    margin: float
    recommended_order_qty: int


@dataclass
class PurchaseLine:
    product_code: str
    product_name: str
    optimized_qty: int
    unit_cost: float
    cost: float
    margin_contribution: float
    priority: PriorityTier


@dataclass
class OptimizationResult:
    budget: float
    optimized_purchases: list[PurchaseLine] = field(default_factory=list)
    total_cost: float = 0.0
    remaining_budget: float = 0.0
    total_margin: float = 0.0
    items_count: int = 0
    total_units: int = 0


def priority_tier(candidate: PurchaseCandidate) -> PriorityTier | None:
    if candidate.status == "CRITICAL":
        return "essential"
    if candidate.status == "LOW":
        return "recommended"
    if candidate.margin > 0:
        return "optional"
    return None


def margin_ratio(candidate: PurchaseCandidate) -> float:
    """Margin earned per unit of spend. Free items rank first."""
    if candidate.purchase_price <= 0:
        return math.inf
    return candidate.margin / candidate.purchase_price


def rank_candidates(candidates: Sequence[PurchaseCandidate]) -> list[tuple[PriorityTier, PurchaseCandidate]]:
    """Order candidates by tier, then margin ratio, then product code."""
    tiered = []
    for candidate in candidates:
        tier = priority_tier(candidate)
        if tier is None or candidate.recommended_order_qty <= 0:
            continue
        tiered.append((tier, candidate))

    return sorted(
        tiered,
        key=lambda item: (TIER_ORDER.index(item[0]), -margin_ratio(item[1]), item[1].product_code),
    )


def affordable_qty(requested: int, unit_cost: float, remaining_budget: float) -> int:
    """Largest whole quantity ≤ requested whose cost fits the remaining budget."""
    if requested <= 0:
        return 0
    if unit_cost <= 0:
        return requested
    qty = min(requested, math.floor(remaining_budget / unit_cost))
    # Guard against float division rounding up past the budget
    while qty > 0 and qty * unit_cost > remaining_budget:
        qty -= 1
    return max(qty, 0)


def optimize_purchases(
    candidates: Sequence[PurchaseCandidate],
    budget: float,
    storage_capacity: int | None = None,
) -> OptimizationResult:
    """
    Build the purchase plan for a budget.

    Args:
        candidates: SKU forecasts (read-only).
        budget: Total spend available; finite and > 0.
        storage_capacity: Optional cap on total units across the plan.

    Raises:
        ValueError: budget is not a finite positive number.
    """
    if not math.isfinite(budget) or budget <= 0:
        raise ValueError(f"budget must be a finite number > 0, got {budget!r}")

    result = OptimizationResult(budget=budget)
    spent = 0.0
    remaining_units = storage_capacity

    for tier, candidate in rank_candidates(candidates):
        if remaining_units is not None and remaining_units <= 0:
            break

        requested = candidate.recommended_order_qty
        if remaining_units is not None:
            requested = min(requested, remaining_units)

        unit_cost = max(0.0, candidate.purchase_price)
        qty = affordable_qty(requested, unit_cost, budget - spent)
        if qty <= 0:
            continue

        cost = qty * unit_cost
        spent += cost
        if remaining_units is not None:
            remaining_units -= qty

        result.optimized_purchases.append(
            PurchaseLine(
                product_code=candidate.product_code,
                product_name=candidate.product_name,
                optimized_qty=qty,
                unit_cost=unit_cost,
                cost=cost,
                margin_contribution=qty * candidate.margin,
                priority=tier,
            )
        )

    result.total_cost = sum(line.cost for line in result.optimized_purchases)
    result.remaining_budget = max(0.0, budget - result.total_cost)
    result.total_margin = sum(line.margin_contribution for line in result.optimized_purchases)
    result.items_count = len(result.optimized_purchases)
    result.total_units = sum(line.optimized_qty for line in result.optimized_purchases)

    logger.info(
        "purchase_plan.built",
        budget=budget,
        items=result.items_count,
        total_cost=round(result.total_cost, 2),
        remaining_budget=round(result.remaining_budget, 2),
    )
    return result
