"""
Catalog Classification — ABC revenue tiers and stock velocity.

ABC (Pareto on revenue, catalog-wide):
  Sort products by revenue descending (ties → product code ascending) and
  walk the cumulative revenue share:
    cumulative ≤ 70%  → A
    cumulative ≤ 90%  → B
    otherwise         → C
  This needs every product's revenue up front, so it runs as one serial
  pass after aggregation. Every product gets exactly one class.

Velocity (per product):
  annual_turn = avg_daily_demand × 365 / max(current_stock, 1)
    avg_daily_demand < dead threshold  → Dead
    annual_turn > fast threshold       → Fast
    otherwise                          → Slow
"""

from collections.abc import Mapping
from typing import Literal

AbcClass = Literal["A", "B", "C"]
StockSpeed = Literal["Fast", "Slow", "Dead"]

ABC_A_CUTOFF = 0.70
ABC_B_CUTOFF = 0.90

DEFAULT_FAST_TURN_THRESHOLD = 6.0
DEFAULT_DEAD_DEMAND_THRESHOLD = 0.01


def classify_abc(revenue_by_product: Mapping[str, float]) -> dict[str, AbcClass]:
    """
    Assign an ABC class to every product code.

    Args:
        revenue_by_product: product_code → total revenue for the window.

    Returns:
        product_code → "A" | "B" | "C". With zero total revenue every
        product is "C".
    """
    ranked = sorted(revenue_by_product.items(), key=lambda item: (-item[1], item[0]))
    total_revenue = sum(max(0.0, revenue) for _, revenue in ranked)

    classes: dict[str, AbcClass] = {}
    cumulative = 0.0
    for code, revenue in ranked:
        if total_revenue <= 0:
            classes[code] = "C"
            continue
        cumulative += max(0.0, revenue)
        share = cumulative / total_revenue
        if share <= ABC_A_CUTOFF:
            classes[code] = "A"
        elif share <= ABC_B_CUTOFF:
            classes[code] = "B"
        else:
            classes[code] = "C"
    return classes


def annual_turnover(avg_daily_demand: float, current_stock: float) -> float:
    return avg_daily_demand * 365 / max(current_stock, 1)


def classify_stock_speed(
    avg_daily_demand: float,
    current_stock: float,
    fast_turn_threshold: float = DEFAULT_FAST_TURN_THRESHOLD,
    dead_demand_threshold: float = DEFAULT_DEAD_DEMAND_THRESHOLD,
) -> StockSpeed:
    if avg_daily_demand < dead_demand_threshold:
        return "Dead"
    if annual_turnover(avg_daily_demand, current_stock) > fast_turn_threshold:
        return "Fast"
    return "Slow"
