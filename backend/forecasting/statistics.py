"""
Demand Statistics Engine — mean, dispersion, consistency and trend per product.

  avg_daily_demand = total_quantity / active_days     (0 with no rows)
  σ                = population std dev of per-row quantities
  cv               = σ / avg                           (1.0 when avg is 0)

Consistency tiers: high (cv < 0.5), medium (cv < 1.0), low otherwise.

Trend direction compares the mean of the 3 most recent calendar-month
buckets with the 3 before them, walking backwards from the month of the
latest ledger date and wrapping across the year boundary:
  recent > 1.1 × prior → increasing
  recent < 0.9 × prior → decreasing
  otherwise            → stable
"""

from dataclasses import dataclass
from datetime import date
from typing import Literal

from forecasting.aggregator import ProductAggregate

Consistency = Literal["high", "medium", "low"]
TrendDirection = Literal["increasing", "stable", "decreasing"]

HIGH_CONSISTENCY_CV = 0.5
MEDIUM_CONSISTENCY_CV = 1.0

TREND_WINDOW_MONTHS = 3
TREND_UP_RATIO = 1.1
TREND_DOWN_RATIO = 0.9


@dataclass(frozen=True)
class DemandStatistics:
    avg_daily_demand: float
    std_dev: float
    coefficient_of_variation: float
    consistency: Consistency
    trend_direction: TrendDirection
    monthly_trend: tuple[float, ...]


def classify_consistency(cv: float) -> Consistency:
    if cv < HIGH_CONSISTENCY_CV:
        return "high"
    if cv < MEDIUM_CONSISTENCY_CV:
        return "medium"
    return "low"


def trend_windows(anchor_month: int) -> tuple[list[int], list[int]]:
    """
    Month numbers (1-12) of the recent and prior trend windows.

    anchor_month=2 → recent [2, 1, 12], prior [11, 10, 9]
    """
    months = [((anchor_month - 1 - offset) % 12) + 1 for offset in range(2 * TREND_WINDOW_MONTHS)]
    return months[:TREND_WINDOW_MONTHS], months[TREND_WINDOW_MONTHS:]


def detect_trend(monthly_totals: tuple[float, ...], anchor_month: int) -> TrendDirection:
    recent_months, prior_months = trend_windows(anchor_month)
    recent = sum(monthly_totals[m - 1] for m in recent_months) / TREND_WINDOW_MONTHS
    prior = sum(monthly_totals[m - 1] for m in prior_months) / TREND_WINDOW_MONTHS

    if recent > TREND_UP_RATIO * prior:
        return "increasing"
    if recent < TREND_DOWN_RATIO * prior:
        return "decreasing"
    return "stable"


def compute_demand_statistics(aggregate: ProductAggregate, as_of: date) -> DemandStatistics:
    """
    Derive demand statistics for one product.

    Args:
        aggregate: Product roll-up from the Sales Aggregator.
        as_of: Latest date in the ledger; its month anchors the trend windows.
    """
    if aggregate.active_days > 0:
        # Net returns can push the mean below zero; demand is never negative
        avg_daily_demand = max(0.0, aggregate.total_quantity / aggregate.active_days)
    else:
        avg_daily_demand = 0.0

    std_dev = max(0.0, aggregate.std_dev)
    cv = std_dev / avg_daily_demand if avg_daily_demand > 0 else 1.0

    return DemandStatistics(
        avg_daily_demand=avg_daily_demand,
        std_dev=std_dev,
        coefficient_of_variation=cv,
        consistency=classify_consistency(cv),
        trend_direction=detect_trend(aggregate.monthly_totals, as_of.month),
        monthly_trend=aggregate.monthly_totals,
    )
