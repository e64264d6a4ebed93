"""
Inventory Optimizer — Safety Stock & Reorder Point Calculation.

Turns per-product demand statistics into replenishment levers.

Algorithm:
  Safety Stock    = Z-score × σ × √(Lead Time)
  ROP             = (Avg Daily Demand × Lead Time) + Safety Stock
  Horizon Demand  = Avg Daily Demand × Horizon × Trend Factor
  Order Qty       = clamp(ROP + Horizon Demand − Current Stock, 0, Max Stock − Current Stock)

Trend factor: 1.1 increasing, 0.9 decreasing, 1.0 stable.
No upper clamp when the product has no max stock.
"""

import math
from dataclasses import dataclass

from forecasting.statistics import TrendDirection

# Service level → Z-score mapping (standard normal distribution)
Z_SCORES = {
    0.90: 1.282,
    0.95: 1.645,
    0.975: 1.960,
    0.99: 2.326,
}

TREND_FACTORS: dict[str, float] = {
    "increasing": 1.1,
    "stable": 1.0,
    "decreasing": 0.9,
}


@dataclass
class ReorderCalculation:
    """Result of a reorder point calculation."""

    safety_stock: float
    reorder_point: float
    forecast_horizon_demand: float
    recommended_order_qty: int
    lead_time_days: int
    horizon_days: int
    z_score: float
    trend_factor: float


def get_z_score(service_level: float) -> float:
    """Get Z-score for a given service level target."""
    # Find closest match
    closest = min(Z_SCORES.keys(), key=lambda x: abs(x - service_level))
    return Z_SCORES[closest]


def calculate_safety_stock(z_score: float, demand_std_dev: float, lead_time_days: float) -> float:
    return max(0.0, z_score * demand_std_dev * math.sqrt(max(lead_time_days, 0)))


def calculate_recommended_order_qty(
    reorder_point: float,
    forecast_horizon_demand: float,
    current_stock: int,
    max_stock: int | None,
) -> int:
    """
    Whole units to order now.

    Raw need is rounded up to a whole unit, then clamped to [0, max - stock].
    Stock already above max yields 0.
    """
    raw_need = round(reorder_point + forecast_horizon_demand - current_stock, 6)
    qty = max(0, math.ceil(raw_need))
    if max_stock is not None:
        qty = min(qty, max(0, max_stock - current_stock))
    return qty


def calculate_reorder(
    avg_daily_demand: float,
    demand_std_dev: float,
    current_stock: int,
    max_stock: int | None,
    trend_direction: TrendDirection,
    lead_time_days: int,
    horizon_days: int,
    service_level: float = 0.95,
) -> ReorderCalculation:
    """
    Calculate safety stock, ROP, horizon demand and order quantity for one SKU.
    """
    z_score = get_z_score(service_level)
    safety_stock = calculate_safety_stock(z_score, demand_std_dev, lead_time_days)
    reorder_point = avg_daily_demand * lead_time_days + safety_stock

    trend_factor = TREND_FACTORS[trend_direction]
    forecast_horizon_demand = avg_daily_demand * horizon_days * trend_factor

    recommended_order_qty = calculate_recommended_order_qty(
        reorder_point,
        forecast_horizon_demand,
        current_stock,
        max_stock,
    )

    return ReorderCalculation(
        safety_stock=round(safety_stock, 2),
        reorder_point=round(reorder_point, 2),
        forecast_horizon_demand=round(forecast_horizon_demand, 2),
        recommended_order_qty=recommended_order_qty,
        lead_time_days=lead_time_days,
        horizon_days=horizon_days,
        z_score=z_score,
        trend_factor=trend_factor,
    )
