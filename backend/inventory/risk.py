"""
Inventory Risk Classifier — stockout exposure, status and expiry risk.

  days_until_stockout  = current_stock / avg_daily_demand   (999 when demand is 0)
  stockout_probability = P(lead-time demand > current_stock)
                         lead-time demand ~ Normal(avg × LT, σ × √LT)

Status:
  CRITICAL  days_until_stockout < 7  or  current_stock < safety_stock
  LOW       days_until_stockout < 14
  OK        otherwise

Expiry risk:
  expiry within the window AND projected stock at expiry
  (current_stock − avg × days_to_expiry) is still positive.
  Stock on hand past its expiry date is always at risk.
"""

import math
from dataclasses import dataclass
from datetime import date
from typing import Literal

from scipy import stats

StockStatus = Literal["CRITICAL", "LOW", "OK"]

# Rendered instead of +inf when nothing is selling
NO_STOCKOUT_DAYS = 999.0

CRITICAL_DAYS = 7
LOW_DAYS = 14

DEFAULT_EXPIRY_WINDOW_DAYS = 60

STATUS_ORDER: dict[str, int] = {"CRITICAL": 0, "LOW": 1, "OK": 2}


@dataclass(frozen=True)
class ExpiryRisk:
    at_risk: bool
    reason: str = ""
    days_to_expiry: int | None = None
    projected_leftover: float = 0.0


@dataclass(frozen=True)
class RiskAssessment:
    days_until_stockout: float
    stockout_probability: float
    status: StockStatus
    expiry: ExpiryRisk


def days_until_stockout(current_stock: float, avg_daily_demand: float) -> float:
    if avg_daily_demand <= 0:
        return NO_STOCKOUT_DAYS
    return current_stock / avg_daily_demand


def stockout_probability(
    current_stock: float,
    avg_daily_demand: float,
    demand_std_dev: float,
    lead_time_days: float,
) -> float:
    """Upper-tail normal probability that lead-time demand exceeds stock."""
    mean = avg_daily_demand * lead_time_days
    sd = demand_std_dev * math.sqrt(max(lead_time_days, 0))

    if sd <= 0:
        # Deterministic demand: either it runs out or it does not
        return 1.0 if mean > current_stock else 0.0

    probability = float(stats.norm.sf(current_stock, loc=mean, scale=sd))
    return min(1.0, max(0.0, probability))


def classify_status(days_to_stockout: float, current_stock: float, safety_stock: float) -> StockStatus:
    if days_to_stockout < CRITICAL_DAYS or current_stock < safety_stock:
        return "CRITICAL"
    if days_to_stockout < LOW_DAYS:
        return "LOW"
    return "OK"


def detect_expiry_risk(
    current_stock: float,
    avg_daily_demand: float,
    expiry_date: date | None,
    as_of: date,
    window_days: int = DEFAULT_EXPIRY_WINDOW_DAYS,
) -> ExpiryRisk:
    if expiry_date is None or current_stock <= 0:
        return ExpiryRisk(at_risk=False)

    days_to_expiry = (expiry_date - as_of).days

    if days_to_expiry <= 0:
        return ExpiryRisk(
            at_risk=True,
            reason=f"Already expired: {current_stock:.0f} units still on hand",
            days_to_expiry=days_to_expiry,
            projected_leftover=float(current_stock),
        )

    if days_to_expiry > window_days:
        return ExpiryRisk(at_risk=False, days_to_expiry=days_to_expiry)

    leftover = current_stock - avg_daily_demand * days_to_expiry
    if leftover <= 0:
        return ExpiryRisk(at_risk=False, days_to_expiry=days_to_expiry)

    return ExpiryRisk(
        at_risk=True,
        reason=(
            f"Expires in {days_to_expiry} days; about {leftover:.0f} units "
            f"projected unsold at expiry"
        ),
        days_to_expiry=days_to_expiry,
        projected_leftover=round(leftover, 2),
    )


def assess_risk(
    current_stock: float,
    avg_daily_demand: float,
    demand_std_dev: float,
    lead_time_days: int,
    safety_stock: float,
    expiry_date: date | None,
    as_of: date,
    expiry_window_days: int = DEFAULT_EXPIRY_WINDOW_DAYS,
) -> RiskAssessment:
    days = days_until_stockout(current_stock, avg_daily_demand)
    return RiskAssessment(
        days_until_stockout=round(days, 1),
        stockout_probability=round(
            stockout_probability(current_stock, avg_daily_demand, demand_std_dev, lead_time_days), 4
        ),
        status=classify_status(days, current_stock, safety_stock),
        expiry=detect_expiry_risk(current_stock, avg_daily_demand, expiry_date, as_of, expiry_window_days),
    )
