"""
Forecast Engine — Deterministic per-SKU pipeline.

Sequence (one run, no shared state between runs):
  1. Sales Aggregator           ledger rows → ProductAggregate per product
  2. Demand Statistics Engine   avg, σ, consistency, trend
  3. ABC Classifier             one serial pass over all revenues
  4. Stock Velocity             Fast / Slow / Dead
  5. Safety Stock & Reorder     SS, ROP, horizon demand, order qty
  6. Risk Classifier            stockout probability, status, expiry
  7. Purchase Optimizer         only for action="optimize"

Everything here is pure: inputs are the parsed ledger and catalog, the
output is a ForecastOutcome. Loading and persistence live in
forecasting.orchestrator.
"""

import math
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Literal

import structlog

from forecasting.aggregator import ProductAggregate, SalesRecord, aggregate_sales
from forecasting.errors import InvalidBudgetError, MissingInventoryRecord, NoDataError
from forecasting.statistics import compute_demand_statistics
from inventory.classification import classify_abc, classify_stock_speed
from inventory.optimizer import calculate_reorder
from inventory.purchasing import OptimizationResult, optimize_purchases
from inventory.risk import STATUS_ORDER, assess_risk

logger = structlog.get_logger()

ForecastAction = Literal["full_forecast", "optimize"]


@dataclass(frozen=True)
class ForecastParameters:
    """Run-scoped knobs; built from settings plus request overrides."""

    action: ForecastAction = "full_forecast"
    horizon_days: int = 30
    service_level: float = 0.95
    default_lead_time_days: int = 7
    fast_turn_threshold: float = 6.0
    dead_demand_threshold: float = 0.01
    expiry_window_days: int = 60
    default_min_stock: int = 10
    default_max_stock: int = 100
    budget: float | None = None
    storage_capacity: int | None = None
    sku_code: str | None = None


@dataclass(frozen=True)
class InventoryRecord:
    """Catalog row as seen by the engine."""

    product_code: str
    name: str
    current_stock: int = 0
    min_stock: int | None = None
    max_stock: int | None = None
    purchase_price: float | None = None
    selling_price: float | None = None
    supplier: str | None = None
    generic_name: str | None = None
    dosage_form: str | None = None
    strength: str | None = None
    expiry_date: date | None = None
    lead_time_days: int | None = None


@dataclass
class SKUForecast:
    # Identity
    product_code: str
    product_name: str
    generic_name: str | None
    dosage_form: str | None
    strength: str | None
    supplier: str | None
    expiry_date: str | None
    # Stock levers
    current_stock: int
    min_stock: int | None
    max_stock: int | None
    # Economics
    purchase_price: float
    selling_price: float
    margin: float
    # Forecast
    avg_daily_demand: float
    forecast_horizon_days: int
    forecast_horizon_demand: float
    safety_stock: float
    reorder_point: float
    recommended_order_qty: int
    lead_time_days: int
    # Classification
    abc_class: str
    stock_speed: str
    status: str
    # Risk
    stockout_probability: float
    days_until_stockout: float
    expiry_risk: bool
    expiry_risk_reason: str
    # Trend
    trend_direction: str
    monthly_trend: list[int]
    sigma: float
    coefficient_of_variation: float
    demand_consistency: str
    # Raw
    total_revenue: float
    total_sales_qty: float
    data_points: int
    cash_flow: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ForecastSummary:
    total_products: int = 0
    critical_items: int = 0
    low_stock_items: int = 0
    ok_items: int = 0
    expiry_risk_items: int = 0
    abc_distribution: dict[str, int] = field(default_factory=lambda: {"A": 0, "B": 0, "C": 0})
    stock_speed_distribution: dict[str, int] = field(default_factory=lambda: {"Fast": 0, "Slow": 0, "Dead": 0})
    total_revenue: float = 0.0
    total_data_points: int = 0
    data_quality: dict[str, int] = field(
        default_factory=lambda: {"malformed_rows": 0, "missing_inventory_records": 0}
    )


@dataclass
class ForecastOutcome:
    forecasts: list[SKUForecast]
    summary: ForecastSummary
    optimization: OptimizationResult | None = None
    as_of: date | None = None


def validate_parameters(params: ForecastParameters) -> None:
    """Fatal request checks that must fail before any stage runs."""
    if params.action != "optimize":
        return
    if params.budget is None or not math.isfinite(params.budget) or params.budget <= 0:
        raise InvalidBudgetError(f"optimize requires a finite budget > 0 (got {params.budget!r})")


def default_inventory(product_code: str, product_name: str, params: ForecastParameters) -> InventoryRecord:
    return InventoryRecord(
        product_code=product_code,
        name=product_name,
        current_stock=0,
        min_stock=params.default_min_stock,
        max_stock=params.default_max_stock,
    )


def build_sku_forecast(
    aggregate: ProductAggregate,
    inventory: InventoryRecord,
    abc_class: str,
    params: ForecastParameters,
    as_of: date,
    today: date,
) -> SKUForecast:
    """Run stages 2, 4, 5 and 6 for one product."""
    stats = compute_demand_statistics(aggregate, as_of)

    current_stock = max(0, int(inventory.current_stock or 0))
    lead_time_days = inventory.lead_time_days or params.default_lead_time_days

    purchase_price = inventory.purchase_price if inventory.purchase_price else aggregate.unit_price
    selling_price = inventory.selling_price if inventory.selling_price else aggregate.unit_price
    margin = selling_price - purchase_price

    reorder = calculate_reorder(
        avg_daily_demand=stats.avg_daily_demand,
        demand_std_dev=stats.std_dev,
        current_stock=current_stock,
        max_stock=inventory.max_stock,
        trend_direction=stats.trend_direction,
        lead_time_days=lead_time_days,
        horizon_days=params.horizon_days,
        service_level=params.service_level,
    )

    risk = assess_risk(
        current_stock=current_stock,
        avg_daily_demand=stats.avg_daily_demand,
        demand_std_dev=stats.std_dev,
        lead_time_days=lead_time_days,
        safety_stock=reorder.safety_stock,
        expiry_date=inventory.expiry_date,
        as_of=today,
        expiry_window_days=params.expiry_window_days,
    )

    stock_speed = classify_stock_speed(
        stats.avg_daily_demand,
        current_stock,
        fast_turn_threshold=params.fast_turn_threshold,
        dead_demand_threshold=params.dead_demand_threshold,
    )

    return SKUForecast(
        product_code=aggregate.product_code,
        product_name=aggregate.product_name,
        generic_name=inventory.generic_name,
        dosage_form=inventory.dosage_form,
        strength=inventory.strength,
        supplier=inventory.supplier,
        expiry_date=inventory.expiry_date.isoformat() if inventory.expiry_date else None,
        current_stock=current_stock,
        min_stock=inventory.min_stock,
        max_stock=inventory.max_stock,
        purchase_price=round(purchase_price, 2),
        selling_price=round(selling_price, 2),
        margin=round(margin, 2),
        avg_daily_demand=round(stats.avg_daily_demand, 2),
        forecast_horizon_days=params.horizon_days,
        forecast_horizon_demand=reorder.forecast_horizon_demand,
        safety_stock=reorder.safety_stock,
        reorder_point=reorder.reorder_point,
        recommended_order_qty=reorder.recommended_order_qty,
        lead_time_days=lead_time_days,
        abc_class=abc_class,
        stock_speed=stock_speed,
        status=risk.status,
        stockout_probability=risk.stockout_probability,
        days_until_stockout=risk.days_until_stockout,
        expiry_risk=risk.expiry.at_risk,
        expiry_risk_reason=risk.expiry.reason,
        trend_direction=stats.trend_direction,
        monthly_trend=[round(v) for v in stats.monthly_trend],
        sigma=round(stats.std_dev, 2),
        coefficient_of_variation=round(stats.coefficient_of_variation, 3),
        demand_consistency=stats.consistency,
        total_revenue=round(aggregate.total_revenue, 2),
        total_sales_qty=round(aggregate.total_quantity, 2),
        data_points=aggregate.active_days,
        cash_flow={
            "total_cost": round(reorder.recommended_order_qty * purchase_price, 2),
            "total_margin": round(reorder.recommended_order_qty * margin, 2),
        },
    )


def summarize(
    forecasts: Sequence[SKUForecast],
    total_data_points: int,
    malformed_rows: int,
    missing_inventory_records: int,
) -> ForecastSummary:
    summary = ForecastSummary(total_products=len(forecasts), total_data_points=total_data_points)
    for fc in forecasts:
        if fc.status == "CRITICAL":
            summary.critical_items += 1
        elif fc.status == "LOW":
            summary.low_stock_items += 1
        else:
            summary.ok_items += 1
        if fc.expiry_risk:
            summary.expiry_risk_items += 1
        summary.abc_distribution[fc.abc_class] += 1
        summary.stock_speed_distribution[fc.stock_speed] += 1
        summary.total_revenue += fc.total_revenue

    summary.total_revenue = round(summary.total_revenue, 2)
    summary.data_quality = {
        "malformed_rows": malformed_rows,
        "missing_inventory_records": missing_inventory_records,
    }
    return summary


def run_forecast(
    records: Sequence[SalesRecord],
    catalog: Mapping[str, InventoryRecord],
    params: ForecastParameters,
    today: date,
    malformed_rows: int = 0,
) -> ForecastOutcome:
    """
    Run the full pipeline over a parsed ledger and catalog.

    Args:
        records: Valid ledger records (malformed rows already removed).
        catalog: product_code → InventoryRecord.
        params: Run parameters.
        today: Reference date for expiry checks.
        malformed_rows: Rows dropped during parsing, carried into the summary.

    Raises:
        InvalidBudgetError: optimize without a positive budget.
        NoDataError: no usable ledger rows.
    """
    validate_parameters(params)
    if not records:
        raise NoDataError("No sales data found. Import transaction history first.")

    aggregates = aggregate_sales(records)
    as_of = max(agg.last_sale_date for agg in aggregates.values())

    # ABC needs every product's revenue before any per-product assembly
    abc_classes = classify_abc({code: agg.total_revenue for code, agg in aggregates.items()})

    forecasts: list[SKUForecast] = []
    missing: list[MissingInventoryRecord] = []
    for code, aggregate in aggregates.items():
        inventory = catalog.get(code)
        if inventory is None:
            missing.append(MissingInventoryRecord(code))
            logger.warning("inventory.missing_record", product_code=code)
            inventory = default_inventory(code, aggregate.product_name, params)

        forecasts.append(build_sku_forecast(aggregate, inventory, abc_classes[code], params, as_of, today))

    forecasts.sort(key=lambda fc: (STATUS_ORDER[fc.status], fc.product_code))

    optimization = None
    if params.action == "optimize":
        optimization = optimize_purchases(forecasts, params.budget, params.storage_capacity)

    summary = summarize(
        forecasts,
        total_data_points=len(records) + malformed_rows,
        malformed_rows=malformed_rows,
        missing_inventory_records=len(missing),
    )

    return ForecastOutcome(forecasts=forecasts, summary=summary, optimization=optimization, as_of=as_of)
