"""
Forecasts Router — Run the forecast engine and read its latest snapshot.

  POST /api/v1/forecasts/run     full_forecast | optimize
  GET  /api/v1/forecasts/latest  persisted SKUForecast snapshot
  GET  /api/v1/forecasts/runs    run audit trail
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_app_settings, get_db
from core.config import Settings
from forecasting.orchestrator import ForecastOrchestrator, build_parameters
from forecasting.snapshot import list_runs, load_snapshot

router = APIRouter(prefix="/api/v1/forecasts", tags=["forecasts"])

# Fatal engine error code → HTTP status
ERROR_STATUS = {
    "no_data": 404,
    "invalid_budget": 400,
}


# ─── Schemas ────────────────────────────────────────────────────────────────


class ForecastRunRequest(BaseModel):
    action: Literal["full_forecast", "optimize"] = "full_forecast"
    horizon_days: int | None = Field(None, ge=1, le=365, description="Defaults to FORECAST_HORIZON_DAYS")
    budget: float | None = Field(None, allow_inf_nan=False, description="Required (> 0) when action is 'optimize'")
    service_level: float | None = Field(None, gt=0.5, lt=1.0)
    storage_capacity: int | None = Field(None, ge=1, description="Cap on total units in the purchase plan")
    sku_code: str | None = Field(None, description="Return only this product's forecast")


class SKUForecastResponse(BaseModel):
    product_code: str
    product_name: str
    generic_name: str | None
    dosage_form: str | None
    strength: str | None
    supplier: str | None
    expiry_date: str | None
    current_stock: int
    min_stock: int | None
    max_stock: int | None
    purchase_price: float
    selling_price: float
    margin: float
    avg_daily_demand: float
    forecast_horizon_days: int
    forecast_horizon_demand: float
    safety_stock: float
    reorder_point: float
    recommended_order_qty: int
    lead_time_days: int
    abc_class: Literal["A", "B", "C"]
    stock_speed: Literal["Fast", "Slow", "Dead"]
    status: Literal["CRITICAL", "LOW", "OK"]
    stockout_probability: float
    days_until_stockout: float
    expiry_risk: bool
    expiry_risk_reason: str
    trend_direction: Literal["increasing", "stable", "decreasing"]
    monthly_trend: list[int]
    sigma: float
    coefficient_of_variation: float
    demand_consistency: Literal["high", "medium", "low"]
    total_revenue: float
    total_sales_qty: float
    data_points: int
    cash_flow: dict[str, float]


class PurchaseLineResponse(BaseModel):
    product_code: str
    product_name: str
    optimized_qty: int
    unit_cost: float
    cost: float
    margin_contribution: float
    priority: Literal["essential", "recommended", "optional"]


class OptimizationResponse(BaseModel):
    budget: float
    optimized_purchases: list[PurchaseLineResponse]
    total_cost: float
    remaining_budget: float
    total_margin: float
    items_count: int
    total_units: int


class ForecastSummaryResponse(BaseModel):
    total_products: int
    critical_items: int
    low_stock_items: int
    ok_items: int
    expiry_risk_items: int
    abc_distribution: dict[str, int]
    stock_speed_distribution: dict[str, int]
    total_revenue: float
    total_data_points: int
    data_quality: dict[str, int]


class ForecastRunResponse(BaseModel):
    success: bool
    run_id: UUID
    as_of: str | None
    results: list[SKUForecastResponse]
    optimization: OptimizationResponse | None
    summary: ForecastSummaryResponse


class ForecastErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str
    results: list = []


class SnapshotResponse(BaseModel):
    product_code: str
    run_id: UUID
    status: str
    abc_class: str
    stock_speed: str
    computed_at: datetime
    forecast: SKUForecastResponse


class RunRecordResponse(BaseModel):
    run_id: UUID
    action: str
    horizon_days: int
    service_level: float
    budget: float | None
    total_products: int
    critical_items: int
    malformed_rows: int
    missing_inventory_records: int
    completed_at: datetime

    model_config = {"from_attributes": True}


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.post(
    "/run",
    response_model=ForecastRunResponse,
    responses={400: {"model": ForecastErrorResponse}, 404: {"model": ForecastErrorResponse}},
)
async def run_forecast(
    body: ForecastRunRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Run the forecast engine over the current ledger and catalog."""
    params = build_parameters(
        settings,
        action=body.action,
        horizon_days=body.horizon_days,
        budget=body.budget,
        service_level=body.service_level,
        storage_capacity=body.storage_capacity,
        sku_code=body.sku_code,
    )
    payload = await ForecastOrchestrator(db, settings).run(params)
    if not payload["success"]:
        return JSONResponse(status_code=ERROR_STATUS.get(payload["error"], 500), content=payload)
    return payload


@router.get("/latest", response_model=list[SnapshotResponse])
async def latest_snapshot(
    status: Literal["CRITICAL", "LOW", "OK"] | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Latest persisted forecast per product, most urgent first."""
    rows = await load_snapshot(db, status=status)
    return [
        SnapshotResponse(
            product_code=row.product_code,
            run_id=row.run_id,
            status=row.status,
            abc_class=row.abc_class,
            stock_speed=row.stock_speed,
            computed_at=row.computed_at,
            forecast=SKUForecastResponse(**row.payload),
        )
        for row in rows
    ]


@router.get("/runs", response_model=list[RunRecordResponse])
async def forecast_runs(
    limit: int = Query(20, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """Most recent forecast runs."""
    return await list_runs(db, limit=limit)
