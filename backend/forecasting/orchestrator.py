"""
Forecast Orchestrator — Load, compute, persist, respond.

Two actions:
  - full_forecast: ledger + catalog → SKUForecast[] + ForecastSummary
  - optimize:      the same, plus a budget-constrained purchase plan

Failure semantics:
  - Fatal (NoDataError, InvalidBudgetError): nothing is computed or
    persisted; the caller gets {success: false, error: <code>}.
  - Non-fatal (malformed rows, missing catalog rows): skipped/defaulted
    and tallied in summary.data_quality.

Each run aggregates into its own local maps; nothing is cached between
runs. The snapshot swap is atomic (see forecasting.snapshot).
"""

import uuid
from dataclasses import asdict
from datetime import date
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from db.models import InventoryItem, SalesLedgerEntry
from forecasting.aggregator import parse_ledger
from forecasting.engine import (
    ForecastAction,
    ForecastOutcome,
    ForecastParameters,
    InventoryRecord,
    run_forecast,
    validate_parameters,
)
from forecasting.errors import ForecastError, NoDataError
from forecasting.snapshot import replace_snapshot

logger = structlog.get_logger()


def build_parameters(
    settings: Settings,
    action: ForecastAction = "full_forecast",
    horizon_days: int | None = None,
    budget: float | None = None,
    service_level: float | None = None,
    storage_capacity: int | None = None,
    sku_code: str | None = None,
) -> ForecastParameters:
    """Merge request overrides onto configured defaults."""
    return ForecastParameters(
        action=action,
        horizon_days=horizon_days or settings.forecast_horizon_days,
        service_level=service_level or settings.service_level,
        default_lead_time_days=settings.default_lead_time_days,
        fast_turn_threshold=settings.fast_turn_threshold,
        dead_demand_threshold=settings.dead_demand_threshold,
        expiry_window_days=settings.expiry_window_days,
        default_min_stock=settings.default_min_stock,
        default_max_stock=settings.default_max_stock,
        budget=budget,
        storage_capacity=storage_capacity,
        sku_code=sku_code,
    )


def failure_response(error: ForecastError) -> dict[str, Any]:
    return {"success": False, "error": error.code, "message": error.message, "results": []}


def success_response(run_id: uuid.UUID, outcome: ForecastOutcome, params: ForecastParameters) -> dict[str, Any]:
    results = [fc.to_dict() for fc in outcome.forecasts]
    if params.sku_code:
        results = [r for r in results if r["product_code"] == params.sku_code]

    return {
        "success": True,
        "run_id": str(run_id),
        "as_of": outcome.as_of.isoformat() if outcome.as_of else None,
        "results": results,
        "optimization": asdict(outcome.optimization) if outcome.optimization else None,
        "summary": asdict(outcome.summary),
    }


class ForecastOrchestrator:
    """Run the forecast pipeline against the ledger and catalog tables."""

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()

    async def load_ledger_rows(self) -> list[dict[str, Any]]:
        result = await self.db.execute(
            select(
                SalesLedgerEntry.entry_id,
                SalesLedgerEntry.sale_date,
                SalesLedgerEntry.product_code,
                SalesLedgerEntry.product_name,
                SalesLedgerEntry.quantity,
                SalesLedgerEntry.unit_price,
            ).order_by(SalesLedgerEntry.entry_id)
        )
        return [dict(row) for row in result.mappings().all()]

    async def load_catalog(self) -> dict[str, InventoryRecord]:
        result = await self.db.execute(select(InventoryItem))
        return {
            item.product_code: InventoryRecord(
                product_code=item.product_code,
                name=item.name,
                current_stock=item.stock_quantity or 0,
                min_stock=item.min_stock,
                max_stock=item.max_stock,
                purchase_price=item.purchase_price,
                selling_price=item.selling_price,
                supplier=item.supplier,
                generic_name=item.generic_name,
                dosage_form=item.dosage_form,
                strength=item.strength,
                expiry_date=item.expiry_date,
                lead_time_days=item.lead_time_days,
            )
            for item in result.scalars().all()
        }

    async def run(self, params: ForecastParameters, today: date | None = None) -> dict[str, Any]:
        """
        Execute one forecast run.

        Returns the response payload; fatal errors come back as
        {success: false, ...} rather than raising.
        """
        run_id = uuid.uuid4()
        today = today or date.today()
        log = logger.bind(run_id=str(run_id), action=params.action, horizon_days=params.horizon_days)
        log.info("forecast.started")

        try:
            validate_parameters(params)

            rows = await self.load_ledger_rows()
            records, malformed = parse_ledger(rows)
            if not records:
                raise NoDataError(
                    f"No usable sales data found ({len(rows)} ledger rows, {len(malformed)} malformed). "
                    "Import transaction history first."
                )

            catalog = await self.load_catalog()
            outcome = run_forecast(records, catalog, params, today, malformed_rows=len(malformed))
        except ForecastError as exc:
            log.warning("forecast.failed", error=exc.code, message=exc.message)
            return failure_response(exc)

        await replace_snapshot(self.db, run_id, outcome.forecasts, params, outcome.summary)

        log.info(
            "forecast.completed",
            products=outcome.summary.total_products,
            critical=outcome.summary.critical_items,
            malformed_rows=outcome.summary.data_quality["malformed_rows"],
            missing_inventory_records=outcome.summary.data_quality["missing_inventory_records"],
        )
        return success_response(run_id, outcome, params)
