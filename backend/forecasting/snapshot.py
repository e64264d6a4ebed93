"""
Snapshot Store — Latest SKUForecast per product code.

A run's snapshot replaces the previous one inside a single transaction:
delete every row, insert the new rows, record the run, commit. Readers
see either the old catalog or the new one, never a mix. On PostgreSQL a
transaction-scoped advisory lock also serializes concurrent writers.
"""

import uuid
from collections.abc import Sequence
from dataclasses import asdict
from datetime import datetime

import structlog
from sqlalchemy import case, delete, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import ForecastRun, SkuForecastSnapshot
from forecasting.engine import ForecastParameters, ForecastSummary, SKUForecast

logger = structlog.get_logger()

# Arbitrary app-wide key for pg_advisory_xact_lock
SNAPSHOT_LOCK_KEY = 72_410_301


async def _acquire_writer_lock(db: AsyncSession) -> None:
    if db.get_bind().dialect.name == "postgresql":
        await db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": SNAPSHOT_LOCK_KEY})


async def replace_snapshot(
    db: AsyncSession,
    run_id: uuid.UUID,
    forecasts: Sequence[SKUForecast],
    params: ForecastParameters,
    summary: ForecastSummary,
) -> None:
    """Atomically swap the persisted snapshot for this run's forecasts."""
    computed_at = datetime.utcnow()
    try:
        await _acquire_writer_lock(db)
        await db.execute(delete(SkuForecastSnapshot))
        db.add_all(
            [
                SkuForecastSnapshot(
                    product_code=fc.product_code,
                    run_id=run_id,
                    product_name=fc.product_name,
                    status=fc.status,
                    abc_class=fc.abc_class,
                    stock_speed=fc.stock_speed,
                    payload=fc.to_dict(),
                    computed_at=computed_at,
                )
                for fc in forecasts
            ]
        )
        db.add(
            ForecastRun(
                run_id=run_id,
                action=params.action,
                horizon_days=params.horizon_days,
                service_level=params.service_level,
                budget=params.budget,
                total_products=summary.total_products,
                critical_items=summary.critical_items,
                malformed_rows=summary.data_quality["malformed_rows"],
                missing_inventory_records=summary.data_quality["missing_inventory_records"],
                summary=asdict(summary),
                completed_at=computed_at,
            )
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("snapshot.replaced", run_id=str(run_id), products=len(forecasts))


async def load_snapshot(db: AsyncSession, status: str | None = None) -> list[SkuForecastSnapshot]:
    """Current snapshot rows, most urgent first."""
    severity = case(
        (SkuForecastSnapshot.status == "CRITICAL", 0),
        (SkuForecastSnapshot.status == "LOW", 1),
        else_=2,
    )
    query = select(SkuForecastSnapshot)
    if status:
        query = query.where(SkuForecastSnapshot.status == status)
    query = query.order_by(severity, SkuForecastSnapshot.product_code)
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_runs(db: AsyncSession, limit: int = 20) -> list[ForecastRun]:
    result = await db.execute(select(ForecastRun).order_by(ForecastRun.completed_at.desc()).limit(limit))
    return list(result.scalars().all())
