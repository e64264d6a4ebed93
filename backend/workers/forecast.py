"""
Forecast Worker — Nightly full_forecast run.

Recomputes every SKUForecast from the ledger and catalog and swaps the
persisted snapshot, so GET /api/v1/forecasts/latest is fresh each morning
without anyone calling POST /run.

Schedule: crontab(hour=2, minute=30) by default (NIGHTLY_FORECAST_HOUR/MINUTE)
Queue: forecast
"""

import asyncio

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from workers.celery_app import celery_app

logger = structlog.get_logger()


@celery_app.task(
    name="workers.forecast.run_nightly_forecast",
    bind=True,
    max_retries=2,
    default_retry_delay=300,
    acks_late=True,
)
def run_nightly_forecast(self, horizon_days: int | None = None):
    """
    Nightly job: full_forecast over the whole catalog.

    A no_data result is not retried; an empty ledger will still be empty
    in five minutes. Infrastructure failures (DB down, lock timeout) are.
    """
    task_id = self.request.id or "manual"
    logger.info("forecast.nightly_started", task_id=task_id)

    async def _run():
        from core.config import get_settings
        from forecasting.orchestrator import ForecastOrchestrator, build_parameters

        settings = get_settings()
        engine = create_async_engine(settings.database_url)
        try:
            async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
            async with async_session() as db:
                params = build_parameters(settings, action="full_forecast", horizon_days=horizon_days)
                return await ForecastOrchestrator(db, settings).run(params)
        finally:
            await engine.dispose()

    try:
        payload = asyncio.run(_run())
    except Exception as exc:
        logger.error("forecast.nightly_failed", task_id=task_id, error=str(exc), exc_info=True)
        raise self.retry(exc=exc)

    if not payload["success"]:
        logger.warning("forecast.nightly_skipped", task_id=task_id, error=payload["error"])
        return {"status": "skipped", "error": payload["error"], "message": payload["message"]}

    summary = payload["summary"]
    logger.info(
        "forecast.nightly_completed",
        task_id=task_id,
        run_id=payload["run_id"],
        products=summary["total_products"],
        critical=summary["critical_items"],
    )
    return {
        "status": "success",
        "run_id": payload["run_id"],
        "total_products": summary["total_products"],
        "critical_items": summary["critical_items"],
        "low_stock_items": summary["low_stock_items"],
    }
