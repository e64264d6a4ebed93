"""
Celery Application Configuration
"""

from celery import Celery
from celery.schedules import crontab

from core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "rxcast",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "workers.forecast.*": {"queue": "forecast"},
    },
    # ── Celery Beat Schedule ─────────────────────────────────────────
    beat_schedule={
        "forecast-nightly": {
            "task": "workers.forecast.run_nightly_forecast",
            "schedule": crontab(hour=settings.nightly_forecast_hour, minute=settings.nightly_forecast_minute),
            "options": {"queue": "forecast"},
        },
    },
)

# Auto-discover tasks
celery_app.autodiscover_tasks(["workers"])
