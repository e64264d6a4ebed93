"""
Tests for the Snapshot Store — atomic replace of the latest per-product forecasts.
"""

import uuid
from dataclasses import replace
from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError

from forecasting.engine import ForecastParameters, run_forecast
from forecasting.snapshot import list_runs, load_snapshot, replace_snapshot

TODAY = date(2024, 6, 30)


@pytest.fixture
def outcome(sample_records, sample_catalog):
    return run_forecast(sample_records, sample_catalog, ForecastParameters(), TODAY)


@pytest.mark.asyncio
class TestReplaceSnapshot:
    async def test_writes_rows_and_run(self, test_db, outcome):
        run_id = uuid.uuid4()
        await replace_snapshot(test_db, run_id, outcome.forecasts, ForecastParameters(), outcome.summary)

        rows = await load_snapshot(test_db)
        assert [row.product_code for row in rows] == ["AMOX", "VITC", "IBU"]
        assert {row.run_id for row in rows} == {run_id}

        runs = await list_runs(test_db)
        assert [run.run_id for run in runs] == [run_id]
        assert runs[0].total_products == 3

    async def test_failed_write_keeps_previous_snapshot(self, test_db, outcome):
        first_run = uuid.uuid4()
        await replace_snapshot(test_db, first_run, outcome.forecasts, ForecastParameters(), outcome.summary)

        # An out-of-range ABC class violates the table constraint mid-write
        bad = [replace(fc, abc_class="Z") for fc in outcome.forecasts]
        with pytest.raises(IntegrityError):
            await replace_snapshot(test_db, uuid.uuid4(), bad, ForecastParameters(), outcome.summary)

        rows = await load_snapshot(test_db)
        assert len(rows) == 3
        assert {row.run_id for row in rows} == {first_run}
        assert {row.abc_class for row in rows} <= {"A", "B", "C"}
        assert [run.run_id for run in await list_runs(test_db)] == [first_run]
