"""
Forecast engine error taxonomy.

Fatal errors (ForecastError) abort the whole run and surface to the caller
as {success: false, error: <code>}. Data-quality warnings are non-fatal:
the affected row or product is skipped/defaulted and tallied into the
run summary.
"""


class ForecastError(Exception):
    """Fatal error — the run is aborted."""

    code = "forecast_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NoDataError(ForecastError):
    """The sales ledger is empty (or holds no parseable rows)."""

    code = "no_data"


class InvalidBudgetError(ForecastError):
    """An optimize request arrived without a positive budget."""

    code = "invalid_budget"


class DataQualityWarning(Exception):
    """Non-fatal issue — counted in the summary, never silently dropped."""

    kind = "data_quality"


class MalformedSalesRow(DataQualityWarning):
    """A ledger row has an unparseable date or quantity."""

    kind = "malformed_rows"

    def __init__(self, entry_id, reason: str):
        super().__init__(f"sales row {entry_id}: {reason}")
        self.entry_id = entry_id
        self.reason = reason


class MissingInventoryRecord(DataQualityWarning):
    """A product sells but has no catalog row; defaults are applied."""

    kind = "missing_inventory_records"

    def __init__(self, product_code: str):
        super().__init__(f"no inventory record for product {product_code}")
        self.product_code = product_code
