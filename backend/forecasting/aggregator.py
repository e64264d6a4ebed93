"""
Sales Aggregator — Roll raw ledger rows into per-product summaries.

The ledger is append-only and unordered. Each run re-parses every row,
groups by product code and produces a ProductAggregate per product:

  - total quantity and row count ("active days": one row = one recorded day,
    zero-quantity rows included)
  - per-row quantities with their mean and population std dev (σ)
  - 12 calendar-month buckets, summed across every year in the ledger
  - unit price: the non-zero price on the latest-dated row

Rows with an unparseable date or quantity are skipped and reported back as
MalformedSalesRow warnings so the orchestrator can tally them.
"""

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import numpy as np
import pandas as pd
import structlog

from forecasting.errors import MalformedSalesRow

logger = structlog.get_logger()

# Ledger exports arrive in either format
DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y")

MONTHS = range(1, 13)


@dataclass(frozen=True)
class SalesRecord:
    """One immutable ledger fact."""

    sale_date: date
    product_code: str
    product_name: str
    quantity: float
    unit_price: float


@dataclass(frozen=True)
class ProductAggregate:
    """Per-product roll-up of the ledger, recomputed every run."""

    product_code: str
    product_name: str
    total_quantity: float
    active_days: int
    quantities: tuple[float, ...]
    mean_daily_quantity: float
    std_dev: float  # σ (population), not a variance
    monthly_totals: tuple[float, ...]  # index 0 = January
    unit_price: float
    last_sale_date: date

    @property
    def total_revenue(self) -> float:
        return self.total_quantity * self.unit_price


def parse_sale_date(value: Any) -> date:
    """Accept date/datetime objects or ISO / US-style strings."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"missing date ({value!r})")

    text = value.strip()
    # Drop a trailing time component: "2024-03-01T00:00:00" / "2024-03-01 00:00"
    text = text.replace("T", " ").split(" ")[0]
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"unrecognized date {value!r}")


def _parse_number(value: Any) -> float:
    if value is None or isinstance(value, bool):
        raise ValueError(f"not a number ({value!r})")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number ({value!r})")
    return number


def parse_sales_row(row: Mapping[str, Any]) -> SalesRecord:
    """
    Validate one raw ledger row.

    Raises:
        MalformedSalesRow if the product code, date or quantity is unusable.
    """
    entry_id = row.get("entry_id")

    product_code = row.get("product_code")
    if product_code is None or not str(product_code).strip():
        raise MalformedSalesRow(entry_id, "missing product code")

    try:
        sale_date = parse_sale_date(row.get("sale_date"))
    except ValueError as exc:
        raise MalformedSalesRow(entry_id, str(exc)) from exc

    try:
        quantity = _parse_number(row.get("quantity"))
    except (TypeError, ValueError) as exc:
        raise MalformedSalesRow(entry_id, f"bad quantity: {exc}") from exc

    # Price is informational; an unreadable price counts as "no price"
    try:
        unit_price = max(0.0, _parse_number(row.get("unit_price")))
    except (TypeError, ValueError):
        unit_price = 0.0

    code = str(product_code).strip()
    return SalesRecord(
        sale_date=sale_date,
        product_code=code,
        product_name=str(row.get("product_name") or code),
        quantity=quantity,
        unit_price=unit_price,
    )


def parse_ledger(rows: Iterable[Mapping[str, Any]]) -> tuple[list[SalesRecord], list[MalformedSalesRow]]:
    """Parse every ledger row; malformed rows are collected, not raised."""
    records: list[SalesRecord] = []
    malformed: list[MalformedSalesRow] = []
    for row in rows:
        try:
            records.append(parse_sales_row(row))
        except MalformedSalesRow as warning:
            malformed.append(warning)
            logger.warning("sales.malformed_row", entry_id=warning.entry_id, reason=warning.reason)
    return records, malformed


def aggregate_sales(records: Sequence[SalesRecord]) -> dict[str, ProductAggregate]:
    """
    Group ledger records by product code.

    Returns a fresh dict keyed by product code (sorted), so no state carries
    over between runs.
    """
    if not records:
        return {}

    frame = pd.DataFrame.from_records(
        [
            (r.sale_date, r.product_code, r.product_name, r.quantity, r.unit_price)
            for r in records
        ],
        columns=["sale_date", "product_code", "product_name", "quantity", "unit_price"],
    )
    frame["sale_date"] = pd.to_datetime(frame["sale_date"])
    frame["month"] = frame["sale_date"].dt.month
    # Stable sort keeps ledger order for same-day rows
    frame = frame.sort_values("sale_date", kind="mergesort")

    aggregates: dict[str, ProductAggregate] = {}
    for code, group in frame.groupby("product_code", sort=True):
        quantities = group["quantity"].to_numpy(dtype=float)

        priced = group.loc[group["unit_price"] > 0, "unit_price"]
        unit_price = float(priced.iloc[-1]) if not priced.empty else 0.0

        monthly = group.groupby("month")["quantity"].sum().reindex(MONTHS, fill_value=0.0)

        aggregates[str(code)] = ProductAggregate(
            product_code=str(code),
            product_name=str(group["product_name"].iloc[-1]),
            total_quantity=float(quantities.sum()),
            active_days=int(len(quantities)),
            quantities=tuple(float(q) for q in quantities),
            mean_daily_quantity=float(quantities.mean()),
            std_dev=float(np.std(quantities, ddof=0)),
            monthly_totals=tuple(float(v) for v in monthly.to_numpy()),
            unit_price=unit_price,
            last_sale_date=group["sale_date"].iloc[-1].date(),
        )

    return aggregates
