"""
RxCast Database Models

Tables:
  Source stores (written by the upload/catalog side of the platform):
  1. sales_ledger            - Raw per-row sales facts as imported
  2. inventory_items         - Product catalog with current stock and pricing

  Forecast engine output:
  3. sku_forecast_snapshots  - Latest SKUForecast per product code (replaced per run)
  4. forecast_runs           - Audit trail of every successful forecast run
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    TypeDecorator,
    types,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID


class GUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL UUID when available, stores as CHAR(36) on SQLite.
    """

    impl = types.String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(types.String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return str(value) if isinstance(value, uuid.UUID) else value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONPayload = JSON().with_variant(JSONB(), "postgresql")


from db.session import Base

# ─── 1. Sales Ledger ────────────────────────────────────────────────────────


class SalesLedgerEntry(Base):
    __tablename__ = "sales_ledger"

    entry_id = Column(Integer, primary_key=True, autoincrement=True)
    # Kept as imported text: uploads mix YYYY-MM-DD and MM/DD/YYYY
    sale_date = Column(String(32))
    product_code = Column(String(64), nullable=False)
    product_name = Column(String(255))
    quantity = Column(Float)  # Net units; negative rows are returns
    unit_price = Column(Float)
    imported_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (Index("ix_sales_ledger_product", "product_code"),)


# ─── 2. Inventory Catalog ───────────────────────────────────────────────────


class InventoryItem(Base):
    __tablename__ = "inventory_items"

    product_code = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    generic_name = Column(String(255))
    dosage_form = Column(String(100))
    strength = Column(String(100))
    supplier = Column(String(255))
    stock_quantity = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer)
    max_stock = Column(Integer)
    purchase_price = Column(Float)
    selling_price = Column(Float)
    lead_time_days = Column(Integer)  # Falls back to settings.default_lead_time_days
    expiry_date = Column(Date)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_inventory_stock_nonneg"),
        CheckConstraint("lead_time_days IS NULL OR lead_time_days > 0", name="ck_inventory_lead_time"),
    )


# ─── 3. SKU Forecast Snapshots ──────────────────────────────────────────────


class SkuForecastSnapshot(Base):
    __tablename__ = "sku_forecast_snapshots"

    product_code = Column(String(64), primary_key=True)
    run_id = Column(GUID(), nullable=False)
    product_name = Column(String(255))
    status = Column(String(10), nullable=False)
    abc_class = Column(String(1), nullable=False)
    stock_speed = Column(String(10), nullable=False)
    payload = Column(JSONPayload, nullable=False)  # Full SKUForecast record
    computed_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("status IN ('CRITICAL', 'LOW', 'OK')", name="ck_snapshot_status"),
        CheckConstraint("abc_class IN ('A', 'B', 'C')", name="ck_snapshot_abc"),
        Index("ix_sku_snapshots_status", "status"),
    )


# ─── 4. Forecast Runs ───────────────────────────────────────────────────────


class ForecastRun(Base):
    __tablename__ = "forecast_runs"

    run_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    action = Column(String(20), nullable=False)
    horizon_days = Column(Integer, nullable=False)
    service_level = Column(Float, nullable=False)
    budget = Column(Float)
    total_products = Column(Integer, nullable=False, default=0)
    critical_items = Column(Integer, nullable=False, default=0)
    malformed_rows = Column(Integer, nullable=False, default=0)
    missing_inventory_records = Column(Integer, nullable=False, default=0)
    summary = Column(JSONPayload)
    completed_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("action IN ('full_forecast', 'optimize')", name="ck_forecast_run_action"),
        Index("ix_forecast_runs_completed", "completed_at"),
    )
