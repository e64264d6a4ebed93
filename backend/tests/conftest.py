"""
Test Configuration — Fixtures for async DB, test client, and seeded ledger data.

Uses per-test transactions with SAVEPOINT/rollback so each test gets a
clean database state while sharing the same session-level schema.
"""

from datetime import date, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from api.deps import get_db
from api.main import app
from db.session import Base
from forecasting.aggregator import SalesRecord
from forecasting.engine import InventoryRecord

# Use in-memory SQLite for tests (no JSONB / advisory locks).
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TODAY = date(2024, 6, 30)


@pytest.fixture(scope="session")
async def test_engine():
    """Create a test database engine and build all tables once."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_db(test_engine):
    """Create a test session wrapped in a transaction that rolls back after each test."""
    async with test_engine.connect() as conn:
        trans = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)

        # Use SAVEPOINT so nested commits inside app code don't end our transaction
        @event.listens_for(session.sync_session, "after_transaction_end")
        def restart_savepoint(db_session, transaction):
            if transaction.nested and not transaction._parent.nested:
                session.sync_session.begin_nested()

        await conn.begin_nested()  # SAVEPOINT

        yield session

        await session.close()
        await trans.rollback()


@pytest.fixture
async def client(test_db):
    """Create an async test client with dependency overrides."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


def _daily_records(code: str, quantities: list[float], start: date, unit_price: float) -> list[SalesRecord]:
    return [
        SalesRecord(
            sale_date=start + timedelta(days=i),
            product_code=code,
            product_name=f"Product {code}",
            quantity=q,
            unit_price=unit_price,
        )
        for i, q in enumerate(quantities)
    ]


@pytest.fixture
def sample_records():
    """
    Three products over the last 10 days of June 2024.

    AMOX  10/day at 5.00  → revenue 500, the bulk of the catalog
    IBU   ~4/day at 2.00  → revenue 80
    VITC  1/day at 2.00   → revenue 20
    """
    start = date(2024, 6, 21)
    return (
        _daily_records("AMOX", [10.0] * 10, start, unit_price=5.0)
        + _daily_records("IBU", [2.0, 6.0, 4.0, 4.0, 2.0, 6.0, 4.0, 4.0, 4.0, 4.0], start, unit_price=2.0)
        + _daily_records("VITC", [1.0] * 10, start, unit_price=2.0)
    )


@pytest.fixture
def sample_catalog():
    return {
        "AMOX": InventoryRecord(
            product_code="AMOX",
            name="Amoxicillin 500mg",
            current_stock=20,
            min_stock=20,
            max_stock=400,
            purchase_price=3.0,
            selling_price=5.0,
            supplier="MedSupply",
            generic_name="amoxicillin",
            dosage_form="capsule",
            strength="500mg",
            lead_time_days=7,
        ),
        "IBU": InventoryRecord(
            product_code="IBU",
            name="Ibuprofen 200mg",
            current_stock=500,
            min_stock=10,
            max_stock=600,
            purchase_price=1.0,
            selling_price=2.0,
            expiry_date=TODAY + timedelta(days=30),
        ),
        "VITC": InventoryRecord(
            product_code="VITC",
            name="Vitamin C 1000mg",
            current_stock=12,
            min_stock=5,
            max_stock=50,
            purchase_price=1.5,
            selling_price=2.0,
        ),
    }


@pytest.fixture
async def seeded_ledger(test_db):
    """Seed the ledger and catalog tables for API / orchestrator tests."""
    from db.models import InventoryItem, SalesLedgerEntry

    start = date(2024, 6, 21)
    for i in range(10):
        day = start + timedelta(days=i)
        test_db.add(
            SalesLedgerEntry(
                sale_date=day.isoformat(),
                product_code="AMOX",
                product_name="Amoxicillin 500mg",
                quantity=10,
                unit_price=5.0,
            )
        )
        test_db.add(
            SalesLedgerEntry(
                sale_date=day.strftime("%m/%d/%Y"),
                product_code="VITC",
                product_name="Vitamin C 1000mg",
                quantity=1,
                unit_price=2.0,
            )
        )
    # Not in the catalog: defaults apply
    test_db.add(
        SalesLedgerEntry(
            sale_date="2024-06-30",
            product_code="ZINC",
            product_name="Zinc 50mg",
            quantity=3,
            unit_price=4.0,
        )
    )
    # Unparseable date: skipped and tallied
    test_db.add(
        SalesLedgerEntry(
            sale_date="not-a-date",
            product_code="AMOX",
            product_name="Amoxicillin 500mg",
            quantity=10,
            unit_price=5.0,
        )
    )

    test_db.add_all(
        [
            InventoryItem(
                product_code="AMOX",
                name="Amoxicillin 500mg",
                stock_quantity=20,
                min_stock=20,
                max_stock=400,
                purchase_price=3.0,
                selling_price=5.0,
                lead_time_days=7,
            ),
            InventoryItem(
                product_code="VITC",
                name="Vitamin C 1000mg",
                stock_quantity=40,
                min_stock=5,
                max_stock=50,
                purchase_price=1.5,
                selling_price=2.0,
            ),
        ]
    )
    await test_db.flush()
    await test_db.commit()
    return {"products": ["AMOX", "VITC", "ZINC"]}
