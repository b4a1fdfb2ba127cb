"""
Pytest fixtures for the sales document test suite.

Provides:
- An in-memory SQLite database per test (aiosqlite + StaticPool)
- Seeded currencies: USD as base, EUR at 2.654321
- Actors for the roles the capability map knows about
- Invoice creators that count or fail their calls
- An httpx client bound to the FastAPI app with the DB session overridden
"""

import os

# Config is validated at import time; these must exist before any app import
os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("DB_TYPE", "sqlite")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_ACCESS_SECRET_KEY", "test-secret-key")

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import httpx
import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.db import Base, get_db
from app.core.security import create_access_token
from app.models.billing.currency_models import Currency, ExchangeRate
from app.schemas.auth.auth_schemas import Actor
from app.schemas.billing.sales_document_schemas import SalesDocumentCreate, SalesDocumentItemIn
from app.services.billing.invoice_service import LocalInvoiceCreator

# Fixed clock for service-level tests
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()

EUR_RATE = Decimal("2.654321")


def days_later(days: int) -> datetime:
    return NOW + timedelta(days=days)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(eng.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def currencies(session_factory):
    """USD is the base currency; EUR has one rate effective long before every test date."""
    async with session_factory() as session:
        usd = Currency(code="USD", name="US Dollar", symbol="$", decimal_places=2, is_base=True)
        eur = Currency(code="EUR", name="Euro", symbol="€", decimal_places=2, is_base=False)
        session.add_all([usd, eur])
        await session.flush()

        session.add(ExchangeRate(currency_id=eur.id, rate=EUR_RATE, effective_date=date(2000, 1, 1)))
        await session.commit()

        return {"USD": usd.id, "EUR": eur.id}


# =============================================================================
# Actors
# =============================================================================


@pytest.fixture
def admin():
    return Actor(id=1, username="admin@example.com", role="admin")


@pytest.fixture
def sales_user():
    return Actor(id=2, username="sales@example.com", role="sales")


@pytest.fixture
def cashier():
    return Actor(id=3, username="cashier@example.com", role="cashier")


@pytest.fixture
def accountant():
    return Actor(id=4, username="accountant@example.com", role="accountant")


# =============================================================================
# Payloads
# =============================================================================


@pytest.fixture
def make_payload(currencies):
    """Build a create payload worth 1000.00 in EUR unless overridden."""

    def _make(**overrides) -> SalesDocumentCreate:
        data = {
            "document_date": TODAY,
            "customer_id": 10,
            "store_id": 1,
            "currency_id": currencies["EUR"],
            "valid_until": TODAY + timedelta(days=30),
            "shipping_address": "12 Harbour Road",
            "notes": "Spring catalogue",
            "items": [
                SalesDocumentItemIn(
                    product_id=100,
                    description="Oak table",
                    quantity=Decimal("10"),
                    unit_price=Decimal("100.00"),
                )
            ],
        }
        data.update(overrides)
        return SalesDocumentCreate(**data)

    return _make


# =============================================================================
# Invoice creators
# =============================================================================


class CountingInvoiceCreator:
    """Delegates to the local creator and records how often it was called."""

    def __init__(self, db):
        self.inner = LocalInvoiceCreator(db)
        self.calls = 0

    async def create_invoice(self, draft, actor):
        self.calls += 1
        return await self.inner.create_invoice(draft, actor)


class FailingInvoiceCreator:
    def __init__(self, error: Exception | None = None):
        self.error = error or RuntimeError("billing service unavailable")
        self.calls = 0

    async def create_invoice(self, draft, actor):
        self.calls += 1
        raise self.error


@pytest.fixture
def counting_creator(db):
    return CountingInvoiceCreator(db)


@pytest.fixture
def failing_creator():
    return FailingInvoiceCreator()


# =============================================================================
# HTTP
# =============================================================================


def auth_headers(user_id: int, username: str, role: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, username, role)}"}


@pytest.fixture
async def client(session_factory, currencies):
    from main import app

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return auth_headers(1, "admin@example.com", "admin")


@pytest.fixture
def sales_headers():
    return auth_headers(2, "sales@example.com", "sales")
