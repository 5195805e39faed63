"""
Finance backend - Test Configuration
Shared fixtures: an in-memory SQLite database per test and rate builders.
"""
import os
from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment before the settings object is created
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from finance.database import Base  # noqa: E402
from finance.models.exchange_rate import ExchangeRate, RateSource  # noqa: E402


@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory database shared by every session of one test"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_rate():
    """Build a transient ExchangeRate"""
    def _make_rate(rate_date: date, currency: str, rate, source: RateSource = RateSource.RECENT_FEED):
        return ExchangeRate(
            date=rate_date,
            target_currency=currency,
            rate=Decimal(str(rate)),
            source=source
        )
    return _make_rate


@pytest_asyncio.fixture
async def seed_rates(session_factory, make_rate):
    """Insert (date, currency, rate) triples and commit"""
    async def _seed(*rows):
        async with session_factory() as session:
            for rate_date, currency, rate in rows:
                session.add(make_rate(rate_date, currency, rate))
            await session.commit()
    return _seed
