"""Test fixtures — a fresh in-memory event store per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI + aiosqlite:

1. Each test gets its own in-memory SQLite engine. StaticPool keeps a
   single connection alive, so every session opened on the engine sees
   the same database.
2. init_db creates the schema and seeds the budget row, exactly as the
   app lifespan does at startup.
3. The HTTP client overrides get_db so each request gets its own
   AsyncSession on the test engine, like production.

Nothing survives the test: disposing the engine drops the database.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from runlens.db.engine import get_db, init_db, make_engine
from runlens.events.store import EventStore
from runlens.main import app
from runlens.metrics.cost import PricingTable, PricingTier
from runlens.services.session_service import SessionService

TEST_DB_URL = "sqlite+aiosqlite://"

# Fixed prices so cost assertions don't depend on RUNLENS_PRICE_* env vars.
PRO = PricingTier(input_per_1m=0.075, output_per_1m=0.30)
FLASH = PricingTier(input_per_1m=0.0375, output_per_1m=0.15)
TEST_PRICING = PricingTable(default=PRO, families={"flash": FLASH})


@pytest_asyncio.fixture()
async def engine():
    eng = make_engine(TEST_DB_URL, poolclass=StaticPool)
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture()
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def store(db_session):
    return EventStore(db_session)


@pytest_asyncio.fixture()
async def service(db_session):
    return SessionService(db_session, pricing=TEST_PRICING)


@pytest_asyncio.fixture()
async def client(session_factory):
    """HTTP client with the app's get_db pointed at the test engine."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture()
def pricing():
    return TEST_PRICING
