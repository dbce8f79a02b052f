"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for the connection,
AsyncSession for per-request database access, dependency injection via FastAPI.

The default store is an embedded SQLite file (aiosqlite driver). SQLite
pragmas are applied on every new DBAPI connection.
"""

from sqlalchemy import event, insert, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from runlens.config import settings
from runlens.db.models import Base, BudgetConfig, utcnow


def make_engine(url: str, echo: bool = False, **kwargs) -> AsyncEngine:
    """Create an async engine; SQLite connections get production pragmas."""
    engine = create_async_engine(url, echo=echo, **kwargs)
    if engine.dialect.name == "sqlite":
        in_memory = engine.url.database in (None, "", ":memory:")

        @event.listens_for(engine.sync_engine, "connect")
        def _sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.execute("PRAGMA busy_timeout = 5000")
            if not in_memory:
                cursor.execute("PRAGMA journal_mode = WAL")
                cursor.execute("PRAGMA synchronous = NORMAL")
            cursor.close()

    return engine


# echo=True in debug to see SQL queries.
engine = make_engine(settings.resolved_database_url, echo=settings.debug)

# Session factory — each request gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db(target: AsyncEngine) -> None:
    """Create tables and seed the singleton budget row (caps disabled)."""
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        existing = await conn.execute(select(BudgetConfig.id).where(BudgetConfig.id == 1))
        if existing.first() is None:
            await conn.execute(
                insert(BudgetConfig).values(
                    id=1,
                    max_per_session_usd=0.0,
                    max_per_day_usd=0.0,
                    alert_threshold_pct=80.0,
                    updated_at=utcnow(),
                )
            )


async def get_db() -> AsyncSession:
    """FastAPI dependency — yields a session per request, auto-closes."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
