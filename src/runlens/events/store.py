"""Event store — append-only event log plus session headers and budget config.

Learn: The events table is the source of truth. Nothing derived from it
(costs, percentiles, counts) is ever stored; the analytics layer re-reads
the raw rows on every request. This module is the only place that speaks
SQL — everything above it works with plain rows and dataclasses.

Every read/write converts SQLAlchemyError into StoreError so callers see one
categorized failure. There is no retry here: durability and idempotency of
a retry are the database's concern.
"""

import functools
from contextlib import asynccontextmanager
from datetime import date, datetime, time, timedelta, timezone
from typing import NamedTuple, Optional

import structlog
from sqlalchemy import distinct, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from runlens.db.models import BudgetConfig, Event, Session, utcnow
from runlens.errors import StoreError
from runlens.events.types import ERROR, LLM_KINDS, TOOL_END

logger = structlog.get_logger()

SESSION_STATUSES = ("active", "ended", "all")


class ToolDurationRow(NamedTuple):
    tool_name: str
    duration_ms: int
    is_error: bool


class LlmCharRow(NamedTuple):
    prompt_chars: Optional[int]
    response_chars: Optional[int]
    model: Optional[str]


def _store_op(fn):
    """Wrap an async store method so driver failures surface as StoreError."""

    @functools.wraps(fn)
    async def wrapper(self, *args, **kwargs):
        try:
            return await fn(self, *args, **kwargs)
        except SQLAlchemyError as e:
            logger.error("store.operation_failed", operation=fn.__name__, error=str(e))
            raise StoreError(f"{fn.__name__} failed: {e}") from e

    return wrapper


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC [start, end) of a calendar day."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


class EventStore:
    """Append-only event store backed by SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Transactions ─────────────────────────────────────

    @asynccontextmanager
    async def transaction(self):
        """All-or-nothing scope: commit on success, rollback on any failure."""
        try:
            yield self
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("store.transaction_failed", error=str(e))
            raise StoreError(f"transaction failed: {e}") from e
        except BaseException:
            await self.db.rollback()
            raise

    # ─── Sessions ─────────────────────────────────────────

    @_store_op
    async def get_session(self, session_id: str) -> Optional[Session]:
        result = await self.db.execute(select(Session).where(Session.id == session_id))
        return result.scalars().first()

    @_store_op
    async def insert_session(
        self,
        session_id: str,
        started_at: datetime,
        label: Optional[str] = None,
        model: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Session:
        session = Session(
            id=session_id,
            label=label,
            model=model,
            started_at=started_at,
            meta=metadata or {},
        )
        self.db.add(session)
        await self.db.flush()
        return session

    @_store_op
    async def close_session(self, session_id: str, ended_at: datetime) -> int:
        """Set the end timestamp. The WHERE clause keeps ending terminal.

        Returns the number of rows updated: 0 when the session was already ended.
        """
        result = await self.db.execute(
            update(Session)
            .where(Session.id == session_id, Session.ended_at.is_(None))
            .values(ended_at=ended_at)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount

    @_store_op
    async def backfill_model(self, session_id: str, model: str) -> None:
        """Record the session model only if none is known yet."""
        await self.db.execute(
            update(Session)
            .where(Session.id == session_id, Session.model.is_(None))
            .values(model=model)
            .execution_options(synchronize_session="fetch")
        )

    @_store_op
    async def list_sessions(self, status: str = "all", limit: int = 10) -> list[Session]:
        query = select(Session).order_by(Session.started_at.desc(), Session.id).limit(limit)
        if status == "active":
            query = query.where(Session.ended_at.is_(None))
        elif status == "ended":
            query = query.where(Session.ended_at.is_not(None))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    @_store_op
    async def daily_session_count(self, day: date) -> int:
        start, end = day_bounds(day)
        result = await self.db.execute(
            select(func.count(Session.id))
            .where(Session.started_at >= start)
            .where(Session.started_at < end)
        )
        return int(result.scalar() or 0)

    # ─── Events ───────────────────────────────────────────

    @_store_op
    async def insert_event(
        self,
        session_id: str,
        kind: str,
        *,
        tool_name: Optional[str] = None,
        model: Optional[str] = None,
        prompt_chars: Optional[int] = None,
        response_chars: Optional[int] = None,
        duration_ms: Optional[int] = None,
        error_message: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Event:
        """Append an event stamped with the store's clock."""
        event = Event(
            session_id=session_id,
            kind=kind,
            tool_name=tool_name,
            model=model,
            prompt_chars=prompt_chars,
            response_chars=response_chars,
            duration_ms=duration_ms,
            error_message=error_message,
            meta=metadata or {},
            recorded_at=utcnow(),
        )
        self.db.add(event)
        await self.db.flush()  # get the auto-generated id
        return event

    @_store_op
    async def read_session(self, session_id: str) -> list[Event]:
        """All events of a session in arrival order."""
        result = await self.db.execute(
            select(Event).where(Event.session_id == session_id).order_by(Event.id)
        )
        return list(result.scalars().all())

    def _tool_duration_query(self):
        return (
            select(
                Event.tool_name,
                Event.duration_ms,
                Event.error_message.is_not(None).label("is_error"),
            )
            .where(Event.kind == TOOL_END)
            .where(Event.tool_name.is_not(None))
            .where(Event.duration_ms.is_not(None))
            .order_by(Event.id)
        )

    @_store_op
    async def tool_durations(self, session_id: str) -> list[ToolDurationRow]:
        """TOOL_END rows carrying both a tool name and a duration."""
        result = await self.db.execute(
            self._tool_duration_query().where(Event.session_id == session_id)
        )
        return [ToolDurationRow(r.tool_name, r.duration_ms, bool(r.is_error)) for r in result]

    @_store_op
    async def all_tool_durations(self) -> list[ToolDurationRow]:
        result = await self.db.execute(self._tool_duration_query())
        return [ToolDurationRow(r.tool_name, r.duration_ms, bool(r.is_error)) for r in result]

    @_store_op
    async def llm_char_rows(self, session_id: str) -> list[LlmCharRow]:
        result = await self.db.execute(
            select(Event.prompt_chars, Event.response_chars, Event.model)
            .where(Event.session_id == session_id)
            .where(Event.kind.in_(LLM_KINDS))
            .order_by(Event.id)
        )
        return [LlmCharRow(r.prompt_chars, r.response_chars, r.model) for r in result]

    @_store_op
    async def daily_llm_chars(self, day: date) -> tuple[int, int]:
        """(prompt, response) character sums for sessions started on ``day`` (UTC)."""
        start, end = day_bounds(day)
        result = await self.db.execute(
            select(
                func.coalesce(func.sum(Event.prompt_chars), 0),
                func.coalesce(func.sum(Event.response_chars), 0),
            )
            .join(Session, Session.id == Event.session_id)
            .where(Session.started_at >= start)
            .where(Session.started_at < end)
            .where(Event.kind.in_(LLM_KINDS))
        )
        row = result.one()
        return int(row[0]), int(row[1])

    @_store_op
    async def count_by_kind(self, session_id: str, kind: str) -> int:
        result = await self.db.execute(
            select(func.count(Event.id))
            .where(Event.session_id == session_id)
            .where(Event.kind == kind)
        )
        return int(result.scalar() or 0)

    async def error_count(self, session_id: str) -> int:
        return await self.count_by_kind(session_id, ERROR)

    @_store_op
    async def distinct_tool_names(self, session_id: str) -> list[str]:
        result = await self.db.execute(
            select(distinct(Event.tool_name))
            .where(Event.session_id == session_id)
            .where(Event.tool_name.is_not(None))
            .order_by(Event.tool_name)
        )
        return list(result.scalars().all())

    # ─── Budget config ────────────────────────────────────

    @_store_op
    async def get_budget_config(self) -> BudgetConfig:
        """The singleton row, created with caps disabled if it is missing."""
        config = await self.db.get(BudgetConfig, 1)
        if config is None:
            config = BudgetConfig(
                id=1,
                max_per_session_usd=0.0,
                max_per_day_usd=0.0,
                alert_threshold_pct=80.0,
                updated_at=utcnow(),
            )
            self.db.add(config)
            await self.db.flush()
        return config

    @_store_op
    async def update_budget_config(
        self,
        max_per_session_usd: Optional[float] = None,
        max_per_day_usd: Optional[float] = None,
        alert_threshold_pct: Optional[float] = None,
    ) -> BudgetConfig:
        """Merge supplied fields over the current values; omitted fields keep theirs."""
        config = await self.get_budget_config()
        if max_per_session_usd is not None:
            config.max_per_session_usd = max_per_session_usd
        if max_per_day_usd is not None:
            config.max_per_day_usd = max_per_day_usd
        if alert_threshold_pct is not None:
            config.alert_threshold_pct = alert_threshold_pct
        config.updated_at = utcnow()
        await self.db.flush()
        return config
