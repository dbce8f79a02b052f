"""Session service — the operations agents and humans call.

Learn: An agent opens a session at the start of a task, reports every tool
call and model call as an event, and closes the session at the end.
Humans (or the agent itself) then ask for summaries, latency stats,
comparisons between two runs, and budget status.

Every read is recomputed from the event log (see metrics.aggregator).
Multi-row writes go through EventStore.transaction() so they land
all-or-nothing. Budget checks are advisory: a warning never blocks the
write that triggered it.
"""

import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from runlens.config import settings
from runlens.db.models import BudgetConfig, Session, utcnow
from runlens.errors import (
    InvalidInputError,
    SessionAlreadyEndedError,
    SessionNotFoundError,
)
from runlens.events.store import SESSION_STATUSES, EventStore, LlmCharRow
from runlens.events.types import (
    BUDGET_WARNING,
    EVENT_KINDS,
    SESSION_END,
    SESSION_START,
)
from runlens.metrics.aggregator import SessionSummary, build_session_summary
from runlens.metrics.budget import (
    BudgetLimits,
    evaluate_daily_budget,
    evaluate_session_budget,
)
from runlens.metrics.comparator import SessionComparison, compare_summaries
from runlens.metrics.cost import PricingTable, compute_cost, default_pricing, round_usd
from runlens.metrics.latency import (
    PercentileStats,
    ToolLatencyStats,
    compute_percentiles,
    compute_tool_latency_stats,
)

logger = structlog.get_logger()

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.:-]{1,64}$")
MAX_LIST_LIMIT = 200


def new_session_id() -> str:
    return f"sess_{uuid.uuid4().hex}"


def validate_session_id(session_id: str, role: str = "session") -> str:
    if not isinstance(session_id, str) or not SESSION_ID_PATTERN.match(session_id):
        raise InvalidInputError(f"Malformed {role} id: {session_id!r}")
    return session_id


def _non_negative(name: str, value) -> None:
    if value is not None and (isinstance(value, bool) or value < 0):
        raise InvalidInputError(f"{name} must be a non-negative number, got {value!r}")


# ═══════════════════════════════════════════════════════════
# Result types
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class RecordResult:
    """Outcome of record_event: "ok", or "warning" with the budget message."""
    event_id: int
    kind: str
    warning: Optional[str] = None

    @property
    def status(self) -> str:
        return "warning" if self.warning else "ok"


@dataclass(frozen=True)
class LatencyReport:
    """Latency statistics for a scope.

    stats is None when no qualifying TOOL_END events exist — that is
    "no data", not an error.
    """
    session_id: Optional[str]
    tool_name: Optional[str]
    stats: Optional[PercentileStats]
    tools: list[ToolLatencyStats] = field(default_factory=list)

    @property
    def message(self) -> Optional[str]:
        if self.stats is not None:
            return None
        what = f' for tool "{self.tool_name}"' if self.tool_name else ""
        where = f" in session {self.session_id}" if self.session_id else " across any session"
        return f"No TOOL_END events with a duration found{what}{where}."


@dataclass(frozen=True)
class DailySpend:
    date: date
    total_cost_usd: float
    session_count: int


# ═══════════════════════════════════════════════════════════
# Session Service
# ═══════════════════════════════════════════════════════════


class SessionService:
    """Session lifecycle, event recording, analytics, and budget policy."""

    def __init__(self, db: AsyncSession, pricing: Optional[PricingTable] = None):
        self.db = db
        self.store = EventStore(db)
        self.pricing = pricing or default_pricing()

    # ─── Session lifecycle ────────────────────────────────

    async def open_session(
        self,
        label: Optional[str] = None,
        model: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Session:
        """Create a session header and its SESSION_START event atomically."""
        if label is not None and len(label) > 200:
            raise InvalidInputError("label must be at most 200 characters")

        session_id = new_session_id()
        async with self.store.transaction():
            session = await self.store.insert_session(
                session_id, started_at=utcnow(), label=label, model=model, metadata=metadata
            )
            await self.store.insert_event(
                session_id, SESSION_START, model=model, metadata=metadata
            )

        logger.info("session.opened", session_id=session_id, label=label, model=model)
        return session

    async def record_event(
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
    ) -> RecordResult:
        """Append one event, backfill the session model, then check budget.

        The event, the backfill and any BUDGET_WARNING commit together, so a
        failed call leaves nothing behind and is safe to retry.
        """
        validate_session_id(session_id)
        if kind not in EVENT_KINDS:
            raise InvalidInputError(f"Unknown event kind: {kind!r}")
        _non_negative("prompt_chars", prompt_chars)
        _non_negative("response_chars", response_chars)
        _non_negative("duration_ms", duration_ms)

        session = await self._require_session(session_id)

        warning = None
        async with self.store.transaction():
            event = await self.store.insert_event(
                session_id,
                kind,
                tool_name=tool_name,
                model=model,
                prompt_chars=prompt_chars,
                response_chars=response_chars,
                duration_ms=duration_ms,
                error_message=error_message,
                metadata=metadata,
            )
            if model and session.model is None:
                await self.store.backfill_model(session_id, model)

            if kind in settings.budget_check_kinds:
                warning = await self.check_budget(session_id)
                if warning:
                    await self.store.insert_event(
                        session_id, BUDGET_WARNING, metadata={"warning": warning}
                    )

        logger.debug(
            "event.recorded",
            session_id=session_id,
            kind=kind,
            tool_name=tool_name,
            duration_ms=duration_ms,
        )
        if warning:
            logger.warning("budget.warning", session_id=session_id, warning=warning)

        return RecordResult(event_id=event.id, kind=kind, warning=warning)

    async def close_session(self, session_id: str) -> SessionSummary:
        """End a session and return its final summary. Ending is terminal."""
        session = await self._require_session(session_id)
        if session.ended_at is not None:
            raise SessionAlreadyEndedError(session_id, session.ended_at)

        async with self.store.transaction():
            if not await self.store.close_session(session_id, utcnow()):
                # ended by a concurrent close since the read above
                raise SessionAlreadyEndedError(session_id, None)
            await self.store.insert_event(session_id, SESSION_END)

        logger.info("session.closed", session_id=session_id)
        return await self.get_summary(session_id)

    # ─── Queries ──────────────────────────────────────────

    async def get_session(self, session_id: str) -> Session:
        return await self._require_session(session_id)

    async def list_sessions(self, status: str = "all", limit: int = 10) -> list[Session]:
        if status not in SESSION_STATUSES:
            raise InvalidInputError(f"status must be one of {', '.join(SESSION_STATUSES)}")
        if not 1 <= limit <= MAX_LIST_LIMIT:
            raise InvalidInputError(f"limit must be between 1 and {MAX_LIST_LIMIT}")
        return await self.store.list_sessions(status, limit)

    async def get_summary(self, session_id: str, role: str = "session") -> SessionSummary:
        validate_session_id(session_id, role)
        summary = await build_session_summary(self.store, session_id, self.pricing)
        if summary is None:
            raise SessionNotFoundError(session_id, role)
        return summary

    async def get_latency_stats(
        self,
        tool_name: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> LatencyReport:
        """Percentiles for one tool or all tools, in one session or globally."""
        if session_id is not None:
            await self._require_session(session_id)
            rows = await self.store.tool_durations(session_id)
        else:
            rows = await self.store.all_tool_durations()

        if tool_name is not None:
            rows = [r for r in rows if r.tool_name == tool_name]

        stats = compute_percentiles(r.duration_ms for r in rows)
        tools = compute_tool_latency_stats(rows) if tool_name is None else []
        return LatencyReport(session_id=session_id, tool_name=tool_name, stats=stats, tools=tools)

    async def compare(self, baseline_id: str, compare_id: str) -> SessionComparison:
        baseline = await self.get_summary(baseline_id, role="baseline session")
        compare = await self.get_summary(compare_id, role="compare session")
        return compare_summaries(baseline, compare)

    async def export_summaries(
        self,
        session_ids: Optional[list[str]] = None,
        limit: int = 50,
    ) -> list[SessionSummary]:
        """Summaries for explicit ids (all must exist) or the most recent sessions."""
        if not session_ids:
            rows = await self.list_sessions("all", limit)
            session_ids = [row.id for row in rows]
        return [await self.get_summary(sid) for sid in session_ids]

    # ─── Budget ───────────────────────────────────────────

    async def get_budget(self) -> BudgetConfig:
        return await self.store.get_budget_config()

    async def set_budget(
        self,
        max_per_session_usd: Optional[float] = None,
        max_per_day_usd: Optional[float] = None,
        alert_threshold_pct: Optional[float] = None,
    ) -> BudgetConfig:
        """Merge the supplied limits over the current ones."""
        _non_negative("max_per_session_usd", max_per_session_usd)
        _non_negative("max_per_day_usd", max_per_day_usd)
        if alert_threshold_pct is not None and not 1 <= alert_threshold_pct <= 100:
            raise InvalidInputError("alert_threshold_pct must be between 1 and 100")

        async with self.store.transaction():
            config = await self.store.update_budget_config(
                max_per_session_usd=max_per_session_usd,
                max_per_day_usd=max_per_day_usd,
                alert_threshold_pct=alert_threshold_pct,
            )

        logger.info(
            "budget.updated",
            max_per_session_usd=config.max_per_session_usd,
            max_per_day_usd=config.max_per_day_usd,
            alert_threshold_pct=config.alert_threshold_pct,
        )
        return config

    async def check_budget(self, session_id: str, day: Optional[date] = None) -> Optional[str]:
        """Session check first, then the day the check runs (UTC).

        Returns the first warning that fires, or None.
        """
        limits = BudgetLimits.from_config(await self.store.get_budget_config())
        if not limits.enabled:
            return None

        if limits.max_per_session_usd > 0:
            session_cost = compute_cost(await self.store.llm_char_rows(session_id), self.pricing)
            warning = evaluate_session_budget(limits, session_cost.total_cost_usd)
            if warning:
                return warning

        if limits.max_per_day_usd > 0:
            daily_cost = await self._daily_cost(day or datetime.now(timezone.utc).date())
            return evaluate_daily_budget(limits, daily_cost)

        return None

    async def daily_spend(self, day: date) -> DailySpend:
        return DailySpend(
            date=day,
            total_cost_usd=round_usd(await self._daily_cost(day)),
            session_count=await self.store.daily_session_count(day),
        )

    # ─── Helpers ──────────────────────────────────────────

    async def _require_session(self, session_id: str) -> Session:
        validate_session_id(session_id)
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def _daily_cost(self, day: date) -> float:
        prompt_chars, response_chars = await self.store.daily_llm_chars(day)
        cost = compute_cost(
            [
                LlmCharRow(prompt_chars, None, None),
                LlmCharRow(None, response_chars, None),
            ],
            self.pricing,
        )
        return cost.total_cost_usd
