"""Session aggregator — one denormalized read model per session.

Learn: Every analytics operation starts here. The summary is recomputed
from the raw event log on every call: there are no running counters to
drift and no cache to invalidate. Building a summary only reads from the
store, never writes.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from runlens.events.store import EventStore
from runlens.events.types import LLM_REQUEST, TOOL_END
from runlens.metrics.cost import CostBreakdown, PricingTable, compute_cost
from runlens.metrics.latency import (
    PercentileStats,
    ToolLatencyStats,
    compute_percentiles,
    compute_tool_latency_stats,
)


@dataclass(frozen=True)
class SessionSummary:
    session_id: str
    label: Optional[str]
    model: Optional[str]
    started_at: datetime
    ended_at: Optional[datetime]  # None while active
    duration_ms: Optional[int]
    tool_call_count: int
    llm_request_count: int
    error_count: int
    unique_tools_used: list[str]
    cost: CostBreakdown
    overall_latency: Optional[PercentileStats]
    tool_breakdown: list[ToolLatencyStats]


def session_duration_ms(
    started_at: Optional[datetime], ended_at: Optional[datetime]
) -> Optional[int]:
    """end - start in whole milliseconds; None unless both are known."""
    if started_at is None or ended_at is None:
        return None
    return (ended_at - started_at) // timedelta(milliseconds=1)


async def build_session_summary(
    store: EventStore,
    session_id: str,
    pricing: Optional[PricingTable] = None,
) -> Optional[SessionSummary]:
    """Summary for ``session_id``, or None if the session does not exist."""
    session = await store.get_session(session_id)
    if session is None:
        return None

    llm_rows = await store.llm_char_rows(session_id)
    tool_rows = await store.tool_durations(session_id)

    return SessionSummary(
        session_id=session.id,
        label=session.label,
        model=session.model,
        started_at=session.started_at,
        ended_at=session.ended_at,
        duration_ms=session_duration_ms(session.started_at, session.ended_at),
        tool_call_count=await store.count_by_kind(session_id, TOOL_END),
        llm_request_count=await store.count_by_kind(session_id, LLM_REQUEST),
        error_count=await store.error_count(session_id),
        unique_tools_used=await store.distinct_tool_names(session_id),
        cost=compute_cost(llm_rows, pricing),
        overall_latency=compute_percentiles(r.duration_ms for r in tool_rows),
        tool_breakdown=compute_tool_latency_stats(tool_rows),
    )
