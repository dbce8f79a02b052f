"""Export session summaries as flat rows (CSV) or full documents (JSON)."""

import csv
import io
from dataclasses import asdict, astuple, dataclass, fields
from datetime import datetime, timezone
from typing import Iterable, Optional

from runlens.metrics.aggregator import SessionSummary


@dataclass(frozen=True)
class ExportRow:
    session_id: str
    label: Optional[str]
    started_at: str
    ended_at: Optional[str]
    duration_ms: Optional[int]
    tool_calls: int
    llm_requests: int
    errors: int
    total_tokens_est: int
    total_cost_usd: float
    model: Optional[str]
    p50_ms: Optional[int]
    p95_ms: Optional[int]
    p99_ms: Optional[int]


CSV_HEADER = [f.name for f in fields(ExportRow)]


def to_export_row(summary: SessionSummary) -> ExportRow:
    latency = summary.overall_latency
    return ExportRow(
        session_id=summary.session_id,
        label=summary.label,
        started_at=summary.started_at.isoformat(),
        ended_at=summary.ended_at.isoformat() if summary.ended_at else None,
        duration_ms=summary.duration_ms,
        tool_calls=summary.tool_call_count,
        llm_requests=summary.llm_request_count,
        errors=summary.error_count,
        total_tokens_est=summary.cost.estimated_total_tokens,
        total_cost_usd=summary.cost.total_cost_usd,
        model=summary.cost.model_used,
        p50_ms=latency.p50_ms if latency else None,
        p95_ms=latency.p95_ms if latency else None,
        p99_ms=latency.p99_ms if latency else None,
    )


def to_export_rows(summaries: Iterable[SessionSummary]) -> list[ExportRow]:
    return [to_export_row(s) for s in summaries]


def to_csv(summaries: Iterable[SessionSummary]) -> str:
    """Header row first; None becomes an empty cell."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in to_export_rows(summaries):
        writer.writerow("" if value is None else value for value in astuple(row))
    return buf.getvalue()


def to_json_payload(summaries: list[SessionSummary]) -> dict:
    return {
        "exported_at": datetime.now(timezone.utc),
        "session_count": len(summaries),
        "sessions": [asdict(s) for s in summaries],
    }
