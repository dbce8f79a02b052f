"""Analytics API routes — latency stats, run comparison, export."""

from dataclasses import asdict
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from runlens.db.engine import get_db
from runlens.schemas.metrics import (
    ExportRead,
    LatencyReportRead,
    SessionComparisonRead,
)
from runlens.services.export import to_csv, to_json_payload
from runlens.services.session_service import MAX_LIST_LIMIT, SessionService

router = APIRouter()


def _svc(db: AsyncSession = Depends(get_db)) -> SessionService:
    return SessionService(db)


@router.get("/latency", response_model=LatencyReportRead)
async def get_latency_stats(
    tool_name: Optional[str] = Query(None, description="Restrict to one tool"),
    session_id: Optional[str] = Query(None, description="Restrict to one session"),
    svc: SessionService = Depends(_svc),
):
    """P50/P75/P95/P99 tool latency, per session or across all sessions.

    An empty scope is not an error: stats is null and message explains why.
    """
    report = await svc.get_latency_stats(tool_name=tool_name, session_id=session_id)
    return {**asdict(report), "message": report.message}


@router.get("/compare", response_model=SessionComparisonRead)
async def compare_sessions(
    baseline_id: str = Query(..., description="Reference (known-good) session"),
    compare_id: str = Query(..., description="Session to check against the baseline"),
    svc: SessionService = Depends(_svc),
):
    """Cost, duration and P95 deltas; regressions flagged at >20% / >50%."""
    return asdict(await svc.compare(baseline_id, compare_id))


@router.get("/export", response_model=ExportRead)
async def export_summaries(
    session_ids: Optional[list[str]] = Query(None, description="Omit to export recent sessions"),
    limit: int = Query(50, ge=1, le=MAX_LIST_LIMIT),
    format: Literal["json", "csv"] = Query("json"),
    svc: SessionService = Depends(_svc),
):
    """Session summaries as a JSON document or a CSV table."""
    summaries = await svc.export_summaries(session_ids=session_ids, limit=limit)
    if format == "csv":
        return PlainTextResponse(to_csv(summaries), media_type="text/csv")
    return to_json_payload(summaries)
