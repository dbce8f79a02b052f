"""Session API routes — lifecycle, event recording, per-session summaries.

Learn: Agents call these while they work: open a session, report each
tool call and model call, close the session. Budget warnings ride back on
the record_event response so the agent sees them immediately.

Errors are not caught here — RunlensError subclasses carry their own
status codes and are rendered by the handler registered in main.py.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from runlens.db.engine import get_db
from runlens.schemas.metrics import SessionSummaryRead
from runlens.schemas.session import (
    EventRecord,
    EventRecorded,
    SessionOpen,
    SessionRead,
)
from runlens.services.session_service import MAX_LIST_LIMIT, SessionService

router = APIRouter()


def _svc(db: AsyncSession = Depends(get_db)) -> SessionService:
    return SessionService(db)


# ─── Session lifecycle ────────────────────────────────────────


@router.post("/sessions", response_model=SessionRead, status_code=201)
async def open_session(
    body: SessionOpen,
    svc: SessionService = Depends(_svc),
):
    """Open a new session. Use the returned id in every later call."""
    return await svc.open_session(
        label=body.label,
        model=body.model,
        metadata=body.metadata,
    )


@router.post("/sessions/{session_id}/events", response_model=EventRecorded, status_code=201)
async def record_event(
    session_id: str,
    body: EventRecord,
    svc: SessionService = Depends(_svc),
):
    """Record a tool, model, or error event. Budget warnings come back inline."""
    result = await svc.record_event(session_id, **body.model_dump())
    return EventRecorded(
        event_id=result.event_id,
        kind=result.kind,
        status=result.status,
        warning=result.warning,
    )


@router.post("/sessions/{session_id}/close", response_model=SessionSummaryRead)
async def close_session(
    session_id: str,
    svc: SessionService = Depends(_svc),
):
    """Close a session and return its final summary. 409 if already closed."""
    return asdict(await svc.close_session(session_id))


# ─── Session queries ──────────────────────────────────────────


@router.get("/sessions", response_model=list[SessionRead])
async def list_sessions(
    status: str = Query("all", pattern="^(active|ended|all)$"),
    limit: int = Query(10, ge=1, le=MAX_LIST_LIMIT),
    svc: SessionService = Depends(_svc),
):
    """Most recent sessions first."""
    return await svc.list_sessions(status=status, limit=limit)


@router.get("/sessions/{session_id}", response_model=SessionRead)
async def get_session(
    session_id: str,
    svc: SessionService = Depends(_svc),
):
    return await svc.get_session(session_id)


@router.get("/sessions/{session_id}/summary", response_model=SessionSummaryRead)
async def get_summary(
    session_id: str,
    svc: SessionService = Depends(_svc),
):
    """Cost estimate, latency percentiles, activity counts, per-tool breakdown."""
    return asdict(await svc.get_summary(session_id))
