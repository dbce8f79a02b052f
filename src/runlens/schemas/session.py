"""Pydantic schemas for sessions, events, and budget configuration.

Learn: Request models validate at the edge — negative character counts,
unknown event kinds, or an out-of-range threshold are rejected with a 422
before the store is touched. Read models use from_attributes so ORM rows
and dataclasses serialize directly.
"""

from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

EventKind = Literal[
    "SESSION_START",
    "SESSION_END",
    "TOOL_START",
    "TOOL_END",
    "LLM_REQUEST",
    "LLM_RESPONSE",
    "ERROR",
    "BUDGET_WARNING",
]


# ─── Session ──────────────────────────────────────────────


class SessionOpen(BaseModel):
    label: Optional[str] = Field(
        None, max_length=200, description='Short label, e.g. "refactor-auth-module"'
    )
    model: Optional[str] = Field(None, description='Primary model, e.g. "gemini-2.5-pro"')
    metadata: Optional[dict[str, Any]] = Field(
        None, description='Free-form context, e.g. {"cwd": "/src", "branch": "feat/auth"}'
    )


class SessionRead(BaseModel):
    id: str
    label: Optional[str]
    model: Optional[str]
    started_at: datetime
    ended_at: Optional[datetime]
    metadata: dict[str, Any] = Field(validation_alias="meta")

    model_config = {"from_attributes": True}


# ─── Events ───────────────────────────────────────────────


class EventRecord(BaseModel):
    kind: EventKind
    tool_name: Optional[str] = Field(None, description="Required for TOOL_START / TOOL_END")
    model: Optional[str] = Field(None, description="Model for LLM_REQUEST / LLM_RESPONSE")
    prompt_chars: Optional[int] = Field(None, ge=0, description="Prompt size (LLM_REQUEST)")
    response_chars: Optional[int] = Field(
        None, ge=0, description="Response or tool output size (LLM_RESPONSE / TOOL_END)"
    )
    duration_ms: Optional[int] = Field(None, ge=0, description="Wall-clock duration")
    error_message: Optional[str] = Field(None, description="ERROR events or failed TOOL_END")
    metadata: Optional[dict[str, Any]] = None


class EventRecorded(BaseModel):
    event_id: int
    kind: str
    status: Literal["ok", "warning"]
    warning: Optional[str] = None

    model_config = {"from_attributes": True}


# ─── Budget ───────────────────────────────────────────────


class BudgetUpdate(BaseModel):
    max_per_session_usd: Optional[float] = Field(None, ge=0, description="0 disables")
    max_per_day_usd: Optional[float] = Field(None, ge=0, description="0 disables")
    alert_threshold_pct: Optional[float] = Field(None, ge=1, le=100)


class BudgetRead(BaseModel):
    max_per_session_usd: float
    max_per_day_usd: float
    alert_threshold_pct: float
    updated_at: datetime

    model_config = {"from_attributes": True}


class DailySpendRead(BaseModel):
    date: date
    total_cost_usd: float
    session_count: int

    model_config = {"from_attributes": True}
