"""Pydantic read models for derived analytics.

These mirror the dataclasses in runlens.metrics; nothing here is stored.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


class PercentileStatsRead(BaseModel):
    p50_ms: int
    p75_ms: int
    p95_ms: int
    p99_ms: int
    min_ms: int
    max_ms: int
    mean_ms: int
    sample_count: int


class ToolLatencyRead(BaseModel):
    tool_name: str
    stats: PercentileStatsRead
    error_rate: float
    call_count: int


class CostBreakdownRead(BaseModel):
    estimated_input_tokens: int
    estimated_output_tokens: int
    estimated_total_tokens: int
    input_cost_usd: float
    output_cost_usd: float
    total_cost_usd: float
    model_used: Optional[str]


class SessionSummaryRead(BaseModel):
    session_id: str
    label: Optional[str]
    model: Optional[str]
    started_at: datetime
    ended_at: Optional[datetime]
    duration_ms: Optional[int]
    tool_call_count: int
    llm_request_count: int
    error_count: int
    unique_tools_used: list[str]
    cost: CostBreakdownRead
    overall_latency: Optional[PercentileStatsRead]
    tool_breakdown: list[ToolLatencyRead]


class LatencyReportRead(BaseModel):
    session_id: Optional[str]
    tool_name: Optional[str]
    stats: Optional[PercentileStatsRead]
    tools: list[ToolLatencyRead]
    message: Optional[str] = None


class RegressionFlagRead(BaseModel):
    metric: str
    baseline_value: float
    compare_value: float
    delta_pct: float
    severity: Literal["warning", "critical"]


class SessionComparisonRead(BaseModel):
    baseline_session_id: str
    compare_session_id: str
    baseline_label: Optional[str]
    compare_label: Optional[str]
    cost_delta_usd: float
    cost_delta_pct: float
    duration_delta_ms: Optional[int]
    duration_delta_pct: Optional[float]
    tool_call_delta: int
    p95_latency_delta_ms: Optional[int]
    p95_latency_delta_pct: Optional[float]
    regressions: list[RegressionFlagRead]


class ExportRead(BaseModel):
    exported_at: datetime
    session_count: int
    sessions: list[SessionSummaryRead]
