"""Session comparison and regression detection.

Learn: The baseline is the reference run; the compare run is the one under
suspicion. Three metrics are checked independently — cost, session
duration, and overall P95 tool latency — and only degradations are
flagged. Percentages are rounded to one decimal place *before* they are
classified, so the boundaries behave exactly as printed: 20.0% is fine,
20.1% is a warning, 50.0% is still a warning, 50.1% is critical.
"""

from dataclasses import dataclass, field
from typing import Optional

from runlens.metrics.aggregator import SessionSummary
from runlens.metrics.cost import round_usd
from runlens.metrics.latency import pct_delta

WARNING_PCT = 20.0
CRITICAL_PCT = 50.0

COST_METRIC = "cost_usd"
DURATION_METRIC = "session_duration_ms"
P95_METRIC = "p95_tool_latency_ms"


@dataclass(frozen=True)
class RegressionFlag:
    metric: str
    baseline_value: float
    compare_value: float
    delta_pct: float
    severity: str  # "warning" | "critical"


@dataclass(frozen=True)
class SessionComparison:
    baseline_session_id: str
    compare_session_id: str
    baseline_label: Optional[str]
    compare_label: Optional[str]
    cost_delta_usd: float  # positive = compare is more expensive
    cost_delta_pct: float
    duration_delta_ms: Optional[int]
    duration_delta_pct: Optional[float]
    tool_call_delta: int
    p95_latency_delta_ms: Optional[int]
    p95_latency_delta_pct: Optional[float]
    regressions: list[RegressionFlag] = field(default_factory=list)


def round_pct(value: float) -> float:
    return round(value, 1)


def classify(delta_pct: float) -> Optional[str]:
    """Severity for a (rounded) percentage change, or None if within tolerance."""
    if delta_pct > CRITICAL_PCT:
        return "critical"
    if delta_pct > WARNING_PCT:
        return "warning"
    return None


def _flag(metric: str, baseline: float, compare: float, delta_pct: float) -> Optional[RegressionFlag]:
    if delta_pct <= 0:
        return None
    severity = classify(delta_pct)
    if severity is None:
        return None
    return RegressionFlag(
        metric=metric,
        baseline_value=baseline,
        compare_value=compare,
        delta_pct=delta_pct,
        severity=severity,
    )


def compare_summaries(baseline: SessionSummary, compare: SessionSummary) -> SessionComparison:
    base_cost = baseline.cost.total_cost_usd
    cmp_cost = compare.cost.total_cost_usd
    cost_delta_pct = round_pct(pct_delta(base_cost, cmp_cost))

    duration_delta = None
    duration_delta_pct = None
    if baseline.duration_ms is not None and compare.duration_ms is not None:
        duration_delta = compare.duration_ms - baseline.duration_ms
        duration_delta_pct = round_pct(pct_delta(baseline.duration_ms, compare.duration_ms))

    base_p95 = baseline.overall_latency.p95_ms if baseline.overall_latency else None
    cmp_p95 = compare.overall_latency.p95_ms if compare.overall_latency else None
    p95_delta = None
    p95_delta_pct = None
    if base_p95 is not None and cmp_p95 is not None:
        p95_delta = cmp_p95 - base_p95
        p95_delta_pct = round_pct(pct_delta(base_p95, cmp_p95))

    candidates = [_flag(COST_METRIC, base_cost, cmp_cost, cost_delta_pct)]
    if duration_delta_pct is not None:
        candidates.append(
            _flag(DURATION_METRIC, baseline.duration_ms, compare.duration_ms, duration_delta_pct)
        )
    if p95_delta_pct is not None:
        candidates.append(_flag(P95_METRIC, base_p95, cmp_p95, p95_delta_pct))

    return SessionComparison(
        baseline_session_id=baseline.session_id,
        compare_session_id=compare.session_id,
        baseline_label=baseline.label,
        compare_label=compare.label,
        cost_delta_usd=round_usd(cmp_cost - base_cost),
        cost_delta_pct=cost_delta_pct,
        duration_delta_ms=duration_delta,
        duration_delta_pct=duration_delta_pct,
        tool_call_delta=compare.tool_call_count - baseline.tool_call_count,
        p95_latency_delta_ms=p95_delta,
        p95_latency_delta_pct=p95_delta_pct,
        regressions=[flag for flag in candidates if flag is not None],
    )
