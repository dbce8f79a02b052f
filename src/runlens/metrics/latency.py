"""Percentile engine — latency summaries over duration samples.

Learn: We use the nearest-rank method with no interpolation. For percentile
p over n sorted samples the index is ceil(p/100 * n) - 1, clamped to
[0, n-1]. Every reported percentile is therefore a sample that was actually
observed, and two implementations fed the same samples agree exactly on
which one is "the P95". The rank is computed in integer arithmetic so no
float rounding can move it.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

PERCENTILES = (50, 75, 95, 99)


@dataclass(frozen=True)
class PercentileStats:
    p50_ms: int
    p75_ms: int
    p95_ms: int
    p99_ms: int
    min_ms: int
    max_ms: int
    mean_ms: int
    sample_count: int


@dataclass(frozen=True)
class ToolLatencyStats:
    tool_name: str
    stats: PercentileStats
    error_rate: float  # 0.0–1.0
    call_count: int


def nearest_rank(sorted_samples: Sequence[int], p: int) -> int:
    """Sample at the nearest rank for percentile ``p`` (0–100)."""
    n = len(sorted_samples)
    rank = -(-p * n // 100) - 1  # ceil(p * n / 100) - 1
    return sorted_samples[max(0, min(n - 1, rank))]


def compute_percentiles(durations_ms: Iterable[int]) -> Optional[PercentileStats]:
    """Summarize duration samples. Returns None when there are none."""
    ordered = sorted(durations_ms)
    n = len(ordered)
    if n == 0:
        return None

    total = sum(ordered)
    return PercentileStats(
        p50_ms=nearest_rank(ordered, 50),
        p75_ms=nearest_rank(ordered, 75),
        p95_ms=nearest_rank(ordered, 95),
        p99_ms=nearest_rank(ordered, 99),
        min_ms=ordered[0],
        max_ms=ordered[-1],
        mean_ms=(2 * total + n) // (2 * n),  # round half up
        sample_count=n,
    )


def compute_tool_latency_stats(rows: Iterable) -> list[ToolLatencyStats]:
    """Group (tool_name, duration_ms, is_error) rows by tool.

    Groups come back ordered by call count, busiest first. Ties keep the
    order in which each tool first appeared in ``rows``.
    """
    grouped: dict[str, list] = {}
    for tool_name, duration_ms, is_error in rows:
        bucket = grouped.setdefault(tool_name, [[], 0])
        bucket[0].append(duration_ms)
        if is_error:
            bucket[1] += 1

    results = []
    for tool_name, (durations, errors) in grouped.items():
        results.append(
            ToolLatencyStats(
                tool_name=tool_name,
                stats=compute_percentiles(durations),
                error_rate=errors / len(durations),
                call_count=len(durations),
            )
        )

    # sorted() is stable, so first-seen order breaks ties
    return sorted(results, key=lambda t: t.call_count, reverse=True)


def pct_delta(baseline: float, compare: float) -> float:
    """Percentage change from baseline; 0 when the baseline is 0."""
    if baseline == 0:
        return 0.0
    return (compare - baseline) / baseline * 100
