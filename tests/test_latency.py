"""Percentile engine tests — nearest-rank, never interpolated."""

import random

import pytest

from runlens.metrics.latency import (
    compute_percentiles,
    compute_tool_latency_stats,
    nearest_rank,
    pct_delta,
)


def test_empty_input_is_no_data():
    assert compute_percentiles([]) is None


def test_single_sample_everything_equal():
    stats = compute_percentiles([100])
    assert (stats.p50_ms, stats.p75_ms, stats.p95_ms, stats.p99_ms) == (100, 100, 100, 100)
    assert stats.min_ms == stats.max_ms == stats.mean_ms == 100
    assert stats.sample_count == 1


def test_nearest_rank_ten_samples():
    """ceil(p/100 * 10) - 1 picks indices 4, 7, 9, 9."""
    stats = compute_percentiles([10, 20, 30, 40, 50, 60, 70, 80, 90, 100])
    assert stats.p50_ms == 50
    assert stats.p75_ms == 80
    assert stats.p95_ms == 100
    assert stats.p99_ms == 100
    assert stats.mean_ms == 55


def test_input_order_does_not_matter():
    samples = [900, 5, 120, 33, 33, 450]
    shuffled = list(samples)
    random.Random(7).shuffle(shuffled)
    assert compute_percentiles(samples) == compute_percentiles(shuffled)


def test_mean_rounds_to_nearest_ms():
    assert compute_percentiles([1, 2]).mean_ms == 2  # 1.5 rounds up
    assert compute_percentiles([1, 1, 2]).mean_ms == 1  # 1.33
    assert compute_percentiles([1, 2, 2]).mean_ms == 2  # 1.67


def test_nearest_rank_clamps_index():
    assert nearest_rank([3, 7], 0) == 3
    assert nearest_rank([3, 7], 100) == 7


@pytest.mark.parametrize("seed", range(20))
def test_percentiles_ordered_and_observed(seed):
    rng = random.Random(seed)
    samples = [rng.randint(0, 5000) for _ in range(rng.randint(1, 300))]
    stats = compute_percentiles(samples)

    assert stats.min_ms <= stats.p50_ms <= stats.p75_ms <= stats.p95_ms <= stats.p99_ms <= stats.max_ms
    for value in (stats.p50_ms, stats.p75_ms, stats.p95_ms, stats.p99_ms):
        assert value in samples
    assert stats.sample_count == len(samples)


def test_tool_breakdown_groups_and_error_rate():
    rows = [
        ("read_file", 100, False),
        ("shell", 2000, True),
        ("read_file", 300, False),
        ("shell", 1000, False),
        ("read_file", 200, True),
        ("grep", 50, False),
    ]
    tools = compute_tool_latency_stats(rows)

    assert [t.tool_name for t in tools] == ["read_file", "shell", "grep"]
    read_file = tools[0]
    assert read_file.call_count == 3
    assert read_file.stats.p50_ms == 200
    assert read_file.error_rate == pytest.approx(1 / 3)
    assert tools[1].error_rate == 0.5
    assert tools[2].error_rate == 0.0


def test_tool_breakdown_ties_keep_first_seen_order():
    rows = [("b", 1, False), ("a", 1, False), ("c", 1, False), ("a", 2, False)]
    tools = compute_tool_latency_stats(rows)
    assert [t.tool_name for t in tools] == ["a", "b", "c"]


def test_tool_breakdown_empty():
    assert compute_tool_latency_stats([]) == []


def test_pct_delta_zero_baseline_guard():
    assert pct_delta(0, 500) == 0.0
    assert pct_delta(200, 300) == 50.0
    assert pct_delta(200, 100) == -50.0
