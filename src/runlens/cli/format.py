"""Plain-text rendering for CLI output.

Every function takes the JSON payload returned by the HTTP API and
returns a string; nothing here talks to the network or prints.
"""

from typing import Optional

from runlens.metrics.cost import format_usd

RULE = "─"


def format_duration(ms: Optional[int]) -> str:
    """850ms, 12.3s, 2m 5s. None means the session is still running."""
    if ms is None:
        return "(active)"
    if ms < 1000:
        return f"{ms}ms"
    if ms < 60_000:
        return f"{ms / 1000:.1f}s"
    return f"{ms // 60_000}m {ms % 60_000 // 1000}s"


def _signed(value, text: str) -> str:
    return f"+{text}" if value >= 0 else text


def _tool_table(tools: list[dict], with_p99: bool = False) -> list[str]:
    header = "Tool                     Calls     P50     P95"
    if with_p99:
        header += "     P99"
    header += "  Err%"
    lines = [header, RULE * len(header)]
    for t in tools:
        stats = t["stats"]
        row = (
            f"{t['tool_name'][:24]:<24} {t['call_count']:>5}"
            f" {str(stats['p50_ms']) + 'ms':>7} {str(stats['p95_ms']) + 'ms':>7}"
        )
        if with_p99:
            row += f" {str(stats['p99_ms']) + 'ms':>7}"
        row += f" {round(t['error_rate'] * 100):>4}%"
        lines.append(row)
    return lines


def _percentile_block(stats: dict) -> list[str]:
    return [
        f"  P50:     {stats['p50_ms']}ms",
        f"  P75:     {stats['p75_ms']}ms",
        f"  P95:     {stats['p95_ms']}ms",
        f"  P99:     {stats['p99_ms']}ms",
        f"  Mean:    {stats['mean_ms']}ms",
        f"  Min:     {stats['min_ms']}ms  |  Max: {stats['max_ms']}ms",
        f"  Samples: {stats['sample_count']}",
    ]


def format_summary(s: dict) -> str:
    """Full session report: header, cost, activity, latency, per-tool table."""
    cost = s["cost"]
    lines = [f"Session: {s['session_id']}"]
    if s.get("label"):
        lines.append(f"Label:    {s['label']}")
    lines.append(f"Started:  {s['started_at']}")
    lines.append(f"Ended:    {s.get('ended_at') or '(active)'}")
    if s.get("duration_ms") is not None:
        lines.append(f"Duration: {format_duration(s['duration_ms'])}")

    lines += [
        "",
        "Cost estimate",
        f"  Input tokens:  ~{cost['estimated_input_tokens']:,}",
        f"  Output tokens: ~{cost['estimated_output_tokens']:,}",
        f"  Total tokens:  ~{cost['estimated_total_tokens']:,}",
        f"  Input cost:    {format_usd(cost['input_cost_usd'])}",
        f"  Output cost:   {format_usd(cost['output_cost_usd'])}",
        f"  Total cost:    {format_usd(cost['total_cost_usd'])}",
    ]
    if cost.get("model_used"):
        lines.append(f"  Model:         {cost['model_used']}")

    lines += [
        "",
        "Activity",
        f"  LLM requests:  {s['llm_request_count']}",
        f"  Tool calls:    {s['tool_call_count']}",
        f"  Errors:        {s['error_count']}",
    ]
    if s["unique_tools_used"]:
        lines.append(f"  Tools used:    {', '.join(s['unique_tools_used'])}")

    if s.get("overall_latency"):
        lines += ["", "Tool latency (all tools)"] + _percentile_block(s["overall_latency"])

    if s["tool_breakdown"]:
        lines += ["", "Per-tool breakdown"]
        lines += ["  " + line for line in _tool_table(s["tool_breakdown"])]

    return "\n".join(lines)


def format_session_row(session: dict, summary: Optional[dict]) -> str:
    """One line of the compact session list."""
    cost = format_usd(summary["cost"]["total_cost_usd"]) if summary else "?"
    if summary and summary.get("duration_ms") is not None:
        duration = format_duration(summary["duration_ms"])
    else:
        duration = "active" if session.get("ended_at") is None else "?"
    tools = summary["tool_call_count"] if summary else "?"
    return (
        f"{session['id'][:37]:<38} {(session.get('label') or '')[:22]:<23}"
        f" {cost:>10} {duration:>10} {tools:>5}"
    )


SESSION_LIST_HEADER = (
    f"{'ID':<38} {'Label':<23} {'Cost':>10} {'Duration':>10} {'Tools':>5}"
)


def format_regression(r: dict) -> str:
    pct = r["delta_pct"]
    return (
        f"  {r['severity'].upper():<8} {r['metric']}: "
        f"{r['baseline_value']:.2f} -> {r['compare_value']:.2f} "
        f"({_signed(pct, f'{pct:.1f}')}%)"
    )


def format_comparison(diff: dict, baseline: dict, compare: dict) -> str:
    """Side-by-side deltas for two session summaries plus regression lines."""

    def _who(session_id: str, label: Optional[str]) -> str:
        return f"{session_id} ({label})" if label else session_id

    lines = [
        "Session comparison",
        f"  Baseline: {_who(diff['baseline_session_id'], diff.get('baseline_label'))}",
        f"  Compare:  {_who(diff['compare_session_id'], diff.get('compare_label'))}",
        "",
        "Cost",
        f"  Baseline: {format_usd(baseline['cost']['total_cost_usd'])}",
        f"  Compare:  {format_usd(compare['cost']['total_cost_usd'])}",
        f"  Delta:    {_signed(diff['cost_delta_usd'], format_usd(diff['cost_delta_usd']))}"
        f" ({_signed(diff['cost_delta_pct'], format(diff['cost_delta_pct'], '.1f'))}%)",
    ]

    if diff.get("duration_delta_ms") is not None:
        pct = diff["duration_delta_pct"]
        lines += [
            "",
            "Session duration",
            f"  Baseline: {format_duration(baseline['duration_ms'])}",
            f"  Compare:  {format_duration(compare['duration_ms'])}",
            f"  Delta:    {_signed(diff['duration_delta_ms'], str(diff['duration_delta_ms']))}ms"
            f" ({_signed(pct, format(pct, '.1f'))}%)",
        ]

    if diff.get("p95_latency_delta_ms") is not None:
        pct = diff["p95_latency_delta_pct"]
        lines += [
            "",
            "P95 tool latency",
            f"  Baseline: {baseline['overall_latency']['p95_ms']}ms",
            f"  Compare:  {compare['overall_latency']['p95_ms']}ms",
            f"  Delta:    {_signed(diff['p95_latency_delta_ms'], str(diff['p95_latency_delta_ms']))}ms"
            f" ({_signed(pct, format(pct, '.1f'))}%)",
        ]

    lines += [
        "",
        "Tool calls",
        f"  Baseline: {baseline['tool_call_count']}",
        f"  Compare:  {compare['tool_call_count']}",
        f"  Delta:    {_signed(diff['tool_call_delta'], str(diff['tool_call_delta']))}",
        "",
    ]

    if diff["regressions"]:
        lines.append("Regressions")
        lines += [format_regression(r) for r in diff["regressions"]]
    else:
        lines.append("No regressions detected (all deltas within 20%).")

    return "\n".join(lines)


def format_latency(report: dict) -> str:
    """Latency report: single block for one tool, table plus overall otherwise."""
    if report["stats"] is None:
        return report.get("message") or "No data."

    scope = f"session {report['session_id']}" if report.get("session_id") else "all sessions"
    if report.get("tool_name"):
        title = f"Latency: {report['tool_name']} ({scope})"
        return "\n".join([title, ""] + _percentile_block(report["stats"]))

    lines = [f"Latency: all tools ({scope})", ""]
    lines += _tool_table(report["tools"], with_p99=True)
    lines += ["", "Overall (all tools combined)"] + _percentile_block(report["stats"])
    return "\n".join(lines)


def format_budget(budget: dict) -> str:
    def _cap(value: float) -> str:
        return format_usd(value) if value > 0 else "disabled"

    return "\n".join([
        f"  Per session:  {_cap(budget['max_per_session_usd'])}",
        f"  Per day:      {_cap(budget['max_per_day_usd'])}",
        f"  Alert at:     {budget['alert_threshold_pct']:g}%",
    ])
