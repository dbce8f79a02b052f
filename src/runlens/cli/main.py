"""runlens CLI — record agent sessions and read back latency, cost, regressions.

Usage:
    runlens start --label refactor-auth --model gemini-2.5-pro
    runlens record sess_ab12 TOOL_END --tool read_file --duration 320
    runlens end sess_ab12                        # Close + print summary
    runlens show sess_ab12                       # Summary of one session
    runlens sessions --status active             # Recent sessions
    runlens latency --tool read_file             # Percentiles across sessions
    runlens compare sess_old sess_new            # Regression check
    runlens budget --per-session 0.50            # Show / set spend caps
    runlens export --format csv > runs.csv
    runlens serve                                # Run the HTTP API
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

from runlens import __version__
from runlens.cli.format import (
    SESSION_LIST_HEADER,
    format_budget,
    format_comparison,
    format_latency,
    format_session_row,
    format_summary,
)
from runlens.events.types import EVENT_KINDS

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"
API = "/api/v1"


def _api_url() -> str:
    return os.environ.get("RUNLENS_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the runlens server."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous click handler.

    Handles nested event loops (e.g. CliRunner invoked inside an async
    test) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _check(r: httpx.Response) -> dict | list:
    """Return the JSON body, or fail the command with the server's error."""
    if r.is_success:
        return r.json()
    try:
        detail = r.json().get("detail", r.text)
    except ValueError:
        detail = r.text
    raise click.ClickException(f"{detail} (HTTP {r.status_code})")


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="runlens")
def main():
    """runlens — latency, cost, and regression tracking for AI agent sessions."""


# ---------------------------------------------------------------------------
# runlens start / record / end
# ---------------------------------------------------------------------------


@main.command()
@click.option("--label", "-l", help='Short label, e.g. "refactor-auth-module"')
@click.option("--model", "-m", help='Primary model, e.g. "gemini-2.5-pro"')
@click.option("--meta", help="JSON object of free-form context")
def start(label: Optional[str], model: Optional[str], meta: Optional[str]):
    """Open a session and print its id."""
    try:
        metadata = json.loads(meta) if meta else None
    except ValueError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="--meta")
    _run(_start_impl(label, model, metadata))


async def _start_impl(label: Optional[str], model: Optional[str], metadata: Optional[dict]):
    async with _client() as c:
        r = await c.post(f"{API}/sessions", json={
            "label": label, "model": model, "metadata": metadata,
        })
        session = _check(r)
    click.echo(session["id"])


@main.command()
@click.argument("session_id")
@click.argument("kind", type=click.Choice(EVENT_KINDS, case_sensitive=False))
@click.option("--tool", "tool_name", help="Tool name (TOOL_START / TOOL_END)")
@click.option("--model", "-m", help="Model (LLM_REQUEST / LLM_RESPONSE)")
@click.option("--prompt-chars", type=click.IntRange(min=0))
@click.option("--response-chars", type=click.IntRange(min=0))
@click.option("--duration", "duration_ms", type=click.IntRange(min=0), help="Milliseconds")
@click.option("--error", "error_message", help="Error message (marks a TOOL_END as failed)")
def record(session_id: str, kind: str, tool_name: Optional[str], model: Optional[str],
           prompt_chars: Optional[int], response_chars: Optional[int],
           duration_ms: Optional[int], error_message: Optional[str]):
    """Record one event in a session."""
    body = {
        "kind": kind.upper(),
        "tool_name": tool_name,
        "model": model,
        "prompt_chars": prompt_chars,
        "response_chars": response_chars,
        "duration_ms": duration_ms,
        "error_message": error_message,
    }
    _run(_record_impl(session_id, {k: v for k, v in body.items() if v is not None}))


async def _record_impl(session_id: str, body: dict):
    async with _client() as c:
        r = await c.post(f"{API}/sessions/{session_id}/events", json=body)
        result = _check(r)

    click.echo(f"Recorded {result['kind']} (event {result['event_id']})")
    if result["status"] == "warning":
        click.secho(f"Budget warning: {result['warning']}", fg="yellow", err=True)


@main.command()
@click.argument("session_id")
def end(session_id: str):
    """Close a session and print its final summary."""
    _run(_end_impl(session_id))


async def _end_impl(session_id: str):
    async with _client() as c:
        summary = _check(await c.post(f"{API}/sessions/{session_id}/close"))
    click.secho("Session ended.", fg="green")
    click.echo()
    click.echo(format_summary(summary))


# ---------------------------------------------------------------------------
# runlens show / sessions
# ---------------------------------------------------------------------------


@main.command()
@click.argument("session_id")
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON summary")
def show(session_id: str, as_json: bool):
    """Show the summary of one session."""
    _run(_show_impl(session_id, as_json))


async def _show_impl(session_id: str, as_json: bool):
    async with _client() as c:
        summary = _check(await c.get(f"{API}/sessions/{session_id}/summary"))
    click.echo(_pretty_json(summary) if as_json else format_summary(summary))


@main.command()
@click.option("--status", "-s", type=click.Choice(["active", "ended", "all"]), default="all")
@click.option("--limit", "-n", type=click.IntRange(1, 200), default=10, help="Max results")
def sessions(status: str, limit: int):
    """List recent sessions, newest first."""
    _run(_sessions_impl(status, limit))


async def _sessions_impl(status: str, limit: int):
    async with _client() as c:
        rows = _check(await c.get(f"{API}/sessions", params={"status": status, "limit": limit}))
        if not rows:
            click.echo(f"No sessions found (filter: {status}).")
            return

        click.secho(SESSION_LIST_HEADER, bold=True)
        click.echo("─" * len(SESSION_LIST_HEADER))
        for row in rows:
            r = await c.get(f"{API}/sessions/{row['id']}/summary")
            summary = r.json() if r.is_success else None
            click.echo(format_session_row(row, summary))


# ---------------------------------------------------------------------------
# runlens latency / compare
# ---------------------------------------------------------------------------


@main.command()
@click.option("--tool", "tool_name", help="Restrict to one tool")
@click.option("--session", "session_id", help="Restrict to one session")
def latency(tool_name: Optional[str], session_id: Optional[str]):
    """P50/P75/P95/P99 tool latency."""
    _run(_latency_impl(tool_name, session_id))


async def _latency_impl(tool_name: Optional[str], session_id: Optional[str]):
    params = {k: v for k, v in {"tool_name": tool_name, "session_id": session_id}.items() if v}
    async with _client() as c:
        report = _check(await c.get(f"{API}/latency", params=params))
    click.echo(format_latency(report))


@main.command()
@click.argument("baseline_id")
@click.argument("compare_id")
@click.option("--strict", is_flag=True, help="Exit 2 when any regression is flagged")
def compare(baseline_id: str, compare_id: str, strict: bool):
    """Compare two sessions and flag regressions."""
    regressions = _run(_compare_impl(baseline_id, compare_id))
    if strict and regressions:
        sys.exit(2)


async def _compare_impl(baseline_id: str, compare_id: str) -> int:
    async with _client() as c:
        diff = _check(await c.get(f"{API}/compare", params={
            "baseline_id": baseline_id, "compare_id": compare_id,
        }))
        baseline = _check(await c.get(f"{API}/sessions/{baseline_id}/summary"))
        other = _check(await c.get(f"{API}/sessions/{compare_id}/summary"))
    click.echo(format_comparison(diff, baseline, other))
    return len(diff["regressions"])


# ---------------------------------------------------------------------------
# runlens budget
# ---------------------------------------------------------------------------


@main.command()
@click.option("--per-session", type=click.FloatRange(min=0), help="Session cap in USD (0 disables)")
@click.option("--per-day", type=click.FloatRange(min=0), help="Daily cap in USD (0 disables)")
@click.option("--alert-at", type=click.FloatRange(1, 100), help="Warn at this % of a cap")
@click.option("--daily", "show_daily", is_flag=True, help="Also show today's spend")
def budget(per_session: Optional[float], per_day: Optional[float],
           alert_at: Optional[float], show_daily: bool):
    """Show the budget, or update it when any option is given."""
    changes = {
        "max_per_session_usd": per_session,
        "max_per_day_usd": per_day,
        "alert_threshold_pct": alert_at,
    }
    _run(_budget_impl({k: v for k, v in changes.items() if v is not None}, show_daily))


async def _budget_impl(changes: dict, show_daily: bool):
    async with _client() as c:
        if changes:
            config = _check(await c.patch(f"{API}/budget", json=changes))
            click.secho("Budget updated.", fg="green")
        else:
            config = _check(await c.get(f"{API}/budget"))
        click.secho("Budget", bold=True)
        click.echo(format_budget(config))

        if show_daily:
            daily = _check(await c.get(f"{API}/budget/daily"))
            click.echo()
            click.echo(
                f"  Spend {daily['date']}: ${daily['total_cost_usd']:.6f}"
                f" across {daily['session_count']} session(s)"
            )


# ---------------------------------------------------------------------------
# runlens export
# ---------------------------------------------------------------------------


@main.command()
@click.argument("session_ids", nargs=-1)
@click.option("--format", "fmt", type=click.Choice(["json", "csv"]), default="json")
@click.option("--limit", "-n", type=click.IntRange(1, 200), default=50,
              help="Recent sessions to export when no ids are given")
def export(session_ids: tuple[str, ...], fmt: str, limit: int):
    """Export session summaries to stdout as JSON or CSV."""
    _run(_export_impl(list(session_ids), fmt, limit))


async def _export_impl(session_ids: list[str], fmt: str, limit: int):
    params: dict = {"format": fmt, "limit": limit}
    if session_ids:
        params["session_ids"] = session_ids
    async with _client() as c:
        r = await c.get(f"{API}/export", params=params)
        if fmt == "csv" and r.is_success:
            click.echo(r.text, nl=False)
            return
        click.echo(_pretty_json(_check(r)))


# ---------------------------------------------------------------------------
# runlens serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", help="Bind address (default: RUNLENS_HOST)")
@click.option("--port", type=int, help="Port (default: RUNLENS_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from runlens.config import settings

    uvicorn.run(
        "runlens.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
