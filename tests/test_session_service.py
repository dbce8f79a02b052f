"""Session service tests — lifecycle, validation, budget warnings."""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from runlens.errors import (
    InvalidInputError,
    SessionAlreadyEndedError,
    SessionNotFoundError,
    StoreError,
)
from runlens.events.types import BUDGET_WARNING, SESSION_END, SESSION_START
from runlens.services.session_service import validate_session_id


# ═══════════════════════════════════════════════════════════
# Lifecycle
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_open_session_writes_header_and_start_event(service):
    session = await service.open_session(label="refactor-auth", model="gemini-2.5-pro")

    assert session.id.startswith("sess_")
    assert len(session.id) == len("sess_") + 32
    events = await service.store.read_session(session.id)
    assert [e.kind for e in events] == [SESSION_START]
    assert events[0].model == "gemini-2.5-pro"


@pytest.mark.asyncio
async def test_session_ids_are_unique(service):
    a = await service.open_session()
    b = await service.open_session()
    assert a.id != b.id


@pytest.mark.asyncio
async def test_record_event_backfills_model_once(service):
    session = await service.open_session()
    await service.record_event(session.id, "LLM_REQUEST", model="gemini-2.0-flash", prompt_chars=10)
    await service.record_event(session.id, "LLM_REQUEST", model="gemini-2.5-pro", prompt_chars=10)

    assert (await service.get_session(session.id)).model == "gemini-2.0-flash"


@pytest.mark.asyncio
async def test_close_twice_is_already_ended(service):
    session = await service.open_session(label="twice")
    summary = await service.close_session(session.id)
    assert summary.ended_at is not None
    assert summary.duration_ms is not None and summary.duration_ms >= 0

    events_before = await service.store.read_session(session.id)
    with pytest.raises(SessionAlreadyEndedError) as exc_info:
        await service.close_session(session.id)
    assert exc_info.value.status_code == 409

    events_after = await service.store.read_session(session.id)
    assert len(events_after) == len(events_before)
    assert [e.kind for e in events_after].count(SESSION_END) == 1
    assert (await service.get_session(session.id)).ended_at == summary.ended_at


@pytest.mark.asyncio
async def test_close_loses_race_to_concurrent_close(service, monkeypatch):
    sid = (await service.open_session()).id
    await service.close_session(sid)

    # Another writer ended the session after this caller's read.
    async def stale_read(session_id):
        return SimpleNamespace(id=session_id, ended_at=None, model=None)

    monkeypatch.setattr(service.store, "get_session", stale_read)
    with pytest.raises(SessionAlreadyEndedError):
        await service.close_session(sid)

    events = await service.store.read_session(sid)
    assert [e.kind for e in events].count(SESSION_END) == 1


# ═══════════════════════════════════════════════════════════
# Validation and not-found
# ═══════════════════════════════════════════════════════════


@pytest.mark.parametrize("bad", ["", "has space", "x" * 65, "semi;colon", "slash/id"])
def test_malformed_ids_rejected(bad):
    with pytest.raises(InvalidInputError):
        validate_session_id(bad)


@pytest.mark.asyncio
async def test_unknown_session_is_not_found(service):
    with pytest.raises(SessionNotFoundError):
        await service.record_event("sess_nope", "TOOL_END", tool_name="t", duration_ms=1)
    with pytest.raises(SessionNotFoundError):
        await service.close_session("sess_nope")
    with pytest.raises(SessionNotFoundError):
        await service.get_summary("sess_nope")


@pytest.mark.asyncio
async def test_invalid_event_input(service):
    session = await service.open_session()
    with pytest.raises(InvalidInputError):
        await service.record_event(session.id, "TOOL_FINISHED")
    with pytest.raises(InvalidInputError):
        await service.record_event(session.id, "LLM_REQUEST", prompt_chars=-1)
    with pytest.raises(InvalidInputError):
        await service.record_event(session.id, "TOOL_END", duration_ms=-5)


@pytest.mark.asyncio
async def test_compare_names_the_missing_side(service):
    session = await service.open_session()
    with pytest.raises(SessionNotFoundError, match="Compare session"):
        await service.compare(session.id, "sess_gone")
    with pytest.raises(SessionNotFoundError, match="Baseline session"):
        await service.compare("sess_gone", session.id)


@pytest.mark.asyncio
async def test_list_sessions_validation(service):
    with pytest.raises(InvalidInputError):
        await service.list_sessions(status="paused")
    with pytest.raises(InvalidInputError):
        await service.list_sessions(limit=0)


# ═══════════════════════════════════════════════════════════
# Latency
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_latency_no_data_is_not_an_error(service):
    session = await service.open_session()
    report = await service.get_latency_stats(session_id=session.id)
    assert report.stats is None
    assert "No TOOL_END events" in report.message


@pytest.mark.asyncio
async def test_latency_global_and_per_tool(service):
    a = await service.open_session()
    b = await service.open_session()
    for sid, tool, ms in [(a.id, "grep", 10), (a.id, "shell", 500), (b.id, "grep", 30)]:
        await service.record_event(sid, "TOOL_END", tool_name=tool, duration_ms=ms)

    overall = await service.get_latency_stats()
    assert overall.stats.sample_count == 3
    assert [t.tool_name for t in overall.tools] == ["grep", "shell"]
    assert overall.message is None

    grep = await service.get_latency_stats(tool_name="grep")
    assert (grep.stats.min_ms, grep.stats.max_ms) == (10, 30)
    assert grep.tools == []

    scoped = await service.get_latency_stats(tool_name="grep", session_id=b.id)
    assert scoped.stats.p50_ms == 30


# ═══════════════════════════════════════════════════════════
# Budget
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_budget_disabled_by_default(service):
    session = await service.open_session()
    result = await service.record_event(session.id, "LLM_REQUEST", prompt_chars=10_000_000)
    assert result.status == "ok"
    assert result.warning is None


@pytest.mark.asyncio
async def test_session_budget_warning_recorded_as_event(service):
    await service.set_budget(max_per_session_usd=0.0001, alert_threshold_pct=80)
    session = await service.open_session(model="gemini-2.5-pro")

    first = await service.record_event(session.id, "LLM_REQUEST", prompt_chars=4000)
    assert first.status == "ok"  # $0.000075 < $0.00008

    second = await service.record_event(session.id, "LLM_RESPONSE", response_chars=800)
    assert second.status == "warning"
    assert second.warning.startswith("Session cost $0.000135")

    events = await service.store.read_session(session.id)
    assert events[-1].kind == BUDGET_WARNING
    assert events[-1].meta == {"warning": second.warning}


@pytest.mark.asyncio
async def test_failed_warning_write_leaves_no_event(service, monkeypatch):
    await service.set_budget(max_per_session_usd=0.0001)
    sid = (await service.open_session()).id

    insert_event = service.store.insert_event

    async def failing_insert(session_id, kind, **fields):
        if kind == BUDGET_WARNING:
            raise StoreError("disk full")
        return await insert_event(session_id, kind, **fields)

    monkeypatch.setattr(service.store, "insert_event", failing_insert)
    with pytest.raises(StoreError):
        await service.record_event(sid, "LLM_REQUEST", prompt_chars=40_000)

    events = await service.store.read_session(sid)
    assert [e.kind for e in events] == [SESSION_START]

    # A retry counts the request once.
    monkeypatch.setattr(service.store, "insert_event", insert_event)
    result = await service.record_event(sid, "LLM_REQUEST", prompt_chars=40_000)
    assert result.status == "warning"
    summary = await service.get_summary(sid)
    assert summary.llm_request_count == 1


@pytest.mark.asyncio
async def test_budget_not_checked_for_other_kinds(service):
    await service.set_budget(max_per_session_usd=0.000001)
    session = await service.open_session()
    await service.record_event(session.id, "LLM_REQUEST", prompt_chars=4000)

    result = await service.record_event(session.id, "ERROR", error_message="oops")
    assert result.status == "ok"


@pytest.mark.asyncio
async def test_daily_budget_warning(service):
    await service.set_budget(max_per_day_usd=0.0001, alert_threshold_pct=50)
    a = await service.open_session()
    b = await service.open_session()
    await service.record_event(a.id, "LLM_REQUEST", prompt_chars=2000)  # $0.0000375

    result = await service.record_event(b.id, "LLM_REQUEST", prompt_chars=2000)
    assert result.status == "warning"
    assert result.warning.startswith("Daily spend")


@pytest.mark.asyncio
async def test_set_budget_merges_and_validates(service):
    await service.set_budget(max_per_session_usd=1.5)
    config = await service.set_budget(alert_threshold_pct=95)
    assert config.max_per_session_usd == 1.5
    assert config.max_per_day_usd == 0.0
    assert config.alert_threshold_pct == 95

    with pytest.raises(InvalidInputError):
        await service.set_budget(max_per_day_usd=-1)
    with pytest.raises(InvalidInputError):
        await service.set_budget(alert_threshold_pct=0)
    with pytest.raises(InvalidInputError):
        await service.set_budget(alert_threshold_pct=101)


@pytest.mark.asyncio
async def test_daily_spend(service):
    a = await service.open_session()
    await service.open_session()
    await service.record_event(a.id, "LLM_REQUEST", prompt_chars=4000)
    await service.record_event(a.id, "LLM_RESPONSE", response_chars=800)

    spend = await service.daily_spend(datetime.now(timezone.utc).date())
    assert spend.total_cost_usd == 0.000135
    assert spend.session_count == 2


# ═══════════════════════════════════════════════════════════
# Compare / export
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_compare_session_with_itself(service):
    session = await service.open_session()
    await service.record_event(session.id, "LLM_REQUEST", prompt_chars=4000)
    await service.record_event(session.id, "TOOL_END", tool_name="grep", duration_ms=100)
    await service.close_session(session.id)

    diff = await service.compare(session.id, session.id)
    assert diff.cost_delta_usd == 0
    assert diff.duration_delta_ms == 0
    assert diff.p95_latency_delta_ms == 0
    assert diff.regressions == []


@pytest.mark.asyncio
async def test_export_explicit_ids_must_exist(service):
    session = await service.open_session()
    assert [s.session_id for s in await service.export_summaries([session.id])] == [session.id]
    with pytest.raises(SessionNotFoundError):
        await service.export_summaries([session.id, "sess_gone"])


@pytest.mark.asyncio
async def test_export_recent_sessions(service):
    for _ in range(3):
        await service.open_session()
    assert len(await service.export_summaries(limit=2)) == 2
