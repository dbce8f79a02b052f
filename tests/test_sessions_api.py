"""Session API tests — the HTTP surface agents talk to.

Learn: Tests cover the full session lifecycle over HTTP:
1. Open session → id + SESSION_START
2. Record events → ok / budget warning inline
3. Close session → final summary, second close is 409
4. Summaries and listing
5. Error shapes: {"detail": ..., "error": <kind>}
"""

import pytest


async def _open(client, **body):
    r = await client.post("/api/v1/sessions", json=body)
    assert r.status_code == 201
    return r.json()


async def _record(client, session_id, **body):
    r = await client.post(f"/api/v1/sessions/{session_id}/events", json=body)
    assert r.status_code == 201, r.text
    return r.json()


# ═══════════════════════════════════════════════════════════
# Session Lifecycle
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_open_session(client):
    session = await _open(client, label="refactor-auth", metadata={"branch": "feat/auth"})
    assert session["id"].startswith("sess_")
    assert session["label"] == "refactor-auth"
    assert session["model"] is None
    assert session["ended_at"] is None
    assert session["metadata"] == {"branch": "feat/auth"}


@pytest.mark.asyncio
async def test_open_session_label_too_long(client):
    r = await client.post("/api/v1/sessions", json={"label": "x" * 201})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_record_event_and_summary(client):
    session = await _open(client, label="summary")
    sid = session["id"]

    await _record(client, sid, kind="LLM_REQUEST", model="gemini-2.5-pro", prompt_chars=4000)
    await _record(client, sid, kind="LLM_RESPONSE", model="gemini-2.5-pro", response_chars=800)
    await _record(client, sid, kind="TOOL_START", tool_name="read_file")
    result = await _record(client, sid, kind="TOOL_END", tool_name="read_file", duration_ms=100)
    assert result["status"] == "ok"
    assert result["warning"] is None
    assert result["kind"] == "TOOL_END"

    r = await client.get(f"/api/v1/sessions/{sid}/summary")
    assert r.status_code == 200
    summary = r.json()
    assert summary["tool_call_count"] == 1
    assert summary["llm_request_count"] == 1
    assert summary["unique_tools_used"] == ["read_file"]
    assert summary["cost"]["estimated_input_tokens"] == 1000
    assert summary["cost"]["estimated_output_tokens"] == 200
    assert summary["cost"]["total_cost_usd"] == 0.000135
    assert summary["overall_latency"]["p95_ms"] == 100
    assert summary["tool_breakdown"][0]["tool_name"] == "read_file"

    r = await client.get(f"/api/v1/sessions/{sid}")
    assert r.json()["model"] == "gemini-2.5-pro"


@pytest.mark.asyncio
async def test_close_session_returns_summary_then_409(client):
    session = await _open(client)
    sid = session["id"]

    r = await client.post(f"/api/v1/sessions/{sid}/close")
    assert r.status_code == 200
    summary = r.json()
    assert summary["session_id"] == sid
    assert summary["ended_at"] is not None
    assert summary["duration_ms"] >= 0

    r = await client.post(f"/api/v1/sessions/{sid}/close")
    assert r.status_code == 409
    assert r.json()["error"] == "already_ended"
    assert "already ended" in r.json()["detail"]


# ═══════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_unknown_session_is_404(client):
    for method, path in [
        ("GET", "/api/v1/sessions/sess_missing"),
        ("GET", "/api/v1/sessions/sess_missing/summary"),
        ("POST", "/api/v1/sessions/sess_missing/close"),
    ]:
        r = await client.request(method, path)
        assert r.status_code == 404, path
        assert r.json() == {
            "detail": 'Session "sess_missing" not found',
            "error": "not_found",
        }


@pytest.mark.asyncio
async def test_malformed_session_id_is_422(client):
    r = await client.get("/api/v1/sessions/bad id!/summary")
    assert r.status_code == 422
    assert r.json()["error"] == "invalid_input"


@pytest.mark.asyncio
async def test_record_event_validation(client):
    session = await _open(client)
    sid = session["id"]

    r = await client.post(f"/api/v1/sessions/{sid}/events", json={"kind": "TOOL_DONE"})
    assert r.status_code == 422
    r = await client.post(
        f"/api/v1/sessions/{sid}/events", json={"kind": "LLM_REQUEST", "prompt_chars": -1}
    )
    assert r.status_code == 422
    r = await client.post(
        "/api/v1/sessions/sess_missing/events", json={"kind": "TOOL_END", "tool_name": "x"}
    )
    assert r.status_code == 404


# ═══════════════════════════════════════════════════════════
# Listing
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_list_sessions_filters(client):
    ended = await _open(client, label="ended")
    active = await _open(client, label="active")
    await client.post(f"/api/v1/sessions/{ended['id']}/close")

    r = await client.get("/api/v1/sessions", params={"status": "active"})
    assert [s["id"] for s in r.json()] == [active["id"]]

    r = await client.get("/api/v1/sessions", params={"status": "ended"})
    assert [s["id"] for s in r.json()] == [ended["id"]]

    r = await client.get("/api/v1/sessions")
    assert {s["id"] for s in r.json()} == {ended["id"], active["id"]}

    r = await client.get("/api/v1/sessions", params={"limit": 1})
    assert len(r.json()) == 1


@pytest.mark.asyncio
async def test_list_sessions_bad_params(client):
    assert (await client.get("/api/v1/sessions", params={"status": "paused"})).status_code == 422
    assert (await client.get("/api/v1/sessions", params={"limit": 0})).status_code == 422
    assert (await client.get("/api/v1/sessions", params={"limit": 201})).status_code == 422
