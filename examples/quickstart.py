#!/usr/bin/env python3
"""
runlens quickstart — record two agent runs and compare them.

Opens a baseline session and a slower, more expensive follow-up, records
model and tool events for each, closes both, then asks the server for the
comparison and prints any regressions.

Run with: python examples/quickstart.py

Requires: pip install httpx
Server must be running: runlens serve  (http://localhost:8000)
"""

import sys

import httpx

BASE = "http://localhost:8000/api/v1"


def record_run(client: httpx.Client, label: str, prompt_chars: int, tool_ms: list[int]) -> str:
    resp = client.post("/sessions", json={"label": label, "model": "gemini-2.5-pro"})
    assert resp.status_code == 201, f"Failed: {resp.text}"
    sid = resp.json()["id"]
    print(f"   {label}: {sid}")

    client.post(f"/sessions/{sid}/events", json={"kind": "LLM_REQUEST", "prompt_chars": prompt_chars})
    client.post(f"/sessions/{sid}/events", json={"kind": "LLM_RESPONSE", "response_chars": 1200})
    for ms in tool_ms:
        client.post(f"/sessions/{sid}/events", json={"kind": "TOOL_START", "tool_name": "read_file"})
        resp = client.post(f"/sessions/{sid}/events", json={
            "kind": "TOOL_END", "tool_name": "read_file", "duration_ms": ms,
        })
        if resp.json()["status"] == "warning":
            print(f"   budget: {resp.json()['warning']}")

    summary = client.post(f"/sessions/{sid}/close").json()
    print(f"   cost ${summary['cost']['total_cost_usd']:.6f}, "
          f"P95 {summary['overall_latency']['p95_ms']}ms")
    return sid


def main():
    client = httpx.Client(base_url=BASE, timeout=10)

    # ── Health check ──────────────────────────────────────────────
    print("Checking server health...")
    try:
        health = client.get("/health").json()
    except httpx.ConnectError:
        print(f"Server not reachable at {BASE}. Start it with: runlens serve")
        sys.exit(1)
    print(f"  Store: {health['store']}  (v{health['version']})")

    # ── Budget ────────────────────────────────────────────────────
    print("\n1. Setting a per-session budget of $0.001...")
    client.patch("/budget", json={"max_per_session_usd": 0.001, "alert_threshold_pct": 80})

    # ── Two runs ──────────────────────────────────────────────────
    print("\n2. Recording baseline and candidate runs...")
    baseline = record_run(client, "baseline", prompt_chars=8_000, tool_ms=[120, 90, 150])
    candidate = record_run(client, "candidate", prompt_chars=14_000, tool_ms=[130, 400, 380])

    # ── Compare ───────────────────────────────────────────────────
    print("\n3. Comparing...")
    diff = client.get("/compare", params={"baseline_id": baseline, "compare_id": candidate}).json()
    print(f"   cost delta: {diff['cost_delta_pct']:+.1f}%")
    print(f"   P95 delta:  {diff['p95_latency_delta_ms']:+d}ms")
    if not diff["regressions"]:
        print("   No regressions.")
    for r in diff["regressions"]:
        print(f"   {r['severity'].upper():<8} {r['metric']} ({r['delta_pct']:+.1f}%)")


if __name__ == "__main__":
    main()
