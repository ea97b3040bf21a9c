"""Tests for the HTTP surface, run against the simulated editor and scripted LLM."""

import asyncio
import json
import logging

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from fakes import EDIT, IMPORTANT_SYMBOLS, PROBE, ScriptedLLM
from harness import A_RS, LLM, make_config, make_harness
from symbolhub.api import events, health, symbols
from symbolhub.core.llm import LLMBroker
from symbolhub.main import _configure_file_logging
from symbolhub.runtime import AgentRuntime, get_runtime, set_runtime
from symbolhub.tools.types import ToolType
from symbolhub.ui_events import UIEvent

NEW_LOAD = 'pub fn load() -> Config {\n    parseConfig("api")\n}'


def make_client(llm: ScriptedLLM | None = None):
    h = make_harness(llm=llm)
    runtime = AgentRuntime(
        config=h.config,
        ui_events=h.ui_events,
        broker=h.broker,
        toolbox=h.toolbox,
        manager=h.manager(),
        llm_properties=LLM,
    )
    app = FastAPI()
    app.include_router(health.router)
    app.include_router(symbols.router)
    app.include_router(events.router)
    app.dependency_overrides[get_runtime] = lambda: runtime
    return app, h, runtime


def test_health_and_tools():
    app, h, runtime = make_client()
    with TestClient(app) as client:
        health_response = client.get("/health").json()
        tools = client.get("/tools").json()["tools"]

    assert health_response["status"] == "healthy"
    assert health_response["tools_registered"] == len(ToolType)
    assert health_response["active_symbols"] == 0
    by_type = {t["tool_type"]: t for t in tools}
    assert by_type["open_file"]["description"].startswith("### open_file")
    assert by_type["code_editing"]["reminder"].startswith("### code_editing\n<code_editing>")


def test_symbol_probe():
    app, h, runtime = make_client(ScriptedLLM({PROBE: "Builds the config."}))
    with TestClient(app) as client:
        response = client.post("/symbol/request", json={
            "symbol_name": "parseConfig", "fs_file_path": A_RS, "kind": "probe", "query": "what?",
        })
        active = client.get("/health").json()["active_symbols"]

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] and body["answer"] == "Builds the config."
    assert body["error"] is None
    assert active == 1


def test_symbol_edit_returns_correctness_report():
    app, h, runtime = make_client(ScriptedLLM({EDIT: f"```rust\n{NEW_LOAD}\n```"}))
    with TestClient(app) as client:
        response = client.post("/symbol/request", json={
            "symbol_name": "load", "fs_file_path": A_RS, "kind": "edit", "instructions": ["use api"],
        })

    assert response.status_code == 200
    edit = response.json()["edit"]
    assert edit["edited_code"] == NEW_LOAD
    assert edit["correctness"] == {"resolved": True, "attempts": 1, "remaining_diagnostics": []}
    assert edit["followups_scheduled"] == 0
    assert NEW_LOAD in h.sim.files[A_RS]


@pytest.mark.parametrize("payload,status,kind", [
    ({"symbol_name": "load", "kind": "probe", "query": "q"}, 404, "unresolvable_symbol"),
    ({"symbol_name": "ghost", "fs_file_path": A_RS, "kind": "probe", "query": "q"}, 404, "snippet_not_found"),
    ({"symbol_name": "load", "fs_file_path": "/repo/gone.rs", "kind": "outline"}, 404, "file_not_found"),
])
def test_symbol_errors_map_to_status_codes(payload, status, kind):
    app, h, runtime = make_client(ScriptedLLM({PROBE: "x"}))
    with TestClient(app) as client:
        response = client.post("/symbol/request", json=payload)

    assert response.status_code == status
    assert response.json()["detail"]["kind"] == kind


def test_reply_timeout_is_a_gateway_timeout():
    app, h, runtime = make_client(ScriptedLLM({PROBE: "late"}, delay=1.0))
    with TestClient(app) as client:
        response = client.post("/symbol/request", json={
            "symbol_name": "load", "fs_file_path": A_RS, "kind": "probe", "query": "q", "timeout": 0.1,
        })

    assert response.status_code == 504
    assert response.json()["detail"]["kind"] == "reply_timeout"


@pytest.mark.parametrize("payload", [
    {"symbol_name": "load", "fs_file_path": A_RS, "kind": "edit"},
    {"symbol_name": "load", "fs_file_path": A_RS, "kind": "ask_question"},
])
def test_incomplete_requests_are_rejected(payload):
    app, h, runtime = make_client()
    with TestClient(app) as client:
        response = client.post("/symbol/request", json=payload)

    assert response.status_code == 400
    assert h.sim.calls == []


def test_agent_request():
    plan = {"symbols": [
        {"code_symbol": "load", "file_path": A_RS, "steps": ["use api"]},
        {"code_symbol": "Widget", "file_path": A_RS, "is_new": True},
    ]}
    llm = ScriptedLLM({IMPORTANT_SYMBOLS: json.dumps(plan), EDIT: f"```rust\n{NEW_LOAD}\n```"})
    app, h, runtime = make_client(llm)
    with TestClient(app) as client:
        response = client.post("/agent/request", json={"user_query": "use the api", "file_paths": [A_RS]})
        active = client.get("/health").json()["active_symbols"]

    assert response.status_code == 200
    body = response.json()
    assert [r["symbol_name"] for r in body["responses"]] == ["load"]
    assert body["responses"][0]["ok"]
    assert body["skipped"] == [{"symbol_name": "Widget", "fs_file_path": A_RS, "is_new": True}]
    # the per-request session is torn down; the shared locker never saw it
    assert active == 0


def test_event_stream_replays_events_until_closed():
    app, h, runtime = make_client()
    runtime.ui_events.send(UIEvent.symbol_event("load", A_RS, "edit"))
    runtime.ui_events.close()

    with TestClient(app) as client:
        response = client.get("/events")

    assert response.headers["content-type"].startswith("text/event-stream")
    chunks = [c for c in response.text.split("\n\n") if c]
    assert chunks[0].startswith("event: symbol_event\ndata: ")
    assert chunks[-1] == "event: done\ndata: {}"


def test_runtime_start_and_close(tmp_path):
    h = make_harness()

    async def scenario():
        runtime = await AgentRuntime.start(
            make_config(mcp_config_path=str(tmp_path / "absent.json")),
            llm_client=LLMBroker(completion_func=h.llm),
            transport=h.sim.transport(),
        )
        set_runtime(runtime)
        assert get_runtime() is runtime
        tools = len(runtime.broker.tool_types())
        await runtime.aclose()
        set_runtime(None)
        return runtime, tools

    runtime, tools = asyncio.run(scenario())

    assert tools == len(ToolType)
    assert runtime.ui_events.closed
    with pytest.raises(RuntimeError):
        get_runtime()


def test_file_logging(tmp_path):
    root = logging.getLogger()
    before = list(root.handlers)
    try:
        _configure_file_logging(str(tmp_path / "logs"))
        added = [handler for handler in root.handlers if handler not in before]
        assert len(added) == 1
        assert added[0].baseFilename.endswith("symbolhub.log")
    finally:
        for handler in list(root.handlers):
            if handler not in before:
                root.removeHandler(handler)
                handler.close()
