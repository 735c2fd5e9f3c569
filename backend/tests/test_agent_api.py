"""
Agent API tests using the FastAPI TestClient
"""

import json

import pytest
from fastapi.testclient import TestClient

from academic_agent.core.config import Settings
from academic_agent.core.model_gateway import GatewayError
from academic_agent.main import create_app

from tests.fakes import ScriptedGateway, final, tool_calls


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'api.db'}",
        ai_config_path=tmp_path / "AI-Config.json",
        max_iterations=3,
    )


def make_client(settings, gateway):
    return TestClient(create_app(settings, gateway=gateway))


def read_ndjson(response):
    return [json.loads(line) for line in response.text.splitlines() if line.strip()]


def test_stream_query(settings):
    gateway = ScriptedGateway([
        tool_calls(("1", "createProgram", {"name": "Bachelor of Science", "code": "BSC"})),
        final("Created program BSC."),
    ])

    with make_client(settings, gateway) as client:
        response = client.post("/api/agent/query/stream", json={"prompt": "Create BSC"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        assert response.headers["x-query-id"]

        events = read_ndjson(response)
        assert [e["index"] for e in events] == list(range(len(events)))
        assert [e["type"] for e in events] == [
            "status", "status", "tool_invoked", "tool_settled", "status", "final_answer",
        ]
        assert events[3]["outcome"]["ok"] is True
        assert events[-1]["text"] == "Created program BSC."

        programs = client.app.state.service.get_programs()
        assert [p["code"] for p in programs] == ["BSC"]


def test_sync_query_success(settings):
    with make_client(settings, ScriptedGateway([final("Hello, I am Idriss.")])) as client:
        response = client.post("/api/agent/query", json={"prompt": "Who are you?"})

    body = response.json()
    assert body["ok"] is True
    assert body["text"] == "Hello, I am Idriss."
    assert body["query_id"]


def test_sync_query_iteration_cap(settings):
    gateway = ScriptedGateway([tool_calls(("1", "getPrograms", {}))], repeat_last=True)

    with make_client(settings, gateway) as client:
        body = client.post("/api/agent/query", json={"prompt": "Loop"}).json()

    assert body["ok"] is False
    assert body["error"]["reason"] == "iteration_limit_exceeded"
    assert gateway.calls == 3


def test_gateway_error_is_reported(settings):
    with make_client(settings, ScriptedGateway([GatewayError("provider down")])) as client:
        body = client.post("/api/agent/query", json={"prompt": "Hi"}).json()

    assert body == {
        "ok": False,
        "error": {"reason": "gateway_error", "message": "provider down"},
        "query_id": body["query_id"],
    }


def test_empty_prompt_rejected(settings):
    with make_client(settings, ScriptedGateway([])) as client:
        response = client.post("/api/agent/query", json={"prompt": ""})

    assert response.status_code == 422


def test_cancel_unknown_query(settings):
    with make_client(settings, ScriptedGateway([])) as client:
        response = client.post("/api/agent/queries/nope/cancel")

    assert response.status_code == 404


def test_list_tools(settings):
    with make_client(settings, ScriptedGateway([])) as client:
        body = client.get("/api/agent/tools").json()

    assert body["count"] == 17
    names = [tool["name"] for tool in body["tools"]]
    assert names[0] == "createProgram"
    assert "retrieveField" in names


def test_unconfigured_provider(settings):
    with TestClient(create_app(settings)) as client:
        body = client.post("/api/agent/query", json={"prompt": "Hi"}).json()
        health = client.get("/health").json()

    assert body["error"]["reason"] == "gateway_error"
    assert health == {"status": "healthy"}


def test_rebuilt_engines_share_detached_tool_calls(settings):
    with TestClient(create_app(settings)) as client:
        first = client.app.state.engine

        client.post("/api/config/ai", json={
            "ai_provider": "openai", "ai_model": "gpt-4o-mini", "ai_api_key": "sk-test-1234567890",
        })
        rebuilt = client.app.state.engine

        assert rebuilt is not first
        assert rebuilt.detached is first.detached
        assert rebuilt.detached is client.app.state.detached_tools


def test_ai_config_roundtrip(settings):
    with TestClient(create_app(settings)) as client:
        assert client.get("/api/config/ai").json() == {"exists": False, "config": {}}

        response = client.post("/api/config/ai", json={
            "ai_provider": "openai",
            "ai_model": "gpt-4o-mini",
            "ai_api_key": "sk-test-1234567890",
            "max_iterations": 5,
        })
        assert response.json()["success"] is True
        assert client.app.state.engine.max_iterations == 5
        assert client.app.state.engine.gateway.provider == "openai"

        stored = client.get("/api/config/ai").json()
        assert stored["exists"] is True
        assert stored["config"]["ai_api_key"] == "sk-t...7890"

        assert client.post("/api/config/ai", json={
            "ai_provider": "unknown", "ai_model": "m", "ai_api_key": "k",
        }).status_code == 400

        assert client.delete("/api/config/ai").json()["deleted"] is True
        assert client.app.state.engine.gateway.provider == "unconfigured"
