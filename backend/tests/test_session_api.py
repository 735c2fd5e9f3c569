"""
Chat session API tests

Turns of finalized queries are stored and seed the next query in the same session;
aborted queries leave the session unchanged.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.testclient import TestClient

from academic_agent.core.config import Settings
from academic_agent.core.model_gateway import GatewayError
from academic_agent.core.session_store import clean_title
from academic_agent.main import create_app

from tests.fakes import ScriptedGateway, final, tool_calls


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'sessions.db'}",
        ai_config_path=tmp_path / "AI-Config.json",
    )


def test_clean_title():
    assert clean_title('"Program Setup"\n') == "Program Setup"
    assert clean_title("'BSC\nlevels'") == "BSC levels"


def test_session_crud(settings):
    with TestClient(create_app(settings, gateway=ScriptedGateway([]))) as client:
        created = client.post("/api/sessions", json={"title": "Structure"}).json()
        session_id = created["id"]

        assert created["title"] == "Structure"
        assert [s["id"] for s in client.get("/api/sessions").json()] == [session_id]
        assert client.get(f"/api/sessions/{session_id}").json()["message_count"] == 0

        assert client.delete(f"/api/sessions/{session_id}").json()["success"] is True
        assert client.get(f"/api/sessions/{session_id}").status_code == 404


def test_finalized_query_turns_are_persisted(settings):
    gateway = ScriptedGateway([
        tool_calls(("1", "getPrograms", {})),
        final("There are no programs."),
        final("Still none."),
    ])

    with TestClient(create_app(settings, gateway=gateway)) as client:
        session_id = client.post("/api/sessions").json()["id"]

        first = client.post("/api/agent/query", json={"prompt": "List programs", "session_id": session_id})
        assert first.json()["ok"] is True

        turns = client.get(f"/api/sessions/{session_id}/turns").json()["turns"]
        assert [t["role"] for t in turns] == ["user", "model", "tool", "model"]
        assert turns[2]["parts"][0]["call_id"] == "1"

        client.post("/api/agent/query/stream", json={"prompt": "And now?", "session_id": session_id})

        # the second query saw the stored turns first
        assert [t.role for t in gateway.snapshots[-1]] == ["user", "model", "tool", "model", "user"]
        turns = client.get(f"/api/sessions/{session_id}/turns").json()["turns"]
        assert [t["sequence"] for t in turns] == list(range(6))


def test_aborted_query_is_not_persisted(settings):
    gateway = ScriptedGateway([GatewayError("provider down")])

    with TestClient(create_app(settings, gateway=gateway)) as client:
        session_id = client.post("/api/sessions").json()["id"]

        body = client.post("/api/agent/query", json={"prompt": "Hi", "session_id": session_id}).json()

        assert body["ok"] is False
        assert client.get(f"/api/sessions/{session_id}/turns").json()["turns"] == []


def test_query_with_unknown_session(settings):
    with TestClient(create_app(settings, gateway=ScriptedGateway([]))) as client:
        response = client.post("/api/agent/query", json={"prompt": "Hi", "session_id": "missing"})

    assert response.status_code == 404


def test_generate_title(settings):
    gateway = ScriptedGateway([final("Sure.")], title='"Bachelor Program Setup"\n')

    with TestClient(create_app(settings, gateway=gateway)) as client:
        session_id = client.post("/api/sessions").json()["id"]
        client.post("/api/agent/query", json={"prompt": "Create the BSC program", "session_id": session_id})

        session = client.post(f"/api/sessions/{session_id}/title").json()

    assert session["title"] == "Bachelor Program Setup"
    assert "Create the BSC program" in gateway.prompts[0]


def test_generate_title_without_messages(settings):
    with TestClient(create_app(settings, gateway=ScriptedGateway([]))) as client:
        session_id = client.post("/api/sessions").json()["id"]
        response = client.post(f"/api/sessions/{session_id}/title")

    assert response.status_code == 400


class TwoAtOnceGateway(ScriptedGateway):
    """Answers only once two queries are waiting on it at the same time"""

    def __init__(self):
        super().__init__([])
        self.both_waiting = asyncio.Event()

    async def ask(self, history, tools, persona=None):
        self.calls += 1
        self.snapshots.append(history)
        if self.calls >= 2:
            self.both_waiting.set()
        await asyncio.wait_for(self.both_waiting.wait(), timeout=5)
        return final(f"Done: {history[-1].text}")


def test_concurrent_queries_on_one_session(settings):
    gateway = TwoAtOnceGateway()

    with TestClient(create_app(settings, gateway=gateway)) as client:
        session_id = client.post("/api/sessions").json()["id"]

        def ask(prompt):
            return client.post("/api/agent/query", json={"prompt": prompt, "session_id": session_id})

        with ThreadPoolExecutor(max_workers=2) as pool:
            responses = list(pool.map(ask, ["First", "Second"]))

        turns = client.get(f"/api/sessions/{session_id}/turns").json()["turns"]

    assert [r.status_code for r in responses] == [200, 200]
    assert {r.json()["text"] for r in responses} == {"Done: First", "Done: Second"}

    # both queries started from the same empty session; their turns are stored one after the other
    assert [t["sequence"] for t in turns] == [0, 1, 2, 3]
    assert [t["role"] for t in turns] == ["user", "model", "user", "model"]
    assert {turns[0]["parts"][0]["text"], turns[2]["parts"][0]["text"]} == {"First", "Second"}


def test_session_deleted_during_query_still_answers(settings):
    def delete_session_then_answer(history):
        client.app.state.session_store.delete_session(session_id)
        return final("Answered anyway.")

    gateway = ScriptedGateway([delete_session_then_answer])

    with TestClient(create_app(settings, gateway=gateway)) as client:
        session_id = client.post("/api/sessions").json()["id"]
        response = client.post("/api/agent/query", json={"prompt": "Hi", "session_id": session_id})

        assert response.status_code == 200
        assert response.json()["text"] == "Answered anyway."
        assert client.get(f"/api/sessions/{session_id}").status_code == 404
