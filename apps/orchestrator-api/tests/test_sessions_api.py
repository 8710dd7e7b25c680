from typing import List, Tuple

from fastapi.testclient import TestClient

from app.main import create_app
from orchestrator import AgentOrchestrator, OrchestratorConfig
from persistence import InMemoryContextStore


class RecordingBackend:
    def __init__(self) -> None:
        self.messages: List[Tuple[str, str]] = []
        self.interrupted: List[str] = []

    async def send_message(self, session_id: str, text: str) -> None:
        self.messages.append((session_id, text))

    async def interrupt(self, session_id: str) -> None:
        self.interrupted.append(session_id)


def _app(backend: RecordingBackend):
    return create_app(
        lambda: AgentOrchestrator(
            backend=backend,
            store=InMemoryContextStore(),
            config=OrchestratorConfig(retry_delay_ms=0),
        )
    )


def test_health() -> None:
    with TestClient(_app(RecordingBackend())) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_run_turn_returns_completed_context() -> None:
    backend = RecordingBackend()
    with TestClient(_app(backend)) as client:
        response = client.post("/sessions/s1/turns", json={"input": "list files"})

    assert response.status_code == 200
    body = response.json()
    assert body["session_id"] == "s1"
    assert body["state"] == "completed"
    assert [t["to"] for t in body["transitions"]] == ["executing", "validating", "completed"]
    assert body["plan"]["steps"][0]["description"] == "list files"
    assert backend.messages == [("s1", "Generate a structured plan for: list files")]


def test_turn_requires_input() -> None:
    with TestClient(_app(RecordingBackend())) as client:
        response = client.post("/sessions/s1/turns", json={})

    assert response.status_code == 422


def test_get_unknown_session_is_404() -> None:
    with TestClient(_app(RecordingBackend())) as client:
        response = client.get("/sessions/missing")

    assert response.status_code == 404


def test_list_get_and_clear_sessions() -> None:
    with TestClient(_app(RecordingBackend())) as client:
        client.post("/sessions/a/turns", json={"input": "one"})
        client.post("/sessions/b/turns", json={"input": "two"})

        listed = client.get("/sessions")
        fetched = client.get("/sessions/a")
        cleared = client.delete("/sessions/a")
        after = client.get("/sessions/a")

    assert sorted(ctx["session_id"] for ctx in listed.json()) == ["a", "b"]
    assert fetched.json()["state"] == "completed"
    assert cleared.status_code == 204
    assert after.status_code == 404


def test_cancel_session() -> None:
    backend = RecordingBackend()
    with TestClient(_app(backend)) as client:
        unknown = client.post("/sessions/fresh/cancel")
        client.post("/sessions/s1/turns", json={"input": "list files"})
        cancelled = client.post("/sessions/s1/cancel")
        blocked = client.post("/sessions/fresh/turns", json={"input": "hello"})

    assert unknown.json() == {"session_id": "fresh", "state": None}
    assert cancelled.json()["state"] == "cancelled"
    assert cancelled.json()["transitions"][-1]["reason"] == "Cancelled by user"
    assert blocked.json()["state"] == "cancelled"
    assert backend.interrupted == ["fresh", "s1"]
