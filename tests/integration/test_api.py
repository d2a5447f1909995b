"""End-to-end tests through the HTTP and WebSocket surface."""

from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import salon_supervisor.main as main_module
from salon_supervisor.core.config import Settings, get_settings
from salon_supervisor.core.dependencies import ServiceContainer, build_container
from salon_supervisor.main import create_app
from salon_supervisor.services.livekit import ESCALATION_MESSAGE, TIMEOUT_FALLBACK_MESSAGE

from conftest import TIMEOUT_MS

QUESTION = "What are your salon hours?"
ANSWER = "We're open 9-5 Mon-Sat"


@pytest.fixture
def container(settings: Settings, clock) -> ServiceContainer:
    container = build_container(settings, clock=clock)
    container.voice.deliver_message = AsyncMock()
    return container


@pytest.fixture
def client(settings: Settings, container: ServiceContainer):
    app = create_app(settings, container=container)
    with TestClient(app) as client:
        yield client


def call(client: TestClient, question: str = QUESTION, session_id: str = "session-1"):
    return client.post(
        "/api/agent/call-received",
        json={
            "session_id": session_id,
            "question": question,
            "customer_info": {"name": "Ana", "phone": "555-0100"},
        },
    )


class TestLearningLoop:
    """Escalate, resolve, then answer from the knowledge base."""

    def test_escalate_resolve_and_replay(self, client: TestClient, container: ServiceContainer) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "subscribe"})
            assert ws.receive_json()["type"] == "subscribed"

            # Empty knowledge base: escalate
            escalated = call(client)
            assert escalated.status_code == 200
            body = escalated.json()
            assert body["source"] == "escalated"
            assert body["response"] == ESCALATION_MESSAGE
            request_id = body["helpRequestId"]

            created = ws.receive_json()
            assert created["type"] == "help_request_created"
            assert created["data"]["id"] == request_id
            assert created["data"]["status"] == "PENDING"

            pending = client.get("/api/help-requests", params={"status": "pending"}).json()
            assert [r["id"] for r in pending["requests"]] == [request_id]

            # Supervisor answers
            resolved = client.post(
                f"/api/help-requests/{request_id}/respond",
                json={"supervisor_response": ANSWER},
            )
            assert resolved.status_code == 200
            result = resolved.json()
            assert result["helpRequest"]["status"] == "RESOLVED"
            assert result["knowledgeEntry"]["confidence"] == 1.0
            assert result["knowledgeEntry"]["question_key"] == "what are your salon hours"

            assert [ws.receive_json()["type"] for _ in range(3)] == [
                "customer_followup",
                "help_request_updated",
                "knowledge_updated",
            ]

            # Same question again: answered from the knowledge base
            replay = call(client, session_id="session-2")
            assert replay.json()["source"] == "knowledge_base"
            assert replay.json()["response"] == ANSWER
            assert "helpRequestId" not in replay.json()

        assert client.get("/api/help-requests").json()["count"] == 1
        container.voice.deliver_message.assert_any_await("session-1", f"Thank you for your patience. {ANSWER}")
        container.voice.deliver_message.assert_any_await("session-2", ANSWER)


class TestTimeouts:
    """Expired requests are reclaimed by the sweeper."""

    def test_sweep_reclaims_once(self, client: TestClient, container: ServiceContainer, clock) -> None:
        request_id = call(client, question="Do you do perms?").json()["helpRequestId"]
        clock.advance(milliseconds=TIMEOUT_MS)
        container.voice.deliver_message.reset_mock()

        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "subscribe"})
            ws.receive_json()
            first = client.post("/api/help-requests/maintenance/check-timeouts").json()
            updated = ws.receive_json()
            second = client.post("/api/help-requests/maintenance/check-timeouts").json()

        assert first["timed_out_count"] == 1
        assert second["timed_out_count"] == 0
        assert updated["type"] == "help_request_updated"
        assert updated["data"]["status"] == "UNRESOLVED"
        container.voice.deliver_message.assert_awaited_once_with("session-1", TIMEOUT_FALLBACK_MESSAGE)

        details = client.get(f"/api/help-requests/{request_id}").json()
        assert details["request"]["status"] == "UNRESOLVED"

        late = client.post(f"/api/help-requests/{request_id}/respond", json={"supervisor_response": "x"})
        assert late.status_code == 409


class TestHelpRequestErrors:
    """Boundary translation of expected errors."""

    def test_unknown_request(self, client: TestClient) -> None:
        assert client.get("/api/help-requests/missing").status_code == 404
        response = client.post("/api/help-requests/missing/respond", json={"supervisor_response": "x"})
        assert response.status_code == 404

    def test_empty_response(self, client: TestClient) -> None:
        request_id = call(client).json()["helpRequestId"]

        response = client.post(f"/api/help-requests/{request_id}/respond", json={"supervisor_response": ""})

        assert response.status_code == 400
        assert client.get(f"/api/help-requests/{request_id}").json()["request"]["status"] == "PENDING"

    @pytest.mark.parametrize("body", [{}, {"supervisor_response": None}])
    def test_missing_response_is_bad_request(self, client: TestClient, body: dict) -> None:
        request_id = call(client).json()["helpRequestId"]

        response = client.post(f"/api/help-requests/{request_id}/respond", json=body)

        assert response.status_code == 400
        assert client.get(f"/api/help-requests/{request_id}").json()["request"]["status"] == "PENDING"

    def test_double_resolution(self, client: TestClient) -> None:
        request_id = call(client).json()["helpRequestId"]
        url = f"/api/help-requests/{request_id}/respond"

        assert client.post(url, json={"supervisor_response": "first"}).status_code == 200
        assert client.post(url, json={"supervisor_response": "second"}).status_code == 409

    def test_empty_question(self, client: TestClient) -> None:
        assert call(client, question="  ").status_code == 400

    def test_internal_errors_do_not_leak(self, client: TestClient, container: ServiceContainer) -> None:
        container.voice.deliver_message.side_effect = RuntimeError("secret room token expired")

        response = call(client)

        assert response.status_code == 500
        assert response.json()["detail"] == "Internal server error"

    def test_stats(self, client: TestClient) -> None:
        call(client)

        stats = client.get("/api/help-requests/stats").json()["stats"]

        assert stats["pending"] == 1
        assert stats["total"] == 1


class TestKnowledgeBaseRoutes:
    """Administrative knowledge base endpoints."""

    def test_add_list_search_delete(self, client: TestClient) -> None:
        added = client.post(
            "/api/knowledge-base/",
            json={"question": "Do you take walk in?", "answer": "Yes"},
        )
        assert added.status_code == 200
        entry = added.json()["entry"]
        assert entry["source"] == "manual"

        listing = client.get("/api/knowledge-base/").json()
        assert [e["id"] for e in listing["answers"]] == [entry["id"]]

        found = client.post("/api/knowledge-base/search", json={"question": "do you take walk ins"}).json()
        assert found["found"] is True
        assert found["answer"]["id"] == entry["id"]

        assert client.delete(f"/api/knowledge-base/{entry['id']}").status_code == 200
        assert client.delete(f"/api/knowledge-base/{entry['id']}").status_code == 404
        assert client.get("/api/knowledge-base/").json()["count"] == 0


class TestHealthAndLiveKit:
    """Health probe and voice pass-through endpoints."""

    def test_health_reports_connected_clients(self, client: TestClient) -> None:
        assert client.get("/health").json()["connectedClients"] == 0

        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "subscribe"})
            ws.receive_json()
            health = client.get("/health").json()

        assert health["status"] == "healthy"
        assert health["connectedClients"] == 1

    def test_token_requires_credentials(self, client: TestClient) -> None:
        response = client.post(
            "/api/livekit/token",
            json={"roomName": "call-1", "participantName": "Ana"},
        )

        assert response.status_code == 500

    def test_token_issued_when_configured(self, db_path: str) -> None:
        settings = Settings(
            database_path=db_path,
            sweeper_enabled=False,
            livekit_url="wss://example.livekit.cloud",
            livekit_api_key="devkey",
            livekit_api_secret="a-secret-that-is-long-enough-for-hmac",
        )
        with TestClient(create_app(settings)) as client:
            response = client.post(
                "/api/livekit/token",
                json={"roomName": "call-1", "participantName": "Ana", "participantIdentity": "customer"},
            )
            room = client.get("/api/livekit/room/1").json()

        assert response.status_code == 200
        assert response.json()["token"].count(".") == 2
        assert response.json()["url"] == "wss://example.livekit.cloud"
        assert room == {"roomName": "call-1", "livekitUrl": "wss://example.livekit.cloud"}


class TestEntryPoint:
    """The module-level app served by `uvicorn salon_supervisor.main:app`."""

    @pytest.fixture
    def environment(self, monkeypatch, db_path: str):
        monkeypatch.setenv("DATABASE_PATH", db_path)
        monkeypatch.setenv("SWEEPER_ENABLED", "false")
        monkeypatch.setenv("NOTIFICATION_SEND_TIMEOUT_MS", "250")
        monkeypatch.setattr(main_module, "_app", None)
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    def test_app_is_built_once_from_environment(self, environment) -> None:
        app = main_module.app

        assert isinstance(app, FastAPI)
        assert main_module.app is app
        assert app.state.container.notifications.send_timeout == 0.25
        with TestClient(app) as client:
            assert client.get("/health").json()["status"] == "healthy"

    def test_unknown_attribute(self) -> None:
        with pytest.raises(AttributeError):
            main_module.not_an_app
