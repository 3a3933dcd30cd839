"""
Unit Tests for the HTTP API
===========================

Tests for the FastAPI routes over the sample database and mock LLM.
"""

import json
import threading
import time

import pytest
from fastapi.testclient import TestClient

from api.main import create_app, create_llm, create_orchestrator
from chatbi.config import Settings
from chatbi.conversation import ConversationOrchestrator
from chatbi.converter import SemanticConverter
from chatbi.llm import MockLLM


@pytest.fixture
def settings(database_url: str) -> Settings:
    return Settings(database_url=database_url, llm_provider="mock", otlp_endpoint="disabled")


@pytest.fixture
def client(settings: Settings, orchestrator: ConversationOrchestrator):
    """Test client for an app wired to the shared orchestrator fixture."""
    app = create_app(settings=settings, orchestrator=orchestrator)
    with TestClient(app) as test_client:
        yield test_client


class GatedLLM(MockLLM):
    """Mock LLM that holds every call until released."""

    def __init__(self, started: threading.Event, release: threading.Event, **kwargs) -> None:
        super().__init__(**kwargs)
        self.started = started
        self.release = release

    def generate(self, prompt: str, system_prompt: str | None = None):
        self.started.set()
        self.release.wait(timeout=10)
        return super().generate(prompt, system_prompt)


class TestServiceRoutes:
    """Root, health and probe endpoints."""

    def test_root(self, client: TestClient) -> None:
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["tables_count"] == 2

    def test_health_unreachable_database(self, tmp_path) -> None:
        settings = Settings(
            database_url=f"sqlite:///{tmp_path / 'missing' / 'nowhere.db'}",
            llm_provider="mock",
        )
        with TestClient(create_app(settings=settings)) as client:
            response = client.get("/health")
        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "unhealthy"
        assert body["error"]

    def test_probes(self, client: TestClient) -> None:
        assert client.get("/live").json() == {"status": "ok"}
        assert client.get("/ready").json()["ready"] is True

    def test_request_id_propagated(self, client: TestClient) -> None:
        response = client.get("/live", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"
        assert "X-Response-Time-Ms" in response.headers

    def test_metrics(self, client: TestClient) -> None:
        client.post("/api/v1/chat", json={"message": "top customers"})
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "chatbi_turns_total" in response.text
        assert "http_requests_total" in response.text

    def test_metrics_use_route_templates(self, client: TestClient) -> None:
        """Test that path parameters never become metric label values."""
        client.get("/api/v1/conversations/conv-abc-123")
        client.get("/api/v1/tables/orders/schema")
        client.get("/no/such/path")

        text = client.get("/metrics").text
        assert 'endpoint="/api/v1/conversations/{conversation_id}"' in text
        assert 'endpoint="/api/v1/tables/{table_name}/schema"' in text
        assert 'endpoint="<unmatched>"' in text
        assert "conv-abc-123" not in text
        assert 'endpoint="/no/such/path"' not in text


class TestChatRoutes:
    """Chat and SQL execution."""

    def test_chat_new_conversation(self, client: TestClient, top_customers_sql: str) -> None:
        response = client.post("/api/v1/chat", json={"message": "top customers by order amount"})
        assert response.status_code == 200
        body = response.json()
        assert body["conversation_id"]
        assert body["sql_query"] == top_customers_sql
        assert body["executable"] is True
        assert body["semantic_sql"]["tables"] == ["orders", "customers"]
        assert body["debug"]["provider"] == "MockLLM"
        assert body["request_id"] == response.headers["X-Request-ID"]

    def test_chat_continuation(self, client: TestClient) -> None:
        first = client.post("/api/v1/chat", json={"message": "top customers"}).json()
        second = client.post(
            "/api/v1/chat",
            json={"message": "only the paid ones", "conversation_id": first["conversation_id"]},
        ).json()
        assert second["conversation_id"] == first["conversation_id"]

        history = client.get(f"/api/v1/conversations/{first['conversation_id']}").json()
        assert len(history["history"]) == 4
        assert history["state"] == "awaiting_execution"

    def test_chat_unknown_connection(self, client: TestClient) -> None:
        response = client.post("/api/v1/chat", json={"message": "top customers", "connection_id": "nope"})
        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "ConnectionNotFound"
        assert body["details"] == {"connection_id": "nope"}

    def test_chat_rejects_empty_message(self, client: TestClient) -> None:
        assert client.post("/api/v1/chat", json={"message": ""}).status_code == 422

    def test_execute_and_record(self, client: TestClient) -> None:
        chat = client.post("/api/v1/chat", json={"message": "premium customers"}).json()

        response = client.post(
            "/api/v1/execute-sql",
            json={"sql": chat["sql_query"], "conversation_id": chat["conversation_id"]},
        )
        assert response.status_code == 200
        result = response.json()
        assert result["success"] is True
        assert result["row_count"] == 2
        assert {row["name"] for row in result["data"]} == {"Alice", "Carol"}
        assert result["error"] is None

        history = client.get(f"/api/v1/conversations/{chat['conversation_id']}").json()
        assert history["state"] == "settled"
        assert history["history"][1]["execution_result"]["row_count"] == 2

    def test_execute_error_is_not_http_error(self, client: TestClient) -> None:
        response = client.post("/api/v1/execute-sql", json={"sql": "SELECT * FROM missing_table"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert "no such table" in body["error"]
        assert body["row_count"] == 0

    def test_execute_unknown_connection(self, client: TestClient) -> None:
        response = client.post("/api/v1/execute-sql", json={"sql": "SELECT 1", "connection_id": "nope"})
        assert response.status_code == 404


class TestConversationRoutes:
    """History read and clear."""

    def test_unknown_conversation_is_empty(self, client: TestClient) -> None:
        body = client.get("/api/v1/conversations/unknown").json()
        assert body == {"conversation_id": "unknown", "state": "no_turns", "history": []}

    def test_clear_conversation(self, client: TestClient) -> None:
        chat = client.post("/api/v1/chat", json={"message": "top customers"}).json()
        conversation_id = chat["conversation_id"]

        assert client.delete(f"/api/v1/conversations/{conversation_id}").status_code == 204
        assert client.get(f"/api/v1/conversations/{conversation_id}").json()["history"] == []
        assert client.delete(f"/api/v1/conversations/{conversation_id}").status_code == 204

    def test_clear_during_turn_does_not_block_other_requests(
        self, settings: Settings, orchestrator: ConversationOrchestrator, enricher
    ) -> None:
        """Test that a DELETE waiting on a running turn leaves the server responsive."""
        started, release = threading.Event(), threading.Event()
        llm = GatedLLM(started, release, default=json.dumps({"tables": ["customers"]}))
        orchestrator.converter = SemanticConverter(llm, enricher)
        responses = {}

        with TestClient(create_app(settings=settings, orchestrator=orchestrator)) as client:
            chat = threading.Thread(
                target=lambda: responses.update(
                    chat=client.post("/api/v1/chat", json={"message": "list customers", "conversation_id": "c1"})
                )
            )
            chat.start()
            assert started.wait(timeout=5)

            clear = threading.Thread(
                target=lambda: responses.update(clear=client.delete("/api/v1/conversations/c1"))
            )
            clear.start()
            time.sleep(0.2)

            # Unblocks the turn even if the event loop is stuck
            fallback = threading.Timer(3.0, release.set)
            fallback.start()
            begin = time.perf_counter()
            live = client.get("/live")
            elapsed = time.perf_counter() - begin

            release.set()
            fallback.cancel()
            chat.join(timeout=5)
            clear.join(timeout=5)

        assert live.status_code == 200
        assert elapsed < 1.0
        assert responses["chat"].status_code == 200
        assert responses["clear"].status_code == 204
        assert orchestrator.history("c1") == []


class TestSchemaRoutes:
    """Database browsing."""

    def test_tables(self, client: TestClient) -> None:
        body = client.get("/api/v1/tables").json()
        assert sorted(body["tables"]) == ["customers", "orders"]

    def test_table_schema(self, client: TestClient) -> None:
        body = client.get("/api/v1/tables/orders/schema").json()
        assert body["table_name"] == "orders"
        assert [column["name"] for column in body["columns"]] == ["id", "user_id", "amount", "status", "order_date"]

    def test_unknown_table_schema(self, client: TestClient) -> None:
        assert client.get("/api/v1/tables/nope/schema").status_code == 404

    def test_metadata(self, client: TestClient) -> None:
        body = client.get("/api/v1/metadata").json()
        assert set(body["metadata"]["tables"]) == {"customers", "orders"}
        assert "user-related data" in body["summary"]

    def test_metadata_unknown_connection(self, client: TestClient) -> None:
        assert client.get("/api/v1/metadata", params={"connection_id": "nope"}).status_code == 404

    def test_connections_hide_url(self, client: TestClient) -> None:
        connections = client.get("/api/v1/connections").json()
        assert len(connections) == 1
        assert connections[0]["name"] == "Default database"
        assert connections[0]["dialect"] == "sqlite"
        assert "url" not in connections[0]


class TestWiring:
    """Component construction from settings."""

    def test_mock_provider(self, settings: Settings) -> None:
        assert isinstance(create_llm(settings), MockLLM)

    def test_unknown_provider(self) -> None:
        with pytest.raises(ValueError):
            create_llm(Settings(llm_provider="gpt-banana"))

    def test_create_orchestrator(self, settings: Settings) -> None:
        orchestrator = create_orchestrator(settings)
        assert orchestrator.registry.active().url == settings.database_url
        assert orchestrator.enricher.sample_size == settings.sample_rows
