"""
Unit tests for the Routing service API.
"""

import pytest
from fastapi.testclient import TestClient

from service_routing.app.chat import CompletionStream, GenerationClient
from service_routing.app.main import RoutingService, create_app
from shared.config import get_config
from shared.errors import StorageError, UpstreamUnavailableError
from shared.test_helpers import InMemoryPersistence, RuleDataFactory

from test_chat import FakeUpstream, chunk


class FakeGeneration:
    """Generation client double recording the conversations it receives."""

    def __init__(self, chunks=None, error=None, open_error=None):
        self.chunks = chunks if chunks is not None else [chunk("Routing you to "), chunk("Jane.")]
        self.error = error
        self.open_error = open_error
        self.conversations = []
        self.upstreams = []
        self.closed = False

    @property
    def configured(self):
        return True

    async def open_stream(self, messages):
        self.conversations.append(messages)
        if self.open_error:
            raise self.open_error
        upstream = FakeUpstream(self.chunks, self.error)
        self.upstreams.append(upstream)
        return CompletionStream(upstream)

    async def close(self):
        self.closed = True


@pytest.fixture
def config(tmp_path):
    return get_config(
        "routing", 8999,
        env="test",
        log_level="warning",
        rules_path=str(tmp_path / "rules.json"),
        openai_api_key=None
    )


@pytest.fixture
def persistence():
    return InMemoryPersistence()


@pytest.fixture
def generation():
    return FakeGeneration()


@pytest.fixture
def service(config, persistence, generation):
    return RoutingService(config=config, persistence=persistence, generation=generation)


@pytest.fixture
def client(service):
    with TestClient(service.app) as client:
        yield client


def create(client, **kwargs):
    response = client.post("/rules", json=RuleDataFactory.create_rule_draft(**kwargs))
    assert response.status_code == 201, response.text
    return response.json()


class TestServiceShell:

    def test_root_endpoint(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "routing"
        assert "rules" in data["capabilities"]

    def test_health_endpoint(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"] == {"rules_storage": "ok", "generation": "configured"}

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_metrics_endpoint(self, client):
        create(client)
        response = client.get("/metrics")
        assert response.status_code == 200
        assert 'rule_mutations_total{operation="create",outcome="ok"} 1.0' in response.text

    def test_metrics_count_failed_mutations(self, client, persistence):
        rule = create(client)
        client.post("/rules", json=RuleDataFactory.create_rule_draft(location=""))
        client.put(f"/rules/{rule['id']}", json={"name": " "})
        client.put("/rules/nonexistent-id", json={"name": "x"})
        client.delete(f"/rules/{rule['id']}", params={"confirm": "wrong"})
        persistence.fail_saves = StorageError("disk full")
        client.post("/rules", json=RuleDataFactory.create_rule_draft())
        client.put(f"/rules/{rule['id']}", json={"notes": "x"})

        text = client.get("/metrics").text
        assert 'rule_mutations_total{operation="create",outcome="ok"} 1.0' in text
        assert 'rule_mutations_total{operation="create",outcome="validation_error"} 1.0' in text
        assert 'rule_mutations_total{operation="create",outcome="storage_failure"} 1.0' in text
        assert 'rule_mutations_total{operation="update",outcome="validation_error"} 1.0' in text
        assert 'rule_mutations_total{operation="update",outcome="not_found"} 1.0' in text
        assert 'rule_mutations_total{operation="update",outcome="storage_failure"} 1.0' in text
        assert 'rule_mutations_total{operation="delete",outcome="validation_error"} 1.0' in text

    def test_lifecycle_starts_and_stops_components(self, service, persistence, generation):
        with TestClient(service.app):
            assert persistence.started
        assert persistence.stopped
        assert generation.closed

    def test_corrupt_storage_refuses_to_start(self, config, generation):
        persistence = InMemoryPersistence([{"id": "broken"}])
        service = RoutingService(config=config, persistence=persistence, generation=generation)

        with pytest.raises(StorageError):
            with TestClient(service.app):
                pass

    def test_create_app_uses_file_backend(self, config):
        app = create_app(config)
        with TestClient(app) as client:
            assert client.get("/rules").json() == []


class TestRulesApi:

    def test_list_starts_empty(self, client):
        response = client.get("/rules")
        assert response.status_code == 200
        assert response.json() == []

    def test_create_rule(self, client):
        rule = create(client)

        assert rule["id"]
        assert rule["name"] == "Sales AU"
        assert rule["createdAt"] == rule["updatedAt"]
        assert rule["conditions"][0] == {"field": "location", "operator": "equals", "value": "Australia"}
        assert client.get("/rules").json() == [rule]

    def test_create_structurally_invalid_body(self, client):
        response = client.post("/rules", json={"name": "No assignee", "conditions": []})
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_create_unknown_operator(self, client):
        body = RuleDataFactory.create_rule_draft(
            extra_conditions=[{"field": "location", "operator": "startsWith", "value": "Aus"}]
        )
        response = client.post("/rules", json=body)
        assert response.status_code == 400

    def test_create_missing_mandatory_condition(self, client, persistence):
        response = client.post("/rules", json=RuleDataFactory.create_rule_draft(location=" "))

        assert response.status_code == 400
        assert response.json()["message"] == "Location is required."
        assert persistence.records == []

    def test_get_rule(self, client):
        rule = create(client)
        assert client.get(f"/rules/{rule['id']}").json() == rule
        assert client.get("/rules/missing").status_code == 404

    def test_update_rule(self, client):
        rule = create(client)

        response = client.put(f"/rules/{rule['id']}", json={
            "id": "hijack",
            "createdAt": "1999-01-01T00:00:00Z",
            "active": False
        })

        assert response.status_code == 200
        updated = response.json()
        assert updated["id"] == rule["id"]
        assert updated["createdAt"] == rule["createdAt"]
        assert updated["updatedAt"] != rule["updatedAt"]
        assert updated["active"] is False
        assert updated["conditions"] == rule["conditions"]

    def test_update_unknown_rule(self, client):
        response = client.put("/rules/nonexistent-id", json={"name": "x"})
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"
        assert client.get("/rules").json() == []

    def test_update_cannot_drop_mandatory_condition(self, client):
        rule = create(client)
        response = client.put(f"/rules/{rule['id']}", json={
            "conditions": [{"field": "location", "operator": "equals", "value": "Australia"}]
        })

        assert response.status_code == 400
        assert client.get(f"/rules/{rule['id']}").json() == rule

    def test_delete_rule(self, client):
        rule = create(client)

        response = client.delete(f"/rules/{rule['id']}")
        assert response.status_code == 204
        assert response.content == b""
        assert client.get("/rules").json() == []
        assert client.delete(f"/rules/{rule['id']}").status_code == 404

    def test_delete_unknown_rule(self, client):
        rule = create(client)
        assert client.delete("/rules/nonexistent-id").status_code == 404
        assert client.get("/rules").json() == [rule]

    def test_delete_with_confirmation(self, client):
        rule = create(client)

        wrong = client.delete(f"/rules/{rule['id']}", params={"confirm": "sales au"})
        assert wrong.status_code == 400
        assert client.get("/rules").json() == [rule]

        right = client.delete(f"/rules/{rule['id']}", params={"confirm": " Sales AU "})
        assert right.status_code == 204

    def test_delete_confirmation_uses_current_name(self, client):
        rule = create(client)
        client.put(f"/rules/{rule['id']}", json={"name": "Sales NZ"})

        stale = client.delete(f"/rules/{rule['id']}", params={"confirm": "Sales AU"})
        assert stale.status_code == 400
        assert len(client.get("/rules").json()) == 1

        assert client.delete(f"/rules/{rule['id']}", params={"confirm": "Sales NZ"}).status_code == 204

    def test_api_prefix_alias(self, client):
        rule = create(client)
        assert client.get("/api/rules").json() == [rule]
        assert client.delete(f"/api/rules/{rule['id']}").status_code == 204

    def test_storage_failure_is_reported(self, client, persistence):
        persistence.fail_saves = StorageError("disk full")
        response = client.post("/rules", json=RuleDataFactory.create_rule_draft())

        assert response.status_code == 500
        assert response.json()["code"] == "STORAGE_FAILURE"
        assert client.get("/rules").json() == []


class TestMatchAndPrompt:

    def test_match_returns_first_rule(self, client):
        first = create(client, name="Sales AU")
        create(client, name="Sales AU backup", email="backup@acme.corp")

        response = client.post("/rules/match", json={"location": "australia", "requestType": "CONTRACT"})

        assert response.status_code == 200
        data = response.json()
        assert data["matched"] is True
        assert data["rule"]["id"] == first["id"]
        assert data["assignee"] == {"name": "Jane", "email": "jane@acme.corp"}

    def test_match_falls_back(self, client):
        create(client)
        data = client.post("/rules/match", json={"location": "France", "requestType": "contract"}).json()

        assert data["matched"] is False
        assert data["rule"] is None
        assert data["assignee"] == {"name": "Legal Team", "email": "legal@acme.corp"}

    def test_inactive_rule_is_listed_but_not_matched(self, client):
        rule = create(client)
        client.put(f"/rules/{rule['id']}", json={"active": False})

        assert len(client.get("/rules").json()) == 1
        data = client.post("/rules/match", json={"location": "Australia", "requestType": "contract"}).json()
        assert data["matched"] is False
        assert "Sales AU" not in client.get("/rules/prompt").json()["rules"]

    def test_prompt_preview(self, client):
        create(client)
        data = client.get("/rules/prompt").json()

        assert data["rules"] == (
            "- Sales AU: IF location equals Australia AND requestType equals contract "
            "THEN route to jane@acme.corp (Jane)"
        )
        assert data["rules"] in data["prompt"]


class TestChat:

    def test_streams_reply(self, client, generation):
        create(client)
        response = client.post("/api/chat", json={"messages": [
            {"role": "user", "content": "I need a contract reviewed in Australia"}
        ]})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text == "Routing you to Jane."
        assert generation.upstreams[0].close_calls == 1

    def test_system_prompt_is_prepended(self, client, generation):
        create(client)
        client.post("/api/chat", json={"messages": [
            {"role": "user", "content": "hello"},
            {"role": "tool", "content": "dropped"},
        ]})

        conversation = generation.conversations[0]
        assert conversation[0]["role"] == "system"
        assert "- Sales AU: IF location equals Australia" in conversation[0]["content"]
        assert conversation[1:] == [{"role": "user", "content": "hello"}]

    @pytest.mark.parametrize("payload", [
        {},
        {"messages": []},
        {"messages": "hello"},
        {"messages": [{"role": "tool", "content": "x"}]},
    ])
    def test_rejects_empty_or_invalid_messages(self, client, generation, payload):
        response = client.post("/api/chat", json=payload)

        assert response.status_code == 400
        assert response.json()["message"] == "messages array is empty or invalid"
        assert generation.conversations == []

    def test_missing_credentials(self, config, persistence):
        service = RoutingService(
            config=config,
            persistence=persistence,
            generation=GenerationClient(api_key=None, model="m")
        )
        with TestClient(service.app) as client:
            response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]})

        assert response.status_code == 500
        assert response.json()["code"] == "UPSTREAM_NOT_CONFIGURED"

    def test_upstream_failure_before_streaming(self, config, persistence):
        generation = FakeGeneration(open_error=UpstreamUnavailableError("generation", "Failed to stream response"))
        service = RoutingService(config=config, persistence=persistence, generation=generation)
        with TestClient(service.app) as client:
            response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]})

        assert response.status_code == 502
        assert response.json()["code"] == "UPSTREAM_UNAVAILABLE"

    def test_upstream_failure_mid_stream(self, config, persistence):
        generation = FakeGeneration(chunks=[chunk("Partial")], error=RuntimeError("reset"))
        service = RoutingService(config=config, persistence=persistence, generation=generation)
        with TestClient(service.app) as client:
            response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]})

        assert response.status_code == 200
        assert response.text == "Partial\n[Stream error]\n"
        assert generation.upstreams[0].close_calls == 1
