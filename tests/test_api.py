"""
Tests for the v1 HTTP API
=========================

Runs the FastAPI app against a manager wired to the loopback transport and
an in-memory scenario registry.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from apps.handoffdesk.backend.main import create_app
from apps.handoffdesk.backend.voice.lifecycle.manager import ConnectionLifecycleManager
from apps.handoffdesk.backend.voice.lifecycle.transport import LoopbackTransport
from apps.handoffdesk.backend.voice.shared.errors import CredentialServerError


@pytest.fixture
def loopback():
    return LoopbackTransport()


@pytest.fixture
def api_manager(registry, loopback, credential_provider, preferences, event_log, transcript, guardrail_factory):
    return ConnectionLifecycleManager(
        registry=registry,
        transport=loopback,
        credential_provider=credential_provider,
        preferences=preferences,
        event_log=event_log,
        transcript=transcript,
        guardrail_factory=guardrail_factory,
    )


@pytest.fixture
def client(api_manager):
    return TestClient(create_app(api_manager))


# ═══════════════════════════════════════════════════════════════════════════════
# SCENARIOS
# ═══════════════════════════════════════════════════════════════════════════════


NEW_SCENARIO = {
    "key": "newScenario",
    "display_name": "New Scenario",
    "company_name": "Acme",
    "agents": [
        {"name": "front", "instructions": "Greet for {{ company_name }}", "handoffs": ["back"]},
        {"name": "back", "instructions": "Help"},
    ],
}


class TestScenarioEndpoints:
    def test_list(self, client):
        response = client.get("/api/v1/scenarios")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["default_key"] == "testScenario"
        keys = {s["key"] for s in data["scenarios"]}
        assert keys == {"testScenario", "emptyScenario"}

    def test_get(self, client):
        data = client.get("/api/v1/scenarios/testScenario").json()
        assert [a["name"] for a in data["agents"]] == ["agentA", "agentB", "agentC"]

    def test_get_missing(self, client):
        assert client.get("/api/v1/scenarios/nope").status_code == 404

    def test_create(self, client, registry):
        response = client.post("/api/v1/scenarios", json=NEW_SCENARIO)

        assert response.status_code == 201
        assert registry.get("newScenario").roster.names == ["front", "back"]

    def test_create_duplicate(self, client):
        payload = dict(NEW_SCENARIO, key="testScenario")
        assert client.post("/api/v1/scenarios", json=payload).status_code == 409

    def test_create_unknown_handoff_target(self, client):
        payload = dict(NEW_SCENARIO, agents=[{"name": "front", "handoffs": ["ghost"]}])
        response = client.post("/api/v1/scenarios", json=payload)

        assert response.status_code == 400
        assert "ghost" in response.json()["detail"]

    def test_create_duplicate_persona(self, client):
        payload = dict(NEW_SCENARIO, agents=[{"name": "a"}, {"name": "a"}])
        assert client.post("/api/v1/scenarios", json=payload).status_code == 400

    def test_create_invalid_key(self, client):
        payload = dict(NEW_SCENARIO, key="has spaces")
        assert client.post("/api/v1/scenarios", json=payload).status_code == 422

    def test_update(self, client, registry):
        body = {"company_name": "Acme", "agents": [{"name": "solo"}]}
        response = client.put("/api/v1/scenarios/testScenario", json=body)

        assert response.status_code == 200
        assert registry.get("testScenario").roster.names == ["solo"]

    def test_update_missing(self, client):
        assert client.put("/api/v1/scenarios/nope", json={"agents": []}).status_code == 404

    def test_delete_clears_selection(self, client, api_manager):
        response = client.delete("/api/v1/scenarios/testScenario")

        assert response.status_code == 200
        assert api_manager.selected_scenario_key is None
        assert client.delete("/api/v1/scenarios/testScenario").status_code == 404


# ═══════════════════════════════════════════════════════════════════════════════
# SESSION
# ═══════════════════════════════════════════════════════════════════════════════


class TestSessionEndpoints:
    def test_connect_and_disconnect(self, client, loopback):
        response = client.post("/api/v1/session/connect", json={"persona_name": "agentB"})

        assert response.status_code == 200
        data = response.json()
        assert data["result"]["outcome"] == "connecting"
        assert data["session"]["status"] == "CONNECTED"
        assert data["session"]["active_persona_name"] == "agentB"
        assert loopback.options.initial_roster.first.name == "agentB"

        data = client.post("/api/v1/session/disconnect").json()
        assert data["disconnected"] is True
        assert data["session"]["status"] == "DISCONNECTED"
        assert client.post("/api/v1/session/disconnect").json()["disconnected"] is False

    def test_connect_without_body(self, client):
        data = client.post("/api/v1/session/connect").json()
        assert data["result"]["scenario_key"] == "testScenario"

    def test_connect_failure_reported_in_body(self, client, credential_provider):
        credential_provider.side_effect = CredentialServerError(429, "rate_limited")

        response = client.post("/api/v1/session/connect")

        assert response.status_code == 200
        result = response.json()["result"]
        assert result["outcome"] == "failed"
        assert result["error"]["classification"] == "credential-server-error"

    def test_select_does_not_connect(self, client):
        client.post("/api/v1/session/connect")

        data = client.post("/api/v1/session/select", json={"scenario_key": "emptyScenario"}).json()

        assert data["status"] == "DISCONNECTED"
        assert data["selected_scenario_key"] == "emptyScenario"

    def test_select_missing_scenario(self, client):
        assert client.post("/api/v1/session/select", json={"scenario_key": "nope"}).status_code == 404

    def test_preferences(self, client, loopback):
        client.post("/api/v1/session/connect")

        data = client.put("/api/v1/session/preferences", json={"push_to_talk": True, "audio_playback": False}).json()

        assert data["push_to_talk"] is True
        assert data["audio_playback"] is False
        assert loopback.muted is True
        assert loopback.sent_events[-1] == {"type": "session.update", "session": {"turn_detection": None}}

    def test_text_requires_connection(self, client):
        assert client.post("/api/v1/session/text", json={"text": "hi"}).status_code == 409

    def test_text(self, client, loopback):
        client.post("/api/v1/session/connect")

        response = client.post("/api/v1/session/text", json={"text": "hi"})

        assert response.status_code == 200
        assert loopback.sent_events[-1] == {"type": "response.create"}
        assert loopback.interrupts == 1

    def test_push_to_talk(self, client):
        client.post("/api/v1/session/connect")

        assert client.post("/api/v1/session/ptt/stop").status_code == 409
        assert client.post("/api/v1/session/ptt/start").status_code == 200
        assert client.post("/api/v1/session/ptt/stop").status_code == 200

    def test_transcript(self, client, loopback):
        client.post("/api/v1/session/connect")
        loopback.emit_handoff("agentC")

        data = client.get("/api/v1/session/transcript").json()

        titles = [i["title"] for i in data["items"] if i["kind"] == "breadcrumb"]
        assert titles[-2:] == ["Session handed off to: agentC", "Agent: agentC"]


# ═══════════════════════════════════════════════════════════════════════════════
# EVENTS & HEALTH
# ═══════════════════════════════════════════════════════════════════════════════


class TestEventEndpoints:
    def test_filter_by_conversation(self, client):
        first = client.post("/api/v1/session/connect").json()["result"]["conversation_id"]
        client.post("/api/v1/session/disconnect")
        second = client.post("/api/v1/session/connect").json()["result"]["conversation_id"]

        events = client.get("/api/v1/events", params={"conversation_id": first}).json()["events"]

        assert events
        assert all(e["conversation_id"] == first for e in events)
        ids = client.get("/api/v1/events/conversations").json()["conversation_ids"]
        assert ids == [first, second]

    def test_errors_only(self, client, credential_provider):
        credential_provider.side_effect = CredentialServerError(500)
        client.post("/api/v1/session/connect")

        events = client.get("/api/v1/events", params={"errors_only": True}).json()["events"]

        assert [e["event_name"] for e in events] == ["error.credential_server_error"]

    def test_toggle(self, client, event_log):
        client.post("/api/v1/session/connect")
        event_id = event_log.filter()[0].id

        assert client.post(f"/api/v1/events/{event_id}/toggle").json()["expanded"] is True
        assert client.post("/api/v1/events/99999/toggle").status_code == 404


def test_health(client):
    data = client.get("/api/v1/health").json()

    assert data["session_status"] == "DISCONNECTED"
    assert data["scenarios"] == 2
    assert "valid" in data["config"]
