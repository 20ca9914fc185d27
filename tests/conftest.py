import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Disable telemetry for tests
os.environ["DISABLE_CLOUD_TELEMETRY"] = "true"
os.environ["ENABLE_TRACING"] = "false"

# Keep preferences in memory and the local blocklist classifier
os.environ["PREFERENCES_FILE"] = ""
os.environ.setdefault("GUARDRAIL_CLASSIFIER", "blocklist")

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from apps.handoffdesk.backend.registries.agentstore.base import (  # noqa: E402
    AgentPersona,
    AgentRoster,
)
from apps.handoffdesk.backend.registries.scenariostore.loader import (  # noqa: E402
    ScenarioDefinition,
    ScenarioRegistry,
)
from apps.handoffdesk.backend.src.events.correlation_log import EventCorrelationLog  # noqa: E402
from apps.handoffdesk.backend.src.services.credentials import EphemeralCredential  # noqa: E402
from apps.handoffdesk.backend.src.services.preferences import InMemoryPreferenceStore  # noqa: E402
from apps.handoffdesk.backend.src.services.transcript import TranscriptLog  # noqa: E402
from apps.handoffdesk.backend.voice.guardrails.moderation import (  # noqa: E402
    BlocklistClassifier,
    GuardrailPolicy,
)
from apps.handoffdesk.backend.voice.lifecycle.manager import ConnectionLifecycleManager  # noqa: E402


# ═══════════════════════════════════════════════════════════════════════════════
# PERSONAS & SCENARIOS
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def roster():
    """Three personas: agentA -> agentB -> agentC -> agentA."""
    return AgentRoster(
        [
            AgentPersona(name="agentA", instructions="You are A at {{ company_name }}.", handoff_targets=("agentB",)),
            AgentPersona(name="agentB", instructions="You are B.", handoff_targets=("agentC",)),
            AgentPersona(name="agentC", instructions="You are C.", handoff_targets=("agentA",)),
        ]
    )


@pytest.fixture
def scenario(roster):
    return ScenarioDefinition(
        key="testScenario",
        roster=roster,
        company_name="Acme Boards",
        display_name="Test Scenario",
    )


@pytest.fixture
def registry(scenario):
    """Registry with the three-persona scenario plus an empty one."""
    empty = ScenarioDefinition(key="emptyScenario", roster=AgentRoster())
    return ScenarioRegistry(
        {scenario.key: scenario, empty.key: empty},
        preferred_default="testScenario",
    )


# ═══════════════════════════════════════════════════════════════════════════════
# COLLABORATOR FAKES
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def credential():
    return EphemeralCredential(value="ek_test_123", expires_at=1_900_000_000)


@pytest.fixture
def credential_provider(credential):
    """Async credential provider returning a fixed credential."""
    return AsyncMock(return_value=credential)


@pytest.fixture
def mock_transport():
    """
    Transport double. ``connect`` is an AsyncMock; the handlers registered by
    the manager are captured on ``transport.handlers``.
    """
    transport = MagicMock()
    transport.connect = AsyncMock(return_value=None)
    transport.handlers = {}

    def _set_handlers(on_connection_change, on_handoff, on_server_event):
        transport.handlers.update(
            connection_change=on_connection_change,
            handoff=on_handoff,
            server_event=on_server_event,
        )

    transport.set_event_handlers.side_effect = _set_handlers
    return transport


@pytest.fixture
def event_log():
    return EventCorrelationLog()


@pytest.fixture
def transcript():
    return TranscriptLog()


@pytest.fixture
def preferences():
    return InMemoryPreferenceStore()


@pytest.fixture
def guardrail_factory():
    def _factory(company_name: str) -> GuardrailPolicy:
        return GuardrailPolicy(company_name=company_name, classifier=BlocklistClassifier())

    return _factory


@pytest.fixture
def manager(registry, mock_transport, credential_provider, preferences, event_log, transcript, guardrail_factory):
    return ConnectionLifecycleManager(
        registry=registry,
        transport=mock_transport,
        credential_provider=credential_provider,
        preferences=preferences,
        event_log=event_log,
        transcript=transcript,
        guardrail_factory=guardrail_factory,
        greeting_text="hola",
        connect_timeout=1.0,
    )


@pytest.fixture
def sent_events():
    """Helper listing events passed to ``transport.send_event``, optionally filtered by type."""

    def _sent(transport, event_type=None):
        events = [c.args[0] for c in transport.send_event.call_args_list]
        if event_type is None:
            return events
        return [e for e in events if e.get("type") == event_type]

    return _sent
