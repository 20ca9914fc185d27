"""
Tests for persona types and the ScenarioRegistry
================================================
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from apps.handoffdesk.backend.config.settings import SCENARIOS_DIR
from apps.handoffdesk.backend.registries.agentstore.base import (
    AgentPersona,
    AgentRoster,
    ScenarioValidationError,
)
from apps.handoffdesk.backend.registries.scenariostore.loader import (
    ScenarioDefinition,
    ScenarioRegistry,
    load_scenario_file,
)
from apps.handoffdesk.backend.voice.shared.errors import InvalidScenarioSelection


# ═══════════════════════════════════════════════════════════════════════════════
# PERSONA & ROSTER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestAgentRoster:
    def test_duplicate_names_rejected(self):
        with pytest.raises(ScenarioValidationError):
            AgentRoster([AgentPersona(name="a"), AgentPersona(name="a")])

    def test_empty_roster_allowed(self):
        roster = AgentRoster()
        assert len(roster) == 0
        assert roster.first is None

    def test_lookup(self, roster):
        assert roster.names == ["agentA", "agentB", "agentC"]
        assert roster.get("agentB").name == "agentB"
        assert roster.get("missing") is None
        assert roster.index_of("agentC") == 2
        assert roster.index_of("missing") == -1
        assert [p.name for p in roster] == roster.names

    def test_moved_to_front_returns_new_roster(self, roster):
        moved = roster.moved_to_front("agentB")

        assert moved.names == ["agentB", "agentA", "agentC"]
        assert roster.names == ["agentA", "agentB", "agentC"]

    def test_moved_to_front_unknown(self, roster):
        with pytest.raises(KeyError):
            roster.moved_to_front("missing")

    def test_unknown_handoff_target_rejected(self):
        roster = AgentRoster([AgentPersona(name="a", handoff_targets=("ghost",))])
        with pytest.raises(ScenarioValidationError, match="ghost"):
            roster.validate_handoffs()


class TestAgentPersona:
    def test_defaults(self):
        persona = AgentPersona(name="greeter")
        assert persona.voice == "sage"
        assert persona.tools == ()
        assert persona.handoff_targets == ()

    def test_blank_name_rejected(self):
        with pytest.raises(ScenarioValidationError):
            AgentPersona(name="  ")

    def test_from_dict(self):
        persona = AgentPersona.from_dict(
            {
                "name": "returns",
                "instructions": "Handle returns",
                "handoffs": ["sales"],
                "tools": [{"name": "lookup_orders", "description": "Find orders"}],
            }
        )
        assert persona.handoff_targets == ("sales",)
        assert persona.tools[0].name == "lookup_orders"
        assert persona.tools[0].to_dict()["parameters"] == {"type": "object", "properties": {}}

    def test_render_instructions(self):
        persona = AgentPersona(name="a", instructions="Welcome to {{ company_name }}, I am {{ agent_name }}.")
        assert persona.render_instructions({"company_name": "Acme"}) == "Welcome to Acme, I am a."

    def test_render_failure_returns_raw_text(self, caplog):
        persona = AgentPersona(name="a", instructions="Broken {{ unclosed")
        with caplog.at_level("ERROR"):
            assert persona.render_instructions({}) == "Broken {{ unclosed"
        assert "Failed to render" in caplog.text


# ═══════════════════════════════════════════════════════════════════════════════
# REGISTRY TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestBundledScenarios:
    """The scenarios shipped in the scenario store."""

    @pytest.fixture
    def bundled(self):
        return ScenarioRegistry.from_directory(SCENARIOS_DIR)

    def test_all_scenarios_load(self, bundled):
        assert set(bundled.keys()) == {"simpleHandoff", "customerServiceRetail", "chatSupervisor"}

    def test_default_key(self, bundled):
        assert bundled.default_key == "chatSupervisor"

    def test_simple_handoff(self, bundled):
        scenario = bundled.get("simpleHandoff")
        assert scenario.roster.names == ["greeter", "haikuWriter"]
        assert scenario.roster.get("greeter").handoff_targets == ("haikuWriter",)
        assert scenario.company_name == "GenericHandoffInc"
        assert scenario.display_name == "Simple Handoff (Haiku)"

    def test_retail(self, bundled):
        scenario = bundled.get("customerServiceRetail")
        assert scenario.company_name == "Snowy Peak Boards"
        assert scenario.roster.first.name == "authentication"
        assert "simpleHandoff" not in scenario.roster


class TestLoading:
    def test_invalid_file_skipped(self, tmp_path: Path, caplog):
        good = tmp_path / "good"
        good.mkdir()
        (good / "scenario.yaml").write_text("agents:\n  - name: solo\n")
        bad = tmp_path / "bad"
        bad.mkdir()
        (bad / "scenario.yaml").write_text("agents:\n  - name: a\n    handoffs: [ghost]\n")
        broken = tmp_path / "broken"
        broken.mkdir()
        (broken / "scenario.yaml").write_text("agents: [unterminated\n")

        with caplog.at_level("ERROR"):
            registry = ScenarioRegistry.from_directory(tmp_path)

        assert registry.keys() == ["good"]
        assert "bad" in caplog.text

    @pytest.mark.parametrize(
        "content",
        [
            "agents:\n  - name: a\n    tools: {name: x}\n",
            "agents:\n  - name: a\n    tools: [lookup]\n",
            "agents:\n  - name: a\n    handoffs: b\n",
            "agents: {name: a}\n",
            "template_vars: [1, 2]\nagents:\n  - name: a\n",
        ],
    )
    def test_wrong_shape_skipped(self, tmp_path: Path, caplog, content):
        good = tmp_path / "good"
        good.mkdir()
        (good / "scenario.yaml").write_text("agents:\n  - name: solo\n")
        odd = tmp_path / "odd"
        odd.mkdir()
        (odd / "scenario.yaml").write_text(content)

        with caplog.at_level("ERROR"):
            registry = ScenarioRegistry.from_directory(tmp_path)

        assert registry.keys() == ["good"]
        assert "Failed to load scenario odd" in caplog.text

    def test_wrong_shape_rejected_by_from_dict(self):
        with pytest.raises(ScenarioValidationError, match="template_vars"):
            ScenarioDefinition.from_dict("x", {"template_vars": [1, 2]})

    def test_missing_file(self, tmp_path: Path):
        assert load_scenario_file(tmp_path) is None

    def test_missing_directory(self, tmp_path: Path):
        registry = ScenarioRegistry.from_directory(tmp_path / "nope")
        assert len(registry) == 0
        assert registry.default_key is None


class TestLookup:
    def test_get_unknown_raises(self, registry):
        with pytest.raises(InvalidScenarioSelection):
            registry.get("nope")

    def test_resolve_key(self, registry):
        assert registry.resolve_key("emptyScenario") == "emptyScenario"
        assert registry.resolve_key("nope") == "testScenario"
        assert registry.resolve_key(None) == "testScenario"

    def test_default_falls_back_to_first(self, scenario):
        registry = ScenarioRegistry({scenario.key: scenario})
        assert registry.default_key == "testScenario"


class TestEditPath:
    def test_create_and_notify(self, registry):
        listener = MagicMock()
        registry.add_listener(listener)
        new = ScenarioDefinition(key="fresh", roster=AgentRoster([AgentPersona(name="x")]))

        registry.create(new)

        assert registry.get("fresh") is new
        listener.assert_called_once_with("fresh", "created")

    def test_create_duplicate_raises(self, registry, scenario):
        with pytest.raises(ScenarioValidationError):
            registry.create(scenario)

    def test_update_missing_raises(self, registry):
        with pytest.raises(InvalidScenarioSelection):
            registry.update(ScenarioDefinition(key="missing", roster=AgentRoster()))

    def test_update_replaces(self, registry, scenario):
        listener = MagicMock()
        registry.add_listener(listener)
        replacement = ScenarioDefinition(key=scenario.key, roster=AgentRoster([AgentPersona(name="only")]))

        registry.update(replacement)

        assert registry.get(scenario.key).roster.names == ["only"]
        listener.assert_called_once_with(scenario.key, "updated")

    def test_delete(self, registry):
        listener = MagicMock()
        registry.add_listener(listener)

        registry.delete("emptyScenario")

        assert "emptyScenario" not in registry
        listener.assert_called_once_with("emptyScenario", "deleted")

    def test_delete_missing_raises(self, registry):
        with pytest.raises(InvalidScenarioSelection):
            registry.delete("missing")

    def test_failing_listener_does_not_block_edit(self, registry, caplog):
        registry.add_listener(MagicMock(side_effect=RuntimeError("boom")))

        with caplog.at_level("WARNING"):
            registry.delete("emptyScenario")

        assert "emptyScenario" not in registry
        assert "boom" in caplog.text
