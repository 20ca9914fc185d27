"""
Scenario Loader
===============

Loads scenario definitions (a persona roster plus company metadata) from
``<scenariostore>/<key>/scenario.yaml`` and keeps them in an editable
registry.

Scenario file format::

    display_name: Simple Handoff (Haiku)
    company_name: GenericHandoffInc
    description: Greeter hands off to a haiku writer
    template_vars:
      tone: friendly
    agents:
      - name: greeter
        voice: sage
        instructions: "Greet the user..."
        handoffs: [haikuWriter]
        handoff_description: Greets the user
      - name: haikuWriter
        instructions: "Write a haiku..."

Usage:
    from apps.handoffdesk.backend.registries.scenariostore import get_scenario_registry

    registry = get_scenario_registry()
    scenario = registry.get("simpleHandoff")
    print(scenario.roster.names)
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from apps.handoffdesk.backend.registries.agentstore.base import (
    AgentRoster,
    ScenarioValidationError,
)
from apps.handoffdesk.backend.voice.shared.errors import InvalidScenarioSelection
from utils.ml_logging import get_logger

logger = get_logger("agents.scenarios.loader")

SCENARIO_FILENAME = "scenario.yaml"
FALLBACK_DEFAULT_KEY = "chatSupervisor"

ScenarioListener = Callable[[str, str], None]


@dataclass(frozen=True)
class ScenarioDefinition:
    """
    Complete scenario configuration.

    Attributes:
        key: Registry key (directory name for file-based scenarios)
        roster: Ordered personas; index 0 is the default entry point
        company_name: Brand the output guardrail protects
        display_name: Label shown in the supervisor picker
        description: Free-form description
        template_vars: Variables available to persona instruction templates
    """

    key: str
    roster: AgentRoster
    company_name: str = ""
    display_name: str = ""
    description: str = ""
    template_vars: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.key or not str(self.key).strip():
            raise ScenarioValidationError("Scenario key must be a non-empty string")
        self.roster.validate_handoffs()

    @property
    def label(self) -> str:
        return self.display_name or self.key

    def instruction_context(self) -> dict[str, Any]:
        """Template context for rendering persona instructions."""
        return {"company_name": self.company_name, **self.template_vars}

    @classmethod
    def from_dict(cls, key: str, data: dict[str, Any]) -> ScenarioDefinition:
        """Create from dictionary (YAML or HTTP payload)."""
        if not isinstance(data, dict):
            raise ScenarioValidationError(f"Scenario '{key}' must be a mapping")
        template_vars = data.get("template_vars") or {}
        if not isinstance(template_vars, dict):
            raise ScenarioValidationError(f"Scenario '{key}' template_vars must be a mapping")
        return cls(
            key=key,
            roster=AgentRoster.from_list(data.get("agents")),
            company_name=str(data.get("company_name", "") or ""),
            display_name=str(data.get("display_name", "") or ""),
            description=str(data.get("description", "") or ""),
            template_vars=dict(template_vars),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "display_name": self.display_name,
            "company_name": self.company_name,
            "description": self.description,
            "template_vars": dict(self.template_vars),
            "agents": self.roster.to_list(),
        }


def load_scenario_file(scenario_dir: Path) -> ScenarioDefinition | None:
    """Load a scenario from its directory; returns None if missing or invalid."""
    config_path = scenario_dir / SCENARIO_FILENAME
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        scenario = ScenarioDefinition.from_dict(scenario_dir.name, data)
        logger.debug("Loaded scenario: %s from %s", scenario.key, config_path.name)
        return scenario

    except (OSError, yaml.YAMLError, ScenarioValidationError) as e:
        logger.error("Failed to load scenario %s: %s", scenario_dir.name, e)
        return None


# ═══════════════════════════════════════════════════════════════════════════════
# SCENARIO REGISTRY
# ═══════════════════════════════════════════════════════════════════════════════


class ScenarioRegistry:
    """
    Mapping of scenario key to ScenarioDefinition with an edit path.

    Listeners registered with :meth:`add_listener` are called with
    ``(key, action)`` after every create/update/delete, where action is one
    of ``"created"``, ``"updated"`` or ``"deleted"``.
    """

    def __init__(
        self,
        scenarios: dict[str, ScenarioDefinition] | None = None,
        preferred_default: str = FALLBACK_DEFAULT_KEY,
    ):
        self._scenarios: dict[str, ScenarioDefinition] = dict(scenarios or {})
        self._preferred_default = preferred_default
        self._listeners: list[ScenarioListener] = []
        self._lock = threading.RLock()

    @classmethod
    def from_directory(
        cls,
        directory: Path | str,
        preferred_default: str = FALLBACK_DEFAULT_KEY,
    ) -> ScenarioRegistry:
        """Discover ``<directory>/<key>/scenario.yaml`` files; invalid ones are skipped."""
        directory = Path(directory)
        scenarios: dict[str, ScenarioDefinition] = {}
        if directory.is_dir():
            for item in sorted(directory.iterdir()):
                if item.is_dir() and not item.name.startswith(("_", ".")):
                    scenario = load_scenario_file(item)
                    if scenario:
                        scenarios[scenario.key] = scenario
        else:
            logger.warning("Scenario directory not found: %s", directory)

        logger.info("Discovered %d scenarios", len(scenarios))
        return cls(scenarios, preferred_default=preferred_default)

    # ─────────────────────────────────────────────────────────────────
    # Lookup
    # ─────────────────────────────────────────────────────────────────

    def __contains__(self, key: object) -> bool:
        return key in self._scenarios

    def __len__(self) -> int:
        return len(self._scenarios)

    def keys(self) -> list[str]:
        return list(self._scenarios.keys())

    def definitions(self) -> list[ScenarioDefinition]:
        return list(self._scenarios.values())

    def get(self, key: str | None) -> ScenarioDefinition:
        """Return the scenario for ``key`` or raise InvalidScenarioSelection."""
        scenario = self._scenarios.get(key) if key else None
        if scenario is None:
            raise InvalidScenarioSelection(key)
        return scenario

    @property
    def default_key(self) -> str | None:
        """Preferred default when registered, else the first key."""
        if self._preferred_default in self._scenarios:
            return self._preferred_default
        return next(iter(self._scenarios), None)

    def resolve_key(self, requested: str | None) -> str | None:
        """Return ``requested`` if registered, else the default key."""
        if requested and requested in self._scenarios:
            return requested
        return self.default_key

    # ─────────────────────────────────────────────────────────────────
    # Edit path
    # ─────────────────────────────────────────────────────────────────

    def create(self, scenario: ScenarioDefinition) -> ScenarioDefinition:
        with self._lock:
            if scenario.key in self._scenarios:
                raise ScenarioValidationError(f"Scenario '{scenario.key}' already exists")
            self._scenarios[scenario.key] = scenario
        logger.info("Scenario created | key=%s personas=%d", scenario.key, len(scenario.roster))
        self._notify(scenario.key, "created")
        return scenario

    def update(self, scenario: ScenarioDefinition) -> ScenarioDefinition:
        with self._lock:
            if scenario.key not in self._scenarios:
                raise InvalidScenarioSelection(scenario.key)
            self._scenarios[scenario.key] = scenario
        logger.info("Scenario updated | key=%s personas=%d", scenario.key, len(scenario.roster))
        self._notify(scenario.key, "updated")
        return scenario

    def delete(self, key: str) -> ScenarioDefinition:
        with self._lock:
            if key not in self._scenarios:
                raise InvalidScenarioSelection(key)
            removed = self._scenarios.pop(key)
        logger.info("Scenario deleted | key=%s", key)
        self._notify(key, "deleted")
        return removed

    # ─────────────────────────────────────────────────────────────────
    # Listeners
    # ─────────────────────────────────────────────────────────────────

    def add_listener(self, listener: ScenarioListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ScenarioListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, key: str, action: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(key, action)
            except Exception as e:
                logger.warning("Scenario listener failed | key=%s action=%s error=%s", key, action, e)


# ═══════════════════════════════════════════════════════════════════════════════
# DEFAULT REGISTRY
# ═══════════════════════════════════════════════════════════════════════════════

_default_registry: ScenarioRegistry | None = None


def get_scenario_registry() -> ScenarioRegistry:
    """Process-wide registry loaded from ``SCENARIOS_DIR`` on first use."""
    global _default_registry
    if _default_registry is None:
        from apps.handoffdesk.backend.config.settings import DEFAULT_SCENARIO_KEY, SCENARIOS_DIR

        _default_registry = ScenarioRegistry.from_directory(
            SCENARIOS_DIR, preferred_default=DEFAULT_SCENARIO_KEY
        )
    return _default_registry


def reset_scenario_registry() -> None:
    """Drop the cached registry so the next call reloads from disk."""
    global _default_registry
    _default_registry = None


def list_scenarios() -> list[str]:
    """List available scenario keys."""
    return get_scenario_registry().keys()


__all__ = [
    "SCENARIO_FILENAME",
    "ScenarioDefinition",
    "ScenarioListener",
    "ScenarioRegistry",
    "get_scenario_registry",
    "list_scenarios",
    "load_scenario_file",
    "reset_scenario_registry",
]
