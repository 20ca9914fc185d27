"""
Agent Persona Base Types
========================

Persona and roster types shared by the scenario store, the handoff
coordinator and the connection manager.

A persona is one named agent configuration (instructions, voice, tools and
the personas it may hand off to). A roster is the ordered, immutable set of
personas in a scenario; position 0 is the entry point of a session.

Usage:
    from apps.handoffdesk.backend.registries.agentstore.base import (
        AgentPersona,
        AgentRoster,
    )

    greeter = AgentPersona(name="greeter", instructions="Greet the user.")
    writer = AgentPersona(name="haikuWriter", instructions="Write a haiku.")
    roster = AgentRoster([greeter, writer])

    reordered = roster.moved_to_front("haikuWriter")
    assert reordered.first.name == "haikuWriter"
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from jinja2 import Template
from utils.ml_logging import get_logger

logger = get_logger("agents.base")

DEFAULT_VOICE = "sage"


class ScenarioValidationError(ValueError):
    """Raised when a persona, roster or scenario definition is malformed."""

    classification = "scenario-validation-error"


@dataclass(frozen=True)
class ToolDescriptor:
    """
    Function tool exposed to a persona.

    Attributes:
        name: Tool name the model calls
        description: Human readable description
        parameters: JSON schema of the tool arguments
    """

    name: str
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolDescriptor:
        """Create ToolDescriptor from dict (YAML parsing)."""
        if not isinstance(data, dict):
            raise ScenarioValidationError(f"Tool definition must be a mapping, got {type(data).__name__}")
        if not data.get("name"):
            raise ScenarioValidationError("Tool definition requires a 'name'")
        return cls(
            name=str(data["name"]),
            description=str(data.get("description", "")),
            parameters=dict(data.get("parameters") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to an OpenAI-compatible function tool schema."""
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters or {"type": "object", "properties": {}},
        }


@dataclass(frozen=True)
class AgentPersona:
    """
    Named agent configuration that can be the active speaker of a session.

    Handoff targets are persona names rather than object references, so
    cycles between personas (A -> B -> A) are plain data.
    """

    # ─────────────────────────────────────────────────────────────────
    # Identity
    # ─────────────────────────────────────────────────────────────────
    name: str
    instructions: str = ""
    greeting: str = ""

    # ─────────────────────────────────────────────────────────────────
    # Voice
    # ─────────────────────────────────────────────────────────────────
    voice: str = DEFAULT_VOICE

    # ─────────────────────────────────────────────────────────────────
    # Tools & Handoffs
    # ─────────────────────────────────────────────────────────────────
    tools: tuple[ToolDescriptor, ...] = ()
    handoff_targets: tuple[str, ...] = ()
    handoff_description: str = ""

    def __post_init__(self) -> None:
        if not self.name or not str(self.name).strip():
            raise ScenarioValidationError("Persona name must be a non-empty string")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentPersona:
        """Create AgentPersona from dict (YAML parsing)."""
        if not isinstance(data, dict):
            raise ScenarioValidationError(f"Persona definition must be a mapping, got {type(data).__name__}")
        raw_tools = data.get("tools") or []
        if not isinstance(raw_tools, list):
            raise ScenarioValidationError(f"Persona 'tools' must be a list, got {type(raw_tools).__name__}")
        tools = tuple(ToolDescriptor.from_dict(t) for t in raw_tools)
        handoffs = data.get("handoffs", data.get("handoff_targets")) or []
        if not isinstance(handoffs, list):
            raise ScenarioValidationError(f"Persona 'handoffs' must be a list, got {type(handoffs).__name__}")
        return cls(
            name=str(data.get("name", "")).strip(),
            instructions=str(data.get("instructions", "")),
            greeting=str(data.get("greeting", "") or ""),
            voice=str(data.get("voice") or DEFAULT_VOICE),
            tools=tools,
            handoff_targets=tuple(str(h) for h in handoffs),
            handoff_description=str(data.get("handoff_description", "") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "name": self.name,
            "instructions": self.instructions,
            "greeting": self.greeting,
            "voice": self.voice,
            "tools": [
                {"name": t.name, "description": t.description, "parameters": t.parameters}
                for t in self.tools
            ],
            "handoffs": list(self.handoff_targets),
            "handoff_description": self.handoff_description,
        }

    def render_instructions(self, context: dict[str, Any] | None = None) -> str:
        """
        Render the instructions template with scenario context.

        Args:
            context: Template variables (company_name, agent_name, ...)

        Returns:
            Rendered instructions, or the raw text if rendering fails
        """
        # Jinja2 default filters only apply to undefined names, not None
        filtered = {k: v for k, v in (context or {}).items() if v is not None}
        full_context = {"agent_name": self.name, **filtered}
        try:
            return Template(self.instructions).render(**full_context)
        except Exception as e:
            logger.error("Failed to render instructions for %s: %s", self.name, e)
            return self.instructions


class AgentRoster:
    """
    Ordered, immutable sequence of personas with unique names.

    An empty roster can be built (the scenario edit path may produce one);
    the connection manager rejects it at connect time.
    """

    __slots__ = ("_personas", "_index")

    def __init__(self, personas: Iterable[AgentPersona] = ()):
        personas = tuple(personas)
        index: dict[str, int] = {}
        for position, persona in enumerate(personas):
            if persona.name in index:
                raise ScenarioValidationError(f"Duplicate persona name in roster: '{persona.name}'")
            index[persona.name] = position
        self._personas = personas
        self._index = index

    # ─────────────────────────────────────────────────────────────────
    # Lookup
    # ─────────────────────────────────────────────────────────────────

    @property
    def names(self) -> list[str]:
        return [p.name for p in self._personas]

    @property
    def first(self) -> AgentPersona | None:
        return self._personas[0] if self._personas else None

    def get(self, name: str | None) -> AgentPersona | None:
        if name is None or name not in self._index:
            return None
        return self._personas[self._index[name]]

    def index_of(self, name: str) -> int:
        """Position of ``name`` in the roster, or -1 when absent."""
        return self._index.get(name, -1)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self._personas)

    def __iter__(self) -> Iterator[AgentPersona]:
        return iter(self._personas)

    def __getitem__(self, position: int) -> AgentPersona:
        return self._personas[position]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AgentRoster):
            return NotImplemented
        return self._personas == other._personas

    def __repr__(self) -> str:
        return f"AgentRoster({self.names!r})"

    # ─────────────────────────────────────────────────────────────────
    # Reordering
    # ─────────────────────────────────────────────────────────────────

    def moved_to_front(self, name: str) -> AgentRoster:
        """
        Return a new roster with ``name`` at index 0.

        Other personas keep their relative order. Raises KeyError when the
        name is not in the roster.
        """
        position = self._index[name]
        if position == 0:
            return self
        reordered = (
            (self._personas[position],)
            + self._personas[:position]
            + self._personas[position + 1 :]
        )
        return AgentRoster(reordered)

    def validate_handoffs(self) -> None:
        """Raise if any persona hands off to a name outside the roster."""
        for persona in self._personas:
            missing = [t for t in persona.handoff_targets if t not in self._index]
            if missing:
                raise ScenarioValidationError(
                    f"Persona '{persona.name}' hands off to unknown persona(s): {', '.join(missing)}"
                )

    def to_list(self) -> list[dict[str, Any]]:
        return [p.to_dict() for p in self._personas]

    @classmethod
    def from_list(cls, data: Iterable[dict[str, Any]] | None) -> AgentRoster:
        """Build a roster from a list of persona dicts (YAML parsing)."""
        if data is not None and not isinstance(data, list):
            raise ScenarioValidationError(f"Roster must be a list of personas, got {type(data).__name__}")
        return cls(AgentPersona.from_dict(item) for item in (data or []))


__all__ = [
    "DEFAULT_VOICE",
    "AgentPersona",
    "AgentRoster",
    "ScenarioValidationError",
    "ToolDescriptor",
]
