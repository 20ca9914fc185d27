"""Persona and roster types."""

from .base import AgentPersona, AgentRoster, ScenarioValidationError, ToolDescriptor

__all__ = ["AgentPersona", "AgentRoster", "ScenarioValidationError", "ToolDescriptor"]
