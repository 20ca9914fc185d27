"""
Scenario Store
==============

YAML-backed scenario definitions, one directory per scenario key.
"""

from .loader import (
    ScenarioDefinition,
    ScenarioRegistry,
    get_scenario_registry,
    list_scenarios,
    load_scenario_file,
    reset_scenario_registry,
)

__all__ = [
    "ScenarioDefinition",
    "ScenarioRegistry",
    "get_scenario_registry",
    "list_scenarios",
    "load_scenario_file",
    "reset_scenario_registry",
]
