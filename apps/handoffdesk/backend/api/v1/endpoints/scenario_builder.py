"""
Scenario Builder Endpoints
==========================

REST endpoints for listing and editing scenarios at runtime, without
restarting the backend. Edits go through the ScenarioRegistry, so the
session manager sees them through its registry listener.

Endpoints:
    GET    /api/v1/scenarios        - List scenarios
    POST   /api/v1/scenarios        - Create a scenario
    GET    /api/v1/scenarios/{key}  - Get a scenario with its full roster
    PUT    /api/v1/scenarios/{key}  - Replace a scenario
    DELETE /api/v1/scenarios/{key}  - Delete a scenario
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from apps.handoffdesk.backend.api.v1.dependencies import get_scenario_registry
from apps.handoffdesk.backend.registries.agentstore.base import ScenarioValidationError
from apps.handoffdesk.backend.registries.scenariostore.loader import (
    ScenarioDefinition,
    ScenarioRegistry,
)
from apps.handoffdesk.backend.voice.shared.errors import InvalidScenarioSelection
from utils.ml_logging import get_logger

logger = get_logger("v1.scenario_builder")

router = APIRouter()


# ═══════════════════════════════════════════════════════════════════════════════
# REQUEST/RESPONSE SCHEMAS
# ═══════════════════════════════════════════════════════════════════════════════


class ToolSchema(BaseModel):
    name: str = Field(..., min_length=1, description="Tool name the model calls")
    description: str = Field(default="", description="Tool description")
    parameters: dict[str, Any] = Field(default_factory=dict, description="JSON schema of the arguments")


class PersonaSchema(BaseModel):
    """One persona in a scenario roster."""

    name: str = Field(..., min_length=1, max_length=64, description="Persona name, unique in the roster")
    instructions: str = Field(default="", description="Instructions (Jinja2 template)")
    greeting: str = Field(default="", description="Optional greeting")
    voice: str = Field(default="sage", description="Voice name")
    tools: list[ToolSchema] = Field(default_factory=list)
    handoffs: list[str] = Field(default_factory=list, description="Personas this one may hand off to")
    handoff_description: str = Field(default="", description="Description shown to other personas")


class ScenarioBody(BaseModel):
    """Scenario fields shared by create and update."""

    display_name: str = Field(default="", max_length=128, description="Label for the scenario picker")
    company_name: str = Field(default="", max_length=128, description="Brand protected by the output guardrail")
    description: str = Field(default="", max_length=1024)
    template_vars: dict[str, Any] = Field(default_factory=dict, description="Instruction template variables")
    agents: list[PersonaSchema] = Field(default_factory=list, description="Ordered roster; first is the entry point")


class ScenarioCreateRequest(ScenarioBody):
    key: str = Field(..., min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_\-]+$")


def _build_definition(key: str, body: ScenarioBody) -> ScenarioDefinition:
    payload = body.model_dump(exclude={"key"})
    try:
        return ScenarioDefinition.from_dict(key, payload)
    except ScenarioValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def _summary(scenario: ScenarioDefinition) -> dict[str, Any]:
    return {
        "key": scenario.key,
        "display_name": scenario.label,
        "company_name": scenario.company_name,
        "description": scenario.description,
        "agents": scenario.roster.names,
    }


# ═══════════════════════════════════════════════════════════════════════════════
# ENDPOINTS
# ═══════════════════════════════════════════════════════════════════════════════


@router.get(
    "",
    summary="List Scenarios",
    description="List all registered scenarios with their persona names.",
)
async def list_scenarios(
    registry: ScenarioRegistry = Depends(get_scenario_registry),
) -> dict[str, Any]:
    scenarios = registry.definitions()
    return {
        "status": "success",
        "total": len(scenarios),
        "default_key": registry.default_key,
        "scenarios": [_summary(s) for s in scenarios],
    }


@router.get(
    "/{key}",
    summary="Get Scenario",
    description="Get a scenario including its full roster.",
)
async def get_scenario(
    key: str,
    registry: ScenarioRegistry = Depends(get_scenario_registry),
) -> dict[str, Any]:
    try:
        return registry.get(key).to_dict()
    except InvalidScenarioSelection as e:
        raise HTTPException(status_code=404, detail=f"Scenario '{key}' not found") from e


@router.post(
    "",
    status_code=201,
    summary="Create Scenario",
    description="Register a new scenario. Keys must be unique.",
)
async def create_scenario(
    body: ScenarioCreateRequest,
    registry: ScenarioRegistry = Depends(get_scenario_registry),
) -> dict[str, Any]:
    if body.key in registry:
        raise HTTPException(status_code=409, detail=f"Scenario '{body.key}' already exists")

    scenario = _build_definition(body.key, body)
    try:
        registry.create(scenario)
    except ScenarioValidationError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    logger.info("Scenario created via API | key=%s personas=%d", scenario.key, len(scenario.roster))
    return {"status": "created", "scenario": scenario.to_dict()}


@router.put(
    "/{key}",
    summary="Update Scenario",
    description="Replace an existing scenario definition.",
)
async def update_scenario(
    key: str,
    body: ScenarioBody,
    registry: ScenarioRegistry = Depends(get_scenario_registry),
) -> dict[str, Any]:
    if key not in registry:
        raise HTTPException(status_code=404, detail=f"Scenario '{key}' not found")

    scenario = _build_definition(key, body)
    try:
        registry.update(scenario)
    except InvalidScenarioSelection as e:
        raise HTTPException(status_code=404, detail=f"Scenario '{key}' not found") from e

    return {"status": "updated", "scenario": scenario.to_dict()}


@router.delete(
    "/{key}",
    summary="Delete Scenario",
    description="Remove a scenario. A session manager that had it selected clears its selection.",
)
async def delete_scenario(
    key: str,
    registry: ScenarioRegistry = Depends(get_scenario_registry),
) -> dict[str, Any]:
    try:
        registry.delete(key)
    except InvalidScenarioSelection as e:
        raise HTTPException(status_code=404, detail=f"Scenario '{key}' not found") from e

    return {"status": "deleted", "key": key}
