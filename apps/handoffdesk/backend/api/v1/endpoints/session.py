"""
Session Control Endpoints
=========================

Operator controls for the single realtime session: connect, disconnect,
scenario/persona selection, preferences and user input.

Selection never connects by itself; the operator connects explicitly.

Endpoints:
    GET  /api/v1/session              - Current session snapshot
    POST /api/v1/session/connect      - Start a session
    POST /api/v1/session/disconnect   - End the session (idempotent)
    POST /api/v1/session/select       - Select scenario and/or persona
    PUT  /api/v1/session/preferences  - Update push-to-talk / audio playback
    POST /api/v1/session/text         - Send a user text message
    POST /api/v1/session/ptt/start    - Push-to-talk pressed
    POST /api/v1/session/ptt/stop     - Push-to-talk released
    GET  /api/v1/session/transcript   - System messages and breadcrumbs
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from apps.handoffdesk.backend.api.v1.dependencies import get_session_manager
from apps.handoffdesk.backend.voice.lifecycle.manager import ConnectionLifecycleManager
from apps.handoffdesk.backend.voice.shared.errors import InvalidScenarioSelection
from utils.ml_logging import get_logger

logger = get_logger("v1.session")

router = APIRouter()


# ═══════════════════════════════════════════════════════════════════════════════
# REQUEST SCHEMAS
# ═══════════════════════════════════════════════════════════════════════════════


class ConnectRequest(BaseModel):
    scenario_key: str | None = Field(default=None, description="Defaults to the selected scenario")
    persona_name: str | None = Field(default=None, description="Defaults to the selected persona")


class SelectRequest(BaseModel):
    scenario_key: str | None = Field(default=None, description="Scenario to select; omit to keep the current one")
    persona_name: str | None = Field(default=None, description="Persona to start with")


class PreferencesRequest(BaseModel):
    push_to_talk: bool | None = None
    audio_playback: bool | None = None


class TextRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=4096)


# ═══════════════════════════════════════════════════════════════════════════════
# ENDPOINTS
# ═══════════════════════════════════════════════════════════════════════════════


@router.get("", summary="Get Session", description="Snapshot of the session state.")
async def get_session(
    manager: ConnectionLifecycleManager = Depends(get_session_manager),
) -> dict[str, Any]:
    return manager.snapshot()


@router.post(
    "/connect",
    summary="Connect",
    description="Fetch a credential and open a session. Failures are reported in the result body.",
)
async def connect(
    body: ConnectRequest | None = None,
    manager: ConnectionLifecycleManager = Depends(get_session_manager),
) -> dict[str, Any]:
    body = body or ConnectRequest()
    result = await manager.connect(body.scenario_key, body.persona_name)
    return {"result": result.to_dict(), "session": manager.snapshot()}


@router.post("/disconnect", summary="Disconnect", description="End the session; safe to repeat.")
async def disconnect(
    manager: ConnectionLifecycleManager = Depends(get_session_manager),
) -> dict[str, Any]:
    ended = manager.disconnect()
    return {"disconnected": ended, "session": manager.snapshot()}


@router.post(
    "/select",
    summary="Select Scenario/Persona",
    description="Change the selection. A live session is disconnected first; no auto-connect.",
)
async def select(
    body: SelectRequest,
    manager: ConnectionLifecycleManager = Depends(get_session_manager),
) -> dict[str, Any]:
    if body.scenario_key is not None:
        try:
            manager.select_scenario(body.scenario_key, body.persona_name)
        except InvalidScenarioSelection as e:
            raise HTTPException(status_code=404, detail=f"Scenario '{body.scenario_key}' not found") from e
    else:
        manager.select_persona(body.persona_name)
    return manager.snapshot()


@router.put("/preferences", summary="Update Preferences")
async def update_preferences(
    body: PreferencesRequest,
    manager: ConnectionLifecycleManager = Depends(get_session_manager),
) -> dict[str, Any]:
    if body.push_to_talk is not None:
        manager.set_push_to_talk(body.push_to_talk)
    if body.audio_playback is not None:
        manager.set_audio_playback(body.audio_playback)
    return manager.snapshot()


@router.post("/text", summary="Send User Text")
async def send_text(
    body: TextRequest,
    manager: ConnectionLifecycleManager = Depends(get_session_manager),
) -> dict[str, Any]:
    if not manager.send_user_text(body.text):
        raise HTTPException(status_code=409, detail=f"Session is {manager.status.value}")
    return {"status": "sent"}


@router.post("/ptt/start", summary="Push-to-talk Pressed")
async def push_to_talk_start(
    manager: ConnectionLifecycleManager = Depends(get_session_manager),
) -> dict[str, Any]:
    if not manager.push_to_talk_start():
        raise HTTPException(status_code=409, detail=f"Session is {manager.status.value}")
    return {"status": "listening"}


@router.post("/ptt/stop", summary="Push-to-talk Released")
async def push_to_talk_stop(
    manager: ConnectionLifecycleManager = Depends(get_session_manager),
) -> dict[str, Any]:
    if not manager.push_to_talk_stop():
        raise HTTPException(status_code=409, detail="No push-to-talk press in progress")
    return {"status": "committed"}


@router.get("/transcript", summary="Get Transcript")
async def get_transcript(
    include_hidden: bool = False,
    manager: ConnectionLifecycleManager = Depends(get_session_manager),
) -> dict[str, Any]:
    items = manager.transcript.items(include_hidden=include_hidden)
    return {"total": len(items), "items": [i.to_dict() for i in items]}
