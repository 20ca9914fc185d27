"""
Request dependencies for the v1 API.

The connection manager is created once per application and stored on
``app.state.session_manager``; everything else hangs off it.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from apps.handoffdesk.backend.registries.scenariostore.loader import ScenarioRegistry
from apps.handoffdesk.backend.src.events.correlation_log import EventCorrelationLog
from apps.handoffdesk.backend.voice.lifecycle.manager import ConnectionLifecycleManager


def get_session_manager(request: Request) -> ConnectionLifecycleManager:
    manager = getattr(request.app.state, "session_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Session manager not initialized")
    return manager


def get_scenario_registry(request: Request) -> ScenarioRegistry:
    return get_session_manager(request).registry


def get_event_log(request: Request) -> EventCorrelationLog:
    return get_session_manager(request).event_log


__all__ = ["get_event_log", "get_scenario_registry", "get_session_manager"]
