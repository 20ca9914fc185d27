"""Liveness and configuration health."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from apps.handoffdesk.backend.api.v1.dependencies import get_session_manager
from apps.handoffdesk.backend.config.settings import validate_settings
from apps.handoffdesk.backend.voice.lifecycle.manager import ConnectionLifecycleManager

router = APIRouter()


@router.get("/health", summary="Health Check")
async def health(
    manager: ConnectionLifecycleManager = Depends(get_session_manager),
) -> dict[str, Any]:
    validation = validate_settings()
    return {
        "status": "healthy" if validation["valid"] else "degraded",
        "session_status": manager.status.value,
        "scenarios": len(manager.registry),
        "config": validation,
    }
