"""
HandoffDesk API
===============

FastAPI application exposing the session controls, scenario editing and
the event correlation log.

Run locally:
    uvicorn apps.handoffdesk.backend.main:app --reload
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from apps.handoffdesk.backend.api.v1.router import v1_router
from apps.handoffdesk.backend.registries.agentstore.base import ScenarioValidationError
from apps.handoffdesk.backend.voice.lifecycle.manager import (
    ConnectionLifecycleManager,
    create_connection_manager,
)
from apps.handoffdesk.backend.voice.shared.errors import InvalidScenarioSelection
from utils.ml_logging import get_logger
from utils.telemetry_config import setup_tracing

logger = get_logger("handoffdesk.main")


def create_app(manager: ConnectionLifecycleManager | None = None) -> FastAPI:
    """
    Create the application.

    Args:
        manager: Pre-built session manager (tests pass one wired to fakes);
            defaults to ``create_connection_manager()``.
    """
    setup_tracing()

    app = FastAPI(
        title="HandoffDesk API",
        description="Realtime voice session lifecycle with persona handoffs",
        version="0.1.0",
    )
    app.state.session_manager = manager or create_connection_manager()
    app.include_router(v1_router)

    @app.exception_handler(InvalidScenarioSelection)
    async def invalid_scenario_handler(request: Request, exc: InvalidScenarioSelection) -> JSONResponse:
        logger.warning("Invalid scenario | path=%s key=%s", request.url.path, exc.key)
        return JSONResponse(status_code=404, content={"detail": str(exc), "classification": exc.classification})

    @app.exception_handler(ScenarioValidationError)
    async def scenario_validation_handler(request: Request, exc: ScenarioValidationError) -> JSONResponse:
        logger.warning("Scenario validation failed | path=%s error=%s", request.url.path, exc)
        return JSONResponse(status_code=400, content={"detail": str(exc), "classification": exc.classification})

    logger.info(
        "App created | scenarios=%d selected=%s",
        len(app.state.session_manager.registry),
        app.state.session_manager.selected_scenario_key,
    )
    return app


def __getattr__(name: str):
    # module-level ``app`` for uvicorn, built on first access
    if name == "app":
        application = create_app()
        globals()["app"] = application
        return application
    raise AttributeError(name)
