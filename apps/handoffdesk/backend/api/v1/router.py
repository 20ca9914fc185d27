"""
API V1 Router
=============

Main router for API v1 endpoints.
"""

from fastapi import APIRouter

from .endpoints import events, health, scenario_builder, session

# Create v1 router
v1_router = APIRouter(prefix="/api/v1")

v1_router.include_router(health.router, tags=["health"])
v1_router.include_router(scenario_builder.router, prefix="/scenarios", tags=["Scenario Builder"])
v1_router.include_router(session.router, prefix="/session", tags=["Session Control"])
v1_router.include_router(events.router, prefix="/events", tags=["Event Inspection"])
