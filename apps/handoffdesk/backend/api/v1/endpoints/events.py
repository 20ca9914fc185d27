"""
Event Inspection Endpoints
==========================

Read access to the correlation log for the supervisor view.

Endpoints:
    GET  /api/v1/events?conversation_id=  - Events, optionally for one conversation
    GET  /api/v1/events/conversations     - Conversation ids in first-seen order
    POST /api/v1/events/{event_id}/toggle - Flip the expanded flag of one event
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from apps.handoffdesk.backend.api.v1.dependencies import get_event_log
from apps.handoffdesk.backend.src.events.correlation_log import EventCorrelationLog

router = APIRouter()


@router.get("", summary="List Events")
async def list_events(
    conversation_id: str | None = None,
    errors_only: bool = False,
    event_log: EventCorrelationLog = Depends(get_event_log),
) -> dict[str, Any]:
    events = event_log.filter(conversation_id)
    if errors_only:
        events = [e for e in events if e.is_error]
    return {
        "conversation_id": conversation_id,
        "total": len(events),
        "events": [e.to_dict() for e in events],
    }


@router.get("/conversations", summary="List Conversation Ids")
async def list_conversations(
    event_log: EventCorrelationLog = Depends(get_event_log),
) -> dict[str, Any]:
    ids = event_log.conversation_ids()
    return {"total": len(ids), "conversation_ids": ids}


@router.post("/{event_id}/toggle", summary="Toggle Event Expansion")
async def toggle_event(
    event_id: int,
    event_log: EventCorrelationLog = Depends(get_event_log),
) -> dict[str, Any]:
    event = event_log.toggle_expand(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail=f"Event {event_id} not found")
    return event.to_dict()
