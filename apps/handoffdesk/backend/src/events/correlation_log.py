"""
Event Correlation Log
=====================

Append-only, process-wide log of every protocol event that crosses the
session boundary, stamped with the conversation id of the session it
belongs to. The supervisor view filters it by conversation id.

Usage:
    from apps.handoffdesk.backend.src.events.correlation_log import get_event_log

    log = get_event_log()
    log.log_client_event({"type": "session.update", "session": {...}}, "", conversation_id)
    events = log.filter(conversation_id)
"""

from __future__ import annotations

import copy
import itertools
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from utils.ml_logging import get_logger

logger = get_logger("events.correlation_log")


class EventDirection(str, Enum):
    CLIENT = "client"
    SERVER = "server"
    SYSTEM = "system"


def _format_timestamp(epoch: float) -> str:
    return datetime.fromtimestamp(epoch).strftime("%H:%M:%S.%f")[:-3]


@dataclass
class LoggedEvent:
    """One recorded event. Only ``expanded`` changes after append."""

    id: int
    direction: EventDirection
    event_name: str
    payload: Any
    conversation_id: str | None = None
    created_at: float = field(default_factory=time.time)
    timestamp: str = ""
    expanded: bool = False

    def __post_init__(self) -> None:
        if not self.timestamp:
            self.timestamp = _format_timestamp(self.created_at)

    @property
    def is_error(self) -> bool:
        if "error" in self.event_name.lower():
            return True
        if isinstance(self.payload, dict):
            response = self.payload.get("response")
            if isinstance(response, dict):
                details = response.get("status_details")
                if isinstance(details, dict) and details.get("error"):
                    return True
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "direction": self.direction.value,
            "event_name": self.event_name,
            "payload": self.payload,
            "conversation_id": self.conversation_id,
            "timestamp": self.timestamp,
            "created_at": self.created_at,
            "expanded": self.expanded,
            "is_error": self.is_error,
        }


class EventCorrelationLog:
    """Thread-safe, append-only event log keyed by conversation id."""

    def __init__(self) -> None:
        self._events: list[LoggedEvent] = []
        self._by_id: dict[int, LoggedEvent] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._events)

    # ─────────────────────────────────────────────────────────────────
    # Append
    # ─────────────────────────────────────────────────────────────────

    def record(
        self,
        direction: EventDirection | str,
        event_name: str,
        payload: Any = None,
        conversation_id: str | None = None,
    ) -> LoggedEvent:
        """
        Append one event.

        Never raises on a payload that cannot be copied. An unrecognised
        direction is recorded as SYSTEM.
        """
        try:
            snapshot = copy.deepcopy(payload)
        except Exception as e:
            logger.warning("Event payload not copyable | event=%s error=%s", event_name, e)
            snapshot = payload

        try:
            resolved = EventDirection(direction)
        except ValueError:
            logger.warning("Unknown event direction, recording as system | direction=%s event=%s", direction, event_name)
            resolved = EventDirection.SYSTEM

        with self._lock:
            event = LoggedEvent(
                id=next(self._ids),
                direction=resolved,
                event_name=event_name,
                payload=snapshot,
                conversation_id=conversation_id,
            )
            self._events.append(event)
            self._by_id[event.id] = event

        if event.is_error:
            logger.warning(
                "Error event | name=%s conversation=%s", event_name, conversation_id
            )
        else:
            logger.debug("Event | dir=%s name=%s conversation=%s", event.direction.value, event_name, conversation_id)
        return event

    def log_client_event(
        self,
        event: dict[str, Any],
        suffix: str = "",
        conversation_id: str | None = None,
    ) -> LoggedEvent:
        return self.record(
            EventDirection.CLIENT,
            _event_name(event, suffix),
            event,
            conversation_id,
        )

    def log_server_event(
        self,
        event: dict[str, Any],
        suffix: str = "",
        conversation_id: str | None = None,
    ) -> LoggedEvent:
        return self.record(
            EventDirection.SERVER,
            _event_name(event, suffix),
            event,
            conversation_id,
        )

    # ─────────────────────────────────────────────────────────────────
    # Query
    # ─────────────────────────────────────────────────────────────────

    def filter(self, conversation_id: str | None = None) -> list[LoggedEvent]:
        """Events in append order; ``None`` returns the whole log."""
        with self._lock:
            if conversation_id is None:
                return list(self._events)
            return [e for e in self._events if e.conversation_id == conversation_id]

    def conversation_ids(self) -> list[str]:
        """Distinct conversation ids in first-seen order."""
        seen: dict[str, None] = {}
        with self._lock:
            for event in self._events:
                if event.conversation_id is not None:
                    seen.setdefault(event.conversation_id, None)
        return list(seen)

    def get(self, event_id: int) -> LoggedEvent | None:
        return self._by_id.get(event_id)

    def toggle_expand(self, event_id: int) -> LoggedEvent | None:
        """Flip ``expanded`` on one event; unknown ids return None."""
        with self._lock:
            event = self._by_id.get(event_id)
            if event is not None:
                event.expanded = not event.expanded
            return event

    def clear(self) -> None:
        """Drop all events (tests only; ids keep increasing)."""
        with self._lock:
            self._events.clear()
            self._by_id.clear()


def _event_name(event: dict[str, Any], suffix: str) -> str:
    event_type = event.get("type", "") if isinstance(event, dict) else ""
    return f"{event_type} {suffix}".strip()


# ═══════════════════════════════════════════════════════════════════════════════
# PROCESS-WIDE INSTANCE
# ═══════════════════════════════════════════════════════════════════════════════

_event_log: EventCorrelationLog | None = None
_event_log_lock = threading.Lock()


def get_event_log() -> EventCorrelationLog:
    global _event_log
    if _event_log is None:
        with _event_log_lock:
            if _event_log is None:
                _event_log = EventCorrelationLog()
    return _event_log


__all__ = [
    "EventCorrelationLog",
    "EventDirection",
    "LoggedEvent",
    "get_event_log",
]
