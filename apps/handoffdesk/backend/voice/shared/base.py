"""
Session Data Classes
====================

Shared data classes for the connection lifecycle: the status enum, the live
session record owned by the connection manager, and the result of a
``connect()`` call.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from apps.handoffdesk.backend.src.services.credentials import EphemeralCredential
    from apps.handoffdesk.backend.voice.shared.errors import SessionLifecycleError


class ConnectionStatus(str, Enum):
    """Lifecycle states; DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED."""

    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"


def new_conversation_id() -> str:
    return str(uuid.uuid4())


@dataclass
class ConnectionSession:
    """
    Live session record. Exists only while the status is not DISCONNECTED.

    ``generation`` is the manager's connect counter at creation time; an
    async resolution whose generation no longer matches is stale.
    """

    generation: int
    scenario_key: str
    status: ConnectionStatus = ConnectionStatus.CONNECTING
    conversation_id: str = field(default_factory=new_conversation_id)
    requested_persona_name: Optional[str] = None
    active_persona_name: Optional[str] = None
    credential: Optional["EphemeralCredential"] = None
    transport_engaged: bool = False
    started_at: float = field(default_factory=time.time)
    connected_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "conversation_id": self.conversation_id,
            "scenario_key": self.scenario_key,
            "active_persona_name": self.active_persona_name,
            "generation": self.generation,
            "started_at": self.started_at,
            "connected_at": self.connected_at,
            "credential_expires_at": self.credential.expires_at if self.credential else None,
        }


@dataclass
class ConnectResult:
    """
    Result of ``ConnectionLifecycleManager.connect()``.

    outcome is one of:
        connecting: transport accepted the session; CONNECTED follows via notification
        ignored: a session was already live or connecting
        failed: a classified error ended the attempt (see ``error``)
        cancelled: the attempt was superseded by a disconnect before it resolved
    """

    outcome: str
    conversation_id: Optional[str] = None
    scenario_key: Optional[str] = None
    active_persona_name: Optional[str] = None
    fallback_used: bool = False
    error: Optional["SessionLifecycleError"] = None

    @property
    def ok(self) -> bool:
        return self.outcome == "connecting"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome,
            "conversation_id": self.conversation_id,
            "scenario_key": self.scenario_key,
            "active_persona_name": self.active_persona_name,
            "fallback_used": self.fallback_used,
            "error": self.error.to_dict() if self.error else None,
        }


__all__ = [
    "ConnectionStatus",
    "ConnectionSession",
    "ConnectResult",
    "new_conversation_id",
]
