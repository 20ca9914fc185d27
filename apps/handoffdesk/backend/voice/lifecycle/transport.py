"""
Realtime Transport Contract
===========================

The connection manager talks to the realtime transport (audio capture,
playback and wire encoding) only through this protocol.

The transport reports back through the three handlers registered with
``set_event_handlers``:

- ``on_connection_change(status)``: ``"CONNECTED"`` / ``"DISCONNECTED"``
- ``on_handoff(persona_name)``: the model switched the active persona
- ``on_server_event(event)``: any inbound protocol event (dict with ``type``)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from apps.handoffdesk.backend.registries.agentstore.base import AgentRoster
    from apps.handoffdesk.backend.src.services.credentials import EphemeralCredential
    from apps.handoffdesk.backend.voice.guardrails.moderation import GuardrailPolicy

ConnectionChangeHandler = Callable[[str], None]
HandoffHandler = Callable[[str], None]
ServerEventHandler = Callable[[dict[str, Any]], None]


@dataclass
class ConnectOptions:
    """
    Everything the transport needs to open a session.

    Attributes:
        credential: Single-use ephemeral credential
        initial_roster: Personas with the entry persona at index 0
        output_guardrail: Policy applied to agent output before release
        session_defaults: Initial session fields (turn detection, instructions per persona, ...)
    """

    credential: EphemeralCredential
    initial_roster: AgentRoster
    output_guardrail: GuardrailPolicy
    session_defaults: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class RealtimeTransport(Protocol):
    async def connect(self, options: ConnectOptions) -> None: ...

    def disconnect(self) -> None: ...

    def send_event(self, event: dict[str, Any]) -> None: ...

    def interrupt(self) -> None: ...

    def mute(self, muted: bool) -> None: ...

    def set_event_handlers(
        self,
        on_connection_change: ConnectionChangeHandler,
        on_handoff: HandoffHandler,
        on_server_event: ServerEventHandler,
    ) -> None: ...


class LoopbackTransport:
    """
    In-process transport that accepts every session and records what it is sent.

    Used by the local API server when no realtime transport is wired in, and
    by the HTTP tests. ``connect`` reports CONNECTED synchronously unless
    ``auto_connect`` is False.
    """

    def __init__(self, auto_connect: bool = True):
        self.auto_connect = auto_connect
        self.sent_events: list[dict[str, Any]] = []
        self.options: ConnectOptions | None = None
        self.muted = False
        self.connected = False
        self.interrupts = 0
        self._on_connection_change: ConnectionChangeHandler | None = None
        self._on_handoff: HandoffHandler | None = None
        self._on_server_event: ServerEventHandler | None = None

    def set_event_handlers(
        self,
        on_connection_change: ConnectionChangeHandler,
        on_handoff: HandoffHandler,
        on_server_event: ServerEventHandler,
    ) -> None:
        self._on_connection_change = on_connection_change
        self._on_handoff = on_handoff
        self._on_server_event = on_server_event

    async def connect(self, options: ConnectOptions) -> None:
        self.options = options
        self.connected = True
        if self.auto_connect and self._on_connection_change:
            self._on_connection_change("CONNECTED")

    def disconnect(self) -> None:
        was_connected = self.connected
        self.connected = False
        self.options = None
        if was_connected and self._on_connection_change:
            self._on_connection_change("DISCONNECTED")

    def send_event(self, event: dict[str, Any]) -> None:
        self.sent_events.append(event)

    def interrupt(self) -> None:
        self.interrupts += 1

    def mute(self, muted: bool) -> None:
        self.muted = muted

    # ─────────────────────────────────────────────────────────────────
    # Simulated inbound traffic
    # ─────────────────────────────────────────────────────────────────

    def emit_handoff(self, persona_name: str) -> None:
        if self._on_handoff:
            self._on_handoff(persona_name)

    def emit_server_event(self, event: dict[str, Any]) -> None:
        if self._on_server_event:
            self._on_server_event(event)


__all__ = [
    "ConnectOptions",
    "ConnectionChangeHandler",
    "HandoffHandler",
    "LoopbackTransport",
    "RealtimeTransport",
    "ServerEventHandler",
]
