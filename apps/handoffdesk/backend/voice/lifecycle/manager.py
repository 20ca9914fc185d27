"""
Connection Lifecycle Manager
============================

Owns the single realtime session of this process:

    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED

``connect()`` fetches an ephemeral credential, prepares the roster with the
requested persona first, and hands everything to the transport. The
transport's connection-change notification (not ``connect()`` itself) moves
the session to CONNECTED, which runs the reconfiguration pass and the
one-time greeting.

Every await inside ``connect()`` is followed by a generation check: if a
``disconnect()`` (or a transport drop) happened meanwhile, the late result
is discarded.

Usage:
    manager = create_connection_manager(transport=my_transport)
    manager.select_scenario("simpleHandoff", persona_name="haikuWriter")
    result = await manager.connect()
    if not result.ok:
        print(result.error.classification)
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from apps.handoffdesk.backend.registries.scenariostore.loader import (
    ScenarioDefinition,
    ScenarioRegistry,
)
from apps.handoffdesk.backend.src.events.correlation_log import (
    EventCorrelationLog,
    EventDirection,
)
from apps.handoffdesk.backend.src.services.credentials import EphemeralCredential
from apps.handoffdesk.backend.src.services.preferences import (
    AUDIO_PLAYBACK,
    PUSH_TO_TALK,
    InMemoryPreferenceStore,
    PreferenceStore,
)
from apps.handoffdesk.backend.src.services.transcript import TranscriptLog
from apps.handoffdesk.backend.voice.guardrails.moderation import (
    GuardrailPolicy,
    create_moderation_guardrail,
)
from apps.handoffdesk.backend.voice.lifecycle.transport import ConnectOptions, RealtimeTransport
from apps.handoffdesk.backend.voice.shared.base import (
    ConnectionSession,
    ConnectionStatus,
    ConnectResult,
)
from apps.handoffdesk.backend.voice.shared.errors import (
    CredentialNetworkError,
    InvalidPersonaSelection,
    InvalidScenarioSelection,
    SessionLifecycleError,
    SessionSetupError,
    TransportConnectError,
)
from apps.handoffdesk.backend.voice.shared.handoff_service import (
    HandoffCoordinator,
    RosterPreparation,
)
from apps.handoffdesk.backend.voice.shared.session_configurator import SessionConfigurator
from opentelemetry import trace
from utils.ml_logging import get_logger

logger = get_logger("voice.lifecycle.manager")
tracer = trace.get_tracer(__name__)

CredentialProvider = Callable[[], Awaitable[EphemeralCredential]]
GuardrailFactory = Callable[[str], GuardrailPolicy]


class ConnectionLifecycleManager:
    """
    Single-session state machine plus the selection, preference and
    user-input operations that depend on it.

    Args:
        registry: Scenario registry to select from
        transport: Realtime transport; its event handlers are registered here
        credential_provider: Async callable returning an EphemeralCredential
        preferences: Preference store (push-to-talk, audio playback)
        event_log: Correlation log shared with the inspection surface
        transcript: Transcript receiving system messages and breadcrumbs
        guardrail_factory: Builds the output guardrail from a company name
        greeting_text: Synthetic user turn used to trigger the greeting
        connect_timeout: Seconds allowed for ``transport.connect``
        scenario_key: Initial selection (unknown keys resolve to the default)
        persona_name: Initial persona selection
    """

    def __init__(
        self,
        registry: ScenarioRegistry,
        transport: RealtimeTransport,
        credential_provider: CredentialProvider,
        preferences: PreferenceStore | None = None,
        event_log: EventCorrelationLog | None = None,
        transcript: TranscriptLog | None = None,
        guardrail_factory: GuardrailFactory = create_moderation_guardrail,
        greeting_text: str = "hola",
        connect_timeout: float = 15.0,
        scenario_key: str | None = None,
        persona_name: str | None = None,
    ) -> None:
        self._registry = registry
        self._transport = transport
        self._credential_provider = credential_provider
        self._preferences = preferences or InMemoryPreferenceStore()
        self._event_log = event_log or EventCorrelationLog()
        self._transcript = transcript or TranscriptLog()
        self._guardrail_factory = guardrail_factory
        self._connect_timeout = connect_timeout

        self._coordinator = HandoffCoordinator(transcript=self._transcript)
        self._configurator = SessionConfigurator(self._send_client_event, greeting_text=greeting_text)

        self._session: ConnectionSession | None = None
        self._generation = 0
        self._ptt_pressed = False

        self._selected_scenario_key = registry.resolve_key(scenario_key)
        self._selected_persona_name = persona_name

        transport.set_event_handlers(
            on_connection_change=self.handle_connection_change,
            on_handoff=self.handle_handoff,
            on_server_event=self.handle_server_event,
        )
        registry.add_listener(self._on_scenario_change)

        logger.debug(
            "ConnectionLifecycleManager initialized | scenario=%s persona=%s",
            self._selected_scenario_key,
            persona_name,
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Properties
    # ───────────────────────────────────────────────────────────────────────────

    @property
    def status(self) -> ConnectionStatus:
        if self._session is None:
            return ConnectionStatus.DISCONNECTED
        return self._session.status

    @property
    def session(self) -> ConnectionSession | None:
        return self._session

    @property
    def conversation_id(self) -> str | None:
        return self._session.conversation_id if self._session else None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def active_persona_name(self) -> str | None:
        return self._coordinator.active_persona_name if self._session else None

    @property
    def selected_scenario_key(self) -> str | None:
        return self._selected_scenario_key

    @property
    def selected_persona_name(self) -> str | None:
        return self._selected_persona_name

    @property
    def push_to_talk(self) -> bool:
        return self._preferences.get_bool(PUSH_TO_TALK)

    @property
    def audio_playback(self) -> bool:
        return self._preferences.get_bool(AUDIO_PLAYBACK)

    @property
    def push_to_talk_pressed(self) -> bool:
        return self._ptt_pressed

    @property
    def registry(self) -> ScenarioRegistry:
        return self._registry

    @property
    def event_log(self) -> EventCorrelationLog:
        return self._event_log

    @property
    def transcript(self) -> TranscriptLog:
        return self._transcript

    @property
    def coordinator(self) -> HandoffCoordinator:
        return self._coordinator

    @property
    def configurator(self) -> SessionConfigurator:
        return self._configurator

    # ═══════════════════════════════════════════════════════════════════════════
    # CONNECT / DISCONNECT
    # ═══════════════════════════════════════════════════════════════════════════

    async def connect(
        self,
        scenario_key: str | None = None,
        persona_name: str | None = None,
    ) -> ConnectResult:
        """
        Start a session for the given (or currently selected) scenario and persona.

        Returns a ConnectResult; classified failures are reported there, never raised.
        """
        if self._session is not None:
            logger.info("Connect ignored | status=%s", self._session.status.value)
            return ConnectResult(
                outcome="ignored",
                conversation_id=self._session.conversation_id,
                scenario_key=self._session.scenario_key,
                active_persona_name=self.active_persona_name,
            )

        key = scenario_key if scenario_key is not None else self._selected_scenario_key
        persona = persona_name if persona_name is not None else self._selected_persona_name

        with tracer.start_as_current_span(
            "handoffdesk.connect",
            kind=trace.SpanKind.INTERNAL,
        ) as span:
            span.set_attribute("handoffdesk.scenario_key", key or "")
            span.set_attribute("handoffdesk.requested_persona", persona or "")

            result = await self._connect(key, persona)

            span.set_attribute("handoffdesk.outcome", result.outcome)
            if result.conversation_id:
                span.set_attribute("handoffdesk.conversation_id", result.conversation_id)
            if result.error is not None:
                span.set_status(trace.StatusCode.ERROR, str(result.error))
                span.add_event(
                    "connect.error",
                    {"error.type": result.error.classification, "error.message": str(result.error)},
                )
            else:
                span.set_status(trace.StatusCode.OK)
            return result

    async def _connect(self, key: str | None, persona: str | None) -> ConnectResult:
        if not key or key not in self._registry:
            return self._fail(None, InvalidScenarioSelection(key))

        self._generation += 1
        generation = self._generation
        session = ConnectionSession(
            generation=generation,
            scenario_key=key,
            requested_persona_name=persona,
        )
        self._session = session
        logger.info(
            "Connecting | scenario=%s persona=%s conversation=%s",
            key,
            persona,
            session.conversation_id,
        )
        self._event_log.record(
            EventDirection.CLIENT,
            "fetch_session_token_request",
            {"scenario_key": key},
            session.conversation_id,
        )
        self._transcript.add_message("Connecting to support agent...", role="system")

        # 1. Ephemeral credential
        try:
            credential = await self._credential_provider()
        except SessionLifecycleError as e:
            if self._is_stale(generation):
                return self._cancelled(session)
            return self._fail(session, e)
        except Exception as e:
            if self._is_stale(generation):
                return self._cancelled(session)
            return self._fail(session, CredentialNetworkError(f"Credential request failed: {e}"))

        if self._is_stale(generation):
            return self._cancelled(session)

        session.credential = credential
        self._event_log.record(
            EventDirection.SERVER,
            "fetch_session_token_response",
            {"expires_at": credential.expires_at},
            session.conversation_id,
        )

        # 2. Roster and guardrail
        try:
            scenario = self._registry.get(key)
            preparation = self._coordinator.prepare_roster(scenario.roster, persona)
            guardrail = self._guardrail_factory(scenario.company_name)
            options = ConnectOptions(
                credential=credential,
                initial_roster=preparation.roster,
                output_guardrail=guardrail,
                session_defaults=self._session_defaults(scenario, preparation),
            )
        except SessionLifecycleError as e:
            return self._fail(session, e)
        except Exception as e:
            return self._fail(session, SessionSetupError(f"Session setup failed: {e}"))

        if preparation.fallback_used:
            self._report_persona_fallback(session, preparation)

        self._coordinator.bind(preparation)
        self._configurator.reset()
        session.active_persona_name = preparation.active_persona_name
        session.transport_engaged = True

        # 3. Transport
        try:
            await asyncio.wait_for(self._transport.connect(options), timeout=self._connect_timeout)
        except asyncio.TimeoutError:
            if self._is_stale(generation):
                return self._cancelled(session)
            return self._fail(
                session,
                TransportConnectError(f"timed out after {self._connect_timeout:g}s"),
            )
        except Exception as e:
            if self._is_stale(generation):
                return self._cancelled(session)
            return self._fail(session, TransportConnectError(e))

        if self._is_stale(generation):
            # A disconnect won the race; the late transport must not stay open
            if self._session is None:
                self._teardown_transport()
            return self._cancelled(session)

        logger.info(
            "Transport accepted session | scenario=%s persona=%s conversation=%s",
            key,
            preparation.active_persona_name,
            session.conversation_id,
        )
        return ConnectResult(
            outcome="connecting",
            conversation_id=session.conversation_id,
            scenario_key=key,
            active_persona_name=preparation.active_persona_name,
            fallback_used=preparation.fallback_used,
        )

    def disconnect(self) -> bool:
        """
        End the session from any state. Safe to call repeatedly.

        Returns:
            True if a session was actually ended
        """
        session = self._session
        # Invalidate any connect() still awaiting a collaborator
        self._generation += 1
        self._ptt_pressed = False
        if session is None:
            return False

        self._session = None
        if session.transport_engaged:
            self._teardown_transport()
        self._end_session(session, reason="user")
        return True

    # ═══════════════════════════════════════════════════════════════════════════
    # TRANSPORT CALLBACKS
    # ═══════════════════════════════════════════════════════════════════════════

    def handle_connection_change(self, status: str | ConnectionStatus) -> None:
        try:
            status = ConnectionStatus(str(getattr(status, "value", status)).upper())
        except ValueError:
            logger.warning("Unknown connection status from transport | status=%s", status)
            return
        session = self._session

        if status is ConnectionStatus.CONNECTED:
            if session is None or session.status is not ConnectionStatus.CONNECTING:
                logger.debug("Ignoring CONNECTED notification | status=%s", self.status.value)
                return
            session.status = ConnectionStatus.CONNECTED
            session.connected_at = time.time()
            logger.info(
                "Session connected | conversation=%s persona=%s",
                session.conversation_id,
                self._coordinator.active_persona_name,
            )
            self._event_log.record(
                EventDirection.SYSTEM,
                "session_connected",
                {"scenario_key": session.scenario_key, "active_persona": self._coordinator.active_persona_name},
                session.conversation_id,
            )
            self._transport.mute(not self.audio_playback)
            self._reconfigure()

        elif status is ConnectionStatus.DISCONNECTED:
            if session is None:
                return
            logger.info("Transport dropped session | conversation=%s", session.conversation_id)
            self._session = None
            self._generation += 1
            self._ptt_pressed = False
            self._end_session(session, reason="transport")

    def handle_handoff(self, persona_name: str) -> None:
        session = self._session
        if session is None or session.status is not ConnectionStatus.CONNECTED:
            logger.warning("Handoff notification outside a connected session ignored | persona=%s", persona_name)
            return

        previous = self._coordinator.active_persona_name
        active = self._coordinator.on_handoff_notification(persona_name)
        session.active_persona_name = active
        persona = self._coordinator.roster.get(active) if self._coordinator.roster else None
        if persona is not None:
            self._transcript.add_breadcrumb(f"Agent: {active}", persona.to_dict())
        self._event_log.record(
            EventDirection.SYSTEM,
            "agent_handoff",
            {"from": previous, "to": active, "requested": persona_name},
            session.conversation_id,
        )
        self._reconfigure()

    def handle_server_event(self, event: dict[str, Any]) -> None:
        self._event_log.log_server_event(event, "", self.conversation_id)

    # ═══════════════════════════════════════════════════════════════════════════
    # SELECTION
    # ═══════════════════════════════════════════════════════════════════════════

    def select_scenario(self, key: str, persona_name: str | None = None) -> ScenarioDefinition:
        """
        Change the selected scenario. A live session is disconnected first;
        connecting again is left to the caller.

        Raises:
            InvalidScenarioSelection: if ``key`` is not registered
        """
        scenario = self._registry.get(key)
        if self._session is not None:
            self.disconnect()
        self._selected_scenario_key = key
        self._selected_persona_name = persona_name
        logger.info("Scenario selected | key=%s persona=%s", key, persona_name)
        return scenario

    def select_persona(self, name: str | None) -> None:
        if self._session is not None:
            self.disconnect()
        self._selected_persona_name = name
        logger.info("Persona selected | persona=%s scenario=%s", name, self._selected_scenario_key)

    def _on_scenario_change(self, key: str, action: str) -> None:
        if action == "deleted" and key == self._selected_scenario_key:
            logger.warning("Selected scenario was deleted, clearing selection | key=%s", key)
            self._selected_scenario_key = None
            self._selected_persona_name = None

    # ═══════════════════════════════════════════════════════════════════════════
    # PREFERENCES
    # ═══════════════════════════════════════════════════════════════════════════

    def set_push_to_talk(self, enabled: bool) -> None:
        self._preferences.set_bool(PUSH_TO_TALK, enabled)
        if not enabled:
            self._ptt_pressed = False
        if self.status is ConnectionStatus.CONNECTED:
            self._configurator.apply_configuration(enabled)

    def set_audio_playback(self, enabled: bool) -> None:
        self._preferences.set_bool(AUDIO_PLAYBACK, enabled)
        if self._session is not None and self._session.transport_engaged:
            self._transport.mute(not enabled)

    # ═══════════════════════════════════════════════════════════════════════════
    # USER INPUT
    # ═══════════════════════════════════════════════════════════════════════════

    def send_user_text(self, text: str) -> bool:
        if self.status is not ConnectionStatus.CONNECTED:
            logger.warning("Cannot send text while %s", self.status.value)
            return False
        self._transport.interrupt()
        self._send_client_event(
            {
                "type": "conversation.item.create",
                "item": {
                    "id": uuid.uuid4().hex,
                    "type": "message",
                    "role": "user",
                    "content": [{"type": "input_text", "text": text}],
                },
            },
        )
        self._send_client_event({"type": "response.create"}, "(send user text message)")
        return True

    def push_to_talk_start(self) -> bool:
        if self.status is not ConnectionStatus.CONNECTED:
            return False
        self._transport.interrupt()
        self._ptt_pressed = True
        self._send_client_event({"type": "input_audio_buffer.clear"}, "clear PTT buffer")
        return True

    def push_to_talk_stop(self) -> bool:
        if self.status is not ConnectionStatus.CONNECTED or not self._ptt_pressed:
            return False
        self._ptt_pressed = False
        self._send_client_event({"type": "input_audio_buffer.commit"}, "commit PTT")
        self._send_client_event({"type": "response.create"}, "trigger response PTT")
        return True

    # ═══════════════════════════════════════════════════════════════════════════
    # SNAPSHOT
    # ═══════════════════════════════════════════════════════════════════════════

    def snapshot(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "conversation_id": self.conversation_id,
            "selected_scenario_key": self._selected_scenario_key,
            "selected_persona_name": self._selected_persona_name,
            "active_persona_name": self.active_persona_name,
            "roster": self._coordinator.roster.names if self._session and self._coordinator.roster else [],
            "push_to_talk": self.push_to_talk,
            "push_to_talk_pressed": self._ptt_pressed,
            "audio_playback": self.audio_playback,
            "session": self._session.to_dict() if self._session else None,
        }

    # ═══════════════════════════════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════════════════════════════

    def _send_client_event(self, event: dict[str, Any], suffix: str = "") -> None:
        self._transport.send_event(event)
        self._event_log.log_client_event(event, suffix, self.conversation_id)

    def _reconfigure(self) -> None:
        handoff = self._coordinator.consume_handoff_flag()
        self._configurator.reconfigure(self.push_to_talk, handoff_in_progress=handoff)

    def _is_stale(self, generation: int) -> bool:
        session = self._session
        return session is None or session.generation != generation or self._generation != generation

    def _session_defaults(
        self,
        scenario: ScenarioDefinition,
        preparation: RosterPreparation,
    ) -> dict[str, Any]:
        context = scenario.instruction_context()
        return {
            "turn_detection": self._configurator.build_turn_detection(self.push_to_talk),
            "voice": preparation.roster.first.voice,
            "instructions": {
                persona.name: persona.render_instructions(context) for persona in preparation.roster
            },
        }

    def _report_persona_fallback(self, session: ConnectionSession, preparation: RosterPreparation) -> None:
        warning = InvalidPersonaSelection(preparation.requested_name, preparation.active_persona_name)
        self._event_log.record(
            EventDirection.SYSTEM,
            "warning." + warning.classification.replace("-", "_"),
            {
                "requested": preparation.requested_name,
                "fallback": preparation.active_persona_name,
                "roster": preparation.roster.names,
            },
            session.conversation_id,
        )
        self._transcript.add_breadcrumb(
            f"Persona '{preparation.requested_name}' not found, starting with {preparation.active_persona_name}",
            {"requested": preparation.requested_name, "fallback": preparation.active_persona_name},
        )

    def _teardown_transport(self) -> None:
        try:
            self._transport.disconnect()
        except Exception as e:
            logger.warning("Transport teardown failed | error=%s", e)

    def _end_session(self, session: ConnectionSession, reason: str) -> None:
        self._coordinator.reset()
        self._configurator.reset()
        self._event_log.record(
            EventDirection.SYSTEM,
            "session_disconnect",
            {"reason": reason, "scenario_key": session.scenario_key},
            session.conversation_id,
        )
        self._transcript.add_message("Disconnected from session.", role="system")
        logger.info("Session ended | conversation=%s reason=%s", session.conversation_id, reason)

    def _cancelled(self, session: ConnectionSession) -> ConnectResult:
        logger.info("Discarding stale connect resolution | conversation=%s", session.conversation_id)
        return ConnectResult(
            outcome="cancelled",
            conversation_id=session.conversation_id,
            scenario_key=session.scenario_key,
        )

    def _fail(self, session: ConnectionSession | None, error: SessionLifecycleError) -> ConnectResult:
        conversation_id = session.conversation_id if session else None
        if session is not None and self._session is session:
            self._session = None
            self._coordinator.reset()
            if session.transport_engaged:
                self._teardown_transport()

        logger.error(
            "Connect failed | classification=%s conversation=%s error=%s",
            error.classification,
            conversation_id,
            error,
        )
        self._event_log.record(EventDirection.SYSTEM, error.event_name, error.to_dict(), conversation_id)
        self._transcript.add_message(f"Connection failed: {error}", role="system")
        return ConnectResult(
            outcome="failed",
            conversation_id=conversation_id,
            scenario_key=session.scenario_key if session else None,
            error=error,
        )


def create_connection_manager(
    transport: RealtimeTransport | None = None,
    registry: ScenarioRegistry | None = None,
    credential_provider: CredentialProvider | None = None,
    preferences: PreferenceStore | None = None,
    event_log: EventCorrelationLog | None = None,
    **kwargs: Any,
) -> ConnectionLifecycleManager:
    """
    Build a manager wired to the process-wide collaborators and settings.

    Examples:
        # Defaults from settings, loopback transport
        manager = create_connection_manager()

        # Real transport
        manager = create_connection_manager(transport=my_transport)
    """
    from apps.handoffdesk.backend.config.settings import (
        GREETING_TEXT,
        TRANSPORT_CONNECT_TIMEOUT_SECONDS,
    )
    from apps.handoffdesk.backend.registries.scenariostore.loader import get_scenario_registry
    from apps.handoffdesk.backend.src.events.correlation_log import get_event_log
    from apps.handoffdesk.backend.src.services.credentials import create_credential_client
    from apps.handoffdesk.backend.src.services.preferences import create_preference_store
    from apps.handoffdesk.backend.voice.lifecycle.transport import LoopbackTransport

    kwargs.setdefault("greeting_text", GREETING_TEXT)
    kwargs.setdefault("connect_timeout", TRANSPORT_CONNECT_TIMEOUT_SECONDS)

    return ConnectionLifecycleManager(
        registry=registry or get_scenario_registry(),
        transport=transport or LoopbackTransport(),
        credential_provider=credential_provider or create_credential_client(),
        preferences=preferences or create_preference_store(),
        event_log=event_log or get_event_log(),
        **kwargs,
    )


__all__ = [
    "ConnectionLifecycleManager",
    "CredentialProvider",
    "GuardrailFactory",
    "create_connection_manager",
]
