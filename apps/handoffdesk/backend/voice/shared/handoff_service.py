"""
Handoff Coordinator
===================

Keeps track of which persona is active in the live session.

Responsibilities:
- Reorder a scenario roster so the requested persona is the entry point
- Adopt the prepared roster when the session reaches the transport
- Follow mid-session handoff notifications from the transport
- Remember that a handoff just happened, so the next reconfiguration pass
  does not greet again

Usage:
    from apps.handoffdesk.backend.voice.shared.handoff_service import HandoffCoordinator

    coordinator = HandoffCoordinator(transcript=transcript)

    preparation = coordinator.prepare_roster(scenario.roster, "haikuWriter")
    coordinator.bind(preparation)

    # transport reports a handoff
    coordinator.on_handoff_notification("greeter")
    if coordinator.consume_handoff_flag():
        ...  # reconfigure without greeting
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from apps.handoffdesk.backend.registries.agentstore.base import AgentRoster
from apps.handoffdesk.backend.voice.shared.errors import EmptyRosterError
from utils.ml_logging import get_logger

if TYPE_CHECKING:
    from apps.handoffdesk.backend.src.services.transcript import TranscriptLog

logger = get_logger("voice.shared.handoff_service")


# ═══════════════════════════════════════════════════════════════════════════════
# DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class RosterPreparation:
    """
    Result of preparing a roster for a new session.

    Attributes:
        roster: Roster with the active persona at index 0
        active_persona_name: Persona that will speak first
        requested_name: Persona the caller asked for (may be None)
        fallback_used: True when the requested name was not in the roster
    """

    roster: AgentRoster
    active_persona_name: str
    requested_name: str | None = None
    fallback_used: bool = False


# ═══════════════════════════════════════════════════════════════════════════════
# HANDOFF COORDINATOR
# ═══════════════════════════════════════════════════════════════════════════════


class HandoffCoordinator:
    """
    Owns the bound roster, the active persona name and the one-shot
    handoff flag for a single session at a time.
    """

    def __init__(self, transcript: TranscriptLog | None = None) -> None:
        self._transcript = transcript
        self._roster: AgentRoster | None = None
        self._active_persona_name: str | None = None
        self._handoff_in_progress = False

    # ───────────────────────────────────────────────────────────────────────────
    # Properties
    # ───────────────────────────────────────────────────────────────────────────

    @property
    def roster(self) -> AgentRoster | None:
        return self._roster

    @property
    def active_persona_name(self) -> str | None:
        return self._active_persona_name

    @property
    def handoff_in_progress(self) -> bool:
        return self._handoff_in_progress

    # ───────────────────────────────────────────────────────────────────────────
    # Session setup
    # ───────────────────────────────────────────────────────────────────────────

    def prepare_roster(
        self,
        roster: AgentRoster,
        desired_persona_name: str | None,
    ) -> RosterPreparation:
        """
        Reorder ``roster`` so ``desired_persona_name`` is first.

        No name keeps the roster as is. An unknown name also leaves the
        roster unchanged, falls back to its first persona and sets
        ``fallback_used``. Does not touch coordinator state.

        Raises:
            EmptyRosterError: if the roster has no personas
        """
        if len(roster) == 0:
            raise EmptyRosterError("Scenario roster is empty")

        if desired_persona_name is None:
            return RosterPreparation(roster=roster, active_persona_name=roster.first.name)

        if desired_persona_name in roster:
            return RosterPreparation(
                roster=roster.moved_to_front(desired_persona_name),
                active_persona_name=desired_persona_name,
                requested_name=desired_persona_name,
            )

        fallback = roster.first.name
        logger.warning(
            "Requested persona not in roster, using first | requested=%s fallback=%s roster=%s",
            desired_persona_name,
            fallback,
            roster.names,
        )
        return RosterPreparation(
            roster=roster,
            active_persona_name=fallback,
            requested_name=desired_persona_name,
            fallback_used=True,
        )

    def bind(self, preparation: RosterPreparation) -> None:
        """Adopt a prepared roster for the session that is about to start."""
        self._roster = preparation.roster
        self._active_persona_name = preparation.active_persona_name
        self._handoff_in_progress = False
        logger.debug(
            "Roster bound | active=%s roster=%s",
            preparation.active_persona_name,
            preparation.roster.names,
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Handoffs
    # ───────────────────────────────────────────────────────────────────────────

    def on_handoff_notification(self, persona_name: str) -> str:
        """
        Record that the transport switched the active persona.

        Returns:
            The persona name now active. A name outside the bound roster
            resolves to the roster's first persona.
        """
        previous = self._active_persona_name
        self._handoff_in_progress = True

        resolved = persona_name
        if self._roster is not None and persona_name not in self._roster:
            resolved = self._roster.first.name if len(self._roster) else persona_name
            logger.warning(
                "Handoff to persona outside roster | requested=%s using=%s",
                persona_name,
                resolved,
            )

        self._active_persona_name = resolved
        logger.info("Handoff | from=%s to=%s", previous, resolved)

        if self._transcript is not None:
            self._transcript.add_breadcrumb(
                f"Session handed off to: {resolved}",
                {"from": previous, "to": resolved},
            )
        return resolved

    def consume_handoff_flag(self) -> bool:
        """Return the handoff flag and clear it."""
        flag = self._handoff_in_progress
        self._handoff_in_progress = False
        return flag

    def reset(self) -> None:
        self._roster = None
        self._active_persona_name = None
        self._handoff_in_progress = False


__all__ = [
    "HandoffCoordinator",
    "RosterPreparation",
]
