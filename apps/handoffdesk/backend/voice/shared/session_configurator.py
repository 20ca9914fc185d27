"""
Session Configurator
====================

Builds and sends the session-level configuration (turn detection) and the
one-time greeting trigger.

The reconfiguration pass always sends ``session.update`` first; the greeting
follows only on a fresh connect, at most once per connect, and never right
after a handoff.

Usage:
    configurator = SessionConfigurator(send_event=lambda event, suffix: transport.send_event(event))
    configurator.reset()                       # new connect
    configurator.reconfigure(push_to_talk_active=False, handoff_in_progress=False)
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from typing import Any

from utils.ml_logging import get_logger

logger = get_logger("voice.shared.session_configurator")

# Server VAD parameters applied whenever push-to-talk is off
VAD_THRESHOLD = 0.9
VAD_PREFIX_PADDING_MS = 300
VAD_SILENCE_DURATION_MS = 500

# send_event(event, suffix)
SendEvent = Callable[[dict[str, Any], str], None]


class SessionConfigurator:
    """
    Args:
        send_event: Callable that sends a client event and logs it with a suffix
        greeting_text: Text of the synthetic user turn that triggers the greeting
    """

    def __init__(self, send_event: SendEvent, greeting_text: str = "hola"):
        self._send_event = send_event
        self.greeting_text = greeting_text
        self._greeted = False

    @property
    def greeted(self) -> bool:
        return self._greeted

    def reset(self) -> None:
        """Re-arm the greeting for a new connect."""
        self._greeted = False

    @staticmethod
    def build_turn_detection(push_to_talk_active: bool) -> dict[str, Any] | None:
        if push_to_talk_active:
            return None
        return {
            "type": "server_vad",
            "threshold": VAD_THRESHOLD,
            "prefix_padding_ms": VAD_PREFIX_PADDING_MS,
            "silence_duration_ms": VAD_SILENCE_DURATION_MS,
            "create_response": True,
        }

    def apply_configuration(self, push_to_talk_active: bool) -> dict[str, Any]:
        event = {
            "type": "session.update",
            "session": {"turn_detection": self.build_turn_detection(push_to_talk_active)},
        }
        self._send_event(event, "")
        logger.debug("Session configured | push_to_talk=%s", push_to_talk_active)
        return event

    def maybe_greet(self) -> bool:
        """Send the greeting trigger unless it was already sent for this connect."""
        if self._greeted:
            return False
        self._greeted = True

        item_id = uuid.uuid4().hex
        self._send_event(
            {
                "type": "conversation.item.create",
                "item": {
                    "id": item_id,
                    "type": "message",
                    "role": "user",
                    "content": [{"type": "input_text", "text": self.greeting_text}],
                },
            },
            "(internal greeting)",
        )
        self._send_event({"type": "response.create"}, "(trigger initial response)")
        logger.info("Greeting triggered | item_id=%s", item_id)
        return True

    def reconfigure(self, push_to_talk_active: bool, handoff_in_progress: bool) -> bool:
        """
        Apply configuration, then greet on a fresh connect.

        Returns:
            True if the greeting was sent in this pass
        """
        self.apply_configuration(push_to_talk_active)
        if handoff_in_progress:
            logger.debug("Skipping greeting after handoff")
            return False
        return self.maybe_greet()


__all__ = [
    "SessionConfigurator",
    "VAD_PREFIX_PADDING_MS",
    "VAD_SILENCE_DURATION_MS",
    "VAD_THRESHOLD",
]
