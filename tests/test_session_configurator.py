"""
Tests for SessionConfigurator
=============================

Turn-detection payloads, greeting guard and reconfiguration ordering.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from apps.handoffdesk.backend.voice.shared.session_configurator import SessionConfigurator


@pytest.fixture
def send_event():
    return MagicMock()


@pytest.fixture
def configurator(send_event):
    return SessionConfigurator(send_event, greeting_text="hola")


def _types(send_event):
    return [c.args[0]["type"] for c in send_event.call_args_list]


class TestTurnDetection:
    def test_push_to_talk_disables_turn_detection(self):
        assert SessionConfigurator.build_turn_detection(True) is None

    def test_server_vad_parameters(self):
        assert SessionConfigurator.build_turn_detection(False) == {
            "type": "server_vad",
            "threshold": 0.9,
            "prefix_padding_ms": 300,
            "silence_duration_ms": 500,
            "create_response": True,
        }

    def test_apply_configuration_sends_session_update(self, configurator, send_event):
        configurator.apply_configuration(True)

        event, suffix = send_event.call_args.args
        assert event == {"type": "session.update", "session": {"turn_detection": None}}
        assert suffix == ""


class TestGreeting:
    def test_greeting_sends_user_message_then_response(self, configurator, send_event):
        assert configurator.maybe_greet() is True

        assert _types(send_event) == ["conversation.item.create", "response.create"]
        item = send_event.call_args_list[0].args[0]["item"]
        assert item["role"] == "user"
        assert item["content"] == [{"type": "input_text", "text": "hola"}]

    def test_greeting_at_most_once(self, configurator, send_event):
        configurator.maybe_greet()
        assert configurator.maybe_greet() is False

        assert _types(send_event).count("response.create") == 1

    def test_reset_rearms_greeting(self, configurator, send_event):
        configurator.maybe_greet()
        configurator.reset()

        assert configurator.maybe_greet() is True

    def test_custom_greeting_text(self, send_event):
        SessionConfigurator(send_event, greeting_text="hello").maybe_greet()

        item = send_event.call_args_list[0].args[0]["item"]
        assert item["content"][0]["text"] == "hello"


class TestReconfigure:
    def test_fresh_connect_configures_then_greets(self, configurator, send_event):
        greeted = configurator.reconfigure(push_to_talk_active=False, handoff_in_progress=False)

        assert greeted is True
        assert _types(send_event) == ["session.update", "conversation.item.create", "response.create"]

    def test_handoff_skips_greeting(self, configurator, send_event):
        greeted = configurator.reconfigure(push_to_talk_active=False, handoff_in_progress=True)

        assert greeted is False
        assert _types(send_event) == ["session.update"]

    def test_second_pass_only_configures(self, configurator, send_event):
        configurator.reconfigure(False, False)
        send_event.reset_mock()

        configurator.reconfigure(True, False)

        assert _types(send_event) == ["session.update"]
