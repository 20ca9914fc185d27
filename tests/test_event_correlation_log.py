"""
Tests for EventCorrelationLog
=============================
"""

from __future__ import annotations

import threading

import pytest

from apps.handoffdesk.backend.src.events.correlation_log import (
    EventCorrelationLog,
    EventDirection,
    LoggedEvent,
    get_event_log,
)


class TestRecord:
    def test_ids_strictly_increase(self, event_log):
        ids = [event_log.record(EventDirection.SYSTEM, f"e{i}").id for i in range(5)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 5

    def test_client_event_name_uses_type_and_suffix(self, event_log):
        event = event_log.log_client_event({"type": "input_audio_buffer.clear"}, "clear PTT buffer", "c1")

        assert event.event_name == "input_audio_buffer.clear clear PTT buffer"
        assert event.direction is EventDirection.CLIENT
        assert event.conversation_id == "c1"

    def test_server_event_name_without_suffix(self, event_log):
        event = event_log.log_server_event({"type": "response.done"}, "", "c1")
        assert event.event_name == "response.done"

    def test_payload_is_snapshot(self, event_log):
        payload = {"type": "session.update", "session": {"turn_detection": None}}
        event = event_log.log_client_event(payload, "", "c1")
        payload["session"]["turn_detection"] = "changed"

        assert event.payload["session"]["turn_detection"] is None

    def test_uncopyable_payload_kept(self, event_log):
        lock = threading.Lock()
        event = event_log.record(EventDirection.SYSTEM, "odd", {"lock": lock}, "c1")

        assert event.payload["lock"] is lock

    def test_direction_from_string(self, event_log):
        assert event_log.record("server", "x").direction is EventDirection.SERVER

    def test_unknown_direction_recorded_as_system(self, event_log, caplog):
        with caplog.at_level("WARNING"):
            event = event_log.record("inbound", "x", {}, "c1")

        assert event.direction is EventDirection.SYSTEM
        assert event_log.filter()[-1] is event
        assert "Unknown event direction" in caplog.text

    def test_timestamp_format(self, event_log):
        event = event_log.record(EventDirection.SYSTEM, "tick")
        hh, mm, rest = event.timestamp.split(":")
        ss, ms = rest.split(".")
        assert len(hh) == len(mm) == len(ss) == 2
        assert len(ms) == 3


class TestIsError:
    @pytest.mark.parametrize(
        "name",
        ["error.credential_server_error", "error", "Response ERROR seen"],
    )
    def test_error_in_name(self, name):
        assert LoggedEvent(id=1, direction=EventDirection.SYSTEM, event_name=name, payload=None).is_error

    def test_error_in_response_status_details(self):
        payload = {"type": "response.done", "response": {"status_details": {"error": {"code": "x"}}}}
        event = LoggedEvent(id=1, direction=EventDirection.SERVER, event_name="response.done", payload=payload)
        assert event.is_error

    def test_regular_event(self):
        event = LoggedEvent(id=1, direction=EventDirection.SERVER, event_name="response.done", payload={})
        assert not event.is_error


class TestFilter:
    @pytest.fixture
    def populated(self, event_log):
        event_log.record(EventDirection.CLIENT, "pre-session", None, None)
        event_log.record(EventDirection.CLIENT, "a1", None, "conv-a")
        event_log.record(EventDirection.SERVER, "b1", None, "conv-b")
        event_log.record(EventDirection.SERVER, "a2", None, "conv-a")
        return event_log

    def test_filter_by_conversation_preserves_order(self, populated):
        assert [e.event_name for e in populated.filter("conv-a")] == ["a1", "a2"]

    def test_filter_none_returns_full_log(self, populated):
        assert [e.event_name for e in populated.filter(None)] == ["pre-session", "a1", "b1", "a2"]

    def test_filter_unknown_conversation(self, populated):
        assert populated.filter("missing") == []

    def test_conversation_ids_first_seen_order(self, populated):
        assert populated.conversation_ids() == ["conv-a", "conv-b"]


class TestToggleExpand:
    def test_toggle_flips_one_record(self, event_log):
        first = event_log.record(EventDirection.SYSTEM, "one")
        second = event_log.record(EventDirection.SYSTEM, "two")

        event_log.toggle_expand(first.id)

        assert first.expanded is True
        assert second.expanded is False

        event_log.toggle_expand(first.id)
        assert first.expanded is False

    def test_toggle_unknown_id(self, event_log):
        assert event_log.toggle_expand(999) is None


class TestClear:
    def test_clear_keeps_ids_increasing(self, event_log):
        before = event_log.record(EventDirection.SYSTEM, "x")
        event_log.clear()
        after = event_log.record(EventDirection.SYSTEM, "y")

        assert len(event_log) == 1
        assert after.id > before.id


def test_process_wide_instance_is_shared():
    assert get_event_log() is get_event_log()
    assert isinstance(get_event_log(), EventCorrelationLog)
