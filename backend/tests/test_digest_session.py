"""Tests for the client session state machine and history helpers."""

from unittest.mock import Mock

import pytest

from models.digest import (
    ErrorEvent,
    FinishEvent,
    StartEvent,
    TextDeltaEvent,
    ToolInputEvent,
    ToolOutputEvent,
)
from models.session import SessionStatus, ToolInvocation
from services.digest_session import (
    DigestSession,
    add_to_history,
    get_tool_invocations,
    remove_from_history,
    tool_activity_label,
    truncate_for_display,
)
from utils.history_store import InMemoryHistoryStore


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def _stream(*deltas):
    return [StartEvent(), *(TextDeltaEvent(delta=d) for d in deltas), FinishEvent()]


@pytest.fixture
def transport():
    return Mock(return_value=_stream("### Top Themes\n", "CRM fatigue."))


@pytest.fixture
def store():
    return InMemoryHistoryStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session(transport, store, clock):
    return DigestSession(
        transport=transport, history_store=store, clipboard=Mock(), clock=clock
    )


# ---------------------------------------------------------------------------
# History helpers
# ---------------------------------------------------------------------------


class TestHistoryHelpers:
    def test_add_front_inserts_trimmed(self):
        assert add_to_history("  new  ", ["old"]) == ["new", "old"]

    def test_add_moves_duplicate_to_front(self):
        assert add_to_history("b", ["a", "b", "c"]) == ["b", "a", "c"]

    def test_add_caps_at_five(self):
        history = ["1", "2", "3", "4", "5"]
        assert add_to_history("6", history) == ["6", "1", "2", "3", "4"]

    def test_remove(self):
        assert remove_from_history("b", ["a", "b", "c"]) == ["a", "c"]

    def test_remove_missing_is_noop(self):
        assert remove_from_history("z", ["a", "b"]) == ["a", "b"]

    def test_truncate_at_limit_unchanged(self):
        text = "x" * 35
        assert truncate_for_display(text) == text

    def test_truncate_long_entry(self):
        text = "x" * 64
        truncated = truncate_for_display(text)
        assert len(truncated) == 38
        assert truncated.endswith("...")


class TestToolActivityLabel:
    def test_search_label(self):
        invocation = ToolInvocation(
            tool_call_id="t1", tool_name="search_web", args={"searchQuery": "CRM"}
        )
        assert tool_activity_label(invocation) == 'Scanning sources for: "CRM"...'

    def test_search_without_query(self):
        invocation = ToolInvocation(tool_call_id="t1", tool_name="search_web")
        assert tool_activity_label(invocation) == 'Scanning sources for: "content"...'

    def test_other_tool(self):
        invocation = ToolInvocation(tool_call_id="t1", tool_name="other")
        assert tool_activity_label(invocation) == "Processing..."


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


class TestSubmit:
    def test_initial_state(self, session):
        assert session.status == SessionStatus.IDLE
        assert session.timeframe == "month"
        assert session.messages == []
        assert session.history == []

    def test_successful_submission(self, session, transport, store):
        session.set_input("  CRM pain points  ")

        assert session.submit_form() is True

        assert session.status == SessionStatus.READY
        assert session.input_value == ""
        assert session.history == ["CRM pain points"]
        assert store.load() == ["CRM pain points"]
        transport.assert_called_once_with(
            [{"role": "user", "content": "CRM pain points"}], "month"
        )
        assert session.digest_result == "### Top Themes\nCRM fatigue."

    @pytest.mark.parametrize("value", ["", "   \n"])
    def test_blank_input_ignored(self, session, transport, value):
        session.set_input(value)

        assert session.submit_form() is False

        transport.assert_not_called()
        assert session.messages == []
        assert session.history == []

    def test_timeframe_sent(self, session, transport):
        session.set_timeframe("quarter")
        session.submit("q")
        assert transport.call_args[0][1] == "quarter"

    def test_example_click_submits(self, session, transport):
        assert session.handle_example_click("What are agents saying about CRMs?")
        assert session.history == ["What are agents saying about CRMs?"]

    def test_follow_up_sends_full_conversation(self, session, transport):
        session.submit("first")
        session.submit("second")

        messages = transport.call_args[0][0]
        assert [m["role"] for m in messages] == ["user", "assistant", "user"]
        assert messages[1]["content"] == "### Top Themes\nCRM fatigue."

    def test_loading_states_seen_by_callback(self, store, clock):
        statuses = []

        def on_event(message, event):
            statuses.append(session.status)

        session = DigestSession(
            transport=lambda messages, timeframe: _stream("a"),
            history_store=store,
            clock=clock,
            on_event=on_event,
        )
        session.submit("q")

        assert statuses[0] == SessionStatus.STREAMING
        assert statuses[-1] == SessionStatus.READY

    def test_controls_disabled_while_streaming(self, store, clock):
        seen = {}

        def on_event(message, event):
            if isinstance(event, StartEvent):
                seen["disabled"] = session.controls_disabled
                seen["submitted"] = session.submit("another")
                session.set_input("changed")
                session.set_timeframe("week")
                seen["label"] = session.result_status_label(message)
                seen["can_copy"] = session.can_copy(message)

        session = DigestSession(
            transport=lambda messages, timeframe: _stream("a"),
            history_store=store,
            clock=clock,
            on_event=on_event,
        )
        session.submit("q")

        assert seen == {
            "disabled": True,
            "submitted": False,
            "label": "Analysis In Progress",
            "can_copy": False,
        }
        assert session.input_value == ""
        assert session.timeframe == "month"
        assert session.result_status_label(session.messages[-1]) == "Analysis Complete"

    def test_stream_without_finish_ends_ready(self, session, transport):
        transport.return_value = [StartEvent(), TextDeltaEvent(delta="partial")]
        session.submit("q")
        assert session.status == SessionStatus.READY


class TestErrors:
    def test_error_event(self, session, transport):
        transport.return_value = [
            StartEvent(),
            ErrorEvent(error_text="Too many requests. Please try again later."),
        ]

        session.submit("q")

        assert session.status == SessionStatus.ERROR
        assert session.error == "Too many requests. Please try again later."

    def test_transport_exception(self, session, transport):
        transport.side_effect = RuntimeError("connection refused")

        session.submit("q")

        assert session.status == SessionStatus.ERROR
        assert "connection refused" in session.error
        assert session.history == ["q"]

    def test_resubmit_after_error(self, session, transport):
        transport.side_effect = [RuntimeError("down"), _stream("ok")]

        session.submit("q")
        session.submit("q")

        assert session.status == SessionStatus.READY
        assert session.error is None


class TestToolParts:
    def test_tool_invocation_lifecycle(self, session, transport):
        transport.return_value = [
            StartEvent(),
            ToolInputEvent(
                tool_call_id="t1", tool_name="search_web", input={"searchQuery": "CRM"}
            ),
            ToolOutputEvent(tool_call_id="t1", output={"results": []}),
            TextDeltaEvent(delta="### Top Themes"),
            FinishEvent(),
        ]

        session.submit("q")

        message = session.latest_assistant_message
        invocations = get_tool_invocations(message)
        assert len(invocations) == 1
        assert invocations[0].args == {"searchQuery": "CRM"}
        tool_part = message.parts[0]
        assert tool_part.state == "result"
        assert tool_part.result == {"results": []}
        assert session.digest_result == "### Top Themes"


# ---------------------------------------------------------------------------
# History persistence
# ---------------------------------------------------------------------------


class TestHistoryPersistence:
    def test_loaded_at_init(self, transport):
        store = InMemoryHistoryStore('["earlier"]')
        session = DigestSession(transport=transport, history_store=store)
        assert session.history == ["earlier"]

    def test_corrupt_history_is_empty(self, transport):
        store = InMemoryHistoryStore("{broken")
        session = DigestSession(transport=transport, history_store=store)
        assert session.history == []

    def test_remove_item_persists(self, transport):
        store = InMemoryHistoryStore('["a", "b"]')
        session = DigestSession(transport=transport, history_store=store)

        session.remove_history_item("a")

        assert session.history == ["b"]
        assert store.load() == ["b"]

    def test_history_display_truncates(self, transport):
        long_query = "x" * 64
        store = InMemoryHistoryStore(f'["{long_query}"]')
        session = DigestSession(transport=transport, history_store=store)

        label, value = session.history_display[0]

        assert label == "x" * 35 + "..."
        assert value == long_query


# ---------------------------------------------------------------------------
# Clipboard
# ---------------------------------------------------------------------------


class TestCopyResults:
    def test_copy_sets_indicator_for_two_seconds(self, session, clock):
        session.submit("q")

        assert session.copy_results() is True
        session.clipboard.assert_called_once_with("### Top Themes\nCRM fatigue.")
        assert session.copied is True

        clock.now += 1.9
        assert session.copied is True
        clock.now += 0.2
        assert session.copied is False

    def test_nothing_to_copy(self, session):
        assert session.copy_results() is False
        assert session.copied is False

    def test_clipboard_failure_ignored(self, session):
        session.clipboard.side_effect = OSError("no clipboard")
        session.submit("q")

        assert session.copy_results() is False
        assert session.copied is False
        assert session.status == SessionStatus.READY
