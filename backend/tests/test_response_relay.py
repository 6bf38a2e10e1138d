"""Tests for SSE encoding and the stream relay."""

import json

import pytest

from models.digest import (
    ErrorEvent,
    FinishEvent,
    StartEvent,
    TextDeltaEvent,
    ToolInputEvent,
)
from services.errors import InvalidRequestError, UpstreamRateLimitError
from services.response_relay import (
    DONE_MARKER,
    encode_sse,
    error_response,
    relay_events,
    success_response,
)


class TestEncodeSse:
    def test_frame_format(self):
        frame = encode_sse(TextDeltaEvent(delta="hi"))
        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
        assert json.loads(frame[len("data: ") :]) == {
            "type": "text-delta",
            "delta": "hi",
        }

    def test_uses_camel_case_aliases(self):
        frame = encode_sse(
            ToolInputEvent(
                tool_call_id="t1", tool_name="search_web", input={"searchQuery": "q"}
            )
        )
        payload = json.loads(frame[len("data: ") :])
        assert payload["toolCallId"] == "t1"
        assert payload["toolName"] == "search_web"

    def test_error_event(self):
        payload = json.loads(encode_sse(ErrorEvent(error_text="boom"))[6:])
        assert payload == {"type": "error", "errorText": "boom"}


class TestRelayEvents:
    def test_relays_and_terminates(self):
        body = list(relay_events([StartEvent(), TextDeltaEvent(delta="a"), FinishEvent()]))
        assert len(body) == 4
        assert body[-1] == DONE_MARKER

    def test_first_event_failure_raises_before_body(self):
        def events():
            raise UpstreamRateLimitError()
            yield  # pragma: no cover

        with pytest.raises(UpstreamRateLimitError):
            relay_events(events())

    def test_later_failure_becomes_error_event(self):
        def events():
            yield StartEvent()
            raise UpstreamRateLimitError()

        body = list(relay_events(events()))

        assert body[-1] == DONE_MARKER
        error = json.loads(body[-2][len("data: ") :])
        assert error["type"] == "error"
        assert error["errorText"] == "Too many requests. Please try again later."

    def test_unexpected_failure_is_masked(self):
        def events():
            yield StartEvent()
            raise RuntimeError("secret internals")

        body = list(relay_events(events()))

        error = json.loads(body[-2][len("data: ") :])
        assert error["errorText"] == "Failed to process request"
        assert "secret" not in "".join(body)

    def test_empty_producer(self):
        assert list(relay_events([])) == [DONE_MARKER]


class TestEnvelopes:
    def test_success(self):
        resp = success_response("### Top Themes")
        assert resp.status_code == 200
        assert json.loads(resp.body) == {"success": True, "data": "### Top Themes"}

    def test_error_uses_status_code(self):
        resp = error_response(InvalidRequestError("Invalid JSON in request body"))
        assert resp.status_code == 400
        assert json.loads(resp.body) == {
            "success": False,
            "error": "Invalid JSON in request body",
        }
