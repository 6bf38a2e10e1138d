"""HTTP transport for DigestSession against POST /api/digest."""

import logging
from collections.abc import Iterator
from typing import Any

import requests
from pydantic import TypeAdapter, ValidationError

from models.digest import FinishEvent, StreamEvent, TextDeltaEvent

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000"
DIGEST_PATH = "/api/digest"
DONE_PAYLOAD = "[DONE]"

_event_adapter: TypeAdapter = TypeAdapter(StreamEvent)


class DigestClientError(Exception):
    """The API rejected the request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def parse_stream_event(payload: str):
    """Decode one SSE data payload; unknown event types return None."""
    try:
        return _event_adapter.validate_json(payload)
    except ValidationError:
        logger.debug("Skipping unrecognized stream event: %s", payload)
        return None


def iter_sse_payloads(lines) -> Iterator[str]:
    """Yield ``data:`` payloads up to the terminal marker."""
    for line in lines:
        if not line or not line.startswith("data:"):
            continue
        payload = line[len("data:") :].strip()
        if payload == DONE_PAYLOAD:
            return
        yield payload


class DigestClient:
    """Sends digest requests and yields stream events.

    Works against both deployment variants: an SSE stream is decoded event
    by event, a buffered JSON envelope is turned into one text delta.
    """

    def __init__(
        self, base_url: str = DEFAULT_BASE_URL, timeout_seconds: int = 60, session=None
    ):
        self.url = base_url.rstrip("/") + DIGEST_PATH
        self.timeout_seconds = timeout_seconds
        self.http = session or requests

    def __call__(self, messages: list[dict[str, Any]], timeframe: str):
        return self.stream(messages, timeframe)

    def stream(self, messages: list[dict[str, Any]], timeframe: str) -> Iterator[Any]:
        """POST the conversation and yield parsed events.

        Raises:
            DigestClientError: Non-200 response or transport failure
        """
        try:
            response = self.http.post(
                self.url,
                json={"messages": messages, "timeframe": timeframe},
                stream=True,
                timeout=self.timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            raise DigestClientError(f"Request failed: {e}") from e

        with response:
            if response.status_code != 200:
                raise DigestClientError(
                    _error_message(response), status_code=response.status_code
                )

            content_type = response.headers.get("content-type", "")
            if content_type.startswith("application/json"):
                envelope = response.json()
                if not envelope.get("success"):
                    raise DigestClientError(
                        envelope.get("error", "Request failed"), status_code=200
                    )
                yield TextDeltaEvent(delta=envelope.get("data") or "")
                yield FinishEvent()
                return

            lines = response.iter_lines(decode_unicode=True)
            for payload in iter_sse_payloads(lines):
                event = parse_stream_event(payload)
                if event is not None:
                    yield event


def _error_message(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"Request failed with status {response.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return body["error"]
    return f"Request failed with status {response.status_code}"
