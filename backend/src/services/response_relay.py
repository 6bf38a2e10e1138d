"""Relays gateway output to HTTP clients, streamed (SSE) or buffered."""

import logging
from collections.abc import Iterable, Iterator

from fastapi.responses import JSONResponse, StreamingResponse

from models.digest import DigestEnvelope, ErrorEvent
from services.errors import DigestError, UpstreamError

logger = logging.getLogger(__name__)

DONE_MARKER = "data: [DONE]\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def encode_sse(event) -> str:
    """Encode a stream event as one SSE data frame."""
    return f"data: {event.model_dump_json(by_alias=True)}\n\n"


def relay_events(events: Iterable) -> Iterator[str]:
    """Prime the event producer and return an SSE body iterator.

    The first event is pulled before any bytes are sent, so failures of the
    first model call still raise here and map to a status code. Failures
    after that are sent as an ``error`` event; the terminal marker is always
    sent last.

    Raises:
        DigestError: The producer failed before emitting anything
    """
    iterator = iter(events)
    try:
        first = next(iterator)
    except StopIteration:
        first = None

    def body() -> Iterator[str]:
        try:
            if first is not None:
                yield encode_sse(first)
            for event in iterator:
                yield encode_sse(event)
        except DigestError as e:
            logger.error("Digest stream failed: %s", e.message)
            yield encode_sse(ErrorEvent(error_text=e.message))
        except Exception:
            logger.exception("Unexpected error while streaming digest")
            yield encode_sse(ErrorEvent(error_text=UpstreamError().message))
        yield DONE_MARKER

    return body()


def create_sse_response(body: Iterator[str]) -> StreamingResponse:
    """Create an SSE StreamingResponse."""
    return StreamingResponse(
        body,
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


def success_response(text: str) -> JSONResponse:
    """Buffered 200 envelope."""
    return JSONResponse(
        status_code=200,
        content=DigestEnvelope(success=True, data=text).model_dump(exclude_none=True),
    )


def error_response(error: DigestError) -> JSONResponse:
    """Error envelope with the status code carried by the error."""
    return JSONResponse(
        status_code=error.status_code,
        content=DigestEnvelope(success=False, error=error.message).model_dump(
            exclude_none=True
        ),
    )
