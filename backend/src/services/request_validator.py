"""Validation of incoming digest requests.

Runs before any external call. Checks are ordered and stop at the first
failure: credentials, JSON body, messages list, query length.
"""

import json
import logging
from typing import Any

from models.digest import MessageRole, Timeframe, ValidatedDigestRequest
from services.errors import ConfigurationError, InvalidRequestError
from utils.config import DigestSettings

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 500

MISSING_BEDROCK_KEY = "Server configuration error: Missing Bedrock API key"
MISSING_EXA_KEY = "Server configuration error: Missing Exa API key"
INVALID_JSON = "Invalid JSON in request body"
MESSAGES_REQUIRED = "Messages array is required and must not be empty"
QUERY_REQUIRED = "Query is required"
QUERY_EMPTY = "Query cannot be empty"
QUERY_TOO_LONG = f"Query exceeds maximum length of {MAX_QUERY_LENGTH} characters"
# Buffered {query} bodies keep their own wording
QUERY_LENGTH_LIMIT = f"Query must be {MAX_QUERY_LENGTH} characters or less"


def check_credentials(settings: DigestSettings) -> None:
    """Raise ConfigurationError naming the first missing provider key."""
    if not settings.bedrock_api_key:
        logger.error("AWS_BEARER_TOKEN_BEDROCK is not configured")
        raise ConfigurationError(MISSING_BEDROCK_KEY)
    if not settings.exa_api_key:
        logger.error("EXA_API_KEY is not configured")
        raise ConfigurationError(MISSING_EXA_KEY)


def parse_body(raw_body: bytes | str) -> dict[str, Any]:
    """Decode the request body as a JSON object."""
    try:
        body = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError):
        raise InvalidRequestError(INVALID_JSON)
    if not isinstance(body, dict):
        raise InvalidRequestError(INVALID_JSON)
    return body


def _messages_from_query(query: Any) -> list[dict[str, Any]]:
    if not query or not isinstance(query, str):
        raise InvalidRequestError(QUERY_REQUIRED)
    if not query.strip():
        raise InvalidRequestError(QUERY_EMPTY)
    # Length is checked on the raw string, before trimming
    if len(query) > MAX_QUERY_LENGTH:
        raise InvalidRequestError(QUERY_LENGTH_LIMIT)
    return [{"role": MessageRole.USER.value, "content": query.strip()}]


def latest_message_text(messages: list[Any]) -> str | None:
    """String content of the last message, or None when it has none."""
    last = messages[-1]
    if isinstance(last, dict) and isinstance(last.get("content"), str):
        return last["content"]
    return None


def validate_digest_request(
    raw_body: bytes | str, settings: DigestSettings
) -> ValidatedDigestRequest:
    """Validate a raw POST /api/digest body.

    Args:
        raw_body: Undecoded request body
        settings: Current settings (for the credential check)

    Returns:
        ValidatedDigestRequest with normalized messages

    Raises:
        ConfigurationError: A provider credential is missing (500)
        InvalidRequestError: The body is malformed or the query too long (400)
    """
    check_credentials(settings)

    body = parse_body(raw_body)
    messages = body.get("messages")

    # Buffered clients may send a bare query instead of a message list
    if messages is None and "query" in body:
        messages = _messages_from_query(body.get("query"))

    if not messages or not isinstance(messages, list):
        raise InvalidRequestError(MESSAGES_REQUIRED)

    query = latest_message_text(messages)
    if query is not None and len(query) > MAX_QUERY_LENGTH:
        raise InvalidRequestError(QUERY_TOO_LONG)

    timeframe = body.get("timeframe")
    if not isinstance(timeframe, str) or not timeframe:
        timeframe = Timeframe.MONTH.value

    normalized = [m if isinstance(m, dict) else {"content": m} for m in messages]

    return ValidatedDigestRequest(
        messages=normalized,
        query=query or "",
        timeframe=timeframe,
    )
