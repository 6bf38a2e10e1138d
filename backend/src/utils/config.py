"""Runtime configuration for the Digest API."""

import logging
import os
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Claude Sonnet 4 via cross-region inference profile
DEFAULT_MODEL_ID = "us.anthropic.claude-sonnet-4-20250514-v1:0"
DEFAULT_REGION = "us-west-2"
DEFAULT_MAX_TOOL_ROUNDS = 5
DEFAULT_REQUEST_TIMEOUT_SECONDS = 60
DEFAULT_MAX_TOKENS = 4096


class DigestSettings(BaseModel):
    """Settings resolved from the process environment."""

    bedrock_api_key: str | None = Field(
        None, description="Bedrock API key (AWS_BEARER_TOKEN_BEDROCK)"
    )
    exa_api_key: str | None = Field(None, description="Exa search API key")
    aws_region: str = DEFAULT_REGION
    model_id: str = DEFAULT_MODEL_ID
    response_mode: Literal["stream", "buffered"] = "stream"
    max_tool_rounds: int = Field(DEFAULT_MAX_TOOL_ROUNDS, ge=1)
    request_timeout_seconds: int = Field(DEFAULT_REQUEST_TIMEOUT_SECONDS, ge=1)
    max_tokens: int = Field(DEFAULT_MAX_TOKENS, ge=1)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s=%r, using %d", name, raw, default)
        return default
    if value < 1:
        logger.warning("%s must be positive, got %d, using %d", name, value, default)
        return default
    return value


def load_settings() -> DigestSettings:
    """Build settings from the current environment.

    Read on every request so a missing credential is reported per request
    instead of failing at import time.
    """
    mode = os.environ.get("DIGEST_RESPONSE_MODE", "stream").strip().lower()
    if mode not in ("stream", "buffered"):
        logger.warning("Unknown DIGEST_RESPONSE_MODE=%r, using 'stream'", mode)
        mode = "stream"

    return DigestSettings(
        bedrock_api_key=os.environ.get("AWS_BEARER_TOKEN_BEDROCK") or None,
        exa_api_key=os.environ.get("EXA_API_KEY") or None,
        aws_region=os.environ.get("AWS_DEFAULT_REGION", DEFAULT_REGION),
        model_id=os.environ.get("DIGEST_MODEL_ID", DEFAULT_MODEL_ID),
        response_mode=mode,
        max_tool_rounds=_int_from_env(
            "DIGEST_MAX_TOOL_ROUNDS", DEFAULT_MAX_TOOL_ROUNDS
        ),
        request_timeout_seconds=_int_from_env(
            "DIGEST_REQUEST_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT_SECONDS
        ),
        max_tokens=_int_from_env("DIGEST_MAX_TOKENS", DEFAULT_MAX_TOKENS),
        cors_origins=os.environ.get("CORS_ORIGINS", "*").split(","),
    )
