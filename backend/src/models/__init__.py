"""Data models for Digest."""

from .digest import (
    DigestEnvelope,
    MessageRole,
    Timeframe,
    ValidatedDigestRequest,
)
from .session import (
    SessionMessage,
    SessionStatus,
    TextPart,
    ToolInvocation,
    ToolInvocationPart,
)

__all__ = [
    "DigestEnvelope",
    "MessageRole",
    "Timeframe",
    "ValidatedDigestRequest",
    "SessionMessage",
    "SessionStatus",
    "TextPart",
    "ToolInvocation",
    "ToolInvocationPart",
]
