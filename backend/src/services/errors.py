"""Exceptions raised by the digest pipeline.

Each error carries the HTTP status and the message shown to the caller.
"""

GENERIC_CONFIG_MESSAGE = "Server configuration error"
GENERIC_FAILURE_MESSAGE = "Failed to process request"
RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."


class DigestError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str = GENERIC_FAILURE_MESSAGE):
        super().__init__(message)
        self.message = message


class ConfigurationError(DigestError):
    """A required provider credential is missing."""

    status_code = 500


class InvalidRequestError(DigestError):
    """The caller sent malformed or out-of-bounds input."""

    status_code = 400


class UpstreamError(DigestError):
    """The model or search provider failed."""

    status_code = 500


class UpstreamAuthenticationError(UpstreamError):
    """A provider rejected our credentials. Provider detail is masked."""

    def __init__(self, message: str = GENERIC_CONFIG_MESSAGE):
        super().__init__(message)


class DeadlineExceededError(UpstreamError):
    """The request ran past its time budget between upstream calls."""


class UpstreamRateLimitError(UpstreamError):
    """A provider throttled the request."""

    status_code = 429

    def __init__(self, message: str = RATE_LIMIT_MESSAGE):
        super().__init__(message)
