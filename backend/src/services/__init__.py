"""Services for the Digest backend and client."""

from .digest_service import DigestService
from .digest_session import DigestSession
from .search_service import SearchService

__all__ = [
    "DigestService",
    "DigestSession",
    "SearchService",
]
