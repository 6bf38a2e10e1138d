"""Exa neural search delegate for the search_web tool."""

import logging
from typing import Any

import requests

from services.errors import (
    UpstreamAuthenticationError,
    UpstreamError,
    UpstreamRateLimitError,
)

logger = logging.getLogger(__name__)

EXA_SEARCH_URL = "https://api.exa.ai/search"
NUM_RESULTS = 5

# Communities the digest is allowed to draw from
INCLUDE_DOMAINS = ["reddit.com", "biggerpockets.com", "linkedin.com"]


class SearchService:
    """Forwards search_web calls to the Exa search API.

    Results are returned verbatim: no filtering, ranking or deduplication
    happens here.
    """

    def __init__(self, api_key: str, timeout_seconds: int = 60, session=None):
        """Initialize the search service.

        Args:
            api_key: Exa API key
            timeout_seconds: Per-call HTTP timeout
            session: Optional requests.Session (defaults to module-level requests)
        """
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.http = session or requests

    def search(self, search_query: str, start_date: str | None = None) -> list[Any]:
        """Run a neural search restricted to INCLUDE_DOMAINS.

        Args:
            search_query: Query text chosen by the model
            start_date: ISO date; only results published on or after it

        Returns:
            The raw ``results`` list from Exa

        Raises:
            UpstreamRateLimitError: Exa answered 429
            UpstreamAuthenticationError: Exa rejected the API key
            UpstreamError: Any other transport or HTTP failure
        """
        payload: dict[str, Any] = {
            "query": search_query,
            "type": "neural",
            "numResults": NUM_RESULTS,
            "includeDomains": INCLUDE_DOMAINS,
            "contents": {"text": True},
        }
        if start_date:
            payload["startPublishedDate"] = f"{start_date}T00:00:00.000Z"

        try:
            response = self.http.post(
                EXA_SEARCH_URL,
                json=payload,
                headers={"x-api-key": self.api_key},
                timeout=self.timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            logger.error("Search request failed for %r: %s", search_query, e)
            raise UpstreamError() from e

        if response.status_code == 429:
            logger.warning("Exa rate limited search for %r", search_query)
            raise UpstreamRateLimitError()
        if response.status_code in (401, 403):
            logger.error("Exa rejected API key (status %d)", response.status_code)
            raise UpstreamAuthenticationError()

        try:
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.HTTPError, ValueError) as e:
            logger.error("Search failed for %r: %s", search_query, e)
            raise UpstreamError() from e

        results = data.get("results", []) if isinstance(data, dict) else []
        logger.info("Search for %r returned %d results", search_query, len(results))
        return results
