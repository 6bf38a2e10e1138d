"""Pytest configuration and shared fixtures."""

from unittest.mock import Mock

import pytest

from models.digest import ValidatedDigestRequest
from utils.config import DigestSettings


@pytest.fixture
def settings():
    """Settings with both provider credentials configured."""
    return DigestSettings(
        bedrock_api_key="test-bedrock-key",
        exa_api_key="test-exa-key",
    )


@pytest.fixture
def provider_env(monkeypatch):
    """Environment with both provider credentials configured."""
    monkeypatch.setenv("AWS_BEARER_TOKEN_BEDROCK", "test-bedrock-key")
    monkeypatch.setenv("EXA_API_KEY", "test-exa-key")
    monkeypatch.delenv("DIGEST_RESPONSE_MODE", raising=False)
    monkeypatch.delenv("DIGEST_MAX_TOOL_ROUNDS", raising=False)
    return monkeypatch


@pytest.fixture
def digest_request():
    """A validated single-message request."""
    return ValidatedDigestRequest(
        messages=[{"role": "user", "content": "What are agents saying about CRMs?"}],
        query="What are agents saying about CRMs?",
        timeframe="month",
    )


@pytest.fixture
def mock_bedrock_client():
    """Create a mock Bedrock client with a simple text response."""
    client = Mock()
    # Default response: simple text, no tool use
    client.converse.return_value = {
        "output": {
            "message": {"content": [{"text": "### Top Themes\nCRM fatigue is real."}]}
        },
        "stopReason": "end_turn",
    }
    client.converse_stream.return_value = {
        "stream": [
            {"messageStart": {"role": "assistant"}},
            {
                "contentBlockDelta": {
                    "delta": {"text": "### Top Themes\n"},
                    "contentBlockIndex": 0,
                }
            },
            {
                "contentBlockDelta": {
                    "delta": {"text": "CRM fatigue is real."},
                    "contentBlockIndex": 0,
                }
            },
            {"contentBlockStop": {"contentBlockIndex": 0}},
            {"messageStop": {"stopReason": "end_turn"}},
        ]
    }
    return client


@pytest.fixture
def mock_search_service():
    """Create a mock SearchService returning one raw Exa result."""
    service = Mock()
    service.search.return_value = [
        {
            "title": "CRM rant",
            "url": "https://www.reddit.com/r/realtors/comments/abc",
            "text": "Every CRM I try is too complicated.",
        }
    ]
    return service
