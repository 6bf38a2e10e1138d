"""Digest model gateway: Claude on AWS Bedrock with the search_web tool."""

import json
import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from models.digest import (
    FinishEvent,
    StartEvent,
    TextDeltaEvent,
    ToolInputEvent,
    ToolOutputEvent,
    ValidatedDigestRequest,
)
from services.errors import (
    DeadlineExceededError,
    DigestError,
    UpstreamAuthenticationError,
    UpstreamError,
    UpstreamRateLimitError,
)
from services.prompt_builder import (
    FINAL_ROUND_INSTRUCTION,
    SYSTEM_PROMPT,
    build_model_messages,
)
from services.search_service import SearchService
from utils.config import DigestSettings
from utils.timeframe import resolve_start_date

logger = logging.getLogger(__name__)

SEARCH_TOOL_NAME = "search_web"

TOOL_DEFINITIONS = [
    {
        "toolSpec": {
            "name": SEARCH_TOOL_NAME,
            "description": "Search for real estate discussions and trends",
            "inputSchema": {
                "json": {
                    "type": "object",
                    "properties": {
                        "searchQuery": {
                            "type": "string",
                            "description": "The search query to execute",
                        }
                    },
                    "required": ["searchQuery"],
                }
            },
        }
    }
]

TEMPERATURE = 0.3

EXHAUSTED_TEXT = (
    "I couldn't finish the analysis within the search limit. "
    "Please try a narrower query."
)

THROTTLING_ERROR_CODES = {
    "ThrottlingException",
    "TooManyRequestsException",
    "ServiceQuotaExceededException",
}
AUTH_ERROR_CODES = {
    "AccessDeniedException",
    "UnrecognizedClientException",
    "ExpiredTokenException",
    "InvalidSignatureException",
}


def create_bedrock_client(settings: DigestSettings):
    """Create a bedrock-runtime client.

    botocore picks up the Bedrock API key from AWS_BEARER_TOKEN_BEDROCK.
    Retries are disabled; a failed request is resubmitted by the user.
    """
    return boto3.client(
        "bedrock-runtime",
        region_name=settings.aws_region,
        config=Config(
            read_timeout=settings.request_timeout_seconds,
            connect_timeout=10,
            retries={"total_max_attempts": 1},
        ),
    )


def translate_client_error(error: ClientError) -> DigestError:
    """Map a Bedrock ClientError onto the digest error taxonomy."""
    code = error.response.get("Error", {}).get("Code", "")
    if code in THROTTLING_ERROR_CODES:
        logger.warning("Bedrock throttled request: %s", code)
        return UpstreamRateLimitError()
    if code in AUTH_ERROR_CODES:
        logger.error("Bedrock authentication failed: %s", code)
        return UpstreamAuthenticationError()
    logger.error("Bedrock request failed: %s", error)
    return UpstreamError()


@contextmanager
def bedrock_errors():
    """Translate botocore failures raised inside the block."""
    try:
        yield
    except ClientError as e:
        raise translate_client_error(e) from e
    except BotoCoreError as e:
        logger.error("Bedrock transport error: %s", e)
        raise UpstreamError() from e


class DigestService:
    """Runs the tool-augmented reasoning loop for one digest request."""

    def __init__(
        self,
        settings: DigestSettings,
        bedrock=None,
        search_service: SearchService | None = None,
        today: date | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the digest service.

        Args:
            settings: Resolved settings (model, limits, credentials)
            bedrock: bedrock-runtime client; created from settings if omitted
            search_service: search_web delegate; created from settings if omitted
            today: Reference date for the search window (defaults to now)
            clock: Monotonic clock in seconds for the request deadline
        """
        self.settings = settings
        self.bedrock = bedrock or create_bedrock_client(settings)
        self.search_service = search_service or SearchService(
            api_key=settings.exa_api_key or "",
            timeout_seconds=settings.request_timeout_seconds,
        )
        self.today = today
        self.clock = clock

    # ---- Buffered ----

    def run_digest(self, request: ValidatedDigestRequest) -> str:
        """Run the loop with Converse and return the final markdown.

        Raises:
            UpstreamError: The model failed or produced no text
        """
        messages = build_model_messages(request.messages, request.timeframe)
        start_date = resolve_start_date(request.timeframe, self.today)
        deadline = self.clock() + self.settings.request_timeout_seconds
        text_parts: list[str] = []

        for round_number in range(1, self.settings.max_tool_rounds + 1):
            self._check_deadline(deadline)
            if round_number == self.settings.max_tool_rounds:
                self._add_final_round_instruction(messages)

            with bedrock_errors():
                response = self.bedrock.converse(**self._converse_kwargs(messages))

            message = response.get("output", {}).get("message", {})
            content_blocks = message.get("content", [])
            stop_reason = response.get("stopReason", "end_turn")
            text_parts = [b["text"] for b in content_blocks if b.get("text")]

            if stop_reason != "tool_use":
                break

            if round_number == self.settings.max_tool_rounds:
                logger.warning(
                    "Tool round limit (%d) reached without a final answer",
                    self.settings.max_tool_rounds,
                )
                return "\n".join(text_parts) or EXHAUSTED_TEXT

            tool_uses = [b["toolUse"] for b in content_blocks if "toolUse" in b]
            messages.append({"role": "assistant", "content": content_blocks})
            tool_results = [
                result
                for _, result in self._run_tools(tool_uses, start_date, deadline)
            ]
            messages.append({"role": "user", "content": tool_results})

        result_text = "\n".join(text_parts)
        if not result_text:
            logger.error("No text response received from the model")
            raise UpstreamError()
        return result_text

    # ---- Streaming ----

    def stream_digest(
        self, request: ValidatedDigestRequest
    ) -> Iterator[
        StartEvent | TextDeltaEvent | ToolInputEvent | ToolOutputEvent | FinishEvent
    ]:
        """Run the loop with ConverseStream, yielding events as they arrive.

        Errors are raised from the generator; the relay decides whether they
        become a status code or an in-stream error event.
        """
        messages = build_model_messages(request.messages, request.timeframe)
        start_date = resolve_start_date(request.timeframe, self.today)
        deadline = self.clock() + self.settings.request_timeout_seconds
        started = False

        for round_number in range(1, self.settings.max_tool_rounds + 1):
            self._check_deadline(deadline)
            if round_number == self.settings.max_tool_rounds:
                self._add_final_round_instruction(messages)

            with bedrock_errors():
                response = self.bedrock.converse_stream(
                    **self._converse_kwargs(messages)
                )
                if not started:
                    started = True
                    yield StartEvent()

                blocks: dict[int, dict[str, Any]] = {}
                stop_reason = "end_turn"
                for event in response.get("stream", []):
                    if "contentBlockStart" in event:
                        start = event["contentBlockStart"]
                        tool_use = start.get("start", {}).get("toolUse")
                        if tool_use:
                            blocks[start.get("contentBlockIndex", 0)] = {
                                "toolUseId": tool_use["toolUseId"],
                                "name": tool_use["name"],
                                "input_json": "",
                            }
                    elif "contentBlockDelta" in event:
                        block_delta = event["contentBlockDelta"]
                        index = block_delta.get("contentBlockIndex", 0)
                        delta = block_delta.get("delta", {})
                        if "text" in delta:
                            block = blocks.setdefault(index, {"text": ""})
                            block["text"] += delta["text"]
                            if delta["text"]:
                                yield TextDeltaEvent(delta=delta["text"])
                        elif "toolUse" in delta:
                            block = blocks.setdefault(
                                index,
                                {"toolUseId": "", "name": "", "input_json": ""},
                            )
                            block["input_json"] += delta["toolUse"].get("input", "")
                    elif "contentBlockStop" in event:
                        index = event["contentBlockStop"].get("contentBlockIndex", 0)
                        block = blocks.get(index)
                        if block is not None and "input_json" in block:
                            block["input"] = _parse_tool_input(block["input_json"])
                            yield ToolInputEvent(
                                tool_call_id=block["toolUseId"],
                                tool_name=block["name"],
                                input=block["input"],
                            )
                    elif "messageStop" in event:
                        stop_reason = event["messageStop"].get("stopReason", "end_turn")

            content_blocks = _assemble_content(blocks)
            if stop_reason != "tool_use":
                break
            if round_number == self.settings.max_tool_rounds:
                logger.warning(
                    "Tool round limit (%d) reached without a final answer",
                    self.settings.max_tool_rounds,
                )
                if not any("text" in b for b in content_blocks):
                    yield TextDeltaEvent(delta=EXHAUSTED_TEXT)
                break

            tool_uses = [b["toolUse"] for b in content_blocks if "toolUse" in b]
            messages.append({"role": "assistant", "content": content_blocks})
            tool_results = []
            tool_runs = self._run_tools(tool_uses, start_date, deadline)
            for tool_use_id, result in tool_runs:
                tool_results.append(result)
                yield ToolOutputEvent(
                    tool_call_id=tool_use_id,
                    output=result["toolResult"]["content"][0].get("json")
                    or result["toolResult"]["content"][0].get("text"),
                )
            messages.append({"role": "user", "content": tool_results})

        yield FinishEvent()

    # ---- Private methods ----

    def _converse_kwargs(self, messages: list[dict]) -> dict[str, Any]:
        return {
            "modelId": self.settings.model_id,
            "system": [{"text": SYSTEM_PROMPT}],
            "messages": messages,
            "toolConfig": {"tools": TOOL_DEFINITIONS},
            "inferenceConfig": {
                "maxTokens": self.settings.max_tokens,
                "temperature": TEMPERATURE,
            },
        }

    def _add_final_round_instruction(self, messages: list[dict]) -> None:
        """Tell the model to answer now; the last message is always a user turn."""
        messages[-1]["content"].append({"text": FINAL_ROUND_INSTRUCTION})

    def _check_deadline(self, deadline: float) -> None:
        """Raise once the request budget is spent; checked between upstream calls."""
        if self.clock() >= deadline:
            logger.error(
                "Digest exceeded its %ds request budget",
                self.settings.request_timeout_seconds,
            )
            raise DeadlineExceededError()

    def _run_tools(
        self, tool_uses: list[dict[str, Any]], start_date: str, deadline: float
    ) -> Iterator[tuple[str, dict[str, Any]]]:
        """Execute tool calls one after another.

        Yields:
            (toolUseId, toolResult content block) pairs

        Raises:
            UpstreamRateLimitError: The search provider throttled us
            UpstreamAuthenticationError: The search provider rejected our key
            DeadlineExceededError: The request budget ran out
        """
        for tool_use in tool_uses:
            self._check_deadline(deadline)
            tool_name = tool_use.get("name", "")
            tool_input = tool_use.get("input") or {}
            tool_use_id = tool_use.get("toolUseId", "")

            logger.info("Executing tool: %s with input: %s", tool_name, tool_input)

            try:
                results = self._execute_tool(tool_name, tool_input, start_date)
            except (UpstreamRateLimitError, UpstreamAuthenticationError):
                raise
            except Exception as e:
                logger.error("Tool execution error for %s: %s", tool_name, e)
                yield tool_use_id, {
                    "toolResult": {
                        "toolUseId": tool_use_id,
                        "content": [{"text": f"Error: {str(e)}"}],
                        "status": "error",
                    }
                }
                continue

            yield tool_use_id, {
                "toolResult": {
                    "toolUseId": tool_use_id,
                    "content": [{"json": {"results": results}}],
                }
            }

    def _execute_tool(
        self, tool_name: str, tool_input: dict, start_date: str
    ) -> list[Any]:
        if tool_name == SEARCH_TOOL_NAME:
            search_query = tool_input.get("searchQuery")
            if not isinstance(search_query, str) or not search_query:
                raise ValueError("searchQuery is required")
            return self.search_service.search(search_query, start_date=start_date)
        raise ValueError(f"Unknown tool: {tool_name}")


def _parse_tool_input(raw: str) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Could not parse streamed tool input: %r", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _assemble_content(blocks: dict[int, dict[str, Any]]) -> list[dict[str, Any]]:
    """Rebuild Converse content blocks from streamed fragments, in order."""
    content = []
    for index in sorted(blocks):
        block = blocks[index]
        if "input_json" in block:
            content.append(
                {
                    "toolUse": {
                        "toolUseId": block["toolUseId"],
                        "name": block["name"],
                        "input": block.get("input")
                        or _parse_tool_input(block["input_json"]),
                    }
                }
            )
        elif block.get("text"):
            content.append({"text": block["text"]})
    return content
