"""Request, response and stream event models for the Digest API."""

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Timeframe(str, Enum):
    """Recency window selected by the caller."""

    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"


class MessageRole(str, Enum):
    """Author of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"


class ValidatedDigestRequest(BaseModel):
    """A request that passed validation and is ready for prompt building."""

    messages: list[dict[str, Any]] = Field(
        ..., min_length=1, description="Client messages, oldest first"
    )
    query: str = Field("", description="Text of the latest message, if any")
    timeframe: str = Field(
        Timeframe.MONTH.value, description="Timeframe token, unresolved"
    )


class DigestEnvelope(BaseModel):
    """Buffered response body."""

    success: bool
    data: str | None = None
    error: str | None = None


# ---- Stream events ----


class _StreamEventBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class StartEvent(_StreamEventBase):
    type: Literal["start"] = "start"


class TextDeltaEvent(_StreamEventBase):
    type: Literal["text-delta"] = "text-delta"
    delta: str


class ToolInputEvent(_StreamEventBase):
    """The model asked for a tool call."""

    type: Literal["tool-input-available"] = "tool-input-available"
    tool_call_id: str = Field(..., alias="toolCallId")
    tool_name: str = Field(..., alias="toolName")
    input: dict[str, Any] = Field(default_factory=dict)


class ToolOutputEvent(_StreamEventBase):
    """A tool call finished and its output went back to the model."""

    type: Literal["tool-output-available"] = "tool-output-available"
    tool_call_id: str = Field(..., alias="toolCallId")
    output: Any = None


class FinishEvent(_StreamEventBase):
    type: Literal["finish"] = "finish"


class ErrorEvent(_StreamEventBase):
    type: Literal["error"] = "error"
    error_text: str = Field(..., alias="errorText")


StreamEvent = Annotated[
    StartEvent
    | TextDeltaEvent
    | ToolInputEvent
    | ToolOutputEvent
    | FinishEvent
    | ErrorEvent,
    Field(discriminator="type"),
]
