"""Client-side session models: messages, message parts and status."""

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from ulid import ULID

from .digest import MessageRole


class SessionStatus(str, Enum):
    """Lifecycle of a single digest request as seen by the client."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    STREAMING = "streaming"
    READY = "ready"
    ERROR = "error"


class ToolInvocation(BaseModel):
    """A tool call requested by the model."""

    model_config = ConfigDict(populate_by_name=True)

    tool_call_id: str = Field(..., alias="toolCallId")
    tool_name: str = Field(..., alias="toolName")
    args: dict[str, Any] = Field(default_factory=dict)


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str = ""


class ToolInvocationPart(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["tool-invocation"] = "tool-invocation"
    tool_invocation: ToolInvocation = Field(..., alias="toolInvocation")
    state: Literal["call", "result"] = "call"
    result: Any = None


MessagePart = Annotated[TextPart | ToolInvocationPart, Field(discriminator="type")]


class SessionMessage(BaseModel):
    """A message in the client conversation.

    User messages carry their text in ``content``; assistant messages are
    built from ``parts`` while the response streams in.
    """

    id: str = Field(default_factory=lambda: str(ULID()))
    role: MessageRole
    content: str = ""
    parts: list[MessagePart] = Field(default_factory=list)

    def to_request_dict(self) -> dict[str, Any]:
        """Shape sent to POST /api/digest."""
        content = self.content or "\n".join(
            p.text for p in self.parts if isinstance(p, TextPart) and p.text
        )
        return {"role": self.role.value, "content": content}
