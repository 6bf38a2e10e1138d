"""Client session state for the Digest UI.

Tracks the input, timeframe, conversation, request status and search
history of one user. Persistence, transport and clipboard are injected so
the session itself holds no global state.
"""

import logging
import time
from collections.abc import Callable, Iterable
from typing import Any

from models.digest import (
    ErrorEvent,
    FinishEvent,
    MessageRole,
    TextDeltaEvent,
    Timeframe,
    ToolInputEvent,
    ToolOutputEvent,
)
from models.session import (
    SessionMessage,
    SessionStatus,
    TextPart,
    ToolInvocation,
    ToolInvocationPart,
)
from utils.history_store import HistoryStore

logger = logging.getLogger(__name__)

MAX_HISTORY = 5
HISTORY_DISPLAY_LENGTH = 35
COPIED_RESET_SECONDS = 2.0

EXAMPLE_QUERIES = [
    "What are agents saying about CRMs?",
    "Pain points with property management software",
    "Trends in real estate marketing tools",
]

Transport = Callable[[list[dict[str, Any]], str], Iterable[Any]]


# ---- History helpers ----


def add_to_history(query: str, history: list[str]) -> list[str]:
    """Front-insert the trimmed query, dropping duplicates and the overflow."""
    trimmed = query.strip()
    return [trimmed, *(h for h in history if h != trimmed)][:MAX_HISTORY]


def remove_from_history(query: str, history: list[str]) -> list[str]:
    """Remove the entry equal to ``query``; unchanged if there is none."""
    if query not in history:
        return list(history)
    updated = list(history)
    updated.remove(query)
    return updated


def truncate_for_display(text: str, max_length: int = HISTORY_DISPLAY_LENGTH) -> str:
    """Shorten long history entries for display. The stored value is untouched."""
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text


# ---- Message helpers ----


def get_message_text(message: SessionMessage) -> str:
    """Plain text of a message: its content, or its text parts joined."""
    if message.content:
        return message.content
    return "\n".join(p.text for p in message.parts if isinstance(p, TextPart))


def get_tool_invocations(message: SessionMessage) -> list[ToolInvocation]:
    return [
        p.tool_invocation for p in message.parts if isinstance(p, ToolInvocationPart)
    ]


def tool_activity_label(invocation: ToolInvocation) -> str:
    """Progress line shown while a tool call runs."""
    if invocation.tool_name == "search_web":
        search_query = invocation.args.get("searchQuery") or "content"
        return f'Scanning sources for: "{search_query}"...'
    return "Processing..."


class DigestSession:
    """State machine for one user's digest conversation.

    idle/ready --submit--> submitting --first event--> streaming
    --finish--> ready. A failed request lands in ``error``; recovery is a
    manual resubmission.
    """

    def __init__(
        self,
        transport: Transport,
        history_store: HistoryStore,
        clipboard: Callable[[str], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_event: Callable[[SessionMessage, Any], None] | None = None,
    ):
        """Initialize the session.

        Args:
            transport: Sends (messages, timeframe) and yields stream events
            history_store: Durable history storage, read once here
            clipboard: Writes text to the clipboard
            clock: Monotonic clock in seconds, used by the copied indicator
            on_event: Called with (assistant message, event) for each event
        """
        self.transport = transport
        self.history_store = history_store
        self.clipboard = clipboard
        self.clock = clock
        self.on_event = on_event

        self.input_value = ""
        self.timeframe = Timeframe.MONTH.value
        self.messages: list[SessionMessage] = []
        self.status = SessionStatus.IDLE
        self.error: str | None = None
        self._copied_at: float | None = None

        self.history: list[str] = history_store.load()

    # ---- Derived state ----

    @property
    def is_loading(self) -> bool:
        return self.status in (SessionStatus.SUBMITTING, SessionStatus.STREAMING)

    @property
    def controls_disabled(self) -> bool:
        """Input, timeframe, examples and submit are disabled while loading."""
        return self.is_loading

    @property
    def copied(self) -> bool:
        """True for two seconds after a successful copy."""
        if self._copied_at is None:
            return False
        if self.clock() - self._copied_at >= COPIED_RESET_SECONDS:
            self._copied_at = None
            return False
        return True

    @property
    def latest_assistant_message(self) -> SessionMessage | None:
        for message in reversed(self.messages):
            if message.role == MessageRole.ASSISTANT:
                return message
        return None

    @property
    def digest_result(self) -> str:
        """Markdown of the latest assistant message."""
        message = self.latest_assistant_message
        return get_message_text(message) if message else ""

    @property
    def history_display(self) -> list[tuple[str, str]]:
        """(display label, stored value) pairs for the recent searches list."""
        return [(truncate_for_display(h), h) for h in self.history]

    def is_latest(self, message: SessionMessage) -> bool:
        return bool(self.messages) and self.messages[-1] is message

    def result_status_label(self, message: SessionMessage) -> str:
        if self.is_loading and self.is_latest(message):
            return "Analysis In Progress"
        return "Analysis Complete"

    def can_copy(self, message: SessionMessage) -> bool:
        return not self.is_loading and self.is_latest(message)

    # ---- Input ----

    def set_input(self, value: str) -> None:
        if not self.controls_disabled:
            self.input_value = value

    def set_timeframe(self, timeframe: str) -> None:
        if not self.controls_disabled:
            self.timeframe = timeframe

    # ---- Submission ----

    def submit_form(self) -> bool:
        """Submit the current input; the input is cleared on success."""
        submitted = self.submit(self.input_value)
        if submitted:
            self.input_value = ""
        return submitted

    def handle_example_click(self, query: str) -> bool:
        """Submit an example or history entry."""
        return self.submit(query)

    def submit(self, query: str) -> bool:
        """Record the query in history and run the request.

        Blank input and submissions while a request is in flight are ignored.

        Returns:
            True if a request was sent
        """
        trimmed = query.strip()
        if not trimmed or self.is_loading:
            return False

        self._set_history(add_to_history(trimmed, self.history))
        self.messages.append(SessionMessage(role=MessageRole.USER, content=trimmed))
        self.status = SessionStatus.SUBMITTING
        self.error = None

        self._consume()
        return True

    def _request_messages(self) -> list[dict[str, Any]]:
        return [m.to_request_dict() for m in self.messages]

    def _consume(self) -> None:
        """Send the conversation and stream the reply into a new assistant message."""
        assistant: SessionMessage | None = None
        try:
            events: Iterable[Any] = self.transport(
                self._request_messages(), self.timeframe
            )
            for event in events:
                if assistant is None:
                    assistant = SessionMessage(role=MessageRole.ASSISTANT)
                    self.messages.append(assistant)
                    self.status = SessionStatus.STREAMING
                self._apply_event(assistant, event)
                if self.on_event:
                    self.on_event(assistant, event)
                if self.status in (SessionStatus.READY, SessionStatus.ERROR):
                    break
        except Exception as e:
            logger.warning("Digest request failed: %s", e)
            self.status = SessionStatus.ERROR
            self.error = str(e)
            return

        if self.is_loading:
            # Stream closed without a finish event
            self.status = SessionStatus.READY

    def _apply_event(self, assistant: SessionMessage, event: Any) -> None:
        if isinstance(event, TextDeltaEvent):
            last = assistant.parts[-1] if assistant.parts else None
            if isinstance(last, TextPart):
                last.text += event.delta
            else:
                assistant.parts.append(TextPart(text=event.delta))
        elif isinstance(event, ToolInputEvent):
            assistant.parts.append(
                ToolInvocationPart(
                    tool_invocation=ToolInvocation(
                        tool_call_id=event.tool_call_id,
                        tool_name=event.tool_name,
                        args=event.input,
                    )
                )
            )
        elif isinstance(event, ToolOutputEvent):
            for part in assistant.parts:
                if (
                    isinstance(part, ToolInvocationPart)
                    and part.tool_invocation.tool_call_id == event.tool_call_id
                ):
                    part.state = "result"
                    part.result = event.output
        elif isinstance(event, FinishEvent):
            self.status = SessionStatus.READY
        elif isinstance(event, ErrorEvent):
            self.status = SessionStatus.ERROR
            self.error = event.error_text

    # ---- History ----

    def remove_history_item(self, query: str) -> None:
        self._set_history(remove_from_history(query, self.history))

    def _set_history(self, history: list[str]) -> None:
        self.history = history
        self.history_store.save(history)

    # ---- Clipboard ----

    def copy_results(self) -> bool:
        """Copy the latest assistant output. Clipboard failures are ignored."""
        message = self.latest_assistant_message
        if message is None or self.clipboard is None:
            return False
        try:
            self.clipboard(get_message_text(message))
        except Exception as e:
            logger.debug("Clipboard write failed: %s", e)
            return False
        self._copied_at = self.clock()
        return True
