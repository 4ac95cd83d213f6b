"""Event (turn) type definitions.

An `Event` is the immutable record of one exchange unit in an invocation: a user message, a model turn, the results
of a batch of tool calls, a streamed text fragment or a terminal error. The runtime stream is an async generator of
events, and each event is exactly one of the variants described by `EventKind`.
"""

import copy
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .content import Message, text_of
from .tools import ToolResult, ToolUse

_timestamp_lock = threading.Lock()
_last_timestamp = 0.0


def _next_timestamp() -> float:
    """Return a wall-clock timestamp strictly greater than any previously issued one."""
    global _last_timestamp
    with _timestamp_lock:
        now = time.time()
        if now <= _last_timestamp:
            now = _last_timestamp + 1e-6
        _last_timestamp = now
        return now


def new_event_id() -> str:
    """Generate a unique event identifier."""
    return uuid.uuid4().hex


class EventKind(Enum):
    """Variant of an item in the runtime stream."""

    PARTIAL = "partial"
    """A streamed text fragment of a turn that is still being generated."""

    COMPLETE = "complete"
    """A finished turn."""

    ERROR = "error"
    """A terminal error."""


@dataclass(frozen=True)
class EventActions:
    """Side effects requested by the turn that produced an event.

    Attributes:
        escalate: The author asks the enclosing loop to stop.
        skip_summarization: The turn ends the agent's run without another model call.
        state_delta: Session state changes carried by the event.
    """

    escalate: bool = False
    skip_summarization: bool = False
    state_delta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Event:
    """Immutable record of one exchange unit.

    Attributes:
        invocation_id: Identifier of the invocation that produced the event.
        author: "user", the name of an agent, or the name of a tool.
        content: Role plus content blocks carried by the event.
        partial: Whether the event is a streamed fragment of an unfinished turn.
        turn_complete: Whether the event closes the author's turn.
        error_code: Machine-readable error identifier of an error event.
        error_message: Human-readable error description of an error event.
        branch: Dotted path of the agent branch that produced the event.
        actions: Side effects requested by the turn.
        custom_metadata: Free-form metadata attached by the producer.
        id: Unique identifier of the event.
        timestamp: Monotonically increasing creation time in seconds.
    """

    invocation_id: str
    author: str
    content: Optional[Message] = None
    partial: bool = False
    turn_complete: bool = False
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    branch: Optional[str] = None
    actions: EventActions = field(default_factory=EventActions)
    custom_metadata: Optional[dict[str, Any]] = None
    id: str = field(default_factory=new_event_id)
    timestamp: float = field(default_factory=_next_timestamp)

    def __post_init__(self) -> None:
        """Detach the content from the caller so later mutations of the source cannot leak in."""
        if self.content is not None:
            object.__setattr__(self, "content", copy.deepcopy(self.content))
        if self.custom_metadata is not None:
            object.__setattr__(self, "custom_metadata", copy.deepcopy(self.custom_metadata))

    @classmethod
    def from_exception(
        cls, invocation_id: str, author: str, exception: BaseException, branch: Optional[str] = None, **kwargs: Any
    ) -> "Event":
        """Create a terminal error event describing an exception.

        Args:
            invocation_id: Identifier of the invocation.
            author: Author of the error event.
            exception: The error being reported.
            branch: Branch that produced the error.
            **kwargs: Additional event fields.

        Returns:
            The error event.
        """
        return cls(
            invocation_id=invocation_id,
            author=author,
            error_code=type(exception).__name__,
            error_message=str(exception),
            turn_complete=True,
            branch=branch,
            **kwargs,
        )

    @property
    def kind(self) -> EventKind:
        """The stream variant of this event."""
        if self.error_code is not None:
            return EventKind.ERROR
        if self.partial:
            return EventKind.PARTIAL
        return EventKind.COMPLETE

    @property
    def text(self) -> str:
        """Concatenated text of the event content."""
        return text_of(self.content)

    def tool_uses(self) -> list[ToolUse]:
        """Tool uses requested in this event, in request order."""
        if not self.content:
            return []
        return [block["toolUse"] for block in self.content["content"] if "toolUse" in block]

    def tool_results(self) -> list[ToolResult]:
        """Tool results carried by this event, in request order."""
        if not self.content:
            return []
        return [block["toolResult"] for block in self.content["content"] if "toolResult" in block]

    def is_final_response(self) -> bool:
        """Whether this event is the final output of its author's turn.

        Error events, tool results that skip summarization and complete model turns without tool uses are final.
        """
        if self.kind is EventKind.ERROR:
            return True
        if self.partial:
            return False
        if self.actions.skip_summarization:
            return True
        return not self.tool_uses() and not self.tool_results()
