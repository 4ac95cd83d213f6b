"""Streaming-related type definitions.

Models stream their responses as a sequence of converse-stream events. Exactly one key is set on each
`StreamEvent`.
"""

from typing import Literal

from typing_extensions import TypedDict

from .content import Metrics, Role, Usage

StopReason = Literal["end_turn", "tool_use", "max_tokens", "stop_sequence", "content_filtered"]
"""Why a model stopped generating. A response carrying tool uses always ends with "tool_use"."""


class MessageStartEvent(TypedDict):
    """Event signaling the start of a message."""

    role: Role


class ContentBlockStartToolUse(TypedDict):
    """The start of a tool use block.

    Attributes:
        name: The name of the tool that the model is requesting to use.
        toolUseId: The ID for the tool request. May be empty, in which case one is generated.
    """

    name: str
    toolUseId: str


class ContentBlockStart(TypedDict, total=False):
    """Content block start information."""

    toolUse: ContentBlockStartToolUse


class ContentBlockStartEvent(TypedDict, total=False):
    """Event signaling the start of a content block.

    Attributes:
        contentBlockIndex: Index of the content block within the message. Only stable within one turn.
        start: Information about the content block being started.
    """

    contentBlockIndex: int
    start: ContentBlockStart


class ContentBlockDeltaToolUse(TypedDict):
    """A fragment of the JSON-encoded input of a tool use."""

    input: str


class ContentBlockDelta(TypedDict, total=False):
    """A block of content in a streaming response."""

    text: str
    toolUse: ContentBlockDeltaToolUse


class ContentBlockDeltaEvent(TypedDict, total=False):
    """Event containing a delta update for a content block."""

    contentBlockIndex: int
    delta: ContentBlockDelta


class ContentBlockStopEvent(TypedDict, total=False):
    """Event signaling the end of a content block."""

    contentBlockIndex: int


class MessageStopEvent(TypedDict):
    """Event signaling the end of a message with a stop reason."""

    stopReason: StopReason


class MetadataEvent(TypedDict, total=False):
    """Event containing usage and latency reported by the model."""

    usage: Usage
    metrics: Metrics


class StreamEvent(TypedDict, total=False):
    """The messages output stream.

    Attributes:
        messageStart: Message start information.
        contentBlockStart: Content block start information.
        contentBlockDelta: Content block delta information.
        contentBlockStop: Content block stop information.
        messageStop: Message stop information.
        metadata: Usage and metrics information.
    """

    messageStart: MessageStartEvent
    contentBlockStart: ContentBlockStartEvent
    contentBlockDelta: ContentBlockDeltaEvent
    contentBlockStop: ContentBlockStopEvent
    messageStop: MessageStopEvent
    metadata: MetadataEvent
