"""Content-related type definitions.

These types describe the conversation messages exchanged with models: a message has a role and an ordered list of
content blocks, and each block carries exactly one of text, a tool use or a tool result.
"""

from typing import Literal

from typing_extensions import NotRequired, TypedDict

from .tools import ToolResult, ToolUse

Role = Literal["user", "assistant"]
"""Role of a message sender.

- "user": Messages from the user (or tool results sent back to the model).
- "assistant": Messages produced by the model.
"""


class ContentBlock(TypedDict, total=False):
    """A block of content for a message.

    Attributes:
        text: Text to include in the message.
        toolUse: A tool use requested by the model.
        toolResult: The result of a tool execution.
    """

    text: str
    toolUse: ToolUse
    toolResult: ToolResult


class Message(TypedDict):
    """A message in a conversation with the agent.

    Attributes:
        role: The role of the message sender.
        content: The content blocks of the message.
    """

    role: Role
    content: list[ContentBlock]


Messages = list[Message]
"""A list of messages representing a conversation."""


class SystemContentBlock(TypedDict):
    """A text block of the system prompt."""

    text: str


class Usage(TypedDict):
    """Token usage reported by a model for one response.

    Attributes:
        inputTokens: Number of tokens sent in the request to the model.
        outputTokens: Number of tokens that the model generated for the request.
        totalTokens: Total number of tokens (input + output).
    """

    inputTokens: int
    outputTokens: int
    totalTokens: int


class Metrics(TypedDict):
    """Performance metrics reported by a model.

    Attributes:
        latencyMs: Latency of the model request in milliseconds.
    """

    latencyMs: int


class ErrorPayload(TypedDict):
    """Payload returned in place of a tool result when a call cannot be completed."""

    error: str
    raw_input: NotRequired[str]


def text_of(message: Message | None) -> str:
    """Concatenate the text blocks of a message.

    Args:
        message: The message to read, or None.

    Returns:
        The text of every text block joined in order, or an empty string.
    """
    if not message:
        return ""
    return "".join(block["text"] for block in message["content"] if "text" in block)
