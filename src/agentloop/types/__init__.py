"""Runtime type definitions."""

from .content import ContentBlock, Message, Messages, text_of
from .events import Event, EventActions, EventKind
from .tools import AgentTool, ToolContext, ToolResult, ToolSpec, ToolUse

__all__ = [
    "AgentTool",
    "ContentBlock",
    "Event",
    "EventActions",
    "EventKind",
    "Message",
    "Messages",
    "ToolContext",
    "ToolResult",
    "ToolSpec",
    "ToolUse",
    "text_of",
]
