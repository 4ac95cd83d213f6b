"""Plugin base class for intercepting agent execution.

A plugin observes, and may override, every phase of an invocation. Each interception point is a method with a
no-op default, so a plugin only overrides the hooks it cares about. A hook returns None to let execution continue,
or a replacement value to short-circuit the phase; the `PluginManager` stops dispatch at the first plugin that
returns a value.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from ..models.request import ModelRequest, ModelResponse
from ..types.content import Message
from ..types.events import Event
from ..types.tools import AgentTool, ToolContext

if TYPE_CHECKING:
    from ..agent.base_agent import BaseAgent
    from ..agent.invocation_context import CallbackContext, InvocationContext

logger = logging.getLogger(__name__)


class PluginCallbackName(str, Enum):
    """Closed set of interception points."""

    ON_USER_MESSAGE = "on_user_message"
    BEFORE_RUN = "before_run"
    AFTER_RUN = "after_run"
    ON_EVENT = "on_event"
    BEFORE_AGENT = "before_agent"
    AFTER_AGENT = "after_agent"
    BEFORE_TOOL = "before_tool"
    AFTER_TOOL = "after_tool"
    BEFORE_MODEL = "before_model"
    AFTER_MODEL = "after_model"
    ON_TOOL_ERROR = "on_tool_error"
    ON_MODEL_ERROR = "on_model_error"

    @property
    def method_name(self) -> str:
        """Name of the plugin method implementing this interception point."""
        return f"{self.value}_callback"


class Plugin(ABC):
    """Base class for objects that intercept agent execution.

    Example:
        ```python
        class AuditPlugin(Plugin):
            name = "audit"

            async def before_tool_callback(self, *, tool, tool_args, tool_context):
                logger.info("tool=<%s> | calling", tool.tool_name)
                return None
        ```
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """A stable string identifier for the plugin."""
        ...

    async def on_user_message_callback(
        self, *, invocation_context: "InvocationContext", user_message: Message
    ) -> Optional[Message]:
        """Called with the user message before it is appended to the session. May return a replacement."""
        return None

    async def before_run_callback(self, *, invocation_context: "InvocationContext") -> Optional[Event]:
        """Called before the root agent runs. A returned event ends the run."""
        return None

    async def after_run_callback(self, *, invocation_context: "InvocationContext") -> None:
        """Called after the run completes."""
        return None

    async def on_event_callback(self, *, invocation_context: "InvocationContext", event: Event) -> Optional[Event]:
        """Called for every event before it is persisted and yielded. May return a replacement."""
        return None

    async def before_agent_callback(
        self, *, agent: "BaseAgent", callback_context: "CallbackContext"
    ) -> Optional[Message]:
        """Called before an agent runs. Returned content ends the agent with that content."""
        return None

    async def after_agent_callback(
        self, *, agent: "BaseAgent", callback_context: "CallbackContext"
    ) -> Optional[Message]:
        """Called after an agent runs. Returned content is emitted as an extra final event."""
        return None

    async def before_model_callback(
        self, *, callback_context: "CallbackContext", model_request: ModelRequest
    ) -> Optional[ModelResponse]:
        """Called before a model call. A returned response replaces the call."""
        return None

    async def after_model_callback(
        self, *, callback_context: "CallbackContext", model_response: ModelResponse, model_request: ModelRequest
    ) -> Optional[ModelResponse]:
        """Called after a model call. May return a replacement response."""
        return None

    async def on_model_error_callback(
        self, *, callback_context: "CallbackContext", model_request: ModelRequest, error: Exception
    ) -> Optional[ModelResponse]:
        """Called when a model call fails. A returned response is used instead of raising."""
        return None

    async def before_tool_callback(
        self, *, tool: AgentTool, tool_args: dict[str, Any], tool_context: ToolContext
    ) -> Optional[Any]:
        """Called before a tool runs. A returned value replaces the call."""
        return None

    async def after_tool_callback(
        self, *, tool: AgentTool, tool_args: dict[str, Any], tool_context: ToolContext, result: Any
    ) -> Optional[Any]:
        """Called after a tool runs. May return a replacement result."""
        return None

    async def on_tool_error_callback(
        self, *, tool: AgentTool, tool_args: dict[str, Any], tool_context: ToolContext, error: Exception
    ) -> Optional[Any]:
        """Called when a tool raises. A returned value is used as the result instead of raising."""
        return None

    def release_invocation(self, invocation_id: str) -> None:
        """Drop any state kept for an invocation.

        Called on every terminal path of an invocation, including consumer abandonment.

        Args:
            invocation_id: The finished invocation.
        """
        return None

    async def close(self) -> None:
        """Release resources held by the plugin."""
        return None
