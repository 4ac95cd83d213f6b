"""Tool-related type definitions.

This module defines the shapes exchanged between the model, the runtime and tools: tool specifications advertised
to the model, tool uses requested by it and tool results returned to it. It also defines the `AgentTool` interface
that every executable tool implements and the `ToolContext` handed to each invocation.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Optional

from typing_extensions import NotRequired, TypedDict

if TYPE_CHECKING:
    from ..agent.invocation_context import InvocationContext

JSONSchema = dict[str, Any]
"""Type alias for JSON Schema dictionaries."""


class ToolInputSchema(TypedDict):
    """Input schema of a tool, wrapped the way model providers expect it."""

    json: JSONSchema


class ToolSpec(TypedDict):
    """Specification for a tool that can be used by an agent.

    Attributes:
        name: The unique name of the tool.
        description: A human-readable description of what the tool does.
        inputSchema: JSON Schema defining the expected input parameters.
    """

    name: str
    description: str
    inputSchema: ToolInputSchema


class ToolUse(TypedDict):
    """A request from the model to use a specific tool with the provided input.

    Attributes:
        toolUseId: The unique identifier for this tool use, echoed back in the matching result.
        name: The name of the tool to invoke.
        input: The input parameters for the tool.
    """

    toolUseId: str
    name: str
    input: Any


class ToolResultContent(TypedDict, total=False):
    """Content returned by a tool execution.

    Attributes:
        text: Text content returned by the tool.
        json: JSON-serializable data returned by the tool.
    """

    text: str
    json: Any


ToolResultStatus = Literal["success", "error"]
"""Status of a tool execution result."""


class ToolResult(TypedDict):
    """Result of a tool execution.

    Attributes:
        toolUseId: The unique identifier of the tool use request that produced this result.
        status: Whether the tool execution succeeded or failed.
        content: List of result content returned by the tool.
    """

    toolUseId: str
    status: ToolResultStatus
    content: list[ToolResultContent]


class ToolChoice(TypedDict):
    """Optional hint forwarded to the model about which tool to use."""

    name: NotRequired[str]


def generate_tool_use_id() -> str:
    """Generate an identifier for a tool use the model left unnamed."""
    return f"tooluse_{uuid.uuid4().hex}"


@dataclass
class ToolContext:
    """Context handed to a single tool invocation.

    A tool that declares a `tool_context` parameter receives this object. Setting `escalate` asks an enclosing loop
    to stop after the current iteration; setting `skip_summarization` ends the agent's turn with the tool result
    instead of sending it back to the model.

    Attributes:
        tool_use: The tool use being executed.
        invocation_context: The context of the invocation the call belongs to.
        agent_name: Name of the agent executing the tool.
        escalate: Whether the tool asked the enclosing loop to stop.
        skip_summarization: Whether the tool result should end the agent's turn.
        state: Scratch space shared with plugin hooks for this call.
        error: The exception raised by the tool, once it has failed.
    """

    tool_use: ToolUse
    invocation_context: "InvocationContext"
    agent_name: str
    escalate: bool = False
    skip_summarization: bool = False
    state: dict[str, Any] = field(default_factory=dict)
    error: Optional[Exception] = None

    @property
    def invocation_id(self) -> str:
        """Identifier of the invocation the call belongs to."""
        return self.invocation_context.invocation_id

    @property
    def function_call_id(self) -> str:
        """Identifier of the tool use, shared with its result."""
        return self.tool_use["toolUseId"]


class AgentTool(ABC):
    """Abstract base class for all tools the runtime can execute."""

    @property
    @abstractmethod
    def tool_name(self) -> str:
        """The unique name of the tool used for identification and invocation."""
        pass

    @property
    @abstractmethod
    def tool_spec(self) -> ToolSpec:
        """Tool specification that describes its functionality and parameters."""
        pass

    @property
    def tool_type(self) -> str:
        """The type of the tool implementation."""
        return "python"

    @abstractmethod
    async def invoke(self, tool_use: ToolUse, tool_context: ToolContext) -> Any:
        """Invoke the tool.

        Args:
            tool_use: The tool use request, including the already validated input.
            tool_context: Context for the invocation.

        Returns:
            The raw value produced by the tool. The executor normalizes it into a `ToolResult`.

        Raises:
            Exception: Any failure of the tool is raised to the executor.
        """
        pass

    def validate_input(self, tool_input: Any) -> dict[str, Any]:
        """Validate the input of a tool use before invocation.

        Tools without an input model accept any mapping unchanged.

        Args:
            tool_input: The input proposed by the model.

        Returns:
            The validated input.

        Raises:
            ValueError: If the input is not a mapping.
        """
        if not isinstance(tool_input, dict):
            raise ValueError(f"tool_name=<{self.tool_name}> | tool input must be an object")
        return tool_input

    def __repr__(self) -> str:
        """Readable representation for logs."""
        return f"{type(self).__name__}(tool_name={self.tool_name!r})"
