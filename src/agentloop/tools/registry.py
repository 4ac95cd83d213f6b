"""Registry of the tools available to an agent."""

import logging
from typing import Any, Iterable, Optional

from ..types.tools import AgentTool, ToolSpec
from .decorator import DecoratedFunctionTool, tool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Contains the collection of tools available to an agent, keyed by tool name."""

    def __init__(self, tools: Optional[Iterable[Any]] = None) -> None:
        """Initialize the registry.

        Args:
            tools: Tools to register right away. See `process_tools`.
        """
        self.registry: dict[str, AgentTool] = {}
        if tools:
            self.process_tools(tools)

    def process_tools(self, tools: Iterable[Any]) -> list[str]:
        """Register a batch of tools.

        Args:
            tools: `AgentTool` instances or plain callables. Callables are wrapped with `@tool`.

        Returns:
            The names of the registered tools.

        Raises:
            ValueError: If an item is neither a tool nor a callable, or a name is registered twice.
        """
        tool_names = []
        for item in tools:
            if isinstance(item, AgentTool):
                agent_tool = item
            elif callable(item):
                agent_tool = tool(item)
            else:
                raise ValueError(f"tool=<{item!r}> | unrecognized tool specification")

            self.register_tool(agent_tool)
            tool_names.append(agent_tool.tool_name)

        return tool_names

    def register_tool(self, agent_tool: AgentTool) -> None:
        """Register a tool.

        Args:
            agent_tool: The tool to register.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        name = agent_tool.tool_name
        if name in self.registry:
            raise ValueError(f"tool_name=<{name}> | tool already registered")

        logger.debug(
            "tool_name=<%s>, tool_type=<%s>, is_decorated=<%s> | registering tool",
            name,
            agent_tool.tool_type,
            isinstance(agent_tool, DecoratedFunctionTool),
        )
        self.registry[name] = agent_tool

    def get(self, tool_name: str) -> Optional[AgentTool]:
        """Look up a tool by name.

        Args:
            tool_name: The tool name.

        Returns:
            The tool, or None if it is not registered.
        """
        return self.registry.get(tool_name)

    def get_all_tool_specs(self) -> list[ToolSpec]:
        """Specifications of every registered tool, in registration order."""
        return [agent_tool.tool_spec for agent_tool in self.registry.values()]

    @property
    def tool_names(self) -> list[str]:
        """Names of every registered tool."""
        return list(self.registry)

    def __contains__(self, tool_name: object) -> bool:
        """Whether a tool name is registered."""
        return tool_name in self.registry

    def __len__(self) -> int:
        """Number of registered tools."""
        return len(self.registry)
