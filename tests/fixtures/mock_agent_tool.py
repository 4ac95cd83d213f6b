import asyncio
from typing import Any, Optional

from agentloop.types.tools import AgentTool, ToolContext, ToolSpec, ToolUse


class MockAgentTool(AgentTool):
    """Mock AgentTool implementation for testing."""

    def __init__(self, name: str, result: Any = None, error: Optional[Exception] = None, delay: float = 0.0):
        super().__init__()
        self._tool_name = name
        self.result = result if result is not None else f"Mock result for {name}"
        self.error = error
        self.delay = delay
        self.invocations: list[ToolUse] = []

    @property
    def tool_name(self) -> str:
        return self._tool_name

    @property
    def tool_spec(self) -> ToolSpec:
        return {
            "name": self._tool_name,
            "description": "Mock tool",
            "inputSchema": {"json": {"type": "object", "properties": {}}},
        }

    @property
    def tool_type(self) -> str:
        return "mock"

    async def invoke(self, tool_use: ToolUse, tool_context: ToolContext) -> Any:
        self.invocations.append(tool_use)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result
