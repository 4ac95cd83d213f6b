"""Sequential tool executor implementation."""

from typing import TYPE_CHECKING, AsyncGenerator, Collection

from typing_extensions import override

from ...types.tools import ToolUse
from ._executor import ToolCallOutcome, ToolExecutor

if TYPE_CHECKING:  # pragma: no cover
    from ...agent.invocation_context import InvocationContext
    from ...agent.llm_agent import LlmAgent


class SequentialToolExecutor(ToolExecutor):
    """Sequential tool executor.

    Runs tool uses one at a time in request order. The first unhandled tool failure stops the batch.
    """

    @override
    async def _execute(
        self,
        agent: "LlmAgent",
        tool_uses: list[ToolUse],
        invocation_context: "InvocationContext",
        invalid_tool_use_ids: Collection[str],
    ) -> AsyncGenerator[ToolCallOutcome, None]:
        """Execute tools sequentially.

        Args:
            agent: The agent whose tools are executed.
            tool_uses: The tool uses, in request order.
            invocation_context: Context of the current invocation.
            invalid_tool_use_ids: Tool uses whose arguments could not be parsed.

        Yields:
            One outcome per tool use.
        """
        for tool_use in tool_uses:
            yield await ToolExecutor._stream(agent, tool_use, invocation_context, invalid_tool_use_ids)
