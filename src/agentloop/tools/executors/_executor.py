"""Abstract base class for tool executors.

Tool executors run the tool uses of a completed model turn. Each call goes through the plugin interception points
(`before_tool`, `on_tool_error`, `after_tool`), and the executor returns exactly one result per tool use regardless
of the order in which calls complete.
"""

import abc
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, AsyncGenerator, Collection, Optional

from ...telemetry.tracer import get_tracer
from ...types.exceptions import ToolInvocationException, ToolNotFoundException
from ...types.tools import ToolContext, ToolResult, ToolResultStatus, ToolUse

if TYPE_CHECKING:  # pragma: no cover
    from ...agent.invocation_context import InvocationContext
    from ...agent.llm_agent import LlmAgent

logger = logging.getLogger(__name__)


@dataclass
class ToolCallOutcome:
    """The result of one tool use together with the context it ran in.

    Attributes:
        tool_use: The tool use that was executed.
        result: The normalized tool result.
        tool_context: The context handed to the tool, carrying any actions it requested.
    """

    tool_use: ToolUse
    result: ToolResult
    tool_context: ToolContext


def to_tool_result(tool_use_id: str, value: Any, status: Optional[ToolResultStatus] = None) -> ToolResult:
    """Normalize a raw tool return value into a `ToolResult`.

    Args:
        tool_use_id: Identifier of the tool use the result answers.
        value: The value returned by the tool or substituted by a plugin.
        status: Explicit status. Defaults to "error" for mappings with an "error" key and "success" otherwise.

    Returns:
        The tool result.
    """
    if isinstance(value, dict) and "status" in value and "content" in value:
        return {"toolUseId": tool_use_id, "status": status or value["status"], "content": list(value["content"])}

    if status is None:
        status = "error" if isinstance(value, dict) and "error" in value else "success"

    if isinstance(value, str):
        content: list[Any] = [{"text": value}]
    elif value is None or isinstance(value, (dict, list, int, float, bool)):
        content = [{"json": value}]
    else:
        content = [{"text": str(value)}]

    return {"toolUseId": tool_use_id, "status": status, "content": content}


class ToolExecutor(abc.ABC):
    """Abstract base class for tool executors."""

    async def execute(
        self,
        agent: "LlmAgent",
        tool_uses: list[ToolUse],
        invocation_context: "InvocationContext",
        invalid_tool_use_ids: Collection[str] = (),
    ) -> list[ToolCallOutcome]:
        """Execute the tool uses of one model turn.

        Args:
            agent: The agent whose tools are executed.
            tool_uses: The tool uses, in request order.
            invocation_context: Context of the current invocation.
            invalid_tool_use_ids: Tool uses whose arguments could not be parsed.

        Returns:
            One outcome per tool use, in request order.

        Raises:
            ToolInvocationException: If a tool failed and no plugin substituted a result.
        """
        outcomes: dict[str, ToolCallOutcome] = {}
        async for outcome in self._execute(agent, tool_uses, invocation_context, invalid_tool_use_ids):
            outcomes[outcome.tool_use["toolUseId"]] = outcome

        return [outcomes[tool_use["toolUseId"]] for tool_use in tool_uses]

    @staticmethod
    async def _stream(
        agent: "LlmAgent",
        tool_use: ToolUse,
        invocation_context: "InvocationContext",
        invalid_tool_use_ids: Collection[str] = (),
    ) -> ToolCallOutcome:
        """Execute a single tool use through the plugin interception points.

        Args:
            agent: The agent whose tool is executed.
            tool_use: The tool use.
            invocation_context: Context of the current invocation.
            invalid_tool_use_ids: Tool uses whose arguments could not be parsed.

        Returns:
            The outcome of the call.

        Raises:
            ToolInvocationException: If the tool failed and no plugin substituted a result.
        """
        tool_name = tool_use["name"]
        tool_use_id = tool_use["toolUseId"]
        tool_context = ToolContext(tool_use=tool_use, invocation_context=invocation_context, agent_name=agent.name)
        plugins = invocation_context.plugin_manager

        if tool_use_id in invalid_tool_use_ids:
            logger.debug(
                "tool_name=<%s>, tool_use_id=<%s> | skipping tool with invalid arguments", tool_name, tool_use_id
            )
            return ToolCallOutcome(tool_use, to_tool_result(tool_use_id, tool_use["input"], "error"), tool_context)

        agent_tool = agent.tool_registry.get(tool_name)
        if agent_tool is None:
            error = ToolNotFoundException(tool_name)
            logger.warning("tool_name=<%s>, tool_use_id=<%s> | %s", tool_name, tool_use_id, error)
            return ToolCallOutcome(tool_use, to_tool_result(tool_use_id, {"error": str(error)}, "error"), tool_context)

        tool_args = tool_use["input"]
        tracer = get_tracer()
        span = tracer.start_tool_call_span(tool_use, invocation_context.invocation_id)
        try:
            status: Optional[ToolResultStatus] = None
            value = await plugins.run_before_tool_callback(
                tool=agent_tool, tool_args=tool_args, tool_context=tool_context
            )

            if value is not None:
                logger.debug(
                    "tool_name=<%s>, tool_use_id=<%s> | tool call overridden by plugin", tool_name, tool_use_id
                )
            else:
                try:
                    validated_input = agent_tool.validate_input(tool_args)
                    value = await agent_tool.invoke({**tool_use, "input": validated_input}, tool_context)
                except Exception as e:
                    logger.debug("tool_name=<%s>, tool_use_id=<%s> | tool raised: %s", tool_name, tool_use_id, e)
                    tool_context.error = e
                    value = await plugins.run_on_tool_error_callback(
                        tool=agent_tool, tool_args=tool_args, tool_context=tool_context, error=e
                    )
                    if value is None:
                        raise ToolInvocationException(tool_name, tool_use_id, e) from e
                    status = "error"

            altered = await plugins.run_after_tool_callback(
                tool=agent_tool, tool_args=tool_args, tool_context=tool_context, result=value
            )
            if altered is not None:
                value = altered

            result = to_tool_result(tool_use_id, value, status)
        except Exception as e:
            tracer.end_span_with_error(span, str(e), e)
            raise

        tracer.end_tool_call_span(span, result)
        return ToolCallOutcome(tool_use, result, tool_context)

    @abc.abstractmethod
    def _execute(
        self,
        agent: "LlmAgent",
        tool_uses: list[ToolUse],
        invocation_context: "InvocationContext",
        invalid_tool_use_ids: Collection[str],
    ) -> AsyncGenerator[ToolCallOutcome, None]:
        """Execute the given tools according to this executor's strategy.

        Args:
            agent: The agent whose tools are executed.
            tool_uses: The tool uses, in request order.
            invocation_context: Context of the current invocation.
            invalid_tool_use_ids: Tool uses whose arguments could not be parsed.

        Yields:
            One outcome per tool use, in completion order.
        """
        pass
