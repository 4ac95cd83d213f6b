"""Concurrent tool executor implementation."""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, AsyncGenerator, Collection

from typing_extensions import override

from ...types.tools import ToolUse
from ._executor import ToolCallOutcome, ToolExecutor

logger = logging.getLogger(__name__)

if TYPE_CHECKING:  # pragma: no cover
    from ...agent.invocation_context import InvocationContext
    from ...agent.llm_agent import LlmAgent


class ConcurrentToolExecutor(ToolExecutor):
    """Concurrent tool executor.

    Runs every tool use of a turn as its own asyncio task. Outcomes are yielded in completion order; failures are
    collected until every sibling has finished and then raised.
    """

    @override
    async def _execute(
        self,
        agent: "LlmAgent",
        tool_uses: list[ToolUse],
        invocation_context: "InvocationContext",
        invalid_tool_use_ids: Collection[str],
    ) -> AsyncGenerator[ToolCallOutcome, None]:
        """Execute tools concurrently.

        Args:
            agent: The agent whose tools are executed.
            tool_uses: The tool uses, in request order.
            invocation_context: Context of the current invocation.
            invalid_tool_use_ids: Tool uses whose arguments could not be parsed.

        Yields:
            One outcome per tool use, in completion order.
        """
        task_queue: asyncio.Queue[tuple[int, Any]] = asyncio.Queue()
        stop_event = object()

        tasks = [
            asyncio.create_task(
                self._task(agent, tool_use, invocation_context, invalid_tool_use_ids, task_id, task_queue, stop_event)
            )
            for task_id, tool_use in enumerate(tool_uses)
        ]

        try:
            task_count = len(tasks)
            collected_exceptions = []
            while task_count:
                task_id, event = await task_queue.get()
                if event is stop_event:
                    task_count -= 1
                    continue

                if isinstance(event, Exception):
                    logger.debug("task_id=<%d>, error=<%s> | tool task failed", task_id, event)
                    collected_exceptions.append(event)
                    continue

                yield event

            if collected_exceptions:
                if len(collected_exceptions) == 1:
                    raise collected_exceptions[0]

                error_summary = "; ".join([f"{type(e).__name__}: {str(e)}" for e in collected_exceptions])
                combined_exception = RuntimeError(f"Multiple tool execution errors occurred: {error_summary}")
                combined_exception.__cause__ = collected_exceptions[0]
                raise combined_exception
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _task(
        self,
        agent: "LlmAgent",
        tool_use: ToolUse,
        invocation_context: "InvocationContext",
        invalid_tool_use_ids: Collection[str],
        task_id: int,
        task_queue: asyncio.Queue,
        stop_event: object,
    ) -> None:
        """Execute a single tool and put its outcome in the task queue.

        Args:
            agent: The agent whose tool is executed.
            tool_use: The tool use.
            invocation_context: Context of the current invocation.
            invalid_tool_use_ids: Tool uses whose arguments could not be parsed.
            task_id: Unique identifier for this task.
            task_queue: Queue to put the outcome into.
            stop_event: Sentinel object to signal task completion.
        """
        try:
            outcome = await ToolExecutor._stream(agent, tool_use, invocation_context, invalid_tool_use_ids)
            task_queue.put_nowait((task_id, outcome))
        except Exception as e:
            logger.debug("tool_name=<%s>, error=<%s> | tool task raised", tool_use["name"], e)
            task_queue.put_nowait((task_id, e))
        finally:
            task_queue.put_nowait((task_id, stop_event))
