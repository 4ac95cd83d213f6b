"""Parallel composite agent."""

import asyncio
import logging
import time
from typing import Any, AsyncGenerator, Optional

from ..agent.base_agent import BaseAgent
from ..agent.invocation_context import InvocationContext
from ..types.events import Event, EventKind
from .base import MultiAgentResult, NodeResult, Status

logger = logging.getLogger(__name__)


class ParallelAgent(BaseAgent):
    """Runs its children concurrently against the same initial history.

    Each child runs on its own branch (`<parent>.<child>`) with an independent copy of the history, so siblings
    never see each other's turns. Events are forwarded in the order they arrive. A failing child produces an error
    event for its branch only. Once every child has finished, a combined event lists each branch's output in
    completion order.

    Example:
        ```python
        fan_out = ParallelAgent(name="research", sub_agents=[web_search, paper_search, code_search])
        ```
    """

    async def _run_async_impl(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        sub_agents = list(self.sub_agents.values())
        if not sub_agents:
            return

        task_queue: asyncio.Queue[tuple[int, Any]] = asyncio.Queue()
        task_events = [asyncio.Event() for _ in sub_agents]
        stop_event = object()
        result = MultiAgentResult(status=Status.EXECUTING)
        start_time = time.monotonic()

        tasks = [
            asyncio.create_task(
                self._task(ctx, sub_agent, result, task_id, task_queue, task_events[task_id], stop_event)
            )
            for task_id, sub_agent in enumerate(sub_agents)
        ]

        try:
            task_count = len(tasks)
            while task_count:
                task_id, event = await task_queue.get()
                if event is stop_event:
                    task_count -= 1
                    continue

                yield event
                task_events[task_id].set()
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        failed = any(node.status is Status.FAILED for node in result.results.values())
        result.status = Status.FAILED if failed else Status.COMPLETED
        result.execution_time = round((time.monotonic() - start_time) * 1000)

        yield Event(
            invocation_id=ctx.invocation_id,
            author=self.name,
            content={"role": "assistant", "content": [{"text": self._combine(result)}]},
            turn_complete=True,
            branch=ctx.branch,
            custom_metadata={"agent_type": "parallel", **result.to_dict()},
        )

    def _branch_for(self, ctx: InvocationContext, sub_agent: BaseAgent) -> str:
        prefix = f"{ctx.branch}.{self.name}" if ctx.branch else self.name
        return f"{prefix}.{sub_agent.name}"

    async def _task(
        self,
        ctx: InvocationContext,
        sub_agent: BaseAgent,
        result: MultiAgentResult,
        task_id: int,
        task_queue: asyncio.Queue,
        task_event: asyncio.Event,
        stop_event: object,
    ) -> None:
        """Run one child and forward its events through the task queue.

        Args:
            ctx: Context of the parallel agent.
            sub_agent: The child to run.
            result: Collected outcomes. The child's outcome is recorded when it finishes.
            task_id: Unique identifier for this task.
            task_queue: Queue to put events into.
            task_event: Event to signal when the task can continue.
            stop_event: Sentinel object to signal task completion.
        """
        branch = self._branch_for(ctx, sub_agent)
        branch_ctx = ctx.create_child(agent=self, branch=branch)
        start_time = time.monotonic()
        final_event: Optional[Event] = None

        try:
            async for event in sub_agent.run_async(branch_ctx):
                if event.is_final_response():
                    final_event = event
                task_queue.put_nowait((task_id, event))
                await task_event.wait()
                task_event.clear()

            failed = final_event is not None and final_event.kind is EventKind.ERROR
            node = NodeResult(
                agent_name=sub_agent.name,
                event=final_event,
                status=Status.FAILED if failed else Status.COMPLETED,
            )
        except Exception as e:
            logger.warning("agent_name=<%s>, branch=<%s> | branch failed: %s", self.name, branch, e)
            error_event = Event.from_exception(ctx.invocation_id, sub_agent.name, e, branch=branch)
            node = NodeResult(agent_name=sub_agent.name, event=error_event, error=e, status=Status.FAILED)
            task_queue.put_nowait((task_id, error_event))
            await task_event.wait()
        finally:
            task_queue.put_nowait((task_id, stop_event))

        node.execution_time = round((time.monotonic() - start_time) * 1000)
        result.results[sub_agent.name] = node

    def _combine(self, result: MultiAgentResult) -> str:
        sections = [f"### {name}\n\n{node.output_text}" for name, node in result.results.items()]
        return "\n\n".join(sections)
