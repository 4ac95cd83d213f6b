"""Sequential composite agent."""

import logging
from typing import AsyncGenerator, Optional

from ..agent.base_agent import BaseAgent
from ..agent.invocation_context import InvocationContext
from ..types.events import Event, EventKind

logger = logging.getLogger(__name__)


class SequentialAgent(BaseAgent):
    """Runs its children one after another on a shared running history.

    Each child sees the history the sequence started with plus the final turn of every child before it. A failing
    child aborts the sequence with an error event naming it; earlier children's turns stay in the history.

    Example:
        ```python
        pipeline = SequentialAgent(name="pipeline", sub_agents=[researcher, writer, reviewer])
        ```
    """

    async def _run_async_impl(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        for sub_agent in self.sub_agents.values():
            logger.debug("agent_name=<%s>, sub_agent=<%s> | running sub-agent", self.name, sub_agent.name)
            final_event: Optional[Event] = None

            try:
                async for event in sub_agent.run_async(ctx):
                    if event.is_final_response():
                        final_event = event
                    yield event
            except Exception as e:
                logger.warning("agent_name=<%s>, sub_agent=<%s> | sub-agent failed: %s", self.name, sub_agent.name, e)
                yield self._error_event(ctx, sub_agent.name, e)
                return

            if final_event is not None and final_event.kind is EventKind.ERROR:
                yield self._error_event(ctx, sub_agent.name, RuntimeError(final_event.error_message or "unknown error"))
                return

            if final_event is not None:
                ctx.append_event(final_event)

            if ctx.is_ended:
                return

    def _error_event(self, ctx: InvocationContext, sub_agent_name: str, error: Exception) -> Event:
        message = f"Error in sub-agent {sub_agent_name}: {error}"
        return Event(
            invocation_id=ctx.invocation_id,
            author=self.name,
            content={"role": "assistant", "content": [{"text": message}]},
            error_code=type(error).__name__,
            error_message=message,
            turn_complete=True,
            branch=ctx.branch,
            custom_metadata={"agent_type": "sequential", "error": True, "sub_agent": sub_agent_name},
        )
