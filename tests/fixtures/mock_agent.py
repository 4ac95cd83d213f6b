import asyncio

from agentloop.agent.base_agent import BaseAgent
from agentloop.types.events import Event, EventActions


class EchoAgent(BaseAgent):
    """Answers with the text of the last visible message."""

    def __init__(self, name, prefix="echo: ", error=None, delay=0.0, escalate=False, end_invocation=False, **kwargs):
        super().__init__(name, **kwargs)
        self.prefix = prefix
        self.error = error
        self.delay = delay
        self.escalate = escalate
        self.end_invocation = end_invocation
        self.runs = 0
        self.seen_histories = []

    async def _run_async_impl(self, ctx):
        self.runs += 1
        history = ctx.history_messages()
        self.seen_histories.append(history)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.end_invocation:
            ctx.end_invocation()

        last_text = "".join(block.get("text", "") for block in history[-1]["content"]) if history else ""
        yield Event(
            invocation_id=ctx.invocation_id,
            author=self.name,
            content={"role": "assistant", "content": [{"text": f"{self.prefix}{last_text}"}]},
            turn_complete=True,
            branch=ctx.branch,
            actions=EventActions(escalate=self.escalate),
        )


class ErrorEventAgent(BaseAgent):
    """Ends its run with an error event instead of raising."""

    async def _run_async_impl(self, ctx):
        yield Event.from_exception(ctx.invocation_id, self.name, ValueError("bad output"), branch=ctx.branch)
