"""Loop composite agent."""

import inspect
import logging
import string
from typing import AsyncGenerator, Awaitable, Callable, Iterable, Optional, Union

from ..agent.base_agent import BaseAgent
from ..agent.invocation_context import InvocationContext
from ..tools.decorator import tool
from ..types.events import Event, EventKind
from ..types.exceptions import MaxIterationsExceededException
from ..types.tools import ToolContext

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10

CONDITION_PROMPT = 'Should the loop continue? Respond with "yes" to continue or "no" to stop.'

ConditionCheck = Callable[[Optional[Event]], Union[bool, Awaitable[bool]]]

_ANSWER_STRIP = string.whitespace + string.punctuation + "“”‘’"


@tool
def exit_loop(tool_context: ToolContext) -> str:
    """Exit the enclosing loop. Call this only when the task is complete and no further iteration is needed."""
    tool_context.escalate = True
    tool_context.skip_summarization = True
    return "Exiting loop."


def parse_condition_answer(text: str) -> Optional[bool]:
    """Parse a condition agent's answer.

    Only a bare "yes" or "no" is accepted, ignoring case, surrounding whitespace, punctuation and quotes.

    Args:
        text: The answer.

    Returns:
        True for "yes", False for "no" and None for anything else.
    """
    normalized = text.strip(_ANSWER_STRIP).lower()
    if normalized == "yes":
        return True
    if normalized == "no":
        return False
    return None


class LoopAgent(BaseAgent):
    """Runs its children repeatedly, feeding each iteration's output into the next.

    The loop stops when `max_iterations` is reached, when `condition_check` returns False for the iteration's final
    event, when `condition_agent` answers anything but "yes", or when a child escalates (see `exit_loop`). When both
    are given, `condition_check` decides and the condition agent is not consulted.

    Example:
        ```python
        refine = LoopAgent(
            name="refine",
            sub_agents=[drafter],
            max_iterations=5,
            condition_check=lambda event: "DONE" not in event.text,
        )
        ```
    """

    def __init__(
        self,
        name: str,
        sub_agents: Optional[Iterable[BaseAgent]] = None,
        *,
        description: str = "",
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        condition_check: Optional[ConditionCheck] = None,
        condition_agent: Optional[BaseAgent] = None,
        raise_on_max_iterations: bool = False,
    ):
        """Initialize the loop.

        Args:
            name: Unique identifier of the agent.
            sub_agents: Children run in order on every iteration.
            description: One-line description of the agent's capability.
            max_iterations: Maximum number of iterations.
            condition_check: Predicate on the iteration's final event; False stops the loop.
            condition_agent: Agent asked after each iteration whether to continue, unless `condition_check` is set.
            raise_on_max_iterations: Whether reaching `max_iterations` while the loop would continue raises
                `MaxIterationsExceededException` instead of stopping cleanly.

        Raises:
            ValueError: If `max_iterations` is not positive.
        """
        super().__init__(name, description=description, sub_agents=sub_agents)

        if max_iterations < 1:
            raise ValueError(f"max_iterations=<{max_iterations}> | must be at least 1")

        self.max_iterations = max_iterations
        self.condition_check = condition_check
        self.condition_agent = condition_agent
        self.raise_on_max_iterations = raise_on_max_iterations

    async def _run_async_impl(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        iteration = 0

        while True:
            iteration += 1
            logger.debug("agent_name=<%s>, iteration=<%d> | starting iteration", self.name, iteration)

            final_event: Optional[Event] = None
            escalated = False
            for sub_agent in self.sub_agents.values():
                child_final: Optional[Event] = None
                async for event in sub_agent.run_async(ctx):
                    if event.actions.escalate:
                        escalated = True
                    if event.is_final_response():
                        child_final = event
                    yield event

                if child_final is not None:
                    ctx.append_event(child_final)
                    final_event = child_final
                if escalated or ctx.is_ended:
                    break

            if escalated:
                logger.debug("agent_name=<%s>, iteration=<%d> | loop exited by escalation", self.name, iteration)
                return
            if ctx.is_ended:
                return
            if final_event is not None and final_event.kind is EventKind.ERROR:
                logger.debug("agent_name=<%s>, iteration=<%d> | stopping after error", self.name, iteration)
                return
            if not await self._should_continue(ctx, final_event):
                logger.debug("agent_name=<%s>, iteration=<%d> | loop condition not met", self.name, iteration)
                return
            if iteration >= self.max_iterations:
                if self.raise_on_max_iterations:
                    raise MaxIterationsExceededException(self.name, self.max_iterations)
                logger.debug("agent_name=<%s>, max_iterations=<%d> | loop reached max", self.name, self.max_iterations)
                return

            ctx.append_event(
                Event(
                    invocation_id=ctx.invocation_id,
                    author=self.name,
                    content={
                        "role": "user",
                        "content": [
                            {"text": f"Iteration {iteration} complete. Continue to iteration {iteration + 1}."}
                        ],
                    },
                    turn_complete=True,
                    branch=ctx.branch,
                )
            )

    async def _should_continue(self, ctx: InvocationContext, final_event: Optional[Event]) -> bool:
        if self.condition_check is not None:
            verdict = self.condition_check(final_event)
            if inspect.isawaitable(verdict):
                verdict = await verdict
            return bool(verdict)

        if self.condition_agent is not None:
            return await self._ask_condition_agent(ctx)

        return True

    async def _ask_condition_agent(self, ctx: InvocationContext) -> bool:
        """Ask the condition agent whether to continue. Anything but a clear "yes" stops the loop."""
        question = Event(
            invocation_id=ctx.invocation_id,
            author="user",
            content={"role": "user", "content": [{"text": CONDITION_PROMPT}]},
            turn_complete=True,
            branch=ctx.branch,
        )
        condition_ctx = ctx.create_child(agent=self, events=[*ctx.events, question])

        answer = ""
        try:
            async for event in self.condition_agent.run_async(condition_ctx):  # type: ignore[union-attr]
                if event.is_final_response():
                    answer = event.text
        except Exception as e:
            logger.warning("agent_name=<%s> | condition agent failed, stopping loop: %s", self.name, e)
            return False

        verdict = parse_condition_answer(answer)
        if verdict is None:
            logger.warning(
                "agent_name=<%s>, answer=<%s> | unrecognized condition answer, stopping loop", self.name, answer
            )
            return False
        return verdict
