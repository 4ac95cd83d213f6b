"""Model-driven agent.

An `LlmAgent` runs the `LlmFlow`: it asks its model, executes the tools the model requests and feeds the results
back until the model answers without tool uses or the step budget runs out.
"""

import logging
from typing import Any, AsyncGenerator, Iterable, Optional, Union

from ..event_loop.event_loop import LlmFlow
from ..models.model import Model
from ..models.registry import ModelRegistry
from ..tools.executors import ConcurrentToolExecutor
from ..tools.executors._executor import ToolExecutor
from ..tools.registry import ToolRegistry
from ..types.events import Event
from .base_agent import BaseAgent
from .invocation_context import InvocationContext

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOOL_EXECUTION_STEPS = 10


class LlmAgent(BaseAgent):
    """An agent driven by a model and its tools.

    Example:
        ```python
        agent = LlmAgent(
            name="weather",
            model=my_model,
            instruction="Answer weather questions.",
            tools=[get_weather],
        )
        final_event = agent.run("What's the weather in Paris?")
        ```
    """

    def __init__(
        self,
        name: str,
        model: Union[Model, str],
        instruction: Optional[str] = None,
        tools: Optional[Iterable[Any]] = None,
        *,
        description: str = "",
        sub_agents: Optional[Iterable[BaseAgent]] = None,
        max_tool_execution_steps: int = DEFAULT_MAX_TOOL_EXECUTION_STEPS,
        tool_executor: Optional[ToolExecutor] = None,
        model_kwargs: Optional[dict[str, Any]] = None,
    ):
        """Initialize the agent.

        Args:
            name: Unique identifier of the agent.
            model: The model, or a model id resolved through `ModelRegistry`.
            instruction: System prompt of the agent.
            tools: `AgentTool` instances or plain callables.
            description: One-line description of the agent's capability.
            sub_agents: Child agents.
            max_tool_execution_steps: Maximum number of model-and-tools cycles per run.
            tool_executor: Strategy for running tools. Defaults to `ConcurrentToolExecutor`.
            model_kwargs: Extra keyword arguments forwarded to `Model.stream`.

        Raises:
            ValueError: If the step budget is not positive.
        """
        super().__init__(name, description=description, sub_agents=sub_agents)

        if max_tool_execution_steps < 1:
            raise ValueError(f"max_tool_execution_steps=<{max_tool_execution_steps}> | must be at least 1")

        self.model = ModelRegistry.new_model(model) if isinstance(model, str) else model
        self.instruction = instruction
        self.tool_registry = ToolRegistry(tools)
        self.tool_executor = tool_executor or ConcurrentToolExecutor()
        self.max_tool_execution_steps = max_tool_execution_steps
        self.model_kwargs = dict(model_kwargs or {})

        logger.debug(
            "agent_name=<%s>, model_id=<%s>, tools=<%s> | initialized llm agent",
            self.name,
            self.model.model_id,
            self.tool_names,
        )

    @property
    def tool_names(self) -> list[str]:
        """Names of the agent's tools."""
        return self.tool_registry.tool_names

    async def _run_async_impl(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        async for event in LlmFlow().run_async(ctx):
            yield event
