"""Base class for every agent.

An agent is a named node in a tree of agents. Running it yields events through an async generator; the base class
derives the child invocation context, opens the agent span and dispatches the `before_agent` and `after_agent`
interception points around the subclass's own behavior.
"""

import abc
import logging
import weakref
from typing import AsyncGenerator, Iterable, Optional, Union

from .._async import run_async
from ..plugins.manager import PluginManager
from ..plugins.plugin import Plugin
from ..telemetry.tracer import get_tracer
from ..types.content import Message
from ..types.events import Event
from .invocation_context import CallbackContext, InvocationContext, new_invocation_id
from .run_config import RunConfig


logger = logging.getLogger(__name__)

_RESERVED_NAMES = ("user",)


def _validate_name(name: str) -> None:
    if not isinstance(name, str) or not name.isidentifier():
        raise ValueError(f"name=<{name}> | agent name must be a valid identifier")
    if name in _RESERVED_NAMES:
        raise ValueError(f"name=<{name}> | agent name is reserved")


class BaseAgent(abc.ABC):
    """Base class for all agents.

    Attributes:
        name: Unique identifier of the agent within its tree.
        description: One-line description of the agent's capability.
        sub_agents: Registry of child agents, keyed by name.
    """

    def __init__(self, name: str, description: str = "", sub_agents: Optional[Iterable["BaseAgent"]] = None):
        """Initialize the agent.

        Args:
            name: Unique identifier of the agent. Must be a valid Python identifier and not "user".
            description: One-line description of the agent's capability.
            sub_agents: Child agents.

        Raises:
            ValueError: If the name is invalid or a sub-agent cannot be attached.
        """
        _validate_name(name)
        self.name = name
        self.description = description
        self.sub_agents: dict[str, BaseAgent] = {}
        self.parent_agent_name: Optional[str] = None
        self._parent_ref: Optional[weakref.ReferenceType[BaseAgent]] = None

        for sub_agent in sub_agents or []:
            self.add_sub_agent(sub_agent)

    def add_sub_agent(self, sub_agent: "BaseAgent") -> None:
        """Attach a child agent.

        Args:
            sub_agent: The child.

        Raises:
            ValueError: If the child already has a parent or its name is taken.
        """
        if sub_agent.parent_agent_name is not None:
            raise ValueError(
                f"agent_name=<{sub_agent.name}>, parent=<{sub_agent.parent_agent_name}> | agent already has a parent"
            )
        if sub_agent.name in self.sub_agents:
            raise ValueError(f"agent_name=<{sub_agent.name}> | sub-agent name already registered on <{self.name}>")

        self.sub_agents[sub_agent.name] = sub_agent
        sub_agent.parent_agent_name = self.name
        sub_agent._parent_ref = weakref.ref(self)

    @property
    def parent_agent(self) -> Optional["BaseAgent"]:
        """The parent agent, if it is still alive."""
        return self._parent_ref() if self._parent_ref is not None else None

    @property
    def root_agent(self) -> "BaseAgent":
        """The root of the agent tree."""
        agent: BaseAgent = self
        while (parent := agent.parent_agent) is not None:
            agent = parent
        return agent

    @property
    def root_agent_name(self) -> str:
        """Name of the root of the agent tree."""
        return self.root_agent.name

    def find_agent(self, name: str) -> Optional["BaseAgent"]:
        """Find this agent or a descendant by name."""
        if self.name == name:
            return self
        return self.find_sub_agent(name)

    def find_sub_agent(self, name: str) -> Optional["BaseAgent"]:
        """Find a descendant by name, depth first."""
        for sub_agent in self.sub_agents.values():
            found = sub_agent.find_agent(name)
            if found is not None:
                return found
        return None

    def _create_invocation_context(self, parent_context: InvocationContext) -> InvocationContext:
        return parent_context.create_child(agent=self)

    async def run_async(self, parent_context: InvocationContext) -> AsyncGenerator[Event, None]:
        """Run the agent.

        Args:
            parent_context: Context of the caller. The agent runs on a derived child context.

        Yields:
            The events produced by the agent.
        """
        ctx = self._create_invocation_context(parent_context)
        callback_context = CallbackContext(ctx)
        tracer = get_tracer()
        span = tracer.start_agent_span(self.name, ctx.invocation_id, ctx.branch)
        final_text = ""

        try:
            override = await ctx.plugin_manager.run_before_agent_callback(agent=self, callback_context=callback_context)
            if override is not None:
                logger.debug("agent_name=<%s> | agent run overridden by plugin", self.name)
                event = self._content_event(ctx, override)
                final_text = event.text
                yield event
                return

            if ctx.is_ended:
                return

            async for event in self._run_async_impl(ctx):
                if event.is_final_response():
                    final_text = event.text
                yield event

            after = await ctx.plugin_manager.run_after_agent_callback(agent=self, callback_context=callback_context)
            if after is not None:
                event = self._content_event(ctx, after)
                final_text = event.text
                yield event
        except Exception as e:
            tracer.end_span_with_error(span, str(e), e)
            span = None
            raise
        finally:
            if span is not None:
                tracer.end_agent_span(span, final_text)

    def _content_event(self, ctx: InvocationContext, content: Message) -> Event:
        return Event(
            invocation_id=ctx.invocation_id,
            author=self.name,
            content=content,
            turn_complete=True,
            branch=ctx.branch,
        )

    @abc.abstractmethod
    def _run_async_impl(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        """Agent-specific behavior.

        Args:
            ctx: The agent's own invocation context.

        Yields:
            The events produced by the agent.
        """
        pass

    async def invoke_async(
        self,
        prompt: Union[str, Message, list[Event], None] = None,
        *,
        plugins: Optional[Iterable[Plugin]] = None,
        run_config: Optional[RunConfig] = None,
    ) -> Optional[Event]:
        """Run the agent outside of a runner and return its final event.

        Args:
            prompt: A user prompt, a user message or a prepared history.
            plugins: Plugins intercepting the run.
            run_config: Runtime configuration.

        Returns:
            The last final event, or None if the agent produced none.
        """
        invocation_id = new_invocation_id()

        if prompt is None:
            history: list[Event] = []
        elif isinstance(prompt, list):
            history = list(prompt)
        else:
            message: Message = (
                {"role": "user", "content": [{"text": prompt}]} if isinstance(prompt, str) else prompt
            )
            history = [Event(invocation_id=invocation_id, author="user", content=message, turn_complete=True)]

        ctx = InvocationContext(
            invocation_id=invocation_id,
            agent=self,
            events=history,
            run_config=run_config or RunConfig(),
            plugin_manager=PluginManager(plugins),
        )

        final_event = None
        try:
            async for event in self.run_async(ctx):
                if event.is_final_response():
                    final_event = event
        finally:
            ctx.plugin_manager.release_invocation(invocation_id)
        return final_event

    def run(
        self,
        prompt: Union[str, Message, list[Event], None] = None,
        *,
        plugins: Optional[Iterable[Plugin]] = None,
        run_config: Optional[RunConfig] = None,
    ) -> Optional[Event]:
        """Synchronous version of `invoke_async`."""
        return run_async(lambda: self.invoke_async(prompt, plugins=plugins, run_config=run_config))

    def __repr__(self) -> str:
        """Readable representation for logs."""
        return f"{type(self).__name__}(name={self.name!r})"
