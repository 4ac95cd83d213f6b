"""Runner.

The `Runner` is the entry point of an invocation. It loads the session, creates the invocation context, persists
the user message and every complete event the agent produces, and dispatches the run-level interception points.

Example:
    ```python
    sessions = InMemorySessionService()
    session = await sessions.create_session(app_name="weather", user_id="u1")
    runner = Runner(app_name="weather", agent=agent, session_service=sessions)

    async for event in runner.run_async(user_id="u1", session_id=session.id, new_message="Weather in Paris?"):
        print(event.text)
    ```
"""

import logging
from typing import Any, AsyncGenerator, Iterable, Optional, Union

from ._async import run_async
from .agent.base_agent import BaseAgent
from .agent.invocation_context import InvocationContext, new_invocation_id
from .agent.run_config import RunConfig
from .plugins.manager import DEFAULT_CLOSE_TIMEOUT, PluginManager
from .plugins.plugin import Plugin
from .session.session_service import Session, SessionService
from .telemetry.tracer import get_tracer
from .types.content import Message
from .types.events import Event
from .types.exceptions import SessionException

logger = logging.getLogger(__name__)


class Runner:
    """Runs an agent against a session."""

    def __init__(
        self,
        *,
        app_name: str,
        agent: BaseAgent,
        session_service: SessionService,
        plugins: Optional[Iterable[Plugin]] = None,
        memory_service: Any = None,
        artifact_service: Any = None,
        plugin_close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
    ) -> None:
        """Initialize the runner.

        Args:
            app_name: Name of the application.
            agent: The root agent.
            session_service: Where sessions are read and events appended.
            plugins: Plugins intercepting every invocation, in dispatch order.
            memory_service: Memory collaborator handed to the invocation context.
            artifact_service: Artifact collaborator handed to the invocation context.
            plugin_close_timeout: Seconds each plugin gets to close.
        """
        self.app_name = app_name
        self.agent = agent
        self.session_service = session_service
        self.memory_service = memory_service
        self.artifact_service = artifact_service
        self.plugin_manager = PluginManager(plugins, close_timeout=plugin_close_timeout)

    async def run_async(
        self,
        *,
        user_id: str,
        session_id: str,
        new_message: Union[Message, str],
        run_config: Optional[RunConfig] = None,
    ) -> AsyncGenerator[Event, None]:
        """Run the agent on a new user message, streaming its events.

        A fatal error ends the stream with an error event. Closing the generator early abandons the invocation:
        `after_run` is not dispatched, but plugin state kept for the invocation is released.

        Args:
            user_id: Identifier of the user.
            session_id: Identifier of an existing session of that user.
            new_message: The user message, or its text.
            run_config: Runtime configuration.

        Yields:
            The events of the invocation.

        Raises:
            SessionException: If the session does not exist for this application and user.
        """
        events = self._run(user_id, session_id, new_message, run_config, raise_errors=False)
        try:
            async for event in events:
                yield event
        finally:
            await events.aclose()

    async def invoke_async(
        self,
        *,
        user_id: str,
        session_id: str,
        new_message: Union[Message, str],
        run_config: Optional[RunConfig] = None,
    ) -> list[Event]:
        """Run the agent on a new user message and return every event once it has finished.

        Raises:
            SessionException: If the session does not exist for this application and user.
            Exception: The fatal error of the invocation, if any.
        """
        events = []
        async for event in self._run(user_id, session_id, new_message, run_config, raise_errors=True):
            events.append(event)
        return events

    def run(
        self,
        *,
        user_id: str,
        session_id: str,
        new_message: Union[Message, str],
        run_config: Optional[RunConfig] = None,
    ) -> list[Event]:
        """Synchronous version of `invoke_async`."""
        return run_async(
            lambda: self.invoke_async(
                user_id=user_id, session_id=session_id, new_message=new_message, run_config=run_config
            )
        )

    async def close(self) -> None:
        """Close every plugin.

        Raises:
            RuntimeError: If any plugin failed to close.
        """
        await self.plugin_manager.close()

    async def _load_session(self, user_id: str, session_id: str) -> Session:
        session = await self.session_service.get_session(
            app_name=self.app_name, user_id=user_id, session_id=session_id
        )
        if session is None:
            raise SessionException(f"session_id=<{session_id}>, user_id=<{user_id}> | session not found")
        if session.user_id != user_id:
            raise SessionException(f"session_id=<{session_id}>, user_id=<{user_id}> | session belongs to another user")
        return session

    async def _run(
        self,
        user_id: str,
        session_id: str,
        new_message: Union[Message, str],
        run_config: Optional[RunConfig],
        raise_errors: bool,
    ) -> AsyncGenerator[Event, None]:
        session = await self._load_session(user_id, session_id)
        message: Message = (
            {"role": "user", "content": [{"text": new_message}]} if isinstance(new_message, str) else new_message
        )

        invocation_id = new_invocation_id()
        ctx = InvocationContext(
            invocation_id=invocation_id,
            agent=self.agent,
            app_name=self.app_name,
            user_id=user_id,
            session_id=session_id,
            events=list(session.events),
            run_config=run_config or RunConfig(),
            plugin_manager=self.plugin_manager,
            session=session,
            session_service=self.session_service,
            memory_service=self.memory_service,
            artifact_service=self.artifact_service,
        )

        tracer = get_tracer()
        span = tracer.start_invocation_span(invocation_id, self.app_name, self.agent.name, user_id)
        event_count = 0
        logger.debug("invocation_id=<%s>, session_id=<%s> | starting invocation", invocation_id, session_id)

        try:
            try:
                replacement = await self.plugin_manager.run_on_user_message_callback(
                    invocation_context=ctx, user_message=message
                )
                if replacement is not None:
                    message = replacement

                user_event = Event(invocation_id=invocation_id, author="user", content=message, turn_complete=True)
                await self.session_service.append_event(session, user_event)
                ctx.append_event(user_event)

                early_exit = await self.plugin_manager.run_before_run_callback(invocation_context=ctx)
                if early_exit is not None:
                    logger.debug("invocation_id=<%s> | run ended early by plugin", invocation_id)
                    await self.session_service.append_event(session, early_exit)
                    event_count += 1
                    yield early_exit
                else:
                    async for event in self.agent.run_async(ctx):
                        replaced = await self.plugin_manager.run_on_event_callback(invocation_context=ctx, event=event)
                        if replaced is not None:
                            event = replaced
                        if not event.partial:
                            await self.session_service.append_event(session, event)
                        event_count += 1
                        yield event

                await self.plugin_manager.run_after_run_callback(invocation_context=ctx)
            except Exception as e:
                tracer.end_span_with_error(span, str(e), e)
                span = None
                if raise_errors:
                    raise

                logger.warning("invocation_id=<%s>, error=<%s> | invocation failed", invocation_id, e)
                error_event = Event.from_exception(invocation_id, self.agent.name, e)
                await self.session_service.append_event(session, error_event)
                yield error_event
        finally:
            self.plugin_manager.release_invocation(invocation_id)
            if span is not None:
                tracer.end_invocation_span(span, event_count)
