from typing import Any, AsyncGenerator, List

import pytest

from agentloop.agent.invocation_context import InvocationContext
from agentloop.plugins.manager import PluginManager
from agentloop.types.events import Event


@pytest.fixture
def alist():
    """Fixture to convert async generators to lists for testing."""

    async def _alist(async_gen) -> List:
        """Convert async generator to list."""
        result = []
        async for item in async_gen:
            result.append(item)
        return result

    return _alist


@pytest.fixture
def agenerator():
    async def _agenerator(items) -> AsyncGenerator[Any, None]:
        for item in items:
            yield item

    return _agenerator


@pytest.fixture
def user_event():
    def _user_event(text: str, invocation_id: str = "e-test") -> Event:
        return Event(
            invocation_id=invocation_id,
            author="user",
            content={"role": "user", "content": [{"text": text}]},
            turn_complete=True,
        )

    return _user_event


@pytest.fixture
def make_context(user_event):
    def _make_context(agent, prompt: str = "hello", plugins=None, **kwargs) -> InvocationContext:
        return InvocationContext(
            invocation_id="e-test",
            agent=agent,
            events=[user_event(prompt)],
            plugin_manager=PluginManager(plugins),
            **kwargs,
        )

    return _make_context
