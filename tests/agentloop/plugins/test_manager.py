import asyncio
import unittest.mock

import pytest

from agentloop.plugins.manager import PluginManager
from agentloop.plugins.plugin import Plugin, PluginCallbackName
from agentloop.types.exceptions import PluginCallbackException


class NamedPlugin(Plugin):
    def __init__(self, name, calls, before_run=None, error=None, close_error=None, close_delay=0.0):
        self._name = name
        self.calls = calls
        self.before_run = before_run
        self.error = error
        self.close_error = close_error
        self.close_delay = close_delay
        self.closed = False
        self.released = []

    @property
    def name(self):
        return self._name

    async def before_run_callback(self, *, invocation_context):
        self.calls.append(self.name)
        if self.error is not None:
            raise self.error
        return self.before_run

    def release_invocation(self, invocation_id):
        self.released.append(invocation_id)

    async def close(self):
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        if self.close_error is not None:
            raise self.close_error
        self.closed = True


@pytest.fixture
def calls():
    return []


@pytest.fixture
def invocation_context():
    return unittest.mock.Mock(invocation_id="e-1")


def test_callback_name_method_name():
    assert PluginCallbackName.BEFORE_MODEL.method_name == "before_model_callback"
    assert PluginCallbackName("on_tool_error") is PluginCallbackName.ON_TOOL_ERROR
    assert len(PluginCallbackName) == 12


def test_register_duplicate_name(calls):
    manager = PluginManager([NamedPlugin("a", calls)])

    with pytest.raises(ValueError, match="plugin already registered"):
        manager.register_plugin(NamedPlugin("a", calls))


def test_get_plugin(calls):
    plugin = NamedPlugin("a", calls)
    manager = PluginManager([plugin])

    assert manager.get_plugin("a") is plugin
    assert manager.get_plugin("b") is None
    assert manager.plugins == [plugin]


@pytest.mark.asyncio
async def test_dispatch_stops_at_first_value(calls, invocation_context):
    manager = PluginManager(
        [
            NamedPlugin("a", calls),
            NamedPlugin("b", calls, before_run="early exit"),
            NamedPlugin("c", calls, before_run="never"),
        ]
    )

    result = await manager.run_before_run_callback(invocation_context=invocation_context)

    assert result == "early exit"
    assert calls == ["a", "b"]


@pytest.mark.asyncio
async def test_dispatch_returns_none_when_every_plugin_declines(calls, invocation_context):
    manager = PluginManager([NamedPlugin("a", calls), NamedPlugin("b", calls)])

    result = await manager.run_callbacks("before_run", invocation_context=invocation_context)

    assert result is None
    assert calls == ["a", "b"]


@pytest.mark.asyncio
async def test_default_hooks_are_no_ops(calls, invocation_context):
    manager = PluginManager([NamedPlugin("a", calls)])

    result = await manager.run_after_agent_callback(agent=unittest.mock.Mock(), callback_context=unittest.mock.Mock())

    assert result is None


@pytest.mark.asyncio
async def test_hook_error_is_wrapped(calls, invocation_context):
    error = ValueError("bad state")
    manager = PluginManager([NamedPlugin("a", calls, error=error), NamedPlugin("b", calls)])

    with pytest.raises(PluginCallbackException) as exc_info:
        await manager.run_before_run_callback(invocation_context=invocation_context)

    assert str(exc_info.value) == "Error in plugin 'a' during 'before_run_callback' callback: bad state"
    assert exc_info.value.__cause__ is error
    assert exc_info.value.plugin_name == "a"
    assert calls == ["a"]


@pytest.mark.asyncio
async def test_sync_hooks_are_supported(invocation_context):
    class SyncPlugin(Plugin):
        name = "sync"

        def before_run_callback(self, *, invocation_context):
            return "sync result"

    manager = PluginManager([SyncPlugin()])

    assert await manager.run_before_run_callback(invocation_context=invocation_context) == "sync result"


def test_release_invocation_reaches_every_plugin(calls):
    plugins = [NamedPlugin("a", calls), NamedPlugin("b", calls)]

    PluginManager(plugins).release_invocation("e-1")

    assert [plugin.released for plugin in plugins] == [["e-1"], ["e-1"]]


@pytest.mark.asyncio
async def test_close_all_plugins(calls):
    plugins = [NamedPlugin("a", calls), NamedPlugin("b", calls)]

    await PluginManager(plugins).close()

    assert all(plugin.closed for plugin in plugins)


@pytest.mark.asyncio
async def test_close_aggregates_failures(calls):
    failing = NamedPlugin("failing", calls, close_error=RuntimeError("disk full"))
    slow = NamedPlugin("slow", calls, close_delay=1.0)
    healthy = NamedPlugin("healthy", calls)
    manager = PluginManager([failing, slow, healthy], close_timeout=0.05)

    with pytest.raises(RuntimeError) as exc_info:
        await manager.close()

    message = str(exc_info.value)
    assert message.startswith("Failed to close plugins: ")
    assert "'failing': disk full" in message
    assert "'slow': close timed out" in message
    assert "healthy" not in message
    assert healthy.closed
