import threading
import unittest.mock

import pytest

from agentloop.agent.invocation_context import InvocationContext
from agentloop.plugins.manager import PluginManager
from agentloop.plugins.plugin import Plugin
from agentloop.tools.decorator import tool
from agentloop.tools.registry import ToolRegistry


class RecordingPlugin(Plugin):
    name = "recording"

    def __init__(self, events, before=None, after=None, on_error=None):
        self.events = events
        self.before = before
        self.after = after
        self.on_error = on_error

    async def before_tool_callback(self, *, tool, tool_args, tool_context):
        self.events.append(("before_tool", tool.tool_name))
        return self.before

    async def after_tool_callback(self, *, tool, tool_args, tool_context, result):
        self.events.append(("after_tool", tool.tool_name, result))
        return self.after

    async def on_tool_error_callback(self, *, tool, tool_args, tool_context, error):
        self.events.append(("on_tool_error", tool.tool_name, str(error)))
        return self.on_error


@pytest.fixture
def hook_events():
    return []


@pytest.fixture
def recording_plugin(hook_events):
    return RecordingPlugin(hook_events)


@pytest.fixture
def tool_events():
    return []


@pytest.fixture
def weather_tool():
    @tool(name="weather_tool")
    def func():
        return "sunny"

    return func


@pytest.fixture
def temperature_tool():
    @tool(name="temperature_tool")
    def func():
        return "75F"

    return func


@pytest.fixture
def exception_tool():
    @tool(name="exception_tool")
    def func():
        raise RuntimeError("Tool error")

    return func


@pytest.fixture
def thread_tool(tool_events):
    @tool(name="thread_tool")
    def func():
        tool_events.append({"thread_name": threading.current_thread().name})
        return "threaded"

    return func


@pytest.fixture
def tool_registry(weather_tool, temperature_tool, exception_tool, thread_tool):
    return ToolRegistry([weather_tool, temperature_tool, exception_tool, thread_tool])


@pytest.fixture
def agent(tool_registry):
    mock_agent = unittest.mock.Mock()
    mock_agent.name = "assistant"
    mock_agent.tool_registry = tool_registry
    return mock_agent


@pytest.fixture
def plugins(recording_plugin):
    return [recording_plugin]


@pytest.fixture
def invocation_context(agent, plugins):
    return InvocationContext(invocation_id="e-test", agent=agent, plugin_manager=PluginManager(plugins))
