import asyncio
import random

import pytest

from agentloop.tools.executors import ConcurrentToolExecutor
from agentloop.tools.registry import ToolRegistry
from agentloop.types.exceptions import ToolInvocationException
from tests.fixtures.mock_agent_tool import MockAgentTool


@pytest.fixture
def executor():
    return ConcurrentToolExecutor()


@pytest.mark.asyncio
async def test_concurrent_executor_execute(executor, agent, invocation_context, tool_events):
    tool_uses = [
        {"name": "weather_tool", "toolUseId": "1", "input": {}},
        {"name": "temperature_tool", "toolUseId": "2", "input": {}},
        {"name": "thread_tool", "toolUseId": "3", "input": {}},
    ]

    outcomes = await executor.execute(agent, tool_uses, invocation_context)

    assert [outcome.result["toolUseId"] for outcome in outcomes] == ["1", "2", "3"]
    assert outcomes[2].result["content"] == [{"text": "threaded"}]
    assert len(tool_events) == 1


@pytest.mark.asyncio
async def test_concurrent_executor_results_match_requests_under_random_latency(executor, agent, invocation_context):
    tools = [MockAgentTool(f"tool_{i}", result=f"result_{i}", delay=random.uniform(0, 0.02)) for i in range(10)]
    agent.tool_registry = ToolRegistry(tools)
    tool_uses = [{"name": f"tool_{i}", "toolUseId": f"id_{i}", "input": {}} for i in range(10)]

    outcomes = await executor.execute(agent, tool_uses, invocation_context)

    for i, outcome in enumerate(outcomes):
        assert outcome.result["toolUseId"] == f"id_{i}"
        assert outcome.result["content"] == [{"text": f"result_{i}"}]


@pytest.mark.asyncio
async def test_concurrent_executor_runs_tools_concurrently(executor, agent, invocation_context):
    agent.tool_registry = ToolRegistry([MockAgentTool(f"slow_{i}", delay=0.2) for i in range(5)])
    tool_uses = [{"name": f"slow_{i}", "toolUseId": str(i), "input": {}} for i in range(5)]

    loop = asyncio.get_running_loop()
    start = loop.time()
    await executor.execute(agent, tool_uses, invocation_context)

    assert loop.time() - start < 0.8


@pytest.mark.asyncio
async def test_concurrent_executor_single_failure_waits_for_siblings(executor, agent, invocation_context):
    slow = MockAgentTool("slow", delay=0.05)
    agent.tool_registry = ToolRegistry([slow, MockAgentTool("failing", error=ValueError("broken"))])
    tool_uses = [
        {"name": "failing", "toolUseId": "1", "input": {}},
        {"name": "slow", "toolUseId": "2", "input": {}},
    ]

    with pytest.raises(ToolInvocationException, match="broken"):
        await executor.execute(agent, tool_uses, invocation_context)

    assert len(slow.invocations) == 1


@pytest.mark.asyncio
async def test_concurrent_executor_multiple_failures(executor, agent, invocation_context):
    agent.tool_registry = ToolRegistry(
        [MockAgentTool("a", error=ValueError("first")), MockAgentTool("b", error=KeyError("second"))]
    )
    tool_uses = [{"name": "a", "toolUseId": "1", "input": {}}, {"name": "b", "toolUseId": "2", "input": {}}]

    with pytest.raises(RuntimeError, match="Multiple tool execution errors occurred") as exc_info:
        await executor.execute(agent, tool_uses, invocation_context)

    assert isinstance(exc_info.value.__cause__, ToolInvocationException)
