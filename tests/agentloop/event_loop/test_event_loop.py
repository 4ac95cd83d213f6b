import pytest

from agentloop import tool
from agentloop.agent.llm_agent import LlmAgent
from agentloop.agent.run_config import RunConfig
from agentloop.event_loop.event_loop import LlmFlow
from agentloop.models.request import ModelResponse
from agentloop.plugins.plugin import Plugin
from agentloop.types.events import EventKind
from agentloop.types.exceptions import (
    EventLoopException,
    LlmCallsLimitExceededException,
    MaxStepsExceededException,
    ModelException,
    ModelThrottledException,
)
from tests.fixtures.mock_agent_tool import MockAgentTool
from tests.fixtures.mocked_model_provider import MockedModelProvider


def _text(text):
    return {"role": "assistant", "content": [{"text": text}]}


def _tool_call(name, tool_use_id="t1", tool_input=None):
    return {
        "role": "assistant",
        "content": [{"toolUse": {"toolUseId": tool_use_id, "name": name, "input": tool_input or {}}}],
    }


class ModelHooks(Plugin):
    name = "model_hooks"

    def __init__(self, before=None, after=None, on_error=None):
        self.before = before
        self.after = after
        self.on_error = on_error
        self.calls = []

    async def before_model_callback(self, *, callback_context, model_request):
        self.calls.append("before_model")
        return self.before

    async def after_model_callback(self, *, callback_context, model_response, model_request):
        self.calls.append("after_model")
        return self.after

    async def on_model_error_callback(self, *, callback_context, model_request, error):
        self.calls.append(("on_model_error", type(error).__name__))
        return self.on_error


@pytest.fixture
def get_weather():
    @tool
    def get_weather(city: str) -> str:
        """Get the weather for a city.

        Args:
            city: Name of the city.
        """
        return f"Sunny in {city}"

    return get_weather


@pytest.mark.asyncio
async def test_text_only_response(make_context, alist):
    model = MockedModelProvider([_text("Hi there")])
    agent = LlmAgent(name="assistant", model=model, instruction="Be brief.")
    ctx = make_context(agent)

    events = await alist(LlmFlow().run_async(ctx))

    assert len(events) == 1
    assert events[0].text == "Hi there"
    assert events[0].turn_complete
    assert events[0].is_final_response()
    assert model.calls[0]["system_prompt"] == "Be brief."
    assert model.calls[0]["tool_specs"] is None
    assert ctx.events[-1] is events[0]


@pytest.mark.asyncio
async def test_tool_round_trip(make_context, alist, get_weather):
    model = MockedModelProvider([_tool_call("get_weather", tool_input={"city": "Paris"}), _text("It is sunny.")])
    agent = LlmAgent(name="assistant", model=model, tools=[get_weather])

    events = await alist(LlmFlow().run_async(make_context(agent)))

    assert [event.kind for event in events] == [EventKind.COMPLETE] * 3
    assert not events[0].turn_complete
    tool_results = events[1].tool_results()
    assert tool_results == [{"toolUseId": "t1", "status": "success", "content": [{"text": "Sunny in Paris"}]}]
    assert events[2].text == "It is sunny."

    assert model.calls[0]["tool_specs"][0]["name"] == "get_weather"
    second_request = model.calls[1]["messages"]
    assert second_request[-2]["content"][0]["toolUse"]["toolUseId"] == "t1"
    assert second_request[-1] == {"role": "user", "content": [{"toolResult": tool_results[0]}]}


@pytest.mark.asyncio
async def test_tool_results_keep_request_order(make_context, alist):
    slow = MockAgentTool("slow", result="slow done", delay=0.05)
    fast = MockAgentTool("fast", result="fast done")
    model = MockedModelProvider(
        [
            {
                "role": "assistant",
                "content": [
                    {"toolUse": {"toolUseId": "a", "name": "slow", "input": {}}},
                    {"toolUse": {"toolUseId": "b", "name": "fast", "input": {}}},
                ],
            },
            _text("done"),
        ]
    )
    agent = LlmAgent(name="assistant", model=model, tools=[slow, fast])

    events = await alist(LlmFlow().run_async(make_context(agent)))

    assert [result["toolUseId"] for result in events[1].tool_results()] == ["a", "b"]


@pytest.mark.asyncio
async def test_step_budget_exceeded(make_context, alist, get_weather):
    model = MockedModelProvider([_tool_call("get_weather", tool_input={"city": "Oslo"})], repeat_last=True)
    agent = LlmAgent(name="assistant", model=model, tools=[get_weather], max_tool_execution_steps=2)

    with pytest.raises(MaxStepsExceededException) as exc_info:
        await alist(LlmFlow().run_async(make_context(agent)))

    assert exc_info.value.max_steps == 2
    assert model.call_count == 2


@pytest.mark.asyncio
async def test_unknown_tool_is_answered_with_error(make_context, alist):
    model = MockedModelProvider([_tool_call("missing"), _text("sorry")])
    agent = LlmAgent(name="assistant", model=model)

    events = await alist(LlmFlow().run_async(make_context(agent)))

    result = events[1].tool_results()[0]
    assert result["status"] == "error"
    assert result["content"] == [{"json": {"error": "Tool 'missing' not found."}}]
    assert events[-1].text == "sorry"


@pytest.mark.asyncio
async def test_malformed_tool_arguments_skip_invocation(make_context, alist):
    broken = MockAgentTool("broken")
    model = MockedModelProvider([_tool_call("broken", tool_input='{"x": '), _text("retrying later")])
    agent = LlmAgent(name="assistant", model=model, tools=[broken])

    events = await alist(LlmFlow().run_async(make_context(agent)))

    result = events[1].tool_results()[0]
    assert result["status"] == "error"
    assert result["content"][0]["json"]["raw_input"] == '{"x": '
    assert broken.invocations == []


@pytest.mark.asyncio
async def test_before_model_short_circuits(make_context, alist):
    model = MockedModelProvider([_text("from model")])
    plugin = ModelHooks(before=ModelResponse.from_text("from cache"))
    agent = LlmAgent(name="assistant", model=model)

    events = await alist(LlmFlow().run_async(make_context(agent, plugins=[plugin])))

    assert events[-1].text == "from cache"
    assert model.call_count == 0
    assert plugin.calls == ["before_model"]


@pytest.mark.asyncio
async def test_after_model_replaces_response(make_context, alist):
    model = MockedModelProvider([_text("raw")])
    plugin = ModelHooks(after=ModelResponse.from_text("redacted"))
    agent = LlmAgent(name="assistant", model=model)

    events = await alist(LlmFlow().run_async(make_context(agent, plugins=[plugin])))

    assert events[-1].text == "redacted"
    assert plugin.calls == ["before_model", "after_model"]


@pytest.mark.asyncio
async def test_model_error_substituted_by_plugin(make_context, alist):
    model = MockedModelProvider([RuntimeError("connection reset")])
    plugin = ModelHooks(on_error=ModelResponse.from_text("fallback answer"))
    agent = LlmAgent(name="assistant", model=model)

    events = await alist(LlmFlow().run_async(make_context(agent, plugins=[plugin])))

    assert events[-1].text == "fallback answer"
    assert plugin.calls == ["before_model", ("on_model_error", "RuntimeError"), "after_model"]


@pytest.mark.asyncio
async def test_model_error_without_substitute(make_context, alist):
    agent = LlmAgent(name="assistant", model=MockedModelProvider([RuntimeError("connection reset")]))

    with pytest.raises(ModelException, match="connection reset"):
        await alist(LlmFlow().run_async(make_context(agent)))


@pytest.mark.asyncio
async def test_model_throttled_propagates_unchanged(make_context, alist):
    agent = LlmAgent(name="assistant", model=MockedModelProvider([ModelThrottledException("slow down")]))

    with pytest.raises(ModelThrottledException, match="slow down"):
        await alist(LlmFlow().run_async(make_context(agent)))


@pytest.mark.asyncio
async def test_llm_call_limit(make_context, alist, get_weather):
    model = MockedModelProvider([_tool_call("get_weather", tool_input={"city": "Oslo"})], repeat_last=True)
    agent = LlmAgent(name="assistant", model=model, tools=[get_weather])
    ctx = make_context(agent, run_config=RunConfig(max_llm_calls=1))

    with pytest.raises(LlmCallsLimitExceededException):
        await alist(LlmFlow().run_async(ctx))

    assert model.call_count == 1
    assert ctx.llm_call_count == 2


@pytest.mark.asyncio
async def test_streaming_yields_partial_events(make_context, alist):
    model = MockedModelProvider([{"role": "assistant", "content": [{"text": "Hel"}, {"text": "lo"}]}])
    agent = LlmAgent(name="assistant", model=model)
    ctx = make_context(agent, run_config=RunConfig(streaming=True))

    events = await alist(LlmFlow().run_async(ctx))

    assert [event.kind for event in events] == [EventKind.PARTIAL, EventKind.PARTIAL, EventKind.COMPLETE]
    assert [event.text for event in events] == ["Hel", "lo", "Hello"]
    assert all(not event.partial for event in ctx.events)


@pytest.mark.asyncio
async def test_unexpected_error_wrapped(make_context, alist):
    failing = [MockAgentTool(f"tool_{i}", error=ValueError(f"failure {i}")) for i in range(2)]
    model = MockedModelProvider(
        [
            {
                "role": "assistant",
                "content": [
                    {"toolUse": {"toolUseId": "a", "name": "tool_0", "input": {}}},
                    {"toolUse": {"toolUseId": "b", "name": "tool_1", "input": {}}},
                ],
            }
        ]
    )
    agent = LlmAgent(name="assistant", model=model, tools=failing)

    with pytest.raises(EventLoopException) as exc_info:
        await alist(LlmFlow().run_async(make_context(agent)))

    assert "Multiple tool execution errors occurred" in str(exc_info.value.original_exception)
    assert exc_info.value.request_state == {"agent_name": "assistant", "step": 1}


@pytest.mark.asyncio
async def test_model_kwargs_forwarded(make_context, alist):
    model = MockedModelProvider([_text("ok")])
    agent = LlmAgent(name="assistant", model=model, model_kwargs={"temperature": 0.2})

    await alist(LlmFlow().run_async(make_context(agent)))

    assert model.calls[0]["kwargs"] == {"temperature": 0.2}
