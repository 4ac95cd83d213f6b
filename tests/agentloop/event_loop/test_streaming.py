import pytest

from agentloop.event_loop.streaming import StreamAccumulator, collect_response
from agentloop.models.request import ModelResponse


def _tool_start(index, name, tool_use_id="t1"):
    return {
        "contentBlockStart": {
            "contentBlockIndex": index,
            "start": {"toolUse": {"name": name, "toolUseId": tool_use_id}},
        }
    }


def _tool_delta(index, fragment):
    return {"contentBlockDelta": {"contentBlockIndex": index, "delta": {"toolUse": {"input": fragment}}}}


def _text_delta(index, text):
    return {"contentBlockDelta": {"contentBlockIndex": index, "delta": {"text": text}}}


def test_feed_text_deltas():
    accumulator = StreamAccumulator("m1")

    assert accumulator.feed({"messageStart": {"role": "assistant"}}) == []
    assert accumulator.feed({"contentBlockStart": {"contentBlockIndex": 0, "start": {}}}) == []
    assert accumulator.feed(_text_delta(0, "Hel")) == ["Hel"]
    assert accumulator.feed(_text_delta(0, "lo")) == ["lo"]
    accumulator.feed({"contentBlockStop": {"contentBlockIndex": 0}})
    accumulator.feed({"messageStop": {"stopReason": "end_turn"}})

    response = accumulator.finish()

    assert response.message == {"role": "assistant", "content": [{"text": "Hello"}]}
    assert response.stop_reason == "end_turn"
    assert response.model_id == "m1"
    assert response.invalid_tool_use_ids == []


def test_tool_arguments_buffered_per_block_index():
    accumulator = StreamAccumulator()
    events = [
        _tool_start(0, "weather", "t1"),
        _tool_start(1, "time", "t2"),
        _tool_delta(1, '{"zone": '),
        _tool_delta(0, '{"city": '),
        _tool_delta(0, '"Paris"}'),
        _tool_delta(1, '"UTC"}'),
        {"contentBlockStop": {"contentBlockIndex": 1}},
        {"contentBlockStop": {"contentBlockIndex": 0}},
        {"messageStop": {"stopReason": "tool_use"}},
    ]
    for event in events:
        accumulator.feed(event)

    response = accumulator.finish()

    assert response.tool_uses == [
        {"toolUseId": "t1", "name": "weather", "input": {"city": "Paris"}},
        {"toolUseId": "t2", "name": "time", "input": {"zone": "UTC"}},
    ]
    assert response.stop_reason == "tool_use"


def test_malformed_tool_arguments():
    accumulator = StreamAccumulator()
    accumulator.feed(_tool_start(0, "weather", "t1"))
    accumulator.feed(_tool_delta(0, '{"city": "Par'))
    accumulator.feed({"messageStop": {"stopReason": "tool_use"}})

    response = accumulator.finish()

    tool_use = response.tool_uses[0]
    assert tool_use["input"]["error"].startswith("Invalid JSON in tool arguments:")
    assert tool_use["input"]["raw_input"] == '{"city": "Par'
    assert response.invalid_tool_use_ids == ["t1"]


def test_tool_uses_of_unfinished_stream_are_invalid():
    accumulator = StreamAccumulator()
    accumulator.feed(_text_delta(0, "Checking"))
    accumulator.feed(_tool_start(1, "weather", "t1"))
    accumulator.feed(_tool_delta(1, '{"city": "Paris"}'))

    response = accumulator.finish()

    assert not accumulator.completed
    assert response.message["content"][0] == {"text": "Checking"}
    tool_use = response.tool_uses[0]
    assert tool_use["toolUseId"] == "t1"
    assert tool_use["input"]["error"] == "Incomplete tool call: the response ended early"
    assert tool_use["input"]["raw_input"] == '{"city": "Paris"}'
    assert response.invalid_tool_use_ids == ["t1"]

def test_empty_tool_arguments_parse_to_empty_object():
    accumulator = StreamAccumulator()
    accumulator.feed(_tool_start(0, "ping"))
    accumulator.feed({"messageStop": {"stopReason": "tool_use"}})

    response = accumulator.finish()

    assert response.tool_uses[0]["input"] == {}


def test_missing_and_duplicate_tool_use_ids_are_regenerated():
    accumulator = StreamAccumulator()
    accumulator.feed(_tool_start(0, "a", ""))
    accumulator.feed(_tool_start(1, "b", "dup"))
    accumulator.feed(_tool_start(2, "c", "dup"))
    accumulator.feed({"messageStop": {"stopReason": "tool_use"}})

    tool_use_ids = [tool_use["toolUseId"] for tool_use in accumulator.finish().tool_uses]

    assert tool_use_ids[0].startswith("tooluse_")
    assert tool_use_ids[1] == "dup"
    assert tool_use_ids[2] != "dup"
    assert len(set(tool_use_ids)) == 3


def test_stop_reason_forced_to_tool_use():
    accumulator = StreamAccumulator()
    accumulator.feed(_tool_start(0, "a"))
    accumulator.feed({"messageStop": {"stopReason": "end_turn"}})

    assert accumulator.finish().stop_reason == "tool_use"


def test_metadata_recorded():
    accumulator = StreamAccumulator()
    usage = {"inputTokens": 1, "outputTokens": 2, "totalTokens": 3}
    accumulator.feed({"metadata": {"usage": usage, "metrics": {"latencyMs": 10}}})

    response = accumulator.finish()

    assert response.usage == usage
    assert response.metrics == {"latencyMs": 10}


@pytest.mark.asyncio
async def test_process_stream(agenerator, alist):
    chunks = [
        {"messageStart": {"role": "assistant"}},
        {"contentBlockStart": {"contentBlockIndex": 0, "start": {}}},
        _text_delta(0, "a"),
        _text_delta(0, "b"),
        {"messageStop": {"stopReason": "end_turn"}},
    ]

    items = await alist(StreamAccumulator("m").process_stream(agenerator(chunks)))

    assert items[:2] == ["a", "b"]
    assert isinstance(items[-1], ModelResponse)
    assert items[-1].message["content"] == [{"text": "ab"}]


@pytest.mark.asyncio
async def test_collect_response(agenerator):
    chunks = [
        _tool_start(0, "weather", "t1"),
        _tool_delta(0, '{"city": "Oslo"}'),
        {"messageStop": {"stopReason": "tool_use"}},
    ]

    response = await collect_response(agenerator(chunks), "m2")

    assert response.model_id == "m2"
    assert response.tool_uses[0]["input"] == {"city": "Oslo"}
