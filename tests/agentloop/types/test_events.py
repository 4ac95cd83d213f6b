import dataclasses

import pytest

from agentloop.types.content import text_of
from agentloop.types.events import Event, EventActions, EventKind


@pytest.fixture
def tool_use():
    return {"toolUseId": "t1", "name": "weather", "input": {"city": "Paris"}}


def test_event_kind():
    partial = Event(
        invocation_id="e-1", author="a", content={"role": "assistant", "content": [{"text": "he"}]}, partial=True
    )
    complete = Event(invocation_id="e-1", author="a", content={"role": "assistant", "content": [{"text": "hello"}]})
    error = Event(invocation_id="e-1", author="a", error_code="ValueError", error_message="boom")

    assert partial.kind is EventKind.PARTIAL
    assert complete.kind is EventKind.COMPLETE
    assert error.kind is EventKind.ERROR


def test_event_is_immutable():
    event = Event(invocation_id="e-1", author="a")

    with pytest.raises(dataclasses.FrozenInstanceError):
        event.author = "b"


def test_event_content_is_detached_from_source():
    message = {"role": "assistant", "content": [{"text": "hello"}]}
    event = Event(invocation_id="e-1", author="a", content=message)

    message["content"].append({"text": " world"})

    assert event.text == "hello"


def test_event_timestamps_strictly_increase():
    events = [Event(invocation_id="e-1", author="a") for _ in range(100)]

    timestamps = [event.timestamp for event in events]
    assert timestamps == sorted(timestamps)
    assert len(set(timestamps)) == len(timestamps)


def test_event_ids_are_unique():
    events = [Event(invocation_id="e-1", author="a") for _ in range(10)]

    assert len({event.id for event in events}) == 10


def test_event_from_exception():
    event = Event.from_exception("e-1", "agent", ValueError("bad input"), branch="root.child")

    assert event.kind is EventKind.ERROR
    assert event.error_code == "ValueError"
    assert event.error_message == "bad input"
    assert event.branch == "root.child"
    assert event.turn_complete
    assert event.is_final_response()


def test_event_tool_uses_and_results(tool_use):
    model_turn = Event(
        invocation_id="e-1",
        author="a",
        content={"role": "assistant", "content": [{"text": "checking"}, {"toolUse": tool_use}]},
    )
    result_turn = Event(
        invocation_id="e-1",
        author="a",
        content={
            "role": "user",
            "content": [{"toolResult": {"toolUseId": "t1", "status": "success", "content": [{"text": "sunny"}]}}],
        },
    )

    assert model_turn.tool_uses() == [tool_use]
    assert model_turn.tool_results() == []
    assert result_turn.tool_results()[0]["toolUseId"] == "t1"
    assert not model_turn.is_final_response()
    assert not result_turn.is_final_response()


def test_event_is_final_response_skip_summarization():
    event = Event(
        invocation_id="e-1",
        author="a",
        content={
            "role": "user",
            "content": [{"toolResult": {"toolUseId": "t1", "status": "success", "content": [{"text": "done"}]}}],
        },
        actions=EventActions(escalate=True, skip_summarization=True),
    )

    assert event.is_final_response()


def test_event_partial_is_never_final():
    event = Event(
        invocation_id="e-1", author="a", content={"role": "assistant", "content": [{"text": "x"}]}, partial=True
    )

    assert not event.is_final_response()


def test_event_without_content():
    event = Event(invocation_id="e-1", author="a")

    assert event.text == ""
    assert event.tool_uses() == []
    assert event.is_final_response()


def test_text_of():
    message = {
        "role": "assistant",
        "content": [{"text": "a"}, {"toolUse": {"toolUseId": "1", "name": "t", "input": {}}}, {"text": "b"}],
    }

    assert text_of(message) == "ab"
    assert text_of(None) == ""
