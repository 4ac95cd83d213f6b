import pytest

from agentloop.session import InMemorySessionService
from agentloop.session.session_service import validate_id
from agentloop.types.events import Event, EventActions
from agentloop.types.exceptions import SessionException


@pytest.fixture
def service():
    return InMemorySessionService()


def _event(text, **kwargs):
    return Event(invocation_id="e-1", author="a", content={"role": "assistant", "content": [{"text": text}]}, **kwargs)


def test_validate_id():
    assert validate_id("abc") == "abc"

    with pytest.raises(ValueError, match="cannot contain path separators"):
        validate_id("../etc")
    with pytest.raises(ValueError):
        validate_id("")


@pytest.mark.asyncio
async def test_create_and_get_session(service):
    session = await service.create_session(app_name="app", user_id="u1", session_id="s1", state={"k": "v"})

    loaded = await service.get_session(app_name="app", user_id="u1", session_id="s1")

    assert session.id == loaded.id == "s1"
    assert loaded.state == {"k": "v"}
    assert loaded.events == []


@pytest.mark.asyncio
async def test_generated_session_id(service):
    session = await service.create_session(app_name="app", user_id="u1")

    assert session.id
    assert await service.get_session(app_name="app", user_id="u1", session_id=session.id) is not None


@pytest.mark.asyncio
async def test_duplicate_session(service):
    await service.create_session(app_name="app", user_id="u1", session_id="s1")

    with pytest.raises(SessionException, match="session already exists"):
        await service.create_session(app_name="app", user_id="u1", session_id="s1")


@pytest.mark.asyncio
async def test_sessions_are_scoped_by_app_and_user(service):
    await service.create_session(app_name="app", user_id="u1", session_id="s1")

    assert await service.get_session(app_name="app", user_id="u2", session_id="s1") is None
    assert await service.get_session(app_name="other", user_id="u1", session_id="s1") is None
    assert service.find_session("s1").user_id == "u1"
    assert service.find_session("missing") is None


@pytest.mark.asyncio
async def test_reads_return_copies(service):
    await service.create_session(app_name="app", user_id="u1", session_id="s1")

    loaded = await service.get_session(app_name="app", user_id="u1", session_id="s1")
    loaded.state["tampered"] = True
    loaded.events.append(_event("tampered"))

    fresh = await service.get_session(app_name="app", user_id="u1", session_id="s1")
    assert fresh.state == {}
    assert fresh.events == []


@pytest.mark.asyncio
async def test_append_event(service):
    session = await service.create_session(app_name="app", user_id="u1", session_id="s1")
    event = _event("hello", actions=EventActions(state_delta={"topic": "weather"}))

    await service.append_event(session, event)
    await service.append_event(session, _event("frag", partial=True))

    stored = await service.get_session(app_name="app", user_id="u1", session_id="s1")
    assert [e.id for e in session.events] == [event.id]
    assert [e.id for e in stored.events] == [event.id]
    assert stored.state == {"topic": "weather"}
    assert stored.last_update_time == event.timestamp


@pytest.mark.asyncio
async def test_append_to_deleted_session(service):
    session = await service.create_session(app_name="app", user_id="u1", session_id="s1")
    await service.delete_session(app_name="app", user_id="u1", session_id="s1")

    with pytest.raises(SessionException, match="session not found"):
        await service.append_event(session, _event("late"))
