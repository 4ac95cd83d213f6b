"""In-memory session service."""

import copy
import logging
import threading
import uuid
from typing import Any, Optional

from typing_extensions import override

from ..types.events import Event
from ..types.exceptions import SessionException
from .session_service import Session, SessionService, validate_id

logger = logging.getLogger(__name__)


class InMemorySessionService(SessionService):
    """Session service keeping every session in process memory.

    Reads return deep copies, so callers cannot alter stored sessions except through `append_event`.
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._sessions: dict[tuple[str, str, str], Session] = {}
        self._lock = threading.RLock()

    @override
    async def create_session(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: Optional[str] = None,
        state: Optional[dict[str, Any]] = None,
    ) -> Session:
        """Create a session."""
        session_id = validate_id(session_id) if session_id is not None else uuid.uuid4().hex
        validate_id(user_id, "user_id")
        key = (app_name, user_id, session_id)

        with self._lock:
            if key in self._sessions:
                raise SessionException(f"session_id=<{session_id}> | session already exists")

            session = Session(id=session_id, app_name=app_name, user_id=user_id, state=dict(state or {}))
            self._sessions[key] = session
            logger.debug(
                "app_name=<%s>, user_id=<%s>, session_id=<%s> | created session", app_name, user_id, session_id
            )
            return copy.deepcopy(session)

    @override
    async def get_session(self, *, app_name: str, user_id: str, session_id: str) -> Optional[Session]:
        """Read a copy of a session."""
        with self._lock:
            session = self._sessions.get((app_name, user_id, session_id))
            return copy.deepcopy(session) if session is not None else None

    @override
    async def delete_session(self, *, app_name: str, user_id: str, session_id: str) -> None:
        """Delete a session if it exists."""
        with self._lock:
            self._sessions.pop((app_name, user_id, session_id), None)

    def find_session(self, session_id: str) -> Optional[Session]:
        """Find a stored session by id alone, whatever its application or user."""
        with self._lock:
            for (_, _, stored_id), session in self._sessions.items():
                if stored_id == session_id:
                    return copy.deepcopy(session)
        return None

    @override
    async def append_event(self, session: Session, event: Event) -> Event:
        """Append an event to the caller's copy and to the stored session."""
        await super().append_event(session, event)

        if event.partial:
            return event

        with self._lock:
            stored = self._sessions.get((session.app_name, session.user_id, session.id))
            if stored is None:
                raise SessionException(f"session_id=<{session.id}> | session not found")
            if stored is not session:
                await super().append_event(stored, event)
        return event
