"""Session service interface.

A session is the persisted conversation of one user with one application. The runtime only appends events to it;
storage formats and backends live behind the `SessionService` interface.
"""

import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ..types.events import Event

logger = logging.getLogger(__name__)


def validate_id(value: str, kind: str = "session_id") -> str:
    """Validate an identifier used as a storage key.

    Args:
        value: Id to validate.
        kind: Name of the identifier, used in the error message.

    Returns:
        Validated id.

    Raises:
        ValueError: If the id is empty or contains path separators.
    """
    if not value or os.path.basename(value) != value:
        raise ValueError(f"{kind}=<{value}> | id must be non-empty and cannot contain path separators")
    return value


@dataclass
class Session:
    """A conversation between one user and one application.

    Attributes:
        id: Session identifier.
        app_name: Name of the application.
        user_id: Identifier of the user.
        events: Persisted events, in append order.
        state: Mutable key-value state, updated from event state deltas.
        last_update_time: Time of the last append, in seconds.
    """

    id: str
    app_name: str
    user_id: str
    events: list[Event] = field(default_factory=list)
    state: dict[str, Any] = field(default_factory=dict)
    last_update_time: float = field(default_factory=time.time)


class SessionService(ABC):
    """Abstract interface for session storage."""

    @abstractmethod
    async def create_session(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: Optional[str] = None,
        state: Optional[dict[str, Any]] = None,
    ) -> Session:
        """Create a session.

        Args:
            app_name: Name of the application.
            user_id: Identifier of the user.
            session_id: Identifier to use, generated when omitted.
            state: Initial state.

        Returns:
            The new session.

        Raises:
            SessionException: If a session with the same id already exists.
        """

    @abstractmethod
    async def get_session(self, *, app_name: str, user_id: str, session_id: str) -> Optional[Session]:
        """Read a session.

        Returns:
            The session, or None if it does not exist for this application and user.
        """

    @abstractmethod
    async def delete_session(self, *, app_name: str, user_id: str, session_id: str) -> None:
        """Delete a session if it exists."""

    async def append_event(self, session: Session, event: Event) -> Event:
        """Append an event to a session.

        Partial events are never persisted. State deltas carried by the event are applied to the session state.

        Args:
            session: The session to append to.
            event: The event.

        Returns:
            The event.
        """
        if event.partial:
            return event

        for key, value in event.actions.state_delta.items():
            session.state[key] = value
        session.events.append(event)
        session.last_update_time = event.timestamp
        return event
