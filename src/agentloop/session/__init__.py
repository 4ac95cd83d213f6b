"""Session storage interface and in-memory implementation."""

from .in_memory_session_service import InMemorySessionService
from .session_service import Session, SessionService

__all__ = ["InMemorySessionService", "Session", "SessionService"]
