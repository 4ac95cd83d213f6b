"""Invocation context.

One `InvocationContext` exists per top-level run. Composite agents derive child contexts for their sub-agents; a
child shares the invocation id, model call counter and end flag with its parent but owns an independent event
buffer.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Optional

from ..plugins.manager import PluginManager
from ..types.content import Messages
from ..types.events import Event
from ..types.exceptions import LlmCallsLimitExceededException
from .run_config import RunConfig

if TYPE_CHECKING:
    from ..session.session_service import Session, SessionService
    from .base_agent import BaseAgent

logger = logging.getLogger(__name__)


def new_invocation_id() -> str:
    """Generate a globally unique invocation identifier."""
    return f"e-{uuid.uuid4()}"


@dataclass
class _SharedInvocationState:
    """State shared by an invocation context and every context derived from it."""

    llm_call_count: int = 0
    ended: bool = False


def event_belongs_to_branch(current_branch: Optional[str], event: Event) -> bool:
    """Whether an event is visible from a branch.

    Events on the current branch or on one of its ancestors are visible. Events without a branch are visible
    everywhere.
    """
    if not current_branch or not event.branch:
        return True
    return current_branch == event.branch or current_branch.startswith(f"{event.branch}.")


@dataclass
class InvocationContext:
    """Everything an agent needs while it runs.

    Attributes:
        invocation_id: Globally unique identifier of the invocation.
        agent: The agent currently running.
        app_name: Name of the application.
        user_id: Identifier of the user.
        session_id: Identifier of the session.
        events: Ordered turn history visible to the current agent.
        run_config: Runtime configuration.
        plugin_manager: Plugins intercepting the invocation.
        session: The session the invocation belongs to.
        session_service: Session collaborator.
        memory_service: Memory collaborator handle.
        artifact_service: Artifact collaborator handle.
        branch: Dotted path of the agent branch.
    """

    invocation_id: str
    agent: "BaseAgent"
    app_name: str = ""
    user_id: str = ""
    session_id: str = ""
    events: list[Event] = field(default_factory=list)
    run_config: RunConfig = field(default_factory=RunConfig)
    plugin_manager: PluginManager = field(default_factory=PluginManager)
    session: Optional["Session"] = None
    session_service: Optional["SessionService"] = None
    memory_service: Any = None
    artifact_service: Any = None
    branch: Optional[str] = None
    _shared: _SharedInvocationState = field(default_factory=_SharedInvocationState, repr=False)

    def create_child(
        self, agent: "BaseAgent", branch: Optional[str] = None, events: Optional[list[Event]] = None
    ) -> "InvocationContext":
        """Derive the context of a delegated agent.

        Args:
            agent: The agent that will run on the child context.
            branch: Branch of the child, defaults to the parent's branch.
            events: Initial history of the child, defaults to a copy of the parent's history.

        Returns:
            The child context.
        """
        return replace(
            self,
            agent=agent,
            branch=branch if branch is not None else self.branch,
            events=list(self.events if events is None else events),
        )

    def append_event(self, event: Event) -> None:
        """Append a complete event to the history."""
        if not event.partial:
            self.events.append(event)

    def history_messages(self) -> Messages:
        """Convert the visible history into model messages.

        Partial events, error events and events from other branches are skipped.
        """
        messages: Messages = []
        for event in self.events:
            if event.partial or event.error_code is not None or not event.content:
                continue
            if not event_belongs_to_branch(self.branch, event):
                continue
            if not event.content["content"]:
                continue
            messages.append(event.content)
        return messages

    def increment_llm_call_count(self) -> None:
        """Count a model call against `RunConfig.max_llm_calls`.

        Raises:
            LlmCallsLimitExceededException: If the call exceeds the limit.
        """
        self._shared.llm_call_count += 1
        limit = self.run_config.max_llm_calls
        if limit > 0 and self._shared.llm_call_count > limit:
            raise LlmCallsLimitExceededException(f"max_llm_calls=<{limit}> | max number of llm calls exceeded")

    @property
    def llm_call_count(self) -> int:
        """Number of model calls made so far in the invocation."""
        return self._shared.llm_call_count

    def end_invocation(self) -> None:
        """Ask the invocation to stop cleanly at the next opportunity."""
        logger.debug("invocation_id=<%s> | invocation end requested", self.invocation_id)
        self._shared.ended = True

    @property
    def is_ended(self) -> bool:
        """Whether an end of the invocation was requested."""
        return self._shared.ended


@dataclass
class CallbackContext:
    """View of the invocation handed to agent and model hooks.

    Attributes:
        invocation_context: The context of the running agent.
    """

    invocation_context: InvocationContext

    @property
    def agent_name(self) -> str:
        """Name of the running agent."""
        return self.invocation_context.agent.name

    @property
    def invocation_id(self) -> str:
        """Identifier of the invocation."""
        return self.invocation_context.invocation_id

    @property
    def branch(self) -> Optional[str]:
        """Branch of the running agent."""
        return self.invocation_context.branch

    @property
    def state(self) -> dict[str, Any]:
        """Mutable session state, or an empty dict when the invocation has no session."""
        session = self.invocation_context.session
        return session.state if session is not None else {}
