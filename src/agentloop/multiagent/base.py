"""Multi-Agent Base Types.

Provides the result records shared by the composite agents (sequential, parallel, loop).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..types.events import Event

logger = logging.getLogger(__name__)


class Status(Enum):
    """Execution status of a composite agent and of each of its children."""

    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class NodeResult:
    """Outcome of one child run.

    The status field represents the semantic outcome of the child's work:
    - COMPLETED: The child produced a final response
    - FAILED: The child raised or produced an error event
    """

    agent_name: str
    event: Optional[Event] = None
    error: Optional[Exception] = None
    execution_time: int = 0
    status: Status = Status.PENDING

    @property
    def output_text(self) -> str:
        """Text of the child's final output, or its error description."""
        if self.error is not None:
            return f"Error: {self.error}"
        if self.event is None:
            return ""
        if self.event.error_code is not None:
            return f"Error: {self.event.error_message}"
        return self.event.text

    def to_dict(self) -> dict[str, Any]:
        """Convert NodeResult to JSON-serializable dict."""
        return {
            "agent_name": self.agent_name,
            "status": self.status.value,
            "execution_time": self.execution_time,
            "output": self.output_text,
            "event_id": self.event.id if self.event is not None else None,
        }


@dataclass
class MultiAgentResult:
    """Outcome of a composite agent run, children listed in completion order.

    The status field represents the outcome of the composite run:
    - COMPLETED: Every child completed
    - FAILED: At least one child failed
    """

    status: Status = Status.PENDING
    results: dict[str, NodeResult] = field(default_factory=lambda: {})
    execution_time: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert MultiAgentResult to JSON-serializable dict."""
        return {
            "status": self.status.value,
            "results": {name: result.to_dict() for name, result in self.results.items()},
            "execution_time": self.execution_time,
        }
