"""Circuit breaker plugin.

Stops calling a tool that keeps failing. Each tool has a circuit per scope: after `failure_threshold` consecutive
failures the circuit opens and calls are refused; once `cooldown` seconds have passed a single trial call is let
through (half-open), and its outcome closes or re-opens the circuit.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from typing_extensions import override

from ..types.tools import AgentTool, ToolContext
from .plugin import Plugin

logger = logging.getLogger(__name__)

GLOBAL_CIRCUIT_KEY = "__global_circuit__"
_FAILURE_RECORDED = "circuit_breaker_failure_recorded"
_CALL_REFUSED = "circuit_breaker_call_refused"


class CircuitBreakerScope(str, Enum):
    """Lifetime of the circuits."""

    INVOCATION = "invocation"
    GLOBAL = "global"


class CircuitStateType(str, Enum):
    """State of one circuit."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitState:
    """Failure tracking of one circuit."""

    state: CircuitStateType = CircuitStateType.CLOSED
    failures: int = 0
    opened_at: float = 0.0


class CircuitOpenError(RuntimeError):
    """Raised when a call is refused because its circuit is open."""

    pass


class CircuitBreakerPlugin(Plugin):
    """Refuses calls to tools whose circuit is open."""

    def __init__(
        self,
        name: str = "circuit_breaker_plugin",
        failure_threshold: int = 3,
        cooldown: float = 60.0,
        scope: CircuitBreakerScope = CircuitBreakerScope.INVOCATION,
        throw_on_open: bool = True,
    ) -> None:
        """Initialize the plugin.

        Args:
            name: Plugin name.
            failure_threshold: Consecutive failures that open a circuit.
            cooldown: Seconds an open circuit waits before allowing a trial call.
            scope: Lifetime of the circuits.
            throw_on_open: Whether a refused call raises `CircuitOpenError` instead of returning an error payload.

        Raises:
            ValueError: If `failure_threshold` is not positive or `cooldown` is negative.
        """
        if failure_threshold < 1:
            raise ValueError(f"failure_threshold=<{failure_threshold}> | must be at least 1")
        if cooldown < 0:
            raise ValueError(f"cooldown=<{cooldown}> | must not be negative")

        self._name = name
        self.failure_threshold = failure_threshold
        self.cooldown = cooldown
        self.scope = CircuitBreakerScope(scope)
        self.throw_on_open = throw_on_open
        self._tool_circuits: dict[str, CircuitState] = {}

    @property
    def name(self) -> str:
        """Plugin name."""
        return self._name

    def get_circuit(self, invocation_id: str, tool_name: str) -> CircuitState:
        """The circuit of a tool, created closed on first access."""
        return self._tool_circuits.setdefault(self._get_key(invocation_id, tool_name), CircuitState())

    @override
    async def before_tool_callback(
        self, *, tool: AgentTool, tool_args: dict[str, Any], tool_context: ToolContext
    ) -> Optional[Any]:
        """Refuse the call when the tool's circuit is open."""
        circuit = self.get_circuit(tool_context.invocation_id, tool.tool_name)
        if self._can_attempt_call(circuit):
            return None

        logger.debug("tool_name=<%s> | circuit open, refusing call", tool.tool_name)
        tool_context.state[_CALL_REFUSED] = True
        message = f"Circuit breaker open for tool {tool.tool_name}"
        if self.throw_on_open:
            raise CircuitOpenError(message)
        return {"error": message}

    @override
    async def on_tool_error_callback(
        self, *, tool: AgentTool, tool_args: dict[str, Any], tool_context: ToolContext, error: Exception
    ) -> Optional[Any]:
        """Record the failure. The error itself is left to other plugins or the caller."""
        self._record_failure(self.get_circuit(tool_context.invocation_id, tool.tool_name), tool.tool_name)
        tool_context.state[_FAILURE_RECORDED] = True
        return None

    @override
    async def after_tool_callback(
        self, *, tool: AgentTool, tool_args: dict[str, Any], tool_context: ToolContext, result: Any
    ) -> Optional[Any]:
        """Record the outcome of a completed call. Refused calls leave the circuit unchanged."""
        if tool_context.state.get(_CALL_REFUSED):
            return None

        circuit = self.get_circuit(tool_context.invocation_id, tool.tool_name)
        if tool_context.error is None:
            self._record_success(circuit)
        elif not tool_context.state.get(_FAILURE_RECORDED):
            self._record_failure(circuit, tool.tool_name)
        return None

    @override
    def release_invocation(self, invocation_id: str) -> None:
        """Drop the circuits of a finished invocation. Global circuits are kept."""
        if self.scope is CircuitBreakerScope.GLOBAL:
            return
        prefix = f"{invocation_id}:"
        for key in [key for key in self._tool_circuits if key.startswith(prefix)]:
            del self._tool_circuits[key]

    def _get_key(self, invocation_id: str, tool_name: str) -> str:
        if self.scope is CircuitBreakerScope.GLOBAL:
            return f"{GLOBAL_CIRCUIT_KEY}:{tool_name}"
        return f"{invocation_id}:{tool_name}"

    def _can_attempt_call(self, circuit: CircuitState) -> bool:
        if circuit.state is CircuitStateType.OPEN:
            if time.monotonic() - circuit.opened_at >= self.cooldown:
                circuit.state = CircuitStateType.HALF_OPEN
                return True
            return False
        return True

    def _record_failure(self, circuit: CircuitState, tool_name: str) -> None:
        circuit.failures += 1
        if circuit.failures >= self.failure_threshold or circuit.state is CircuitStateType.HALF_OPEN:
            logger.warning("tool_name=<%s>, failures=<%d> | circuit opened", tool_name, circuit.failures)
            circuit.state = CircuitStateType.OPEN
            circuit.opened_at = time.monotonic()

    def _record_success(self, circuit: CircuitState) -> None:
        circuit.state = CircuitStateType.CLOSED
        circuit.failures = 0
        circuit.opened_at = 0.0
