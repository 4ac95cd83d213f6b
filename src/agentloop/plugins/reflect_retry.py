"""Reflect-and-retry tool plugin.

When a tool fails, the plugin answers the model with a structured reflection instead of an error: what failed, with
which arguments, and what to reconsider before retrying. Consecutive failures are counted per tool; once a tool
exceeds its retry budget the plugin either raises the original error or tells the model to stop using the tool.
"""

import asyncio
import logging
import textwrap
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from typing_extensions import TypedDict, override

from ..types.tools import AgentTool, ToolContext
from .plugin import Plugin

if TYPE_CHECKING:  # pragma: no cover
    from ..agent.invocation_context import InvocationContext

logger = logging.getLogger(__name__)

REFLECT_AND_RETRY_RESPONSE_TYPE = "ERROR_HANDLED_BY_REFLECT_AND_RETRY_PLUGIN"
GLOBAL_SCOPE_KEY = "__global_reflect_and_retry_scope__"


class TrackingScope(str, Enum):
    """Lifetime of the failure counters."""

    INVOCATION = "invocation"
    """Counters are kept per invocation and released when it ends."""

    GLOBAL = "global"
    """Counters are shared by every invocation for the life of the plugin."""


class ToolFailureResponse(TypedDict):
    """Payload returned to the model in place of a failed tool result."""

    response_type: str
    error_type: str
    error_details: str
    retry_count: int
    reflection_guidance: str


_REFLECTION_TEMPLATE = """\
The call to tool `{tool_name}` failed.

**Error Details:**
```
{error_details}
```

**Tool Arguments Used:**
{args_summary}

**Reflection Guidance:**
This is retry attempt **{retry_count} of {max_retries}**. Analyze the error and the arguments you provided. \
Do not repeat the exact same call. Consider:

1. Invalid Parameters
2. State or Preconditions
3. Alternative Approach
4. Simplify the Task
5. Wrong Function Name

Formulate a new plan and try a corrected approach."""

_RETRY_EXCEEDED_TEMPLATE = """\
The tool `{tool_name}` has failed consecutively {max_retries} times and retry limit exceeded.

**Last Error:**
```
{error_details}
```

**Last Arguments Used:**
{args_summary}

**Final Instruction:**
Do not attempt to use the `{tool_name}` tool again for this task. \
Devise a new strategy or inform the user that the task cannot be completed."""


class ReflectAndRetryToolPlugin(Plugin):
    """Turns tool failures into reflection prompts, with a bounded number of retries per tool.

    Subclasses can treat successful-looking results as failures by overriding `extract_error_from_result`.

    Example:
        ```python
        class StatusAwareReflectPlugin(ReflectAndRetryToolPlugin):
            async def extract_error_from_result(self, *, tool, tool_args, tool_context, result):
                if isinstance(result, dict) and result.get("status") == "failed":
                    return result
                return None
        ```
    """

    def __init__(
        self,
        name: str = "reflect_retry_tool_plugin",
        max_retries: int = 3,
        throw_exception_if_retry_exceeded: bool = True,
        tracking_scope: TrackingScope = TrackingScope.INVOCATION,
    ) -> None:
        """Initialize the plugin.

        Args:
            name: Plugin name.
            max_retries: Consecutive failures per tool that are answered with a reflection.
            throw_exception_if_retry_exceeded: Whether to raise the original error once the budget is exceeded,
                instead of returning a final "give up" payload.
            tracking_scope: Lifetime of the failure counters.

        Raises:
            ValueError: If `max_retries` is negative.
        """
        if max_retries < 0:
            raise ValueError(f"max_retries=<{max_retries}> | must not be negative")

        self._name = name
        self.max_retries = max_retries
        self.throw_exception_if_retry_exceeded = throw_exception_if_retry_exceeded
        self.scope = TrackingScope(tracking_scope)
        self._scoped_failure_counters: dict[str, dict[str, int]] = {}
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        """Plugin name."""
        return self._name

    @override
    async def after_tool_callback(
        self, *, tool: AgentTool, tool_args: dict[str, Any], tool_context: ToolContext, result: Any
    ) -> Optional[Any]:
        """Reset the tool's counter on success, or handle an error found in the result."""
        if isinstance(result, dict) and result.get("response_type") == REFLECT_AND_RETRY_RESPONSE_TYPE:
            return None

        error = await self.extract_error_from_result(
            tool=tool, tool_args=tool_args, tool_context=tool_context, result=result
        )
        if error is not None:
            return await self._handle_tool_error(tool, tool_args, tool_context, error)

        self._reset_failures_for_tool(tool_context, tool.tool_name)
        return None

    @override
    async def on_tool_error_callback(
        self, *, tool: AgentTool, tool_args: dict[str, Any], tool_context: ToolContext, error: Exception
    ) -> Optional[Any]:
        """Answer a tool exception with a reflection, or raise it once the retry budget is exceeded."""
        return await self._handle_tool_error(tool, tool_args, tool_context, error)

    async def extract_error_from_result(
        self, *, tool: AgentTool, tool_args: dict[str, Any], tool_context: ToolContext, result: Any
    ) -> Optional[Any]:
        """Find an error hidden in a tool result.

        Returns:
            The error to handle, or None when the result is a success. The default treats every result as a success.
        """
        return None

    @override
    async def after_run_callback(self, *, invocation_context: "InvocationContext") -> None:
        """Release the counters of the finished invocation."""
        self.release_invocation(invocation_context.invocation_id)
        return None

    @override
    def release_invocation(self, invocation_id: str) -> None:
        """Drop the counters of a finished invocation. Global counters are kept."""
        if self.scope is TrackingScope.INVOCATION:
            self._scoped_failure_counters.pop(invocation_id, None)

    def get_failure_count(self, tool_context: ToolContext, tool_name: str) -> int:
        """Consecutive failures of a tool in the scope of a tool call."""
        return self._scoped_failure_counters.get(self._get_scope_key(tool_context), {}).get(tool_name, 0)

    async def _handle_tool_error(
        self, tool: AgentTool, tool_args: dict[str, Any], tool_context: ToolContext, error: Any
    ) -> ToolFailureResponse:
        if self.max_retries == 0:
            if self.throw_exception_if_retry_exceeded:
                raise _as_exception(error)
            return self._get_tool_retry_exceed_msg(tool, tool_args, error)

        scope_key = self._get_scope_key(tool_context)

        async with self._lock:
            counters = self._scoped_failure_counters.setdefault(scope_key, {})
            current_retries = counters.get(tool.tool_name, 0) + 1
            counters[tool.tool_name] = current_retries

            if current_retries <= self.max_retries:
                logger.debug(
                    "tool_name=<%s>, retry=<%d/%d> | reflecting on tool failure",
                    tool.tool_name,
                    current_retries,
                    self.max_retries,
                )
                return self._create_tool_reflection_response(tool, tool_args, error, current_retries)

            logger.warning(
                "tool_name=<%s>, max_retries=<%d> | tool retry limit exceeded", tool.tool_name, self.max_retries
            )
            if self.throw_exception_if_retry_exceeded:
                raise _as_exception(error)
            return self._get_tool_retry_exceed_msg(tool, tool_args, error)

    def _get_scope_key(self, tool_context: ToolContext) -> str:
        if self.scope is TrackingScope.INVOCATION:
            return tool_context.invocation_id
        return GLOBAL_SCOPE_KEY

    def _reset_failures_for_tool(self, tool_context: ToolContext, tool_name: str) -> None:
        counters = self._scoped_failure_counters.get(self._get_scope_key(tool_context))
        if counters:
            counters.pop(tool_name, None)

    def _create_tool_reflection_response(
        self, tool: AgentTool, tool_args: dict[str, Any], error: Any, retry_count: int
    ) -> ToolFailureResponse:
        error_details = _format_error_details(error)
        guidance = _REFLECTION_TEMPLATE.format(
            tool_name=tool.tool_name,
            error_details=error_details,
            args_summary=_format_args(tool_args),
            retry_count=retry_count,
            max_retries=self.max_retries,
        )
        return {
            "response_type": REFLECT_AND_RETRY_RESPONSE_TYPE,
            "error_type": _error_type(error),
            "error_details": error_details,
            "retry_count": retry_count,
            "reflection_guidance": guidance,
        }

    def _get_tool_retry_exceed_msg(self, tool: AgentTool, tool_args: dict[str, Any], error: Any) -> ToolFailureResponse:
        error_details = _format_error_details(error)
        guidance = _RETRY_EXCEEDED_TEMPLATE.format(
            tool_name=tool.tool_name,
            error_details=error_details,
            args_summary=_format_args(tool_args),
            max_retries=self.max_retries,
        )
        return {
            "response_type": REFLECT_AND_RETRY_RESPONSE_TYPE,
            "error_type": _error_type(error),
            "error_details": error_details,
            "retry_count": self.max_retries,
            "reflection_guidance": guidance,
        }


def _error_type(error: Any) -> str:
    return type(error).__name__ if isinstance(error, BaseException) else "ToolError"


def _format_error_details(error: Any) -> str:
    if isinstance(error, BaseException):
        return f"{type(error).__name__}: {error}"
    return str(error)


def _format_args(tool_args: Any) -> str:
    if not isinstance(tool_args, dict) or not tool_args:
        return "(no arguments)"
    return "\n".join(f"- {key}: {value}" for key, value in tool_args.items())


def _as_exception(error: Any) -> Exception:
    if isinstance(error, Exception):
        return error
    return RuntimeError(textwrap.shorten(str(error), width=500))
