"""Exception-related type definitions for the runtime."""

from typing import Any


class EventLoopException(Exception):
    """Exception raised by the event loop."""

    def __init__(self, original_exception: Exception, request_state: Any = None) -> None:
        """Initialize exception.

        Args:
            original_exception: The original exception that was raised.
            request_state: The state of the request at the time of the exception.
        """
        self.original_exception = original_exception
        self.request_state = request_state if request_state is not None else {}
        super().__init__(str(original_exception))


class ModelThrottledException(Exception):
    """Exception raised when the model is throttled.

    This exception is raised when the model provider rejects a request because of rate limiting. It is the only
    model error that fallback policies react to.
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: The message from the service that describes the throttling.
        """
        self.message = message
        super().__init__(message)


class ModelException(Exception):
    """Exception raised when a model call fails for any reason other than throttling."""

    pass


class ToolInvocationException(Exception):
    """Exception raised when a tool fails and no plugin substituted a result."""

    def __init__(self, tool_name: str, tool_use_id: str, original_exception: Exception) -> None:
        """Initialize exception.

        Args:
            tool_name: Name of the failed tool.
            tool_use_id: Identifier of the failed tool use.
            original_exception: The error raised by the tool.
        """
        self.tool_name = tool_name
        self.tool_use_id = tool_use_id
        self.original_exception = original_exception
        super().__init__(f"tool_name=<{tool_name}>, tool_use_id=<{tool_use_id}> | {original_exception}")


class ToolNotFoundException(Exception):
    """Exception raised when the model requests a tool that is not registered.

    The executor converts it into an error result; it never ends an invocation.
    """

    def __init__(self, tool_name: str) -> None:
        """Initialize exception.

        Args:
            tool_name: The name requested by the model.
        """
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' not found.")


class PluginCallbackException(Exception):
    """Exception raised when a plugin hook fails. Always fatal for the invocation."""

    def __init__(self, plugin_name: str, callback_name: str, original_exception: Exception) -> None:
        """Initialize exception.

        Args:
            plugin_name: Name of the plugin whose hook raised.
            callback_name: Name of the interception point being dispatched.
            original_exception: The error raised by the hook.
        """
        self.plugin_name = plugin_name
        self.callback_name = callback_name
        self.original_exception = original_exception
        super().__init__(
            f"Error in plugin '{plugin_name}' during '{callback_name}' callback: {original_exception}"
        )


class MaxStepsExceededException(Exception):
    """Exception raised when an agent exceeds its tool execution step budget."""

    def __init__(self, agent_name: str, max_steps: int) -> None:
        """Initialize exception.

        Args:
            agent_name: Name of the agent that ran out of steps.
            max_steps: The configured step budget.
        """
        self.agent_name = agent_name
        self.max_steps = max_steps
        super().__init__(f"agent_name=<{agent_name}>, max_steps=<{max_steps}> | max tool execution steps exceeded")


class MaxIterationsExceededException(Exception):
    """Exception raised when a loop agent would iterate past its configured maximum."""

    def __init__(self, agent_name: str, max_iterations: int) -> None:
        """Initialize exception.

        Args:
            agent_name: Name of the loop agent.
            max_iterations: The configured iteration limit.
        """
        self.agent_name = agent_name
        self.max_iterations = max_iterations
        super().__init__(
            f"agent_name=<{agent_name}>, max_iterations=<{max_iterations}> | maximum loop iterations exceeded"
        )


class LlmCallsLimitExceededException(Exception):
    """Exception raised when an invocation makes more model calls than `RunConfig.max_llm_calls` allows."""

    pass


class SessionException(Exception):
    """Exception raised when session operations fail."""

    pass
