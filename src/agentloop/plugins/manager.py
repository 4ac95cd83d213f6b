"""Plugin manager.

The `PluginManager` holds the plugins of a runner and dispatches every interception point to them in registration
order. Dispatch stops at the first plugin that returns a value, and that value is handed back to the caller.
"""

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

from ..models.request import ModelRequest, ModelResponse
from ..types.content import Message
from ..types.events import Event
from ..types.exceptions import PluginCallbackException
from ..types.tools import AgentTool, ToolContext
from .plugin import Plugin, PluginCallbackName

if TYPE_CHECKING:
    from ..agent.base_agent import BaseAgent
    from ..agent.invocation_context import CallbackContext, InvocationContext

logger = logging.getLogger(__name__)

DEFAULT_CLOSE_TIMEOUT = 5.0


class PluginManager:
    """Registry and dispatcher for plugins.

    Example:
        ```python
        manager = PluginManager([LoggingPlugin(), ModelFallbackPlugin(["backup-model"])])
        response = await manager.run_before_model_callback(callback_context=ctx, model_request=request)
        ```
    """

    def __init__(self, plugins: Optional[Iterable[Plugin]] = None, close_timeout: float = DEFAULT_CLOSE_TIMEOUT):
        """Initialize the manager.

        Args:
            plugins: Plugins to register, in dispatch order.
            close_timeout: Seconds each plugin gets to close.
        """
        self._plugins: dict[str, Plugin] = {}
        self.close_timeout = close_timeout

        for plugin in plugins or []:
            self.register_plugin(plugin)

    @property
    def plugins(self) -> list[Plugin]:
        """Registered plugins, in dispatch order."""
        return list(self._plugins.values())

    def register_plugin(self, plugin: Plugin) -> None:
        """Register a plugin at the end of the dispatch order.

        Args:
            plugin: The plugin to register.

        Raises:
            ValueError: If a plugin with the same name is already registered.
        """
        if plugin.name in self._plugins:
            raise ValueError(f"plugin_name=<{plugin.name}> | plugin already registered")

        logger.debug("plugin_name=<%s> | registering plugin", plugin.name)
        self._plugins[plugin.name] = plugin

    def get_plugin(self, name: str) -> Optional[Plugin]:
        """Look up a registered plugin by name."""
        return self._plugins.get(name)

    async def run_callbacks(self, callback_name: Union[PluginCallbackName, str], **params: Any) -> Any:
        """Dispatch an interception point to every plugin in registration order.

        Args:
            callback_name: The interception point.
            **params: Keyword parameters of the hook.

        Returns:
            The first non-None value returned by a hook, or None if every hook declined.

        Raises:
            PluginCallbackException: If a hook raised. Dispatch stops at the failing plugin.
        """
        callback = PluginCallbackName(callback_name)

        for plugin in self._plugins.values():
            hook = getattr(plugin, callback.method_name, None)
            if hook is None:
                continue

            try:
                result = hook(**params)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                logger.debug(
                    "plugin_name=<%s>, callback=<%s> | plugin hook raised: %s", plugin.name, callback.value, e
                )
                raise PluginCallbackException(plugin.name, callback.method_name, e) from e

            if result is not None:
                logger.debug("plugin_name=<%s>, callback=<%s> | plugin returned early", plugin.name, callback.value)
                return result

        return None

    async def run_on_user_message_callback(
        self, *, invocation_context: "InvocationContext", user_message: Message
    ) -> Optional[Message]:
        """Dispatch `on_user_message`."""
        return await self.run_callbacks(
            PluginCallbackName.ON_USER_MESSAGE, invocation_context=invocation_context, user_message=user_message
        )

    async def run_before_run_callback(self, *, invocation_context: "InvocationContext") -> Optional[Event]:
        """Dispatch `before_run`."""
        return await self.run_callbacks(PluginCallbackName.BEFORE_RUN, invocation_context=invocation_context)

    async def run_after_run_callback(self, *, invocation_context: "InvocationContext") -> None:
        """Dispatch `after_run`."""
        await self.run_callbacks(PluginCallbackName.AFTER_RUN, invocation_context=invocation_context)

    async def run_on_event_callback(self, *, invocation_context: "InvocationContext", event: Event) -> Optional[Event]:
        """Dispatch `on_event`."""
        return await self.run_callbacks(
            PluginCallbackName.ON_EVENT, invocation_context=invocation_context, event=event
        )

    async def run_before_agent_callback(
        self, *, agent: "BaseAgent", callback_context: "CallbackContext"
    ) -> Optional[Message]:
        """Dispatch `before_agent`."""
        return await self.run_callbacks(
            PluginCallbackName.BEFORE_AGENT, agent=agent, callback_context=callback_context
        )

    async def run_after_agent_callback(
        self, *, agent: "BaseAgent", callback_context: "CallbackContext"
    ) -> Optional[Message]:
        """Dispatch `after_agent`."""
        return await self.run_callbacks(PluginCallbackName.AFTER_AGENT, agent=agent, callback_context=callback_context)

    async def run_before_model_callback(
        self, *, callback_context: "CallbackContext", model_request: ModelRequest
    ) -> Optional[ModelResponse]:
        """Dispatch `before_model`."""
        return await self.run_callbacks(
            PluginCallbackName.BEFORE_MODEL, callback_context=callback_context, model_request=model_request
        )

    async def run_after_model_callback(
        self, *, callback_context: "CallbackContext", model_response: ModelResponse, model_request: ModelRequest
    ) -> Optional[ModelResponse]:
        """Dispatch `after_model`."""
        return await self.run_callbacks(
            PluginCallbackName.AFTER_MODEL,
            callback_context=callback_context,
            model_response=model_response,
            model_request=model_request,
        )

    async def run_on_model_error_callback(
        self, *, callback_context: "CallbackContext", model_request: ModelRequest, error: Exception
    ) -> Optional[ModelResponse]:
        """Dispatch `on_model_error`."""
        return await self.run_callbacks(
            PluginCallbackName.ON_MODEL_ERROR,
            callback_context=callback_context,
            model_request=model_request,
            error=error,
        )

    async def run_before_tool_callback(
        self, *, tool: AgentTool, tool_args: dict[str, Any], tool_context: ToolContext
    ) -> Optional[Any]:
        """Dispatch `before_tool`."""
        return await self.run_callbacks(
            PluginCallbackName.BEFORE_TOOL, tool=tool, tool_args=tool_args, tool_context=tool_context
        )

    async def run_after_tool_callback(
        self, *, tool: AgentTool, tool_args: dict[str, Any], tool_context: ToolContext, result: Any
    ) -> Optional[Any]:
        """Dispatch `after_tool`."""
        return await self.run_callbacks(
            PluginCallbackName.AFTER_TOOL, tool=tool, tool_args=tool_args, tool_context=tool_context, result=result
        )

    async def run_on_tool_error_callback(
        self, *, tool: AgentTool, tool_args: dict[str, Any], tool_context: ToolContext, error: Exception
    ) -> Optional[Any]:
        """Dispatch `on_tool_error`."""
        return await self.run_callbacks(
            PluginCallbackName.ON_TOOL_ERROR, tool=tool, tool_args=tool_args, tool_context=tool_context, error=error
        )

    def release_invocation(self, invocation_id: str) -> None:
        """Tell every plugin that an invocation has ended.

        Args:
            invocation_id: The finished invocation.
        """
        for plugin in self._plugins.values():
            release = getattr(plugin, "release_invocation", None)
            if release is not None:
                release(invocation_id)

    async def close(self) -> None:
        """Close every plugin, each with its own timeout.

        Every plugin gets the chance to close even when an earlier one fails.

        Raises:
            RuntimeError: If any plugin failed or timed out, listing every failing plugin.
        """
        failures: dict[str, Exception] = {}

        for plugin in self._plugins.values():
            close = getattr(plugin, "close", None)
            if close is None:
                continue
            try:
                await asyncio.wait_for(close(), timeout=self.close_timeout)
            except asyncio.TimeoutError:
                failures[plugin.name] = TimeoutError(f"close timed out after {self.close_timeout}s")
            except Exception as e:
                failures[plugin.name] = e

        if failures:
            for name, error in failures.items():
                logger.warning("plugin_name=<%s> | failed to close plugin: %s", name, error)
            details = ", ".join(f"'{name}': {error}" for name, error in failures.items())
            raise RuntimeError(f"Failed to close plugins: {details}")
