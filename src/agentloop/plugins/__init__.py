"""Plugins intercepting agent execution.

The `PluginManager` dispatches every interception point to the registered plugins. This package also ships the
policy plugins: model fallback, reflect-and-retry for tools and a tool circuit breaker.
"""

from .plugin import Plugin, PluginCallbackName
from .manager import PluginManager
from .circuit_breaker import CircuitBreakerPlugin, CircuitBreakerScope, CircuitOpenError
from .model_fallback import FallbackState, ModelFallbackPlugin
from .reflect_retry import (
    GLOBAL_SCOPE_KEY,
    REFLECT_AND_RETRY_RESPONSE_TYPE,
    ReflectAndRetryToolPlugin,
    TrackingScope,
)

__all__ = [
    "CircuitBreakerPlugin",
    "CircuitBreakerScope",
    "CircuitOpenError",
    "FallbackState",
    "GLOBAL_SCOPE_KEY",
    "ModelFallbackPlugin",
    "Plugin",
    "PluginCallbackName",
    "PluginManager",
    "REFLECT_AND_RETRY_RESPONSE_TYPE",
    "ReflectAndRetryToolPlugin",
    "TrackingScope",
]
