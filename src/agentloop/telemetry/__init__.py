"""Telemetry module.

This module provides OpenTelemetry tracing for invocations, agents, model calls and tool calls.
"""

from .tracer import Tracer, get_tracer

__all__ = ["Tracer", "get_tracer"]
