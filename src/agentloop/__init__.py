"""A runtime for tool-using, composable agents."""

from . import agent, models, plugins, session, telemetry, types
from .agent import BaseAgent, InvocationContext, LlmAgent, RunConfig
from .multiagent import LoopAgent, ParallelAgent, SequentialAgent, exit_loop
from .runner import Runner
from .tools.decorator import tool
from .types.events import Event, EventKind

__all__ = [
    "BaseAgent",
    "Event",
    "EventKind",
    "InvocationContext",
    "LlmAgent",
    "LoopAgent",
    "ParallelAgent",
    "Runner",
    "RunConfig",
    "SequentialAgent",
    "agent",
    "exit_loop",
    "models",
    "plugins",
    "session",
    "telemetry",
    "tool",
    "types",
]
