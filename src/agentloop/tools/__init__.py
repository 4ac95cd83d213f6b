"""Tool definition, registration and execution."""

from .decorator import DecoratedFunctionTool, tool
from .executors import ConcurrentToolExecutor, SequentialToolExecutor, ToolExecutor
from .registry import ToolRegistry

__all__ = [
    "ConcurrentToolExecutor",
    "DecoratedFunctionTool",
    "SequentialToolExecutor",
    "ToolExecutor",
    "ToolRegistry",
    "tool",
]
