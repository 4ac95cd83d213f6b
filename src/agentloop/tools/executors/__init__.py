"""Tool executors.

This package provides different execution strategies for the tool uses of one model turn.
"""

from . import concurrent, sequential
from ._executor import ToolCallOutcome, ToolExecutor
from .concurrent import ConcurrentToolExecutor
from .sequential import SequentialToolExecutor

__all__ = [
    "ConcurrentToolExecutor",
    "SequentialToolExecutor",
    "ToolCallOutcome",
    "ToolExecutor",
    "concurrent",
    "sequential",
]
