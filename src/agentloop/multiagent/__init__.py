"""Composite agents.

This package provides agents that orchestrate other agents:

- SequentialAgent: runs children one after another on a shared history
- ParallelAgent: runs children concurrently on isolated branches
- LoopAgent: runs children repeatedly until a stop condition holds
"""

from .base import MultiAgentResult, NodeResult, Status
from .loop import LoopAgent, exit_loop
from .parallel import ParallelAgent
from .sequential import SequentialAgent

__all__ = [
    "LoopAgent",
    "MultiAgentResult",
    "NodeResult",
    "ParallelAgent",
    "SequentialAgent",
    "Status",
    "exit_loop",
]
