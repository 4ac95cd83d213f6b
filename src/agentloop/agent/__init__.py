"""This package provides the agent classes and their invocation context."""

from .base_agent import BaseAgent
from .invocation_context import CallbackContext, InvocationContext
from .llm_agent import LlmAgent
from .run_config import RunConfig

__all__ = ["BaseAgent", "CallbackContext", "InvocationContext", "LlmAgent", "RunConfig"]
