"""Per-invocation runtime configuration."""

import logging
import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DEFAULT_MAX_LLM_CALLS = 500

_TRUE_VALUES = ("1", "true", "yes", "on")


class RunConfig(BaseModel):
    """Configuration of one invocation.

    Attributes:
        max_llm_calls: Maximum number of model calls per invocation. Zero or a negative value disables the limit.
        streaming: Whether partial text events are surfaced while the model streams.
        save_input_blobs_as_artifacts: Whether inline user attachments are handed to the artifact service.
        custom_metadata: Free-form metadata made available to plugins and agents.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    max_llm_calls: int = DEFAULT_MAX_LLM_CALLS
    streaming: bool = False
    save_input_blobs_as_artifacts: bool = False
    custom_metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_env(cls, **overrides: Any) -> "RunConfig":
        """Build a config from environment variables.

        Reads `AGENTLOOP_MAX_LLM_CALLS` and `AGENTLOOP_STREAMING`. Explicit keyword overrides win.

        Args:
            **overrides: Field values that take precedence over the environment.

        Returns:
            The validated config.
        """
        values: dict[str, Any] = {}

        max_llm_calls = os.environ.get("AGENTLOOP_MAX_LLM_CALLS")
        if max_llm_calls is not None:
            values["max_llm_calls"] = max_llm_calls

        streaming = os.environ.get("AGENTLOOP_STREAMING")
        if streaming is not None:
            values["streaming"] = streaming.strip().lower() in _TRUE_VALUES

        values.update(overrides)
        logger.debug("config=<%s> | loaded run config from environment", values)
        return cls(**values)
