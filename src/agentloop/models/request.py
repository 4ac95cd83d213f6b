"""Provider-agnostic model request and response."""

from dataclasses import dataclass, field
from typing import Any, Optional

from ..types.content import Message, Messages, Metrics, Usage
from ..types.streaming import StopReason
from ..types.tools import ToolSpec, ToolUse


@dataclass
class ModelRequest:
    """Everything a model call needs, before it reaches a provider.

    Plugins receive the request in `before_model`, `after_model` and `on_model_error`. A `before_model` hook may
    mutate it in place or short-circuit the call by returning a `ModelResponse`.

    Attributes:
        model_id: Identifier of the model the request is addressed to.
        messages: Conversation history sent to the model.
        system_prompt: System prompt, if any.
        tool_specs: Specifications of the tools the model may call.
        config: Extra keyword arguments forwarded to `Model.stream`.
    """

    model_id: str
    messages: Messages
    system_prompt: Optional[str] = None
    tool_specs: list[ToolSpec] = field(default_factory=list)
    config: dict[str, Any] = field(default_factory=dict)


@dataclass
class ModelResponse:
    """A complete model turn.

    Attributes:
        message: The assistant message.
        stop_reason: Why the model stopped generating.
        usage: Token usage, if reported.
        metrics: Latency metrics, if reported.
        invalid_tool_use_ids: Tool uses whose arguments could not be parsed. The executor answers them with error
            results instead of invoking the tool.
        model_id: Identifier of the model that produced the turn.
    """

    message: Message
    stop_reason: StopReason = "end_turn"
    usage: Optional[Usage] = None
    metrics: Optional[Metrics] = None
    invalid_tool_use_ids: list[str] = field(default_factory=list)
    model_id: Optional[str] = None

    @classmethod
    def from_text(cls, text: str, **kwargs: Any) -> "ModelResponse":
        """Create a response holding a single text block.

        Args:
            text: The assistant text.
            **kwargs: Additional response fields.

        Returns:
            The response.
        """
        return cls(message={"role": "assistant", "content": [{"text": text}]}, **kwargs)

    @property
    def tool_uses(self) -> list[ToolUse]:
        """Tool uses requested in the turn, in request order."""
        return [block["toolUse"] for block in self.message["content"] if "toolUse" in block]
