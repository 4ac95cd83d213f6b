"""Abstract base class for model providers."""

import abc
import logging
import warnings
from typing import Any, AsyncIterable, Mapping, Optional

from ..types.content import Messages
from ..types.streaming import StreamEvent
from ..types.tools import ToolSpec

logger = logging.getLogger(__name__)


class Model(abc.ABC):
    """Abstract base class for model providers.

    A model turns a conversation into a stream of converse-stream events. Provider request/response translation
    lives entirely behind `stream`; the runtime only consumes the resulting events.
    """

    @property
    def model_id(self) -> str:
        """Identifier of the model, as found in its config."""
        return str(self.get_config().get("model_id", type(self).__name__))

    @abc.abstractmethod
    def update_config(self, **model_config: Any) -> None:
        """Update the model configuration with the provided arguments.

        Args:
            **model_config: Configuration overrides.
        """
        pass

    @abc.abstractmethod
    def get_config(self) -> Any:
        """Return the model configuration.

        Returns:
            The model's configuration.
        """
        pass

    @abc.abstractmethod
    def stream(
        self,
        messages: Messages,
        tool_specs: Optional[list[ToolSpec]] = None,
        system_prompt: Optional[str] = None,
        **kwargs: Any,
    ) -> AsyncIterable[StreamEvent]:
        """Stream conversation with the model.

        Args:
            messages: List of message objects to be processed by the model.
            tool_specs: List of tool specifications to make available to the model.
            system_prompt: System prompt to provide context to the model.
            **kwargs: Additional keyword arguments for future extensibility.

        Yields:
            Formatted message chunks from the model.

        Raises:
            ModelThrottledException: When the model service is throttling requests from the client.
        """
        pass


def validate_config_keys(config_dict: Mapping[str, Any], config_class: type) -> None:
    """Warn about configuration keys that the config TypedDict does not declare.

    Args:
        config_dict: Dictionary of configuration parameters.
        config_class: TypedDict class to validate against.
    """
    valid_keys = set(config_class.__annotations__.keys())
    invalid_keys = set(config_dict.keys()) - valid_keys

    if invalid_keys:
        warnings.warn(
            f"Invalid configuration parameters: {sorted(invalid_keys)}."
            f"\nValid parameters are: {sorted(valid_keys)}.",
            stacklevel=4,
        )
