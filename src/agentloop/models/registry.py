"""Registry resolving model identifiers to model instances."""

import logging
import re
from typing import Callable

from .model import Model

logger = logging.getLogger(__name__)

ModelFactory = Callable[[str], Model]


class ModelRegistry:
    """Process-wide registry of model factories keyed by model id pattern.

    Fallback policies name models by id; the registry builds the instance on demand.

    Example:
        ```python
        ModelRegistry.register(r"my-model-.*", lambda model_id: MyModel(model_id=model_id))
        model = ModelRegistry.new_model("my-model-large")
        ```
    """

    _factories: dict[str, ModelFactory] = {}

    @classmethod
    def register(cls, pattern: str, factory: ModelFactory) -> None:
        """Register a factory for every model id fully matching a regular expression.

        Args:
            pattern: Regular expression matched against model ids.
            factory: Callable building a model from its id.
        """
        logger.debug("pattern=<%s> | registering model factory", pattern)
        cls._factories[pattern] = factory

    @classmethod
    def unregister(cls, pattern: str) -> None:
        """Remove the factory registered under a pattern, if any."""
        cls._factories.pop(pattern, None)

    @classmethod
    def resolve(cls, model_id: str) -> ModelFactory:
        """Find the factory responsible for a model id.

        Args:
            model_id: The model id.

        Returns:
            The most recently registered factory whose pattern matches.

        Raises:
            ValueError: If no registered pattern matches.
        """
        for pattern, factory in reversed(list(cls._factories.items())):
            if re.fullmatch(pattern, model_id):
                return factory
        raise ValueError(f"model_id=<{model_id}> | model not found in registry")

    @classmethod
    def new_model(cls, model_id: str) -> Model:
        """Build a model instance for a model id.

        Args:
            model_id: The model id.

        Returns:
            A new model instance.
        """
        return cls.resolve(model_id)(model_id)
