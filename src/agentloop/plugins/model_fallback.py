"""Model fallback plugin.

Reacts to rate-limit errors of model calls: the failing model is retried a bounded number of times, then the plugin
cascades through an ordered list of fallback models, each with the same retry budget. When every model is
exhausted the plugin declines and the original error propagates.

Example:
    ```python
    plugin = ModelFallbackPlugin(["backup-model", secondary_model], max_retries=2, retry_delay=0.5)
    runner = Runner(app_name="app", agent=agent, session_service=sessions, plugins=[plugin])
    ```
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Sequence, Tuple, Union

from typing_extensions import override

from ..event_loop.streaming import collect_response
from ..models.model import Model
from ..models.registry import ModelRegistry
from ..models.request import ModelRequest, ModelResponse
from ..types.exceptions import ModelThrottledException
from .plugin import Plugin

if TYPE_CHECKING:
    from ..agent.invocation_context import CallbackContext

logger = logging.getLogger(__name__)

_StateKey = Tuple[str, Optional[str]]

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0


@dataclass
class FallbackState:
    """Fallback progress of one invocation branch.

    Attributes:
        retry_count: Retries spent on the current model.
        fallback_index: Position in the fallback list, -1 while the primary model is in use. Only moves forward.
    """

    retry_count: int = 0
    fallback_index: int = -1


class ModelFallbackPlugin(Plugin):
    """Retries throttled model calls and cascades through fallback models."""

    def __init__(
        self,
        fallback_models: Sequence[Union[Model, str]],
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        name: str = "model_fallback_plugin",
    ) -> None:
        """Initialize the plugin.

        Args:
            fallback_models: Ordered fallbacks, as `Model` instances or ids resolved through `ModelRegistry`.
            max_retries: Retries per model before moving on.
            retry_delay: Seconds to wait before each retry of the same model.
            name: Plugin name.

        Raises:
            ValueError: If `max_retries` or `retry_delay` is negative.
        """
        if max_retries < 0:
            raise ValueError(f"max_retries=<{max_retries}> | must not be negative")
        if retry_delay < 0:
            raise ValueError(f"retry_delay=<{retry_delay}> | must not be negative")

        self._name = name
        self.fallback_models = list(fallback_models)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._states: dict[_StateKey, FallbackState] = {}

    @property
    def name(self) -> str:
        """Plugin name."""
        return self._name

    def get_state(self, invocation_id: str, branch: Optional[str] = None) -> Optional[FallbackState]:
        """Fallback progress of an invocation branch, if a rate-limit error has been seen.

        Parallel branches of one invocation keep separate progress.
        """
        return self._states.get((invocation_id, branch))

    @override
    async def on_model_error_callback(
        self, *, callback_context: "CallbackContext", model_request: ModelRequest, error: Exception
    ) -> Optional[ModelResponse]:
        """Retry or fall back when the model was throttled.

        Returns:
            The response of the first model call that succeeds, or None once every model is exhausted or when the
            error is not a rate-limit error.
        """
        if not isinstance(error, ModelThrottledException):
            return None

        invocation_id = callback_context.invocation_id
        key = (invocation_id, callback_context.branch)
        state = self._states.setdefault(key, FallbackState())
        primary = callback_context.invocation_context.agent.model  # type: ignore[attr-defined]

        while True:
            if state.retry_count < self.max_retries:
                state.retry_count += 1
                candidate = primary if state.fallback_index < 0 else self.fallback_models[state.fallback_index]
                logger.debug(
                    "invocation_id=<%s>, fallback_index=<%d>, retry=<%d/%d> | retrying throttled model",
                    invocation_id,
                    state.fallback_index,
                    state.retry_count,
                    self.max_retries,
                )
                await asyncio.sleep(self.retry_delay)
            else:
                state.fallback_index += 1
                state.retry_count = 0
                if state.fallback_index >= len(self.fallback_models):
                    logger.warning(
                        "invocation_id=<%s> | all fallback models exhausted, propagating original error",
                        invocation_id,
                    )
                    self._states.pop(key, None)
                    return None

                candidate = self.fallback_models[state.fallback_index]
                logger.debug(
                    "invocation_id=<%s>, fallback_index=<%d> | switching to fallback model",
                    invocation_id,
                    state.fallback_index,
                )

            try:
                model = self._resolve(candidate)
            except ValueError as e:
                logger.warning(
                    "invocation_id=<%s>, error=<%s> | skipping unresolvable fallback model", invocation_id, e
                )
                state.retry_count = self.max_retries
                continue

            try:
                response = await self._execute_model(model, model_request)
            except ModelThrottledException as e:
                logger.debug("model_id=<%s>, error=<%s> | model call throttled", model.model_id, e)
                continue
            except Exception as e:
                logger.debug("model_id=<%s>, error=<%s> | model call failed, declining", model.model_id, e)
                self._states.pop(key, None)
                return None

            self._states.pop(key, None)
            return response

    @override
    async def after_model_callback(
        self, *, callback_context: "CallbackContext", model_response: ModelResponse, model_request: ModelRequest
    ) -> Optional[ModelResponse]:
        """Clear the fallback progress of the branch once a model turn has completed."""
        self._states.pop((callback_context.invocation_id, callback_context.branch), None)
        return None

    @override
    def release_invocation(self, invocation_id: str) -> None:
        """Clear the fallback progress of every branch of a finished invocation."""
        for key in [key for key in self._states if key[0] == invocation_id]:
            del self._states[key]

    def _resolve(self, model: Union[Model, str]) -> Model:
        return ModelRegistry.new_model(model) if isinstance(model, str) else model

    async def _execute_model(self, model: Model, model_request: ModelRequest) -> ModelResponse:
        chunks = model.stream(
            model_request.messages,
            model_request.tool_specs or None,
            model_request.system_prompt,
            **model_request.config,
        )
        return await collect_response(chunks, model.model_id)
