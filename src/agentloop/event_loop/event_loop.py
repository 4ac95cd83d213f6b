"""This module implements the central event loop.

The `LlmFlow` drives one `LlmAgent` run as a sequence of steps. Each step is a Thinking phase (one model call) that
either ends the run or leaves tool calls pending; pending tool calls are executed and their results appended to
the history before the next step.

1. Build the model request from the visible history
2. Offer the request to plugins, then call the model and accumulate its stream
3. Execute the requested tools
4. Repeat until the model answers without tools or the step budget runs out
"""

import logging
from typing import TYPE_CHECKING, AsyncGenerator, Union

from ..agent.invocation_context import CallbackContext
from ..models.request import ModelRequest, ModelResponse
from ..telemetry.tracer import get_tracer
from ..types.events import Event, EventActions
from ..types.exceptions import (
    EventLoopException,
    LlmCallsLimitExceededException,
    MaxStepsExceededException,
    ModelException,
    ModelThrottledException,
    PluginCallbackException,
    ToolInvocationException,
)
from .streaming import StreamAccumulator

if TYPE_CHECKING:
    from ..agent.invocation_context import InvocationContext
    from ..agent.llm_agent import LlmAgent

logger = logging.getLogger(__name__)

_PROPAGATED_EXCEPTIONS = (
    EventLoopException,
    LlmCallsLimitExceededException,
    MaxStepsExceededException,
    ModelException,
    ModelThrottledException,
    PluginCallbackException,
    ToolInvocationException,
)


class LlmFlow:
    """Step loop of an `LlmAgent`."""

    async def run_async(self, invocation_context: "InvocationContext") -> AsyncGenerator[Event, None]:
        """Run steps until the agent produces a final response.

        Args:
            invocation_context: Context of the running agent. Model turns and tool results are appended to its
                history.

        Yields:
            Partial text events (when streaming), model turns and tool result turns.

        Raises:
            MaxStepsExceededException: If a step would exceed `max_tool_execution_steps`.
            EventLoopException: If an unexpected error occurs during a step.
        """
        agent: "LlmAgent" = invocation_context.agent  # type: ignore[assignment]
        step = 0

        try:
            while not invocation_context.is_ended:
                step += 1
                if step > agent.max_tool_execution_steps:
                    raise MaxStepsExceededException(agent.name, agent.max_tool_execution_steps)

                logger.debug("agent_name=<%s>, step=<%d> | starting step", agent.name, step)
                last_event = None
                async for event in self._run_one_step_async(invocation_context):
                    last_event = event
                    yield event

                if last_event is None or last_event.is_final_response():
                    break
                if last_event.partial:
                    raise ValueError("last event of a step must not be partial")
        except _PROPAGATED_EXCEPTIONS:
            raise
        except Exception as e:
            logger.exception("cycle failed")
            raise EventLoopException(e, {"agent_name": agent.name, "step": step}) from e

    async def _run_one_step_async(self, ctx: "InvocationContext") -> AsyncGenerator[Event, None]:
        """Run one Thinking phase and, when tools are requested, the tool execution that follows it."""
        agent: "LlmAgent" = ctx.agent  # type: ignore[assignment]

        request = ModelRequest(
            model_id=agent.model.model_id,
            messages=ctx.history_messages(),
            system_prompt=agent.instruction,
            tool_specs=agent.tool_registry.get_all_tool_specs(),
            config=dict(agent.model_kwargs),
        )

        response = None
        async for item in self._call_model_async(ctx, request):
            if isinstance(item, Event):
                yield item
            else:
                response = item

        if response is None:
            return

        tool_uses = response.tool_uses
        model_event = Event(
            invocation_id=ctx.invocation_id,
            author=agent.name,
            content=response.message,
            turn_complete=not tool_uses,
            branch=ctx.branch,
        )
        ctx.append_event(model_event)
        yield model_event

        if not tool_uses:
            return

        logger.debug("agent_name=<%s>, tool_count=<%d> | executing tools", agent.name, len(tool_uses))
        outcomes = await agent.tool_executor.execute(agent, tool_uses, ctx, response.invalid_tool_use_ids)

        tool_event = Event(
            invocation_id=ctx.invocation_id,
            author=agent.name,
            content={"role": "user", "content": [{"toolResult": outcome.result} for outcome in outcomes]},
            branch=ctx.branch,
            actions=EventActions(
                escalate=any(outcome.tool_context.escalate for outcome in outcomes),
                skip_summarization=any(outcome.tool_context.skip_summarization for outcome in outcomes),
            ),
        )
        ctx.append_event(tool_event)
        yield tool_event

    async def _call_model_async(
        self, ctx: "InvocationContext", request: ModelRequest
    ) -> AsyncGenerator[Union[Event, ModelResponse], None]:
        """Call the model through the model interception points.

        Yields:
            Partial text events when streaming is enabled, then the final `ModelResponse`.

        Raises:
            ModelThrottledException: If the model was throttled and no plugin substituted a response.
            ModelException: If the model failed otherwise and no plugin substituted a response.
        """
        agent: "LlmAgent" = ctx.agent  # type: ignore[assignment]
        plugins = ctx.plugin_manager
        callback_context = CallbackContext(ctx)

        override = await plugins.run_before_model_callback(callback_context=callback_context, model_request=request)
        if override is not None:
            logger.debug("agent_name=<%s> | model call overridden by plugin", agent.name)
            yield override
            return

        ctx.increment_llm_call_count()

        tracer = get_tracer()
        span = tracer.start_model_invoke_span(request.model_id, ctx.invocation_id, len(request.messages))
        response: ModelResponse
        try:
            accumulator = StreamAccumulator(request.model_id)
            chunks = agent.model.stream(
                request.messages, request.tool_specs or None, request.system_prompt, **request.config
            )
            async for item in accumulator.process_stream(chunks):
                if isinstance(item, ModelResponse):
                    response = item
                elif ctx.run_config.streaming:
                    yield Event(
                        invocation_id=ctx.invocation_id,
                        author=agent.name,
                        content={"role": "assistant", "content": [{"text": item}]},
                        partial=True,
                        branch=ctx.branch,
                    )
        except Exception as e:
            tracer.end_span_with_error(span, str(e), e)
            logger.debug("model_id=<%s>, error=<%s> | model call failed", request.model_id, e)

            substitute = await plugins.run_on_model_error_callback(
                callback_context=callback_context, model_request=request, error=e
            )
            if substitute is None:
                if isinstance(e, (ModelThrottledException, ModelException)):
                    raise
                raise ModelException(str(e)) from e

            logger.debug("model_id=<%s> | model error handled by plugin", request.model_id)
            response = substitute
        else:
            tracer.end_model_invoke_span(span, response.stop_reason, response.usage)

        altered = await plugins.run_after_model_callback(
            callback_context=callback_context, model_response=response, model_request=request
        )
        if altered is not None:
            response = altered

        yield response
