"""OpenTelemetry integration.

This module opens spans for invocations, agent runs, model calls and tool calls. Without a configured OpenTelemetry
SDK the API hands out non-recording spans, so tracing costs nothing unless an application opts in.
"""

import json
import logging
from typing import Any, Mapping, Optional

from opentelemetry import trace as trace_api
from opentelemetry.trace import Span, StatusCode

from ..types.tools import ToolResult, ToolUse

logger = logging.getLogger(__name__)

AttributeValue = str | bool | float | int


def _serialize(value: Any) -> str:
    """Serialize a value for a span attribute."""
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return str(value)


class Tracer:
    """Opens and closes runtime spans.

    Spans are parented explicitly rather than through the current context, because the runtime is made of async
    generators that suspend across context boundaries.
    """

    def __init__(self) -> None:
        """Initialize the tracer."""
        self.service_name = "agentloop"
        self.tracer = trace_api.get_tracer(self.service_name)

    def _start_span(
        self,
        span_name: str,
        parent_span: Optional[Span] = None,
        attributes: Optional[Mapping[str, AttributeValue]] = None,
        span_kind: trace_api.SpanKind = trace_api.SpanKind.INTERNAL,
    ) -> Span:
        context = trace_api.set_span_in_context(parent_span) if parent_span is not None else None
        span = self.tracer.start_span(name=span_name, context=context, kind=span_kind)
        if attributes:
            span.set_attributes({key: value for key, value in attributes.items() if value is not None})
        return span

    def _end_span(self, span: Optional[Span], attributes: Optional[Mapping[str, AttributeValue]] = None) -> None:
        if span is None:
            return
        try:
            if attributes:
                span.set_attributes(dict(attributes))
            span.set_status(StatusCode.OK)
        finally:
            span.end()

    def end_span_with_error(self, span: Optional[Span], error_message: str, exception: Optional[Exception] = None):
        """End a span with an error status.

        Args:
            span: The span to end.
            error_message: Error description recorded as the status.
            exception: The exception to record, if any.
        """
        if span is None:
            return
        try:
            span.set_status(StatusCode.ERROR, error_message)
            if exception is not None:
                span.record_exception(exception)
        finally:
            span.end()

    def start_invocation_span(self, invocation_id: str, app_name: str, agent_name: str, user_id: str) -> Span:
        """Start the root span of an invocation."""
        return self._start_span(
            "invoke_runner",
            attributes={
                "gen_ai.operation.name": "invoke_runner",
                "invocation.id": invocation_id,
                "app.name": app_name,
                "gen_ai.agent.name": agent_name,
                "user.id": user_id,
            },
        )

    def end_invocation_span(self, span: Optional[Span], event_count: int) -> None:
        """End the root span of an invocation."""
        self._end_span(span, {"invocation.event_count": event_count})

    def start_agent_span(
        self, agent_name: str, invocation_id: str, branch: Optional[str] = None, parent_span: Optional[Span] = None
    ) -> Span:
        """Start a span for one agent run.

        Args:
            agent_name: Name of the agent.
            invocation_id: Identifier of the invocation.
            branch: Branch the agent runs on.
            parent_span: Enclosing span.

        Returns:
            The span.
        """
        return self._start_span(
            f"invoke_agent {agent_name}",
            parent_span=parent_span,
            attributes={
                "gen_ai.operation.name": "invoke_agent",
                "gen_ai.agent.name": agent_name,
                "invocation.id": invocation_id,
                "agent.branch": branch or "",
            },
        )

    def end_agent_span(self, span: Optional[Span], final_text: str = "") -> None:
        """End an agent span, recording the final output."""
        self._end_span(span, {"gen_ai.completion": final_text})

    def start_model_invoke_span(
        self, model_id: str, invocation_id: str, message_count: int, parent_span: Optional[Span] = None
    ) -> Span:
        """Start a span for one model call."""
        return self._start_span(
            "chat",
            parent_span=parent_span,
            attributes={
                "gen_ai.operation.name": "chat",
                "gen_ai.request.model": model_id,
                "invocation.id": invocation_id,
                "gen_ai.request.message_count": message_count,
            },
            span_kind=trace_api.SpanKind.CLIENT,
        )

    def end_model_invoke_span(self, span: Optional[Span], stop_reason: str, usage: Optional[Mapping[str, int]]):
        """End a model call span, recording the stop reason and token usage."""
        attributes: dict[str, AttributeValue] = {"gen_ai.response.finish_reason": stop_reason}
        if usage:
            attributes["gen_ai.usage.input_tokens"] = usage.get("inputTokens", 0)
            attributes["gen_ai.usage.output_tokens"] = usage.get("outputTokens", 0)
        self._end_span(span, attributes)

    def start_tool_call_span(self, tool_use: ToolUse, invocation_id: str, parent_span: Optional[Span] = None) -> Span:
        """Start a span for one tool call."""
        return self._start_span(
            f"execute_tool {tool_use['name']}",
            parent_span=parent_span,
            attributes={
                "gen_ai.operation.name": "execute_tool",
                "gen_ai.tool.name": tool_use["name"],
                "gen_ai.tool.call.id": tool_use["toolUseId"],
                "gen_ai.tool.call.arguments": _serialize(tool_use["input"]),
                "invocation.id": invocation_id,
            },
        )

    def end_tool_call_span(self, span: Optional[Span], tool_result: ToolResult) -> None:
        """End a tool call span, recording the result."""
        self._end_span(
            span,
            {
                "tool.status": tool_result["status"],
                "gen_ai.tool.call.result": _serialize(tool_result["content"]),
            },
        )


_tracer_instance: Optional[Tracer] = None


def get_tracer() -> Tracer:
    """Return the process-wide tracer, creating it on first use."""
    global _tracer_instance

    if _tracer_instance is None:
        _tracer_instance = Tracer()

    return _tracer_instance
