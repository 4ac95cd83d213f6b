"""Utilities for handling streaming responses from language models.

The `StreamAccumulator` folds the converse-stream events emitted by a model into one complete turn. Text deltas are
concatenated in arrival order, and tool-use argument fragments are buffered per content block index until the
stream signals completion.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, AsyncIterable, Optional, Union

from ..models.request import ModelResponse
from ..types.content import ContentBlock, Metrics, Role, Usage
from ..types.streaming import StopReason, StreamEvent
from ..types.tools import generate_tool_use_id

logger = logging.getLogger(__name__)


@dataclass
class _BlockBuffer:
    """Accumulated state of one content block."""

    kind: str
    text: list[str] = field(default_factory=list)
    tool_use_id: str = ""
    tool_name: str = ""
    tool_input: list[str] = field(default_factory=list)
    stopped: bool = False


class StreamAccumulator:
    """Accumulates one model turn from its stream events.

    Example:
        ```python
        accumulator = StreamAccumulator()
        async for chunk in model.stream(messages):
            for delta in accumulator.feed(chunk):
                print(delta, end="")
        response = accumulator.finish()
        ```
    """

    def __init__(self, model_id: Optional[str] = None) -> None:
        """Initialize an empty accumulator.

        Args:
            model_id: Identifier of the model producing the stream, recorded on the response.
        """
        self.model_id = model_id
        self.role: Role = "assistant"
        self.stop_reason: Optional[StopReason] = None
        self.usage: Optional[Usage] = None
        self.metrics: Optional[Metrics] = None
        self.completed = False
        self._blocks: dict[int, _BlockBuffer] = {}

    def _block(self, index: int, kind: str) -> _BlockBuffer:
        block = self._blocks.get(index)
        if block is None:
            block = _BlockBuffer(kind=kind)
            self._blocks[index] = block
        return block

    def feed(self, event: StreamEvent) -> list[str]:
        """Apply one stream event.

        Args:
            event: The stream event.

        Returns:
            The text deltas carried by the event, to be surfaced as partial output.
        """
        deltas: list[str] = []

        if "messageStart" in event:
            self.role = event["messageStart"].get("role", "assistant")

        elif "contentBlockStart" in event:
            start_event = event["contentBlockStart"]
            index = start_event.get("contentBlockIndex", len(self._blocks))
            tool_start = start_event.get("start", {}).get("toolUse")
            if tool_start is not None:
                block = self._block(index, "toolUse")
                block.kind = "toolUse"
                block.tool_use_id = tool_start.get("toolUseId", "")
                block.tool_name = tool_start["name"]
            else:
                self._block(index, "text")

        elif "contentBlockDelta" in event:
            delta_event = event["contentBlockDelta"]
            index = delta_event.get("contentBlockIndex", max(self._blocks, default=0))
            delta = delta_event["delta"]
            if "toolUse" in delta:
                self._block(index, "toolUse").tool_input.append(delta["toolUse"]["input"])
            elif "text" in delta:
                self._block(index, "text").text.append(delta["text"])
                deltas.append(delta["text"])

        elif "contentBlockStop" in event:
            index = event["contentBlockStop"].get("contentBlockIndex", max(self._blocks, default=0))
            if index in self._blocks:
                self._blocks[index].stopped = True

        elif "messageStop" in event:
            self.stop_reason = event["messageStop"]["stopReason"]
            self.completed = True

        elif "metadata" in event:
            metadata = event["metadata"]
            self.usage = metadata.get("usage", self.usage)
            self.metrics = metadata.get("metrics", self.metrics)

        return deltas

    def finish(self) -> ModelResponse:
        """Build the complete turn from everything fed so far.

        Tool-use arguments are parsed here. Arguments that are not valid JSON, and tool uses of a stream that ended
        without a message stop event, produce a tool use whose input describes the error; its id is listed in
        `ModelResponse.invalid_tool_use_ids`.

        Returns:
            The accumulated response.
        """
        if not self.completed:
            logger.debug("model_id=<%s> | stream ended without a message stop event", self.model_id)

        content: list[ContentBlock] = []
        invalid_tool_use_ids: list[str] = []
        seen_ids: set[str] = set()

        for index in sorted(self._blocks):
            block = self._blocks[index]
            if block.kind == "text":
                if block.text:
                    content.append({"text": "".join(block.text)})
                continue

            tool_use_id = block.tool_use_id
            if not tool_use_id or tool_use_id in seen_ids:
                tool_use_id = generate_tool_use_id()
            seen_ids.add(tool_use_id)

            raw_input = "".join(block.tool_input)
            tool_input: Any
            if not self.completed:
                logger.warning(
                    "tool_name=<%s>, tool_use_id=<%s> | tool call incomplete, stream ended early",
                    block.tool_name,
                    tool_use_id,
                )
                tool_input = {"error": "Incomplete tool call: the response ended early", "raw_input": raw_input}
                invalid_tool_use_ids.append(tool_use_id)
            else:
                try:
                    tool_input = json.loads(raw_input) if raw_input.strip() else {}
                except json.JSONDecodeError as e:
                    logger.warning(
                        "tool_name=<%s>, tool_use_id=<%s> | failed to parse tool arguments: %s",
                        block.tool_name,
                        tool_use_id,
                        e,
                    )
                    tool_input = {"error": f"Invalid JSON in tool arguments: {e}", "raw_input": raw_input}
                    invalid_tool_use_ids.append(tool_use_id)

            content.append({"toolUse": {"toolUseId": tool_use_id, "name": block.tool_name, "input": tool_input}})

        stop_reason: StopReason = self.stop_reason or "end_turn"
        if any("toolUse" in block for block in content):
            stop_reason = "tool_use"

        return ModelResponse(
            message={"role": self.role, "content": content},
            stop_reason=stop_reason,
            usage=self.usage,
            metrics=self.metrics,
            invalid_tool_use_ids=invalid_tool_use_ids,
            model_id=self.model_id,
        )

    async def process_stream(
        self, chunks: AsyncIterable[StreamEvent]
    ) -> AsyncGenerator[Union[str, ModelResponse], None]:
        """Consume a model stream.

        Args:
            chunks: The model's stream events.

        Yields:
            Text deltas as they arrive, then the complete `ModelResponse` as the last item.
        """
        async for chunk in chunks:
            for delta in self.feed(chunk):
                yield delta

        yield self.finish()


async def collect_response(chunks: AsyncIterable[StreamEvent], model_id: Optional[str] = None) -> ModelResponse:
    """Consume a model stream and return only the complete turn.

    Args:
        chunks: The model's stream events.
        model_id: Identifier of the producing model.

    Returns:
        The accumulated response.
    """
    accumulator = StreamAccumulator(model_id)
    async for chunk in chunks:
        accumulator.feed(chunk)
    return accumulator.finish()
