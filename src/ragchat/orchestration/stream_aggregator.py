"""Reassembly of streamed completion deltas into content and tool calls."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AsyncIterator

from ..ai_types import ChatCompletionDelta, ToolCallDelta
from .model_types import ToolCallRequest

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolCallAccumulator:
    """Partial state of one streamed tool call.

    ``id`` and ``name`` are overwritten by later fragments; argument text is
    concatenated in arrival order.
    """

    index: int
    id: str | None = None
    name: str | None = None
    argument_parts: list[str] = field(default_factory=list)

    def apply(self, fragment: ToolCallDelta) -> None:
        if fragment.id:
            self.id = fragment.id
        if fragment.name:
            self.name = fragment.name
        if fragment.arguments:
            self.argument_parts.append(fragment.arguments)

    @property
    def arguments(self) -> str:
        return "".join(self.argument_parts)

    def is_empty(self) -> bool:
        return not (self.id or self.name or self.argument_parts)

    def to_request(self) -> ToolCallRequest:
        return ToolCallRequest(
            call_id=self.id or f"call_{self.index}",
            name=self.name or "",
            index=self.index,
            arguments=self.arguments,
        )


class StreamAggregator:
    """Single-pass consumer of one provider stream.

    Content fragments are forwarded as they arrive; tool-call fragments are
    folded into an ``index -> accumulator`` mapping and exposed through
    :meth:`tool_calls` once the stream has ended.
    """

    def __init__(self) -> None:
        self._accumulators: dict[int, ToolCallAccumulator] = {}
        self._content_parts: list[str] = []
        self._finished = False

    def feed(self, delta: ChatCompletionDelta) -> str | None:
        """Fold one delta into the state; return its content fragment, if any."""
        for fragment in delta.tool_calls:
            accumulator = self._accumulators.get(fragment.index)
            if accumulator is None:
                accumulator = ToolCallAccumulator(index=fragment.index)
                self._accumulators[fragment.index] = accumulator
            accumulator.apply(fragment)
        if delta.content:
            self._content_parts.append(delta.content)
            return delta.content
        return None

    async def consume(self, deltas: AsyncIterator[ChatCompletionDelta]) -> AsyncIterator[str]:
        """Yield content fragments from ``deltas`` in arrival order."""
        async for delta in deltas:
            content = self.feed(delta)
            if content:
                yield content
        self._finished = True
        LOGGER.debug(
            "Stream ended with %s content fragment(s) and %s tool call(s)",
            len(self._content_parts),
            len(self.tool_calls()),
        )

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def content(self) -> str:
        return "".join(self._content_parts)

    def tool_calls(self) -> list[ToolCallRequest]:
        """Return the non-empty accumulated tool calls ordered by index."""
        return [
            self._accumulators[index].to_request()
            for index in sorted(self._accumulators)
            if not self._accumulators[index].is_empty()
        ]


__all__ = ["ToolCallAccumulator", "StreamAggregator"]
