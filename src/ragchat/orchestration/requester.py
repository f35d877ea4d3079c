"""Provider round-trips and the bounded tool-resolution loop."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Mapping, Sequence, TYPE_CHECKING

from ..ai_types import ChatCompletion, ChatCompletionResponse, Message
from ..tools.registry import ToolRegistry
from .errors import ToolRoundsExceededError
from .model_types import ToolCallHandler, ToolCallRequest, ToolCallResultHandler
from .stream_aggregator import StreamAggregator
from .tool_resolver import ToolCallResolver

if TYPE_CHECKING:
    from ..client import AIClient

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RequestOptions:
    """Per-call provider options threaded through every round."""

    model: str
    temperature: float | None = None
    tool_call_handlers: Mapping[str, ToolCallHandler] = field(default_factory=dict)
    tool_call_result_handlers: Mapping[str, ToolCallResultHandler] = field(default_factory=dict)


class CompletionRequester:
    """Sends a message window to the provider and resolves tool calls.

    Each round sends the running conversation; when the model answers with
    tool calls they are resolved and the conversation is extended with the
    assistant tool-call message and the tool results. A response without tool
    calls ends the loop.
    """

    def __init__(
        self,
        client: "AIClient",
        *,
        resolver: ToolCallResolver | None = None,
        max_tool_rounds: int = 8,
    ) -> None:
        self._client = client
        self._resolver = resolver or ToolCallResolver()
        self._max_tool_rounds = max(0, max_tool_rounds)

    @property
    def max_tool_rounds(self) -> int:
        return self._max_tool_rounds

    async def complete(
        self,
        messages: Sequence[Message],
        registry: ToolRegistry,
        options: RequestOptions,
    ) -> ChatCompletion:
        """Run the batch loop and return the terminal completion.

        Raises:
            ToolRoundsExceededError: If the model still requests tools after
                ``max_tool_rounds`` resolution rounds.
        """
        conversation = list(messages)
        tools = registry.to_openai_tools() or None
        for round_index in range(self._max_tool_rounds + 1):
            response = await self._client.create_chat(
                [message.to_chat_param() for message in conversation],
                tools=tools,
                model=options.model,
                temperature=options.temperature,
            )
            calls = _requests_from_response(response)
            if not calls:
                return ChatCompletion(content=response.content)
            self._check_round(round_index)
            LOGGER.debug("Round %s: resolving %s tool call(s)", round_index + 1, len(calls))
            resolution = await self._resolver.resolve(
                calls,
                registry,
                assistant_content=response.content,
                tool_call_handlers=options.tool_call_handlers,
                tool_call_result_handlers=options.tool_call_result_handlers,
            )
            conversation.extend(resolution.messages)
        raise ToolRoundsExceededError(self._max_tool_rounds)  # pragma: no cover - loop always returns or raises

    async def stream(
        self,
        messages: Sequence[Message],
        registry: ToolRegistry,
        options: RequestOptions,
    ) -> AsyncIterator[ChatCompletion]:
        """Yield content chunks across every round as one continuous sequence.

        Continuation streams, opened after tool resolution, are consumed
        strictly after the stream that requested the tools has ended.
        """
        conversation = list(messages)
        tools = registry.to_openai_tools() or None
        for round_index in range(self._max_tool_rounds + 1):
            aggregator = StreamAggregator()
            deltas = self._client.stream_chat(
                [message.to_chat_param() for message in conversation],
                tools=tools,
                model=options.model,
                temperature=options.temperature,
            )
            try:
                async for content in aggregator.consume(deltas):
                    yield ChatCompletion(content=content)
            finally:
                await _aclose(deltas)

            calls = aggregator.tool_calls()
            if not calls:
                return
            self._check_round(round_index)
            LOGGER.debug("Stream round %s: resolving %s tool call(s)", round_index + 1, len(calls))
            resolution = await self._resolver.resolve(
                calls,
                registry,
                assistant_content=aggregator.content,
                tool_call_handlers=options.tool_call_handlers,
                tool_call_result_handlers=options.tool_call_result_handlers,
            )
            conversation.extend(resolution.messages)

    def _check_round(self, round_index: int) -> None:
        if round_index >= self._max_tool_rounds:
            LOGGER.warning("Model requested tools after %s round(s); giving up", self._max_tool_rounds)
            raise ToolRoundsExceededError(self._max_tool_rounds)


def _requests_from_response(response: ChatCompletionResponse) -> list[ToolCallRequest]:
    return [
        ToolCallRequest(
            call_id=call.id or f"call_{call.index}",
            name=call.name or "",
            index=call.index,
            arguments=call.arguments,
        )
        for call in response.tool_calls
    ]


async def _aclose(iterator: Any) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is not None:
        await aclose()


__all__ = ["CompletionRequester", "RequestOptions"]
