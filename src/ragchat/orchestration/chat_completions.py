"""Caller-facing chat-completion facade."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, TYPE_CHECKING

from ..ai_types import ChatCompletion, DatabaseProtocol
from ..tools.registry import ToolRegistry
from ..tools.types import Tool
from .config import ChatCompletionsConfig
from .message_builder import MessageAssembler
from .model_types import ChatCompletionParams, MessageWindow, call_maybe_async
from .requester import CompletionRequester, RequestOptions
from .retry import RetryController

if TYPE_CHECKING:
    from ..client import AIClient
    from ..session.store import SessionStore

LOGGER = logging.getLogger(__name__)

OnChunk = Callable[[ChatCompletion], Awaitable[None] | None]

KNOWN_CHAT_MODELS: tuple[str, ...] = (
    "gpt-4o",
    "gpt-4o-2024-05-13",
    "gpt-4o-2024-08-06",
    "gpt-4o-mini",
    "gpt-4o-mini-2024-07-18",
    "gpt-4-turbo",
    "gpt-4-turbo-2024-04-09",
    "gpt-4-turbo-preview",
    "gpt-4-0125-preview",
    "gpt-4-1106-preview",
    "gpt-4",
    "gpt-4-0613",
    "gpt-3.5-turbo-0125",
    "gpt-3.5-turbo",
    "gpt-3.5-turbo-1106",
)


class ChatCompletions:
    """Tool-augmented chat completions over an :class:`AIClient`.

    Example:
        completions = ChatCompletions(client, tools=[weather_tool])
        result = await completions.create_chat_completion(prompt="Weather in Paris?")

        stream = await completions.create_chat_completion(prompt="Hi", stream=True)
        async for chunk in stream:
            print(chunk.content, end="")
    """

    def __init__(
        self,
        client: "AIClient",
        *,
        config: ChatCompletionsConfig | None = None,
        store: "SessionStore | None" = None,
        database: DatabaseProtocol | None = None,
        tools: Iterable[Tool] | None = None,
    ) -> None:
        self._client = client
        self._config = config or ChatCompletionsConfig()
        self._assembler = MessageAssembler(store=store, database=database)
        self._requester = CompletionRequester(client, max_tool_rounds=self._config.max_tool_rounds)
        self._retry = RetryController(max_attempts=self._config.max_retry_attempts)
        self._registry = ToolRegistry(tools)

    @property
    def config(self) -> ChatCompletionsConfig:
        return self._config

    @property
    def tools(self) -> ToolRegistry:
        return self._registry

    def init_tools(self, tools: Iterable[Tool]) -> None:
        """Replace the tools advertised on every call."""
        self._registry.register(tools)

    async def get_models(self, *, force_refresh: bool = False) -> list[str]:
        """Return the known chat-completion models the provider currently serves."""
        available = set(await self._client.list_models(force_refresh=force_refresh))
        models = [model for model in KNOWN_CHAT_MODELS if model in available]
        LOGGER.debug("Provider serves %s of %s known chat model(s)", len(models), len(KNOWN_CHAT_MODELS))
        return models

    async def create_chat_completion(
        self,
        params: ChatCompletionParams | None = None,
        **options: Any,
    ) -> ChatCompletion | AsyncIterator[ChatCompletion]:
        """Run one conversational turn.

        Returns a :class:`ChatCompletion` or, when ``stream`` is set, a
        single-pass async iterator of content chunks.

        Raises:
            ValueError: If ``max_messages_length`` is below 1.
            MalformedToolCallError: If the model requests an unusable tool call.
            MessageLengthExceededError: If one message exceeds the provider limit.
            RetryExhaustedError: If window shrinking did not converge.
            ToolRoundsExceededError: If the tool loop did not terminate.
        """
        params = self._resolve_params(params, options)
        registry = self._registry.merged(params.tools)
        request_options = RequestOptions(
            model=params.model or self._config.model,
            temperature=params.temperature,
            tool_call_handlers=params.tool_call_handlers,
            tool_call_result_handlers=params.tool_call_result_handlers,
        )
        LOGGER.debug(
            "Chat completion: model=%s stream=%s tools=%s",
            request_options.model,
            params.stream,
            registry.names(),
        )

        async def assemble(current: ChatCompletionParams) -> MessageWindow:
            window = await self._assembler.assemble(
                prompt=current.prompt,
                system_role=current.system_role,
                max_length=current.max_messages_length or self._config.max_messages_length,
                messages=current.messages,
                load_history=bool(current.load_history),
                load_database_schema=current.load_database_schema,
                session_id=current.session_id,
                on_messages_length_slice=current.on_messages_length_slice,
            )
            await call_maybe_async(current.on_messages_assembled, window)
            return window

        if params.stream:

            def open_stream(_current: ChatCompletionParams, window: MessageWindow) -> AsyncIterator[ChatCompletion]:
                return self._requester.stream(window.messages, registry, request_options)

            return self._retry.stream(params, assemble, open_stream)

        async def send(_current: ChatCompletionParams, window: MessageWindow) -> ChatCompletion:
            return await self._requester.complete(window.messages, registry, request_options)

        return await self._retry.complete(params, assemble, send)

    async def handle_stream(
        self,
        stream: AsyncIterator[ChatCompletion],
        on_chunk: OnChunk | None = None,
    ) -> ChatCompletion:
        """Drain ``stream`` into one completion, reporting each chunk."""
        parts: list[str] = []
        async for chunk in stream:
            parts.append(chunk.content)
            await call_maybe_async(on_chunk, chunk)
        return ChatCompletion(content="".join(parts))

    def _resolve_params(self, params: ChatCompletionParams | None, options: dict[str, Any]) -> ChatCompletionParams:
        if params is None:
            params = ChatCompletionParams.build(**options)
        elif options:
            params = params.evolve(**options)

        defaults: dict[str, Any] = {}
        if params.system_role is None:
            defaults["system_role"] = self._config.system_role
        if params.max_messages_length is None:
            defaults["max_messages_length"] = self._config.max_messages_length
        if params.temperature is None:
            defaults["temperature"] = self._config.temperature
        if params.load_history is None:
            defaults["load_history"] = False
        if defaults:
            params = params.evolve(**defaults)

        if params.max_messages_length < 1:
            raise ValueError(f"max_messages_length must be at least 1, got {params.max_messages_length}")
        return params


__all__ = ["ChatCompletions", "KNOWN_CHAT_MODELS"]
