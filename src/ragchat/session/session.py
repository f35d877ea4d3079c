"""Chat sessions: history-aware completions with persistence."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator, Iterable, TYPE_CHECKING

from ..ai_types import ChatCompletion, ChatRole, DatabaseProtocol, Message
from ..orchestration.chat_completions import ChatCompletions
from ..orchestration.config import ChatCompletionsConfig
from ..orchestration.model_types import ChatCompletionParams, MessageWindow, WindowHook, call_maybe_async
from ..tools.types import Tool
from .store import ChatMessageRecord, SessionStore

if TYPE_CHECKING:
    from ..client import AIClient

LOGGER = logging.getLogger(__name__)


class ChatSession:
    """A conversation whose turns are persisted to a :class:`SessionStore`.

    After a turn completes the session stores the prompt that was sent and
    the final assistant content. A turn that sent no prompt of its own stores
    only the assistant message. Tool traffic is never stored. A streamed turn
    is stored once the stream has been fully consumed; an abandoned or failed
    stream stores nothing.
    """

    def __init__(
        self,
        client: "AIClient",
        store: SessionStore,
        *,
        session_id: str | None = None,
        name: str | None = None,
        store_history: bool = True,
        config: ChatCompletionsConfig | None = None,
        database: DatabaseProtocol | None = None,
        tools: Iterable[Tool] | None = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.name = name
        self.store_history = store_history
        self._store = store
        self._completions = ChatCompletions(client, config=config, store=store, database=database, tools=tools)

    @property
    def completions(self) -> ChatCompletions:
        return self._completions

    @property
    def store(self) -> SessionStore:
        return self._store

    async def create_message(self, role: ChatRole | str, content: str) -> ChatMessageRecord:
        return await self._store.append(self.id, Message(role=ChatRole(role), content=content))

    async def find_messages(self, *, limit: int | None = None) -> list[ChatMessageRecord]:
        return await self._store.find_messages(self.id, limit=limit)

    async def delete_messages(self) -> int:
        removed = await self._store.delete_messages(self.id)
        LOGGER.debug("Deleted %s message(s) from session %s", removed, self.id)
        return removed

    async def create_chat_completion(
        self,
        params: ChatCompletionParams | None = None,
        **options: Any,
    ) -> ChatCompletion | AsyncIterator[ChatCompletion]:
        """Run a turn with this session's history and tools, then persist it.

        ``load_history`` defaults to :attr:`store_history`.
        """
        if params is None:
            params = ChatCompletionParams.build(**options)
        elif options:
            params = params.evolve(**options)
        if params.load_history is None:
            params = params.evolve(load_history=self.store_history)
        sent = _SentWindow(params.on_messages_assembled)
        params = params.evolve(session_id=self.id, on_messages_assembled=sent)

        result = await self._completions.create_chat_completion(params)
        if isinstance(result, ChatCompletion):
            await self._persist_turn(sent.prompt, result.content)
            return result
        return self._persist_after_stream(sent, result)

    async def _persist_after_stream(
        self,
        sent: _SentWindow,
        stream: AsyncIterator[ChatCompletion],
    ) -> AsyncIterator[ChatCompletion]:
        parts: list[str] = []
        try:
            async for chunk in stream:
                parts.append(chunk.content)
                yield chunk
        finally:
            await stream.aclose()  # type: ignore[attr-defined]
        await self._persist_turn(sent.prompt, "".join(parts))

    async def _persist_turn(self, prompt: str | None, content: str) -> None:
        if prompt:
            await self.create_message(ChatRole.USER, prompt)
        await self.create_message(ChatRole.ASSISTANT, content)
        LOGGER.debug("Persisted turn for session %s", self.id)


@dataclass(slots=True)
class _SentWindow:
    """Remembers the first window of a turn and forwards every window to ``hook``.

    Length retries re-assemble from the first window, so its prompt is the
    one the provider received.
    """

    hook: WindowHook | None = None
    first: MessageWindow | None = None

    async def __call__(self, window: MessageWindow) -> None:
        if self.first is None:
            self.first = window
        await call_maybe_async(self.hook, window)

    @property
    def prompt(self) -> str | None:
        return self.first.prompt if self.first is not None else None


__all__ = ["ChatSession"]
