"""Message window assembly for chat turns."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Sequence, TYPE_CHECKING

from ..ai_types import ChatRole, DatabaseProtocol, Message
from .model_types import MessageWindow, SliceHook, call_maybe_async

if TYPE_CHECKING:
    from ..session.store import SessionStore

LOGGER = logging.getLogger(__name__)

SCHEMA_MESSAGE_PREFIX = "The database schema: "


class MessageAssembler:
    """Builds the bounded message window sent to the provider.

    The window is ``[system role] + candidates + [prompt]`` where candidates
    are the optional schema context, the loaded history (oldest first) and the
    caller's explicit messages. Truncation drops items from the front of the
    whole window, so the system role is the first to go and the prompt the
    last. A window reassembled from its own messages with the same limit is
    unchanged.
    """

    def __init__(
        self,
        *,
        store: "SessionStore | None" = None,
        database: DatabaseProtocol | None = None,
    ) -> None:
        self._store = store
        self._database = database

    async def assemble(
        self,
        *,
        prompt: str | None,
        system_role: str | None,
        max_length: int,
        messages: Sequence[Message] = (),
        load_history: bool = False,
        load_database_schema: bool = False,
        session_id: str | None = None,
        on_messages_length_slice: SliceHook | None = None,
    ) -> MessageWindow:
        """Assemble the window for one provider call.

        Raises:
            ValueError: If ``max_length`` is below 1, or a load is requested
                without the capability backing it.
        """
        if max_length < 1:
            raise ValueError(f"max_length must be at least 1, got {max_length}")

        schema, history = await asyncio.gather(
            self._load_schema() if load_database_schema else _none(),
            self._load_history(session_id, max_length) if load_history else _none(),
        )

        candidates: list[Message] = []
        if schema is not None:
            candidates.append(Message.system(SCHEMA_MESSAGE_PREFIX + json.dumps(schema, ensure_ascii=False, default=str)))
        candidates.extend(history or ())
        candidates.extend(messages)

        if system_role and candidates and _matches(candidates[0], ChatRole.SYSTEM, system_role):
            system_role = None
        if prompt and candidates and _matches(candidates[-1], ChatRole.USER, prompt):
            prompt = None

        window_messages: list[Message] = []
        if system_role:
            window_messages.append(Message.system(system_role))
        window_messages.extend(candidates)
        if prompt:
            window_messages.append(Message.user(prompt))

        dropped = max(0, len(window_messages) - max_length)
        if dropped:
            window_messages = window_messages[dropped:]
            if system_role:
                LOGGER.debug("Dropping system role to fit a window of %s", max_length)
                system_role = None

        window = MessageWindow(
            messages=tuple(window_messages),
            prompt=prompt,
            system_role=system_role,
            max_length=max_length,
            dropped=dropped,
        )
        if window.sliced:
            LOGGER.debug(
                "Message window sliced: dropped %s message(s), %s remain (max %s)",
                dropped,
                len(window),
                max_length,
            )
            await call_maybe_async(on_messages_length_slice, window)
        return window

    async def _load_schema(self) -> Any:
        if self._database is None:
            raise ValueError("Loading the database schema requires a database")
        return await self._database.describe()

    async def _load_history(self, session_id: str | None, limit: int) -> list[Message]:
        if self._store is None or session_id is None:
            raise ValueError("Loading history requires a session store and a session id")
        recent = await self._store.load_recent(session_id, limit)
        history = list(reversed(recent))
        LOGGER.debug("Loaded %s history message(s) for session %s", len(history), session_id)
        return history


def _matches(message: Message, role: ChatRole, content: str) -> bool:
    return message.role is role and message.content == content


async def _none() -> None:
    return None


__all__ = ["MessageAssembler", "SCHEMA_MESSAGE_PREFIX"]
