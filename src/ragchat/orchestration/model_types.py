"""Internal data classes for the chat-completion turn handling."""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Iterable, Mapping, Sequence

from ..ai_types import Message
from ..tools.types import Tool

# Hooks and handlers may be plain callables or coroutine functions.
MaybeAwaitable = Awaitable[None] | None
ToolCallHandler = Callable[[Tool, Mapping[str, Any]], MaybeAwaitable]
ToolCallResultHandler = Callable[[Tool, Any, Mapping[str, Any]], MaybeAwaitable]
WindowHook = Callable[["MessageWindow"], MaybeAwaitable]
SliceHook = WindowHook
ErrorHook = Callable[[BaseException], MaybeAwaitable]


async def call_maybe_async(callback: Callable[..., Any] | None, *args: Any) -> Any:
    """Invoke ``callback`` and await the result when it is awaitable."""
    if callback is None:
        return None
    result = callback(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


@dataclass(slots=True)
class ToolCallRequest:
    """Internal representation of tool call directives emitted by the model."""

    call_id: str
    name: str
    index: int
    arguments: str | None

    def to_openai_tool_call(self) -> dict[str, Any]:
        return {
            "id": self.call_id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments or ""},
        }


@dataclass(slots=True, frozen=True)
class MessageWindow:
    """Assembled message window for one provider round.

    Attributes:
        messages: Final ordered window, system role first and prompt last.
        prompt: Prompt actually appended (``None`` when deduplicated or dropped).
        system_role: System role actually prepended (``None`` when deduplicated or dropped).
        max_length: Limit the window was assembled against.
        dropped: Number of leading items removed to satisfy the limit.
    """

    messages: tuple[Message, ...]
    prompt: str | None
    system_role: str | None
    max_length: int
    dropped: int = 0

    @property
    def sliced(self) -> bool:
        return self.dropped > 0

    def __len__(self) -> int:
        return len(self.messages)

    def to_chat_params(self) -> list[dict[str, Any]]:
        return [dict(message.to_chat_param()) for message in self.messages]


@dataclass(slots=True, frozen=True)
class ChatCompletionParams:
    """Caller options for a single chat-completion call.

    ``None`` means "use the configured default" for ``system_role``,
    ``max_messages_length``, ``model``, ``temperature`` and ``load_history``.
    ``on_messages_assembled`` sees every window before it is sent, including
    the re-assembled windows of length retries.
    """

    prompt: str | None = None
    system_role: str | None = None
    stream: bool = False
    messages: tuple[Message, ...] = ()
    tools: tuple[Tool, ...] = ()
    tool_call_handlers: Mapping[str, ToolCallHandler] = field(default_factory=dict)
    tool_call_result_handlers: Mapping[str, ToolCallResultHandler] = field(default_factory=dict)
    load_history: bool | None = None
    load_database_schema: bool = False
    max_messages_length: int | None = None
    on_messages_assembled: WindowHook | None = None
    on_messages_length_slice: SliceHook | None = None
    on_message_length_exceeded_error: ErrorHook | None = None
    on_messages_length_exceeded_error: ErrorHook | None = None
    model: str | None = None
    temperature: float | None = None
    session_id: str | None = None

    @classmethod
    def build(
        cls,
        *,
        messages: Iterable[Message | Mapping[str, Any]] | None = None,
        tools: Iterable[Tool] | Mapping[str, Tool] | None = None,
        **options: Any,
    ) -> ChatCompletionParams:
        """Create params from loosely typed caller options."""
        return cls().evolve(messages=messages, tools=tools, **options)

    def evolve(self, **changes: Any) -> ChatCompletionParams:
        """Return a copy with ``changes`` applied; messages and tools are normalized."""
        if "messages" in changes:
            changes["messages"] = tuple(Message.coerce(message) for message in changes["messages"] or ())
        if "tools" in changes:
            tools = changes["tools"]
            if isinstance(tools, Mapping):
                tools = tools.values()
            changes["tools"] = tuple(tools or ())
        for key in ("tool_call_handlers", "tool_call_result_handlers"):
            if key in changes and changes[key] is None:
                changes[key] = {}
        return replace(self, **changes)


@dataclass(slots=True)
class RetryState:
    """Ephemeral bookkeeping while recovering from window-length rejections."""

    attempt: int = 0
    max_length: int | None = None

    def record(self, max_length: int) -> None:
        self.attempt += 1
        self.max_length = max_length


def tool_call_metadata(calls: Sequence[ToolCallRequest]) -> list[dict[str, Any]]:
    return [call.to_openai_tool_call() for call in calls]


__all__ = [
    "ToolCallHandler",
    "ToolCallResultHandler",
    "WindowHook",
    "SliceHook",
    "ErrorHook",
    "call_maybe_async",
    "ToolCallRequest",
    "MessageWindow",
    "ChatCompletionParams",
    "RetryState",
    "tool_call_metadata",
]
