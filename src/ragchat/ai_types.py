"""Shared typing contracts for the chat-completion engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

from openai.types.chat import ChatCompletionMessageParam

__all__ = [
    "ChatRole",
    "Message",
    "ChatCompletion",
    "ToolCallDelta",
    "ChatCompletionDelta",
    "ChatCompletionResponse",
    "DatabaseProtocol",
]


class ChatRole(str, Enum):
    """Role of a chat message sender."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(slots=True, frozen=True)
class Message:
    """Immutable chat message.

    Attributes:
        role: The role of the message sender.
        content: The text content of the message.
        tool_call_id: ID linking a tool result to the call it answers.
        tool_calls: Tool call metadata attached to an assistant message.
    """

    role: ChatRole
    content: str
    tool_call_id: str | None = None
    tool_calls: tuple[Mapping[str, Any], ...] | None = None

    def to_chat_param(self) -> ChatCompletionMessageParam:
        """Convert to OpenAI's ChatCompletionMessageParam format."""
        payload: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_call_id is not None:
            payload["tool_call_id"] = self.tool_call_id
        if self.tool_calls is not None:
            payload["tool_calls"] = [dict(call) for call in self.tool_calls]
        return payload  # type: ignore[return-value]

    @classmethod
    def from_chat_param(cls, param: Mapping[str, Any]) -> Message:
        """Create a Message from OpenAI's ChatCompletionMessageParam format."""
        tool_calls = param.get("tool_calls")
        if tool_calls is not None:
            tool_calls = tuple(tool_calls)
        return cls(
            role=ChatRole(str(param.get("role", "user"))),
            content=str(param.get("content") or ""),
            tool_call_id=param.get("tool_call_id"),
            tool_calls=tool_calls,
        )

    @classmethod
    def coerce(cls, value: Message | Mapping[str, Any]) -> Message:
        if isinstance(value, Message):
            return value
        return cls.from_chat_param(value)

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=ChatRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=ChatRole.USER, content=content)

    @classmethod
    def assistant(
        cls,
        content: str,
        tool_calls: Sequence[Mapping[str, Any]] | None = None,
    ) -> Message:
        return cls(
            role=ChatRole.ASSISTANT,
            content=content,
            tool_calls=tuple(tool_calls) if tool_calls else None,
        )

    @classmethod
    def tool(cls, content: str, tool_call_id: str) -> Message:
        return cls(role=ChatRole.TOOL, content=content, tool_call_id=tool_call_id)


@dataclass(slots=True, frozen=True)
class ChatCompletion:
    """Final completion (batch mode) or a single content chunk (stream mode)."""

    content: str = ""


@dataclass(slots=True, frozen=True)
class ToolCallDelta:
    """Fragment of a streamed tool call, addressed by its index."""

    index: int
    id: str | None = None
    name: str | None = None
    arguments: str | None = None


@dataclass(slots=True, frozen=True)
class ChatCompletionDelta:
    """Normalized representation of one provider stream chunk."""

    content: str | None = None
    tool_calls: tuple[ToolCallDelta, ...] = ()


@dataclass(slots=True)
class ChatCompletionResponse:
    """Normalized non-streamed provider response."""

    content: str = ""
    tool_calls: list[ToolCallDelta] = field(default_factory=list)


@runtime_checkable
class DatabaseProtocol(Protocol):
    """Database capability consumed for optional schema context."""

    async def describe(self) -> Any:
        """Return a JSON-serializable description of the database schema."""
        ...

    async def query(self, statement: str) -> list[dict[str, Any]]:
        """Run a statement and return the resulting rows."""
        ...
