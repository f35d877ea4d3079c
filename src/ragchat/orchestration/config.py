"""Runtime configuration for the chat-completion engine."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_SYSTEM_ROLE = "You are a helpful assistant"


@dataclass(slots=True, frozen=True)
class ChatCompletionsConfig:
    """Defaults applied when a call does not override them."""

    model: str = DEFAULT_MODEL
    system_role: str = DEFAULT_SYSTEM_ROLE
    temperature: float = 0.0
    max_messages_length: int = 2048
    max_tool_rounds: int = 8
    max_retry_attempts: int = 3


__all__ = [
    "DEFAULT_MODEL",
    "DEFAULT_SYSTEM_ROLE",
    "ChatCompletionsConfig",
]
