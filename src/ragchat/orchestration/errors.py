"""Error taxonomy and provider error classification for chat completions.

Provider-specific error shapes are translated into :class:`ProviderErrorKind`
in exactly one place (:func:`classify_provider_error`); the rest of the
engine only deals with the closed set of kinds.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

import openai

__all__ = [
    "ChatCompletionError",
    "ToolExecutionError",
    "MalformedToolCallError",
    "MessageLengthExceededError",
    "MessagesLengthExceededError",
    "RetryExhaustedError",
    "ToolRoundsExceededError",
    "ProviderErrorKind",
    "ProviderErrorInfo",
    "classify_provider_error",
    "parse_length_error_message",
]

_LENGTH_RE = re.compile(r"length\s+(\d+)")

_SINGLE_MESSAGE_CODE = "string_above_max_length"
_WINDOW_CODE = "array_above_max_length"


# -----------------------------------------------------------------------------
# Exceptions
# -----------------------------------------------------------------------------


class ChatCompletionError(Exception):
    """Base class for errors raised by the chat-completion engine."""


class ToolExecutionError(ChatCompletionError):
    """A tool executor failed.

    Captured per call inside a ``ToolCallResult`` and fed back to the model;
    never raised to the caller.
    """

    def __init__(self, tool_name: str, call_id: str, cause: BaseException) -> None:
        self.tool_name = tool_name
        self.call_id = call_id
        self.cause = cause
        super().__init__(str(cause))


class MalformedToolCallError(ChatCompletionError):
    """The model requested a tool call that cannot be executed."""

    def __init__(
        self,
        message: str,
        *,
        tool_name: str | None = None,
        call_id: str | None = None,
        arguments: str | None = None,
    ) -> None:
        self.tool_name = tool_name
        self.call_id = call_id
        self.arguments = arguments
        super().__init__(message)


class _LengthError(ChatCompletionError):
    def __init__(
        self,
        message: str,
        *,
        length: int | None = None,
        max_length: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.message = message
        self.length = length
        self.max_length = max_length
        self.cause = cause
        super().__init__(message)


class MessageLengthExceededError(_LengthError):
    """A single message exceeds the provider's per-message limit. Not recoverable."""


class MessagesLengthExceededError(_LengthError):
    """The message window exceeds the provider's array limit. Recoverable by shrinking."""


class RetryExhaustedError(ChatCompletionError):
    """Window shrinking did not satisfy the provider within the attempt budget."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} window-length retries: {last_error}")


class ToolRoundsExceededError(ChatCompletionError):
    """The model kept requesting tools beyond the configured number of rounds."""

    def __init__(self, max_rounds: int) -> None:
        self.max_rounds = max_rounds
        super().__init__(f"Tool loop exceeded {max_rounds} round(s) without a final answer")


# -----------------------------------------------------------------------------
# Classification
# -----------------------------------------------------------------------------


class ProviderErrorKind(str, Enum):
    SINGLE_MESSAGE_TOO_LONG = "single_message_too_long"
    MESSAGES_WINDOW_TOO_LONG = "messages_window_too_long"
    UNCLASSIFIED = "unclassified"


@dataclass(slots=True, frozen=True)
class ProviderErrorInfo:
    kind: ProviderErrorKind
    message: str
    code: str | None = None
    param: str | None = None


def parse_length_error_message(message: str) -> tuple[int | None, int | None]:
    """Extract ``(length, max_length)`` from a provider error message.

    Numbers following the word ``length`` are collected in order; the first
    is the maximum, the second the attempted length. Missing numbers are
    ``None``.
    """
    numbers = [int(value) for value in _LENGTH_RE.findall(message or "")]
    max_length = numbers[0] if numbers else None
    length = numbers[1] if len(numbers) > 1 else None
    return length, max_length


def classify_provider_error(error: BaseException) -> ProviderErrorInfo:
    """Map a provider error to a :class:`ProviderErrorKind`."""
    message = _error_message(error)
    if not isinstance(error, openai.APIError):
        return ProviderErrorInfo(kind=ProviderErrorKind.UNCLASSIFIED, message=message)

    code, param = _error_code_and_param(error)
    kind = ProviderErrorKind.UNCLASSIFIED
    if code == _SINGLE_MESSAGE_CODE:
        kind = ProviderErrorKind.SINGLE_MESSAGE_TOO_LONG
    elif code == _WINDOW_CODE and param == "messages":
        kind = ProviderErrorKind.MESSAGES_WINDOW_TOO_LONG
    return ProviderErrorInfo(kind=kind, message=message, code=code, param=param)


def _error_code_and_param(error: openai.APIError) -> tuple[str | None, str | None]:
    code = getattr(error, "code", None)
    param = getattr(error, "param", None)
    body = getattr(error, "body", None)
    if isinstance(body, Mapping):
        nested: Any = body.get("error") if isinstance(body.get("error"), Mapping) else body
        code = code or nested.get("code")
        param = param or nested.get("param")
    return (str(code) if code else None, str(param) if param else None)


def _error_message(error: BaseException) -> str:
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(error)
