"""Chat-completion engine: window assembly, tool loop, streaming and retries."""

from .chat_completions import KNOWN_CHAT_MODELS, ChatCompletions
from .config import DEFAULT_MODEL, DEFAULT_SYSTEM_ROLE, ChatCompletionsConfig
from .errors import (
    ChatCompletionError,
    MalformedToolCallError,
    MessageLengthExceededError,
    MessagesLengthExceededError,
    ProviderErrorKind,
    RetryExhaustedError,
    ToolExecutionError,
    ToolRoundsExceededError,
    classify_provider_error,
    parse_length_error_message,
)
from .message_builder import MessageAssembler
from .model_types import ChatCompletionParams, MessageWindow, RetryState, ToolCallRequest
from .requester import CompletionRequester, RequestOptions
from .retry import RetryController
from .stream_aggregator import StreamAggregator, ToolCallAccumulator
from .tool_resolver import ToolCallResolver, ToolResolution

__all__ = [
    "ChatCompletions",
    "KNOWN_CHAT_MODELS",
    "ChatCompletionsConfig",
    "DEFAULT_MODEL",
    "DEFAULT_SYSTEM_ROLE",
    "ChatCompletionError",
    "ToolExecutionError",
    "MalformedToolCallError",
    "MessageLengthExceededError",
    "MessagesLengthExceededError",
    "RetryExhaustedError",
    "ToolRoundsExceededError",
    "ProviderErrorKind",
    "classify_provider_error",
    "parse_length_error_message",
    "MessageAssembler",
    "ChatCompletionParams",
    "MessageWindow",
    "RetryState",
    "ToolCallRequest",
    "CompletionRequester",
    "RequestOptions",
    "RetryController",
    "StreamAggregator",
    "ToolCallAccumulator",
    "ToolCallResolver",
    "ToolResolution",
]
