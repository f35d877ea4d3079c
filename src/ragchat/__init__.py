"""Tool-augmented chat completions with session history."""

from .ai_types import ChatCompletion, ChatRole, Message
from .client import AIClient, ClientSettings
from .orchestration import ChatCompletionParams, ChatCompletions, ChatCompletionsConfig
from .session import ChatSession, InMemorySessionStore, SqliteSessionStore
from .tools import FunctionTool, ToolRegistry, ToolSpec

__all__ = [
    "AIClient",
    "ClientSettings",
    "ChatCompletion",
    "ChatCompletionParams",
    "ChatCompletions",
    "ChatCompletionsConfig",
    "ChatRole",
    "ChatSession",
    "FunctionTool",
    "InMemorySessionStore",
    "Message",
    "SqliteSessionStore",
    "ToolRegistry",
    "ToolSpec",
]
