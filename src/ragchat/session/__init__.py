"""Session history persistence and history-aware chat sessions."""

from .session import ChatSession
from .store import ChatMessageRecord, InMemorySessionStore, SessionStore, SqliteSessionStore

__all__ = [
    "ChatSession",
    "ChatMessageRecord",
    "SessionStore",
    "InMemorySessionStore",
    "SqliteSessionStore",
]
