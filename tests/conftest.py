"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from ragchat.ai_types import Message


@pytest.fixture
def history() -> list[Message]:
    return [
        Message.user("first question"),
        Message.assistant("first answer"),
        Message.user("second question"),
        Message.assistant("second answer"),
    ]


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in ("OPENAI_API_KEY", "RAGCHAT_API_KEY", "RAGCHAT_MODEL", "RAGCHAT_DEBUG"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("RAGCHAT_LOG_DIR", str(tmp_path / "logs"))
