"""Tests for orchestration/model_types.py."""

from __future__ import annotations

import pytest

from ragchat.ai_types import ChatRole, Message
from ragchat.orchestration.model_types import (
    ChatCompletionParams,
    MessageWindow,
    RetryState,
    ToolCallRequest,
    call_maybe_async,
    tool_call_metadata,
)

from tests.helpers import weather_tool


def test_params_defaults_defer_to_configuration() -> None:
    params = ChatCompletionParams()

    assert params.system_role is None
    assert params.max_messages_length is None
    assert params.model is None
    assert params.temperature is None
    assert params.stream is False
    assert params.load_history is None
    assert params.messages == ()


def test_build_normalizes_loose_inputs() -> None:
    tool = weather_tool()

    params = ChatCompletionParams.build(
        prompt="hi",
        messages=[{"role": "user", "content": "a"}, Message.assistant("b")],
        tools=[tool],
        tool_call_handlers=None,
    )

    assert params.messages == (Message.user("a"), Message.assistant("b"))
    assert params.tools == (tool,)
    assert params.tool_call_handlers == {}
    assert params.prompt == "hi"


def test_evolve_returns_updated_copy() -> None:
    original = ChatCompletionParams.build(prompt="hi", load_history=True)

    updated = original.evolve(max_messages_length=3, load_history=False)

    assert original.load_history is True
    assert original.max_messages_length is None
    assert updated.load_history is False
    assert updated.max_messages_length == 3
    assert updated.prompt == "hi"


def test_evolve_rejects_unknown_options() -> None:
    with pytest.raises(TypeError):
        ChatCompletionParams.build(promt="typo")


def test_message_window_reports_slicing() -> None:
    window = MessageWindow(messages=(Message.user("x"),), prompt="x", system_role=None, max_length=1, dropped=2)

    assert window.sliced
    assert len(window) == 1
    assert window.to_chat_params() == [{"role": "user", "content": "x"}]


def test_retry_state_records_each_attempt() -> None:
    state = RetryState()

    state.record(10)
    state.record(6)

    assert state.attempt == 2
    assert state.max_length == 6


def test_tool_call_metadata_uses_provider_shape() -> None:
    calls = [ToolCallRequest(call_id="c1", name="lookup", index=0, arguments=None)]

    assert tool_call_metadata(calls) == [
        {"id": "c1", "type": "function", "function": {"name": "lookup", "arguments": ""}}
    ]


@pytest.mark.asyncio
async def test_call_maybe_async_handles_sync_async_and_missing_callbacks() -> None:
    async def _async(value: int) -> int:
        return value * 2

    assert await call_maybe_async(None, 1) is None
    assert await call_maybe_async(lambda value: value + 1, 1) == 2
    assert await call_maybe_async(_async, 2) == 4


def test_message_constructors_set_roles() -> None:
    tool_message = Message.tool("done", "c1")

    assert Message.system("s").role is ChatRole.SYSTEM
    assert tool_message.role is ChatRole.TOOL
    assert tool_message.to_chat_param() == {"role": "tool", "content": "done", "tool_call_id": "c1"}
    assert Message.coerce({"role": "assistant", "content": None}) == Message.assistant("")
