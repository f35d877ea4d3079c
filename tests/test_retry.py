"""Tests for window-length recovery in batch and streaming turns."""

from __future__ import annotations

from typing import Any, cast

import openai
import pytest

from ragchat.ai_types import ChatCompletionDelta, Message
from ragchat.client import AIClient
from ragchat.orchestration import (
    ChatCompletions,
    ChatCompletionsConfig,
    MessageLengthExceededError,
    MessagesLengthExceededError,
    RetryExhaustedError,
)

from tests.helpers import (
    RecordingStore,
    ScriptedAIClient,
    StubDatabase,
    bad_request,
    message_too_long,
    text_deltas,
    text_response,
    window_too_long,
)


def _completions(client: ScriptedAIClient, **kwargs: Any) -> ChatCompletions:
    return ChatCompletions(cast(AIClient, client), **kwargs)


@pytest.mark.asyncio
async def test_window_rejection_retries_with_reported_maximum(history: list[Message]) -> None:
    store = RecordingStore(history)
    database = StubDatabase({"tables": []})
    errors: list[Exception] = []
    client = ScriptedAIClient(responses=[window_too_long(3, 7), text_response("recovered")])
    completions = _completions(client, store=store, database=database)

    result = await completions.create_chat_completion(
        prompt="latest",
        system_role="sys",
        load_history=True,
        load_database_schema=True,
        session_id="s1",
        on_messages_length_exceeded_error=errors.append,
    )

    assert result.content == "recovered"
    first, retried = client.calls
    assert len(first["messages"]) == 7
    assert [m["content"] for m in retried["messages"]] == ["second question", "second answer", "latest"]
    assert len(store.loads) == 1
    assert database.describe_calls == 1
    [error] = errors
    assert isinstance(error, MessagesLengthExceededError)
    assert (error.length, error.max_length) == (7, 3)


@pytest.mark.asyncio
async def test_retried_window_matches_window_built_at_that_limit(history: list[Message]) -> None:
    retrying = ScriptedAIClient(responses=[window_too_long(3, 6), text_response("ok")])
    direct = ScriptedAIClient(responses=[text_response("ok")])

    await _completions(retrying).create_chat_completion(prompt="latest", system_role="sys", messages=history)
    await _completions(direct).create_chat_completion(
        prompt="latest", system_role="sys", messages=history, max_messages_length=3
    )

    assert retrying.calls[1]["messages"] == direct.calls[0]["messages"]
    assert [m["content"] for m in direct.calls[0]["messages"]] == ["second question", "second answer", "latest"]


@pytest.mark.asyncio
async def test_repeated_rejections_stop_after_attempt_ceiling() -> None:
    client = ScriptedAIClient(responses=[window_too_long(5 - i, 9) for i in range(4)])
    completions = _completions(client, config=ChatCompletionsConfig(max_retry_attempts=3))

    with pytest.raises(RetryExhaustedError) as excinfo:
        await completions.create_chat_completion(prompt="hi")

    assert excinfo.value.attempts == 3
    assert isinstance(excinfo.value.last_error, MessagesLengthExceededError)
    assert len(client.calls) == 4


@pytest.mark.asyncio
async def test_single_oversized_message_is_reported_not_retried() -> None:
    errors: list[Exception] = []
    rejection = message_too_long(100, 250)
    client = ScriptedAIClient(responses=[rejection])

    with pytest.raises(MessageLengthExceededError) as excinfo:
        await _completions(client).create_chat_completion(
            prompt="x" * 250,
            on_message_length_exceeded_error=errors.append,
        )

    assert (excinfo.value.length, excinfo.value.max_length) == (250, 100)
    assert excinfo.value.__cause__ is rejection
    assert errors == [excinfo.value]
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_unreadable_maximum_fails_without_retry() -> None:
    client = ScriptedAIClient(
        responses=[bad_request("array too long", code="array_above_max_length", param="messages")]
    )

    with pytest.raises(MessagesLengthExceededError):
        await _completions(client).create_chat_completion(prompt="hi")

    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_unrelated_errors_propagate_unchanged() -> None:
    failure = RuntimeError("provider exploded")
    client = ScriptedAIClient(responses=[failure])

    with pytest.raises(RuntimeError) as excinfo:
        await _completions(client).create_chat_completion(prompt="hi")

    assert excinfo.value is failure
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_stream_retries_when_rejected_before_first_chunk() -> None:
    client = ScriptedAIClient(streams=[window_too_long(2, 3), text_deltas("o", "k")])

    stream = await _completions(client).create_chat_completion(prompt="hi", stream=True)
    chunks = [chunk.content async for chunk in stream]

    assert chunks == ["o", "k"]
    assert len(client.stream_calls) == 2
    assert len(client.stream_calls[1]["messages"]) <= 2


@pytest.mark.asyncio
async def test_stream_failure_after_first_chunk_is_not_retried() -> None:
    rejection = window_too_long(2, 3)
    client = ScriptedAIClient(streams=[[ChatCompletionDelta(content="A"), rejection]])
    chunks: list[str] = []

    stream = await _completions(client).create_chat_completion(prompt="hi", stream=True)
    with pytest.raises(openai.BadRequestError):
        async for chunk in stream:
            chunks.append(chunk.content)

    assert chunks == ["A"]
    assert len(client.stream_calls) == 1
