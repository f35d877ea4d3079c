"""Shared test helpers and stub classes.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Iterable, Mapping, Sequence

import httpx
import openai

from ragchat.ai_types import ChatCompletionDelta, ChatCompletionResponse, Message, ToolCallDelta
from ragchat.tools import FunctionTool, ToolSpec

WINDOW_TOO_LONG = (
    "Invalid 'messages': array too long. Expected an array with maximum length {max}, "
    "but got an array with length {length} instead."
)
MESSAGE_TOO_LONG = (
    "Invalid 'messages[1].content': string too long. Expected a string with maximum length {max}, "
    "but got a string with length {length} instead."
)


class ScriptedAIClient:
    """Stand-in for :class:`ragchat.client.AIClient` replaying scripted replies.

    ``responses`` feed ``create_chat``; ``streams`` feed ``stream_chat``. An
    exception in either script is raised instead of replying; an exception
    inside a stream script is raised mid-stream.
    """

    def __init__(
        self,
        responses: Iterable[ChatCompletionResponse | BaseException] = (),
        streams: Iterable[Sequence[ChatCompletionDelta | BaseException] | BaseException] = (),
        models: Iterable[str] = (),
    ) -> None:
        self.responses = list(responses)
        self.streams = list(streams)
        self.models = list(models)
        self.model_refreshes: list[bool] = []
        self.calls: list[dict[str, Any]] = []
        self.stream_calls: list[dict[str, Any]] = []
        self.closed_streams = 0
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True

    async def list_models(self, *, force_refresh: bool = False) -> list[str]:
        self.model_refreshes.append(force_refresh)
        return list(self.models)

    async def create_chat(
        self,
        messages: Iterable[Mapping[str, Any]],
        *,
        tools: Iterable[Mapping[str, Any]] | None = None,
        model: str | None = None,
        temperature: float | None = None,
        **_extra: Any,
    ) -> ChatCompletionResponse:
        self.calls.append(_record(messages, tools, model, temperature))
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def stream_chat(
        self,
        messages: Iterable[Mapping[str, Any]],
        *,
        tools: Iterable[Mapping[str, Any]] | None = None,
        model: str | None = None,
        temperature: float | None = None,
        **_extra: Any,
    ) -> AsyncIterator[ChatCompletionDelta]:
        self.stream_calls.append(_record(messages, tools, model, temperature))
        item = self.streams.pop(0)
        if isinstance(item, BaseException):
            raise item
        try:
            for delta in item:
                if isinstance(delta, BaseException):
                    raise delta
                yield delta
        finally:
            self.closed_streams += 1


def _record(
    messages: Iterable[Mapping[str, Any]],
    tools: Iterable[Mapping[str, Any]] | None,
    model: str | None,
    temperature: float | None,
) -> dict[str, Any]:
    return {
        "messages": [dict(message) for message in messages],
        "tools": list(tools) if tools else None,
        "model": model,
        "temperature": temperature,
    }


def text_response(content: str) -> ChatCompletionResponse:
    return ChatCompletionResponse(content=content)


def tool_response(*calls: tuple[str, str, str], content: str = "") -> ChatCompletionResponse:
    """Build a response requesting ``(call_id, name, arguments)`` tool calls."""
    return ChatCompletionResponse(
        content=content,
        tool_calls=[
            ToolCallDelta(index=index, id=call_id, name=name, arguments=arguments)
            for index, (call_id, name, arguments) in enumerate(calls)
        ],
    )


def text_deltas(*parts: str) -> list[ChatCompletionDelta]:
    return [ChatCompletionDelta(content=part) for part in parts]


def tool_delta(index: int, *, id: str | None = None, name: str | None = None, arguments: str | None = None) -> ChatCompletionDelta:
    return ChatCompletionDelta(tool_calls=(ToolCallDelta(index=index, id=id, name=name, arguments=arguments),))


def bad_request(message: str, *, code: str | None = None, param: str | None = None) -> openai.BadRequestError:
    request = httpx.Request("POST", "https://api.openai.test/v1/chat/completions")
    response = httpx.Response(400, request=request)
    return openai.BadRequestError(
        message,
        response=response,
        body={"message": message, "type": "invalid_request_error", "code": code, "param": param},
    )


def window_too_long(max_length: int, length: int) -> openai.BadRequestError:
    return bad_request(
        WINDOW_TOO_LONG.format(max=max_length, length=length),
        code="array_above_max_length",
        param="messages",
    )


def message_too_long(max_length: int, length: int) -> openai.BadRequestError:
    return bad_request(
        MESSAGE_TOO_LONG.format(max=max_length, length=length),
        code="string_above_max_length",
        param="messages[1].content",
    )


def weather_tool(handler: Any = None) -> FunctionTool:
    async def _default(args: Mapping[str, Any]) -> dict[str, Any]:
        return {"value": "15C"}

    return FunctionTool(
        spec=ToolSpec(
            name="get_weather",
            description="Current weather for a city",
            parameters={
                "type": "object",
                "properties": {"city": {"type": "string"}},
                "required": ["city"],
            },
        ),
        handler=handler or _default,
    )


class RecordingStore:
    """In-memory session store that counts history loads."""

    def __init__(self, history: Sequence[Message] = ()) -> None:
        self.history: dict[str, list[Message]] = {}
        self.appended: list[tuple[str, Message]] = []
        self.loads: list[tuple[str, int]] = []
        self._seed = list(history)

    async def append(self, session_id: str, message: Message) -> Message:
        self.appended.append((session_id, message))
        self.history.setdefault(session_id, []).append(message)
        return message

    async def load_recent(self, session_id: str, limit: int) -> list[Message]:
        self.loads.append((session_id, limit))
        messages = self._seed + self.history.get(session_id, [])
        return list(reversed(messages))[:limit]


class StubDatabase:
    def __init__(self, schema: Any) -> None:
        self.schema = schema
        self.describe_calls = 0

    async def describe(self) -> Any:
        self.describe_calls += 1
        return self.schema

    async def query(self, statement: str) -> list[dict[str, Any]]:
        return []
