"""Tests for orchestration/tool_resolver.py."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Mapping

import pytest

from ragchat.ai_types import ChatRole
from ragchat.orchestration.errors import MalformedToolCallError, ToolExecutionError
from ragchat.orchestration.model_types import ToolCallRequest
from ragchat.orchestration.tool_resolver import ToolCallResolver
from ragchat.tools import FunctionTool, ToolRegistry, ToolSpec

from tests.helpers import weather_tool


def _call(call_id: str, name: str, arguments: str | None, index: int = 0) -> ToolCallRequest:
    return ToolCallRequest(call_id=call_id, name=name, index=index, arguments=arguments)


def _tool(name: str, handler: Any, parameters: Mapping[str, Any] | None = None) -> FunctionTool:
    return FunctionTool(spec=ToolSpec(name=name, description=name, parameters=parameters or {}), handler=handler)


@pytest.mark.asyncio
async def test_result_message_is_correlated_with_call_id() -> None:
    registry = ToolRegistry([weather_tool()])

    resolution = await ToolCallResolver().resolve([_call("c1", "get_weather", '{"city": "Paris"}')], registry)

    assistant, tool_message = resolution.messages
    assert assistant.role is ChatRole.ASSISTANT
    assert assistant.tool_calls == (
        {"id": "c1", "type": "function", "function": {"name": "get_weather", "arguments": '{"city": "Paris"}'}},
    )
    assert tool_message.role is ChatRole.TOOL
    assert tool_message.tool_call_id == "c1"
    assert tool_message.content == "15C"


@pytest.mark.asyncio
async def test_results_follow_call_order_when_calls_finish_out_of_order() -> None:
    async def _slow(args):
        await asyncio.sleep(0.02)
        return "slow"

    async def _fast(args):
        return "fast"

    registry = ToolRegistry([_tool("slow", _slow), _tool("fast", _fast)])

    resolution = await ToolCallResolver().resolve(
        [_call("a", "slow", "{}", 0), _call("b", "fast", "{}", 1)],
        registry,
    )

    assert [(m.tool_call_id, m.content) for m in resolution.messages[1:]] == [("a", "slow"), ("b", "fast")]


@pytest.mark.asyncio
async def test_failing_executor_does_not_abort_siblings() -> None:
    def _boom(args):
        raise RuntimeError("backend unavailable")

    registry = ToolRegistry([_tool("broken", _boom), _tool("ok", lambda args: {"value": 42})])

    resolution = await ToolCallResolver().resolve(
        [_call("a", "broken", "{}", 0), _call("b", "ok", "", 1)],
        registry,
    )

    failed, succeeded = resolution.results
    assert isinstance(failed.error, ToolExecutionError)
    assert failed.to_content() == "backend unavailable"
    assert succeeded.value == 42
    assert [m.content for m in resolution.messages[1:]] == ["backend unavailable", "42"]


@pytest.mark.asyncio
async def test_error_key_in_executor_result_is_reported_as_failure() -> None:
    registry = ToolRegistry([_tool("denied", lambda args: {"error": "not allowed"})])

    resolution = await ToolCallResolver().resolve([_call("a", "denied", "{}")], registry)

    assert resolution.results[0].failed
    assert resolution.messages[1].content == "not allowed"


@pytest.mark.asyncio
async def test_plain_executor_results_are_serialized() -> None:
    registry = ToolRegistry([_tool("rows", lambda args: [{"id": 1}])])

    resolution = await ToolCallResolver().resolve([_call("a", "rows", None)], registry)

    assert json.loads(resolution.messages[1].content) == [{"id": 1}]


@pytest.mark.asyncio
async def test_handlers_wrap_each_execution() -> None:
    events: list[tuple[str, Any]] = []

    async def _before(tool, params):
        events.append(("before", dict(params)))

    def _after(tool, result, params):
        events.append(("after", result))

    def _handler(args):
        events.append(("execute", args["city"]))
        return {"value": "15C"}

    registry = ToolRegistry([weather_tool(_handler)])

    await ToolCallResolver().resolve(
        [_call("c1", "get_weather", '{"city": "Paris"}')],
        registry,
        tool_call_handlers={"get_weather": _before},
        tool_call_result_handlers={"get_weather": _after},
    )

    assert events == [
        ("before", {"city": "Paris"}),
        ("execute", "Paris"),
        ("after", {"value": "15C"}),
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("name", "arguments"),
    [
        ("", "{}"),
        ("unknown_tool", "{}"),
        ("get_weather", '{"city": '),
        ("get_weather", '["Paris"]'),
        ("get_weather", '{"city": 7}'),
        ("get_weather", "{}"),
    ],
)
async def test_malformed_calls_abort_before_any_execution(name: str, arguments: str) -> None:
    executed: list[str] = []

    def _record(args):
        executed.append("ran")
        return "ok"

    registry = ToolRegistry([weather_tool(_record), _tool("other", _record)])

    with pytest.raises(MalformedToolCallError):
        await ToolCallResolver().resolve(
            [_call("ok", "other", "{}", 0), _call("bad", name, arguments, 1)],
            registry,
        )

    assert executed == []


@pytest.mark.asyncio
async def test_handler_error_surfaces_after_sibling_calls_finish() -> None:
    events: list[str] = []

    async def _slow(args):
        await asyncio.sleep(0.05)
        events.append("slow executed")
        return "late"

    def _refuse(tool, params):
        raise RuntimeError("refused")

    registry = ToolRegistry([_tool("fast", lambda args: "now"), _tool("slow", _slow)])

    with pytest.raises(RuntimeError, match="refused"):
        await ToolCallResolver().resolve(
            [_call("a", "fast", "{}", 0), _call("b", "slow", "{}", 1)],
            registry,
            tool_call_handlers={"fast": _refuse},
            tool_call_result_handlers={"slow": lambda tool, result, params: events.append(f"after {result}")},
        )

    assert events == ["slow executed", "after late"]
