"""Tool call validation, execution and result message construction."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

import jsonschema

from ..ai_types import Message
from ..tools.registry import ToolRegistry
from ..tools.types import Tool, ToolCallResult
from .errors import MalformedToolCallError, ToolExecutionError
from .model_types import (
    ToolCallHandler,
    ToolCallRequest,
    ToolCallResultHandler,
    call_maybe_async,
    tool_call_metadata,
)

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolResolution:
    """Outcome of one resolution round.

    ``messages`` holds the assistant message carrying the tool-call metadata
    followed by one tool message per result, in call order.
    """

    results: list[ToolCallResult] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)


@dataclass(slots=True)
class _ValidatedCall:
    request: ToolCallRequest
    tool: Tool
    params: dict[str, Any]


class ToolCallResolver:
    """Executes the tool calls requested in one model round."""

    async def resolve(
        self,
        calls: Sequence[ToolCallRequest],
        registry: ToolRegistry,
        *,
        assistant_content: str = "",
        tool_call_handlers: Mapping[str, ToolCallHandler] | None = None,
        tool_call_result_handlers: Mapping[str, ToolCallResultHandler] | None = None,
    ) -> ToolResolution:
        """Validate every call, then run them concurrently.

        A handler error is raised once every sibling call has finished.

        Raises:
            MalformedToolCallError: If any call names an unknown tool, has no
                name, or carries arguments that are not a JSON object matching
                the tool's parameter schema. No tool runs in that case.
        """
        validated = [self._validate(call, registry) for call in calls]
        outcomes = await asyncio.gather(
            *(
                self._execute(
                    item,
                    (tool_call_handlers or {}).get(item.tool.name),
                    (tool_call_result_handlers or {}).get(item.tool.name),
                )
                for item in validated
            ),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        results = [outcome for outcome in outcomes if isinstance(outcome, ToolCallResult)]
        messages = [Message.assistant(assistant_content, tool_calls=tool_call_metadata(calls))]
        messages.extend(Message.tool(result.to_content(), result.call_id) for result in results)
        return ToolResolution(results=list(results), messages=messages)

    def _validate(self, call: ToolCallRequest, registry: ToolRegistry) -> _ValidatedCall:
        if not call.name:
            raise MalformedToolCallError(
                f"Tool call {call.call_id} has no function name",
                call_id=call.call_id,
                arguments=call.arguments,
            )
        tool = registry.get(call.name)
        if tool is None:
            raise MalformedToolCallError(
                f"Model requested unknown tool '{call.name}'",
                tool_name=call.name,
                call_id=call.call_id,
                arguments=call.arguments,
            )

        params = _parse_arguments(call)
        issues = _schema_issues(params, tool.spec.parameters)
        if issues:
            raise MalformedToolCallError(
                f"Arguments for tool '{call.name}' do not match its schema: {'; '.join(issues)}",
                tool_name=call.name,
                call_id=call.call_id,
                arguments=call.arguments,
            )
        return _ValidatedCall(request=call, tool=tool, params=params)

    async def _execute(
        self,
        item: _ValidatedCall,
        before: ToolCallHandler | None,
        after: ToolCallResultHandler | None,
    ) -> ToolCallResult:
        call, tool, params = item.request, item.tool, item.params
        await call_maybe_async(before, tool, params)

        start = time.perf_counter()
        try:
            raw = await tool.execute(params)
        except Exception as exc:
            LOGGER.warning("Tool %s (%s) failed: %s", call.name, call.call_id, exc)
            return ToolCallResult(
                call_id=call.call_id,
                tool_name=call.name,
                params=params,
                error=ToolExecutionError(call.name, call.call_id, exc),
            )
        duration_ms = (time.perf_counter() - start) * 1000.0
        LOGGER.debug("Tool %s (%s) finished in %.1fms", call.name, call.call_id, duration_ms)

        await call_maybe_async(after, tool, raw, params)
        return _result_from_output(call, params, raw)


def _parse_arguments(call: ToolCallRequest) -> dict[str, Any]:
    raw = (call.arguments or "").strip()
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedToolCallError(
            f"Arguments for tool '{call.name}' are not valid JSON: {exc.msg}",
            tool_name=call.name,
            call_id=call.call_id,
            arguments=call.arguments,
        ) from exc
    if not isinstance(parsed, dict):
        raise MalformedToolCallError(
            f"Arguments for tool '{call.name}' must be a JSON object",
            tool_name=call.name,
            call_id=call.call_id,
            arguments=call.arguments,
        )
    return parsed


def _schema_issues(params: Mapping[str, Any], schema: Mapping[str, Any] | None) -> list[str]:
    if not schema:
        return []
    validator = jsonschema.Draft202012Validator(dict(schema))
    issues: list[str] = []
    for issue in validator.iter_errors(dict(params)):
        path = _format_schema_path(issue.absolute_path)
        issues.append(f"{path}: {issue.message}" if path else issue.message)
    return issues


def _format_schema_path(path: Iterable[Any]) -> str:
    return ".".join(str(part) for part in path)


def _result_from_output(call: ToolCallRequest, params: Mapping[str, Any], raw: Any) -> ToolCallResult:
    if isinstance(raw, Mapping) and ("value" in raw or "error" in raw):
        if raw.get("error") is not None:
            return ToolCallResult(call_id=call.call_id, tool_name=call.name, params=params, error=raw["error"])
        return ToolCallResult(call_id=call.call_id, tool_name=call.name, params=params, value=raw.get("value"))
    return ToolCallResult(call_id=call.call_id, tool_name=call.name, params=params, value=raw)


__all__ = ["ToolCallResolver", "ToolResolution"]
