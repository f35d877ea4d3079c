"""Tool system types for the chat-completion engine.

This module defines the tool specification advertised to the model, the
``Tool`` protocol the resolver executes against, and the per-call result
record produced by a resolution round.
"""

from __future__ import annotations

import inspect
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Mapping, Protocol, runtime_checkable

__all__ = [
    "ToolSpec",
    "ToolHandler",
    "AsyncToolHandler",
    "Tool",
    "FunctionTool",
    "ToolCallResult",
]


# -----------------------------------------------------------------------------
# Tool Specification
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ToolSpec:
    """Specification for a tool's interface.

    Attributes:
        name: Unique identifier for the tool within a registry.
        description: Human-readable description of what the tool does.
        parameters: JSON Schema for the tool's parameters.
    """

    name: str
    description: str
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def to_openai_tool(self) -> dict[str, Any]:
        """Convert to OpenAI tool definition format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": dict(self.parameters) if self.parameters else {
                    "type": "object",
                    "properties": {},
                },
            },
        }


# -----------------------------------------------------------------------------
# Tool Handler Types
# -----------------------------------------------------------------------------

ToolHandler = Callable[[Mapping[str, Any]], Any]

AsyncToolHandler = Callable[[Mapping[str, Any]], Coroutine[Any, Any, Any]]


# -----------------------------------------------------------------------------
# Tool Protocol
# -----------------------------------------------------------------------------


@runtime_checkable
class Tool(Protocol):
    """Protocol for tool implementations.

    Tools can be implemented as classes conforming to this protocol,
    or as plain functions wrapped by :class:`FunctionTool`.
    """

    @property
    def name(self) -> str:
        """Get the tool's unique name."""
        ...

    @property
    def spec(self) -> ToolSpec:
        """Get the tool's specification."""
        ...

    async def execute(self, arguments: Mapping[str, Any]) -> Any:
        """Execute the tool with the given arguments.

        Returns:
            Either the result value, or a mapping carrying a ``"value"``
            (or ``"error"``) key.

        Raises:
            Exception: If tool execution fails.
        """
        ...


@dataclass
class FunctionTool:
    """Tool implementation wrapping a sync or async callable.

    Example:
        async def get_weather(args):
            return {"value": f"15C in {args['city']}"}

        tool = FunctionTool(
            spec=ToolSpec(name="get_weather", description="Current weather"),
            handler=get_weather,
        )
    """

    spec: ToolSpec
    handler: ToolHandler | AsyncToolHandler
    _is_async: bool = field(init=False, default=False)

    def __post_init__(self) -> None:
        self._is_async = inspect.iscoroutinefunction(self.handler)

    @property
    def name(self) -> str:
        return self.spec.name

    async def execute(self, arguments: Mapping[str, Any]) -> Any:
        if self._is_async:
            return await self.handler(arguments)  # type: ignore[misc]
        return self.handler(arguments)


# -----------------------------------------------------------------------------
# Tool Call Result
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class ToolCallResult:
    """Outcome of exactly one tool call, correlated by ``call_id``.

    Exactly one of ``value`` and ``error`` is meaningful: ``error`` is set when
    the executor failed.
    """

    call_id: str
    tool_name: str
    params: Mapping[str, Any]
    value: Any = None
    error: BaseException | Any | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_content(self) -> str:
        """Serialize the value, or the error, into provider-safe text."""
        if self.failed:
            return serialize_error(self.error)
        return serialize_value(self.value)


def serialize_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(value)


def serialize_error(error: Any) -> str:
    """Return the error message text, or a dump of the error's own fields.

    Wrapper exceptions exposing a ``cause`` exception are serialized through it.
    """
    cause = getattr(error, "cause", None)
    if isinstance(error, BaseException) and isinstance(cause, BaseException):
        error = cause
    if isinstance(error, str):
        return error
    if isinstance(error, BaseException):
        message = str(error)
        if message:
            return message
    fields = {
        key: item
        for key, item in (getattr(error, "__dict__", None) or {}).items()
        if not key.startswith("_")
    }
    if isinstance(error, Mapping):
        fields = dict(error)
    if not fields:
        return type(error).__name__
    return json.dumps(fields, ensure_ascii=False, default=str)
