"""Tool system for the chat-completion engine.

Example:
    from ragchat.tools import FunctionTool, ToolRegistry, ToolSpec

    greet = FunctionTool(
        spec=ToolSpec(name="greet", description="Greet someone"),
        handler=lambda args: f"Hello, {args.get('name', 'World')}!",
    )
    registry = ToolRegistry([greet])
"""

from .types import (
    AsyncToolHandler,
    FunctionTool,
    Tool,
    ToolCallResult,
    ToolHandler,
    ToolSpec,
)

from .registry import ToolRegistry

from .database import create_database_tools

__all__ = [
    # types.py
    "Tool",
    "ToolSpec",
    "ToolHandler",
    "AsyncToolHandler",
    "FunctionTool",
    "ToolCallResult",
    # registry.py
    "ToolRegistry",
    # database.py
    "create_database_tools",
]
