"""Tool registry for the chat-completion engine.

The registry holds the active tool set for a completion call. It is
advertised to the provider and consulted by the tool-call resolver.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

from .types import Tool

__all__ = ["ToolRegistry"]

LOGGER = logging.getLogger(__name__)


class ToolRegistry:
    """Registry for the active set of tools.

    Example:
        registry = ToolRegistry([weather_tool])

        # Per-call tools on top of the session tools
        active = registry.merged([search_tool])
        payload = active.to_openai_tools()
    """

    def __init__(self, tools: Iterable[Tool] | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        if tools:
            self.register(tools)

    def register(self, tools: Iterable[Tool]) -> None:
        """Replace the active tool set.

        Tool names are unique; when the same name appears more than once the
        last definition wins.
        """
        replacement: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in replacement:
                LOGGER.debug("Tool %s redefined; keeping the last definition", tool.name)
            replacement[tool.name] = tool
        self._tools = replacement
        LOGGER.debug("Registered tools: %s", list(self._tools))

    def merged(self, tools: Iterable[Tool] | None) -> ToolRegistry:
        """Return a new registry holding this set followed by ``tools``.

        Later definitions replace earlier ones with the same name.
        """
        combined = ToolRegistry()
        combined.register([*self._tools.values(), *(tools or ())])
        return combined

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def to_openai_tools(self) -> list[dict]:
        """Get tool definitions in OpenAI format."""
        return [tool.spec.to_openai_tool() for tool in self._tools.values()]

    def __iter__(self) -> Iterator[Tool]:
        return iter(list(self._tools.values()))

    def __len__(self) -> int:
        return len(self._tools)
