"""Built-in tools backed by the database capability."""

from __future__ import annotations

import json
from typing import Any, Mapping

from ..ai_types import DatabaseProtocol
from .types import FunctionTool, ToolSpec

__all__ = ["create_database_tools", "DATABASE_DESCRIBE_SPEC"]

DATABASE_DESCRIBE_SPEC = ToolSpec(
    name="database_describe",
    description=(
        "Generates a detailed description of the database schema, including tables, columns, and data "
        "types. Returns a JSON representation of the structure, useful for understanding the database "
        "layout before answering data questions."
    ),
    parameters={"type": "object", "properties": {}},
)


def create_database_tools(database: DatabaseProtocol) -> dict[str, FunctionTool]:
    """Return the database-backed tools keyed by name."""

    async def _describe(_args: Mapping[str, Any]) -> dict[str, Any]:
        schema = await database.describe()
        return {"value": json.dumps(schema, ensure_ascii=False, default=str)}

    return {
        DATABASE_DESCRIBE_SPEC.name: FunctionTool(spec=DATABASE_DESCRIBE_SPEC, handler=_describe),
    }
