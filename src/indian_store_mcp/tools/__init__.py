from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from mcp.types import Tool

ToolHandler = Callable[[dict[str, Any]], Awaitable[str]]


@dataclass(frozen=True)
class RegisteredTool:
    tool: Tool
    handler: ToolHandler


class ToolCatalog:
    """Static set of tools the dispatcher lists and calls by name."""

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def add(self, tool: Tool, handler: ToolHandler) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = RegisteredTool(tool, handler)

    def get(self, name: str) -> RegisteredTool | None:
        return self._tools.get(name)

    def list_tools(self) -> list[Tool]:
        return [entry.tool for entry in self._tools.values()]


def register_all_tools(catalog: ToolCatalog) -> ToolCatalog:
    """Register all MCP tools with the catalog."""
    from indian_store_mcp.tools.indian_stores import register as reg_stores

    reg_stores(catalog)
    return catalog


def default_catalog() -> ToolCatalog:
    return register_all_tools(ToolCatalog())
