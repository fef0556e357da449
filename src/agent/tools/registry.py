"""
agent.tools.registry - Tool registration, discovery, and lookup.

The registry is built by the composition root and passed explicitly to
the coordinator, executor and scheduler. Nothing imports it as a
singleton, so tests can register fake tools.
"""

from __future__ import annotations

import logging

from domain.exceptions import ToolNotFoundError
from domain.ports import ToolPort

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Maps tool names to invocable capabilities."""

    def __init__(self):
        self._tools: dict[str, ToolPort] = {}

    def register(self, tool: ToolPort) -> None:
        """Register a tool by its name. A later registration replaces an earlier one."""
        if tool.name in self._tools:
            logger.warning("Replacing registered tool: %s", tool.name)
        self._tools[tool.name] = tool
        logger.debug("Registered tool: %s", tool.name)

    def get(self, name: str) -> ToolPort:
        """Get a tool by name.

        Raises:
            ToolNotFoundError: If no tool with that name is registered.
        """
        if name not in self._tools:
            raise ToolNotFoundError(name)
        return self._tools[name]

    def has(self, name: str) -> bool:
        return name in self._tools

    def all(self) -> list[ToolPort]:
        """Return all registered tools."""
        return list(self._tools.values())

    def names(self) -> list[str]:
        """Return all registered tool names."""
        return list(self._tools.keys())

    def describe(self) -> str:
        """One line per tool, for prompts that let a model choose a tool."""
        lines = []
        for tool in self._tools.values():
            description = getattr(tool, "description", "") or ""
            lines.append(f"- {tool.name}: {description}")
        return "\n".join(lines)
