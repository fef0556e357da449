"""
agent.tools.base - Base tool interface.

All agent tools inherit from BaseTool and return domain.models.ToolResult.
Tools report failure through ToolResult.fail(...) rather than raising.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ValidationError

from domain.models import ToolResult

__all__ = ["BaseTool", "ToolResult"]


class BaseTool(ABC):
    """Abstract base for all agent tools."""

    name: str
    description: str

    @abstractmethod
    async def invoke(self, input: Any, context: dict[str, Any]) -> ToolResult:
        """Run the tool with the step's input and its context map."""
        ...

    @abstractmethod
    def get_schema(self) -> type[BaseModel]:
        """Return the Pydantic schema for this tool's parameters."""
        ...

    def parse_params(self, input: Any, context: dict[str, Any]) -> BaseModel:
        """Validate the step input plus context keys against the tool schema.

        Structured inputs (dicts) are merged over the context so a planner
        can pass either form.

        Raises:
            ValueError: When the parameters do not satisfy the schema.
        """
        payload: dict[str, Any] = dict(context)
        if isinstance(input, dict):
            payload.update(input)
        else:
            payload["text"] = "" if input is None else str(input)
        try:
            return self.get_schema().model_validate(payload)
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(p) for p in first.get("loc", ())) or "input"
            raise ValueError(f"invalid input for {self.name}: {field} {first.get('msg', '')}".strip()) from exc
