"""
agent.tools.calculator - Deterministic arithmetic tool.

Evaluates the arithmetic found in the request by walking the Python AST;
nothing is ever passed to eval().
"""

from __future__ import annotations

import ast
import math
import operator
import re
from typing import Any

from pydantic import BaseModel, Field

from agent.tools.base import BaseTool, ToolResult

_EXPRESSION_RUN = re.compile(r"[-+*/().%\d\s]+")

_BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPERATORS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

# Keeps 9**9**9 style inputs from hanging the worker.
_MAX_EXPONENT = 1000


class CalculatorInput(BaseModel):
    """Input schema for the calculator tool."""
    text: str = Field(default="", description="Request text containing the arithmetic")
    expression: str = Field(default="", description="Explicit expression, overrides text")


class CalculatorTool(BaseTool):
    """Evaluate +, -, *, /, //, %, ** and parentheses."""

    name = "calculator"
    description = "Evaluate an arithmetic expression such as '(3 + 4) * 12'."

    def get_schema(self) -> type[BaseModel]:
        return CalculatorInput

    async def invoke(self, input: Any, context: dict[str, Any]) -> ToolResult:
        params = self.parse_params(input, {})
        expression = extract_expression(params.expression or params.text)
        if expression is None:
            return ToolResult.fail("No valid math expression found")

        try:
            result = _normalise(evaluate(expression))
        except ZeroDivisionError:
            return ToolResult.fail("Division by zero")
        except (ValueError, SyntaxError, OverflowError):
            return ToolResult.fail("Invalid mathematical expression")

        return ToolResult.ok(
            {"expression": expression, "result": result, "text": f"{expression} = {result}"},
            final=True,
        )


def extract_expression(text: str) -> str | None:
    """Return the longest arithmetic run in text that contains a digit."""
    candidates = [
        run.strip()
        for run in _EXPRESSION_RUN.findall(text or "")
        if any(ch.isdigit() for ch in run)
    ]
    if not candidates:
        return None
    return max(candidates, key=len)


def evaluate(expression: str) -> float:
    """Evaluate an arithmetic expression.

    Raises:
        SyntaxError: If the expression does not parse.
        ValueError: If it uses anything other than numbers and arithmetic.
    """
    tree = ast.parse(expression, mode="eval")
    return _eval_node(tree.body)


def _eval_node(node: ast.AST) -> float:
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) \
            and not isinstance(node.value, bool):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
        left = _eval_node(node.left)
        right = _eval_node(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
            raise ValueError("exponent too large")
        return _BINARY_OPERATORS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
        return _UNARY_OPERATORS[type(node.op)](_eval_node(node.operand))
    raise ValueError("Unsupported expression")


def _normalise(value: Any) -> Any:
    if isinstance(value, complex) or (isinstance(value, float) and not math.isfinite(value)):
        raise ValueError("Invalid calculation result")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value
