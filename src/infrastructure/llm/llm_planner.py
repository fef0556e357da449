"""
infrastructure.llm.llm_planner - Tool choice delegated to a language model.

The model is asked for strict JSON {"tool", "input", "context"} naming one
tool from a fixed allow-list. Anything else (unknown tool, malformed JSON,
a backend error) becomes an `llm` step over the original request. The
model's tool name is never used without checking it against the list.

Wrapped by agent.planner.SingleStepPlanner to satisfy PlannerPort.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Optional, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import JsonOutputParser
from langchain_core.prompts import ChatPromptTemplate

from agent.prompt import build_planner_instructions, format_history
from domain.models import Message, Step

logger = logging.getLogger(__name__)

FALLBACK_TOOL = "llm"


def _escape_braces(text: str) -> str:
    return text.replace("{", "{{").replace("}", "}}")


class LLMPlanner:
    """Implements StepChooser with `prompt | llm | JsonOutputParser`."""

    def __init__(
        self,
        llm: BaseChatModel,
        allowed_tools: Iterable[str],
        tool_descriptions: str = "",
        history_window: int = 6,
    ):
        self._allowed = tuple(dict.fromkeys(allowed_tools))
        if FALLBACK_TOOL not in self._allowed:
            self._allowed += (FALLBACK_TOOL,)
        self._window = history_window
        self._llm = llm
        self._parser = JsonOutputParser()
        self._chain = self._build_chain(tool_descriptions)

    @property
    def allowed_tools(self) -> tuple[str, ...]:
        return self._allowed

    def _build_chain(self, tool_descriptions: str):
        tool_lines = tool_descriptions or "\n".join(f"- {name}" for name in self._allowed)
        prompt = ChatPromptTemplate.from_messages([
            ("system", build_planner_instructions(_escape_braces(tool_lines), self._allowed)),
            ("user", "Recent conversation:\n{history}\n\nRequest: {request}"),
        ])
        return prompt | self._llm | self._parser

    async def choose_step(
        self, request: str, recent_history: Sequence[Message] = (),
    ) -> Optional[Step]:
        """Ask the model for a tool. Always returns a Step."""
        try:
            loop = asyncio.get_event_loop()
            result: Any = await loop.run_in_executor(
                None,
                self._chain.invoke,
                {"request": request, "history": format_history(recent_history, self._window)},
            )
        except Exception as e:
            logger.warning("Planner model failed, falling back to %s: %s", FALLBACK_TOOL, e)
            return self._fallback(request)
        return self.validate(result, request)

    def validate(self, result: Any, request: str) -> Step:
        """Turn the parsed model reply into a Step, or the llm fallback."""
        if not isinstance(result, dict):
            logger.warning("Planner reply is not a JSON object: %r", result)
            return self._fallback(request)

        tool = result.get("tool")
        if not isinstance(tool, str) or tool not in self._allowed:
            logger.warning("Planner chose a tool outside the allow-list: %r", tool)
            return self._fallback(request)

        step_input = result.get("input")
        if step_input is None or (isinstance(step_input, str) and not step_input.strip()):
            step_input = request
        context = result.get("context")
        if not isinstance(context, dict):
            context = {}

        logger.info("Planner model chose '%s'", tool)
        return Step(tool=tool, input=step_input, context=context, confidence=0.7)

    @staticmethod
    def _fallback(request: str) -> Step:
        return Step(tool=FALLBACK_TOOL, input=request, confidence=0.5)
