"""
agent.tools.llm_answer - Direct answer from the language model.

Used for meta questions, general conversation, budget fallbacks and
anything the rule table does not route elsewhere. Always final.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from agent.prompt import build_answer_prompt
from agent.tools.base import BaseTool, ToolResult
from domain.ports import DrafterPort

# Context keys produced by earlier steps that the answer prompt should see.
_PIPED_KEYS = ("review_suggestions", "trending_patterns", "no_results_from", "budget_exceeded")


class LLMInput(BaseModel):
    """Input schema for the llm tool."""
    model_config = ConfigDict(extra="allow")

    text: str = Field(default="", description="The user's message")
    recent_history: list[Any] = Field(default_factory=list)
    profile: Any = None


class LLMAnswerTool(BaseTool):
    """Answer directly, using conversation memory and the user's tone."""

    name = "llm"
    description = (
        "Answer directly from general knowledge and the conversation so far. "
        "Use for questions about the assistant itself, opinions, writing help, "
        "and anything no other tool covers."
    )

    def __init__(self, drafter: DrafterPort, history_window: int = 20):
        self._drafter = drafter
        self._window = history_window

    def get_schema(self) -> type[BaseModel]:
        return LLMInput

    async def invoke(self, input: Any, context: dict[str, Any]) -> ToolResult:
        params = self.parse_params(input, context)
        piped = {key: context[key] for key in _PIPED_KEYS if context.get(key)}
        prompt = build_answer_prompt(
            request=params.text,
            history=params.recent_history,
            profile=params.profile,
            extra_context=piped or None,
            window=self._window,
        )
        on_chunk = context.get("on_chunk")
        if on_chunk is not None:
            text = await self._drafter.stream(prompt, on_chunk)
        else:
            text = await self._drafter.draft(prompt)
        if not text or not text.strip():
            return ToolResult.fail("The language model returned an empty response.")
        return ToolResult.ok({"text": text.strip()}, final=True)
