"""
agent.executor - Single-step execution engine.

Runs one Step against the tool registry, classifies the outcome and, for
tools whose structured output is meant for the user, drafts a
natural-language summary through the drafter.

Two phases, so the coordinator can retry the tool call without
re-drafting:

    invoke()    registry lookup + tool call, never raises
    finalize()  summary or plain rendering, contradiction check

execute_step() runs both.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from agent.audit import detect_contradictions
from agent.prompt import HISTORY_WINDOW, build_summary_prompt
from agent.tools.registry import ToolRegistry
from application.context import RunContext
from domain.exceptions import ToolNotFoundError
from domain.models import DRAFT_UNAVAILABLE, StateGraph, StepOutcome, ToolResult
from domain.ports import ChunkSink, DrafterPort, emit

logger = logging.getLogger(__name__)

# Tools whose structured output is drafted into prose before reaching the user.
SUMMARIZED_TOOLS = frozenset({"search", "finance", "stock_price", "weather"})

# Tools whose answers are backed by an external source.
EVIDENCE_TOOLS = frozenset({"search", "finance", "stock_price", "weather"})


class StepExecutor:
    """Executes and finalizes single steps.

    Constructed by factory.py with all dependencies injected.
    Stateless per call; all per-run state lives in RunContext and the trace.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        drafter: DrafterPort,
        history_window: int = HISTORY_WINDOW,
        summarized_tools: frozenset[str] = SUMMARIZED_TOOLS,
    ):
        self._registry = registry
        self._drafter = drafter
        self._window = history_window
        self._summarized = summarized_tools

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def execute_step(
        self,
        tool: str,
        input: Any,
        context: dict[str, Any],
        trace: StateGraph,
        run_ctx: Optional[RunContext] = None,
        on_chunk: Optional[ChunkSink] = None,
    ) -> StepOutcome:
        """Invoke the tool and finalize its result in one call."""
        outcome = await self.invoke(tool, input, context)
        return await self.finalize(
            outcome,
            tool=tool,
            request=input if isinstance(input, str) else json.dumps(input, default=str),
            trace=trace,
            run_ctx=run_ctx,
            on_chunk=on_chunk,
        )

    async def invoke(self, tool: str, input: Any, context: dict[str, Any]) -> StepOutcome:
        """Call the tool and classify what came back. Never raises."""
        try:
            capability = self._registry.get(tool)
        except ToolNotFoundError as e:
            logger.warning("Step requested unknown tool '%s'", tool)
            return StepOutcome(success=False, output=str(e), retryable=False)

        try:
            raw = await capability.invoke(input, context)
        except Exception as e:
            logger.exception("Tool '%s' raised instead of returning a failure", tool)
            return StepOutcome(success=False, output=str(e) or type(e).__name__)

        result = ToolResult.coerce(raw)
        if not result.success:
            error = result.error or f"{tool} failed"
            logger.info("Tool '%s' failed: %s", tool, error[:200])
            return StepOutcome(success=False, output=error, data=result.data, final=result.final)

        citation_miss: list[str] = []
        if tool in EVIDENCE_TOOLS and _has_no_results(result.data):
            citation_miss.append(f"{tool} returned no results")

        return StepOutcome(
            success=True,
            output=result.data,
            data=result.data,
            final=result.final,
            cached=result.cached,
            citation_miss=citation_miss,
        )

    async def finalize(
        self,
        outcome: StepOutcome,
        *,
        tool: str,
        request: str,
        trace: StateGraph,
        run_ctx: Optional[RunContext] = None,
        on_chunk: Optional[ChunkSink] = None,
    ) -> StepOutcome:
        """Turn a raw outcome into the reply text recorded in the trace.

        Failed outcomes keep the tool's error as output and are never
        summarized.
        """
        if not outcome.success:
            outcome.output = str(outcome.output)
            outcome.contradictions = detect_contradictions(trace, outcome.output)
            return outcome

        reply: Optional[str] = None
        if tool in self._summarized and not outcome.citation_miss:
            reply = await self._summarize(tool, request, outcome.data, run_ctx, on_chunk)
            if reply is not None:
                outcome.reasoning = f"Summarized {tool} result"

        if reply is None:
            reply = render_reply(outcome.data)

        outcome.output = reply
        outcome.contradictions = detect_contradictions(trace, reply)
        return outcome

    async def _summarize(
        self,
        tool: str,
        request: str,
        data: Any,
        run_ctx: Optional[RunContext],
        on_chunk: Optional[ChunkSink],
    ) -> Optional[str]:
        ctx = run_ctx or RunContext()
        prompt = build_summary_prompt(
            request=request,
            tool=tool,
            tool_result=data,
            history=ctx.recent_history,
            profile=ctx.profile,
            window=self._window,
        )
        if on_chunk is not None:
            text = await self._drafter.stream(prompt, on_chunk)
        else:
            text = await self._drafter.draft(prompt)

        if not text or not text.strip() or text == DRAFT_UNAVAILABLE:
            logger.warning("Summary for '%s' unavailable; returning raw result", tool)
            if on_chunk is not None:
                await emit(on_chunk, render_reply(data))
            return None
        return text.strip()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def render_reply(data: Any) -> str:
    """Plain rendering of tool data: html, then text, then JSON."""
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        for key in ("html", "text"):
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return value
    try:
        return json.dumps(data, indent=2, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(data)


def _has_no_results(data: Any) -> bool:
    if data is None:
        return True
    if isinstance(data, dict) and "results" in data:
        return not data["results"]
    if isinstance(data, (list, str)):
        return len(data) == 0
    return False
