"""
agent.coordinator - Multi-step orchestration loop.

Drives planner -> executor across the planned steps of one request:

    PLANNING -> EXECUTING(i) -> EXECUTING(i+1) | RETRYING(i) | DONE | FAILED

Per step, in order: budget check (over-budget steps become an llm
fallback step), context preparation (geolocation, file ids, outputs piped
from earlier producer steps), tool call with one retry on transient
errors, finalization, trace append, lifecycle events. Steps never run
concurrently. run() always returns an OrchestrationResult; unexpected
exceptions become a failed result carrying the exception text.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Any, Awaitable, Callable, Optional, Sequence

from agent.audit import MIN_CONFIDENCE, calculate_confidence
from agent.executor import StepExecutor
from agent.planner import GEOLOCATION_SENTINEL
from application.context import RunContext
from domain.models import (
    Message,
    OrchestrationResult,
    StateGraph,
    Step,
    StepEvent,
    StepOutcome,
    TraceEntry,
)
from domain.ports import ChunkSink, GeoLocatorPort, PlannerPort, StepSink, emit

logger = logging.getLogger(__name__)

FALLBACK_TOOL = "llm"
NO_PLAN_REPLY = "I couldn't determine how to help with that request."
RETRY_DELAY_SECONDS = 1.0

DEFAULT_BUDGETS: dict[str, int] = {
    "search": 2,
    "calculator": 1,
    "finance": 2,
    "stock_price": 2,
    "weather": 2,
    "file": 3,
}

# producer tool -> context key its output is piped under
CONTEXT_PIPES: dict[str, str] = {
    "review": "review_suggestions",
    "github_trending": "trending_patterns",
}

FILE_AWARE_TOOLS = frozenset({"file", "file_review"})

_TRANSIENT_ERROR = re.compile(
    r"\b(timeout|timed out|econnreset|econnrefused|connection reset|connection refused|"
    r"socket hang up|socket closed|network|fetch fail(?:ed|ure))\b|\brate.?limit",
    re.IGNORECASE,
)


def is_transient_error(text: str) -> bool:
    """True when an error message looks like a retry could succeed."""
    return bool(_TRANSIENT_ERROR.search(text or ""))


class Coordinator:
    """Runs one request end to end and returns the reply plus its trace."""

    def __init__(
        self,
        planner: PlannerPort,
        executor: StepExecutor,
        geo_locator: Optional[GeoLocatorPort] = None,
        budgets: Optional[dict[str, int]] = None,
        retry_delay: float = RETRY_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._planner = planner
        self._executor = executor
        self._geo = geo_locator
        self._budgets = dict(DEFAULT_BUDGETS if budgets is None else budgets)
        self._retry_delay = retry_delay
        self._sleep = sleep

    async def run(
        self,
        request: str,
        conversation_id: str = "default",
        recent_history: Sequence[Message] = (),
        *,
        context: Optional[RunContext] = None,
        on_chunk: Optional[ChunkSink] = None,
        on_step: Optional[StepSink] = None,
    ) -> OrchestrationResult:
        """Plan and execute a request.

        Args:
            request:          The user's message.
            conversation_id:  Used when no RunContext is supplied.
            recent_history:   Used when no RunContext is supplied.
            context:          Full per-request context (profile, client ip, ...).
            on_chunk:         Receives incremental text of the final answer.
            on_step:          Receives step_start / step_end events.
        """
        ctx = context or RunContext(
            conversation_id=conversation_id, recent_history=list(recent_history),
        )
        trace = StateGraph()
        started = time.monotonic()
        try:
            result = await self._run(request or "", ctx, trace, on_chunk, on_step)
        except Exception as e:
            logger.exception(
                "Orchestration failed (conversation=%s, request=%s)",
                ctx.conversation_id, ctx.request_id,
            )
            return OrchestrationResult(
                reply=str(e) or "An unexpected error occurred.",
                trace=trace,
                tool="error",
                success=False,
                confidence=MIN_CONFIDENCE,
            )
        logger.info(
            "Run finished (conversation=%s): tool=%s success=%s steps=%d confidence=%.2f in %.0fms",
            ctx.conversation_id, result.tool, result.success, len(trace),
            result.confidence, (time.monotonic() - started) * 1000,
        )
        return result

    async def _run(
        self,
        request: str,
        ctx: RunContext,
        trace: StateGraph,
        on_chunk: Optional[ChunkSink],
        on_step: Optional[StepSink],
    ) -> OrchestrationResult:
        steps = await self._planner.plan(request, ctx.recent_history, trace)
        if not steps:
            logger.info("Planner produced no steps for: %s", request[:80])
            return OrchestrationResult(
                reply=NO_PLAN_REPLY,
                trace=trace,
                tool="error",
                success=False,
                confidence=calculate_confidence(trace),
            )

        total = len(steps)
        logger.info("Plan generated: %d step(s) %s", total, [s.tool for s in steps])

        last_tool = steps[0].tool
        last: Optional[StepOutcome] = None

        for index, planned in enumerate(steps, start=1):
            is_last = index == total
            step = self._apply_budget(planned, ctx)
            logger.info("Step %d/%d: %s", index, total, step.tool)
            await emit(on_step, StepEvent("step_start", index, total, step.tool).to_dict())

            prepared = await self._prepare_context(step, trace, ctx)
            outcome = await self._run_step(
                index, step, prepared, trace, ctx, on_chunk if is_last else None,
            )
            last_tool, last = step.tool, outcome

            if outcome.success and outcome.citation_miss and step.tool != FALLBACK_TOOL:
                ctx.count_call(FALLBACK_TOOL)
                follow_up = Step(
                    tool=FALLBACK_TOOL,
                    input=step.input,
                    context={"no_results_from": step.tool},
                    confidence=0.5,
                )
                last_tool = FALLBACK_TOOL
                last = await self._run_step(
                    index + 0.5, follow_up, follow_up.context, trace, ctx,
                    on_chunk if is_last else None,
                )

            logger.debug("Step %d/%d done: %s success=%s", index, total, last_tool, last.success)
            await emit(on_step, StepEvent("step_end", index, total, last_tool, last.success).to_dict())

            if not last.success:
                logger.info("Step %d (%s) failed, stopping", index, last_tool)
                break
            if last.final:
                logger.info("Step %d (%s) is final, stopping", index, last_tool)
                break

        return OrchestrationResult(
            reply=str(last.output) if last is not None else NO_PLAN_REPLY,
            trace=trace,
            tool=last_tool,
            success=bool(last and last.success),
            data=last.data if last is not None else None,
            confidence=calculate_confidence(trace),
            reasoning=last.reasoning if last is not None else None,
        )

    async def _run_step(
        self,
        number: float,
        step: Step,
        step_context: dict[str, Any],
        trace: StateGraph,
        ctx: RunContext,
        on_chunk: Optional[ChunkSink],
    ) -> StepOutcome:
        call_context = {**ctx.tool_context(), **step_context}
        if on_chunk is not None:
            call_context["on_chunk"] = on_chunk

        outcome = await self._invoke_with_retry(number, step, call_context)
        outcome = await self._executor.finalize(
            outcome,
            tool=step.tool,
            request=step.input if isinstance(step.input, str) else str(step.input),
            trace=trace,
            run_ctx=ctx,
            on_chunk=on_chunk if step.tool != FALLBACK_TOOL else None,
        )
        trace.append(TraceEntry(
            step=number,
            tool=step.tool,
            input=step.input,
            output=outcome.output,
            success=outcome.success,
            contradictions=list(outcome.contradictions),
            citation_miss=list(outcome.citation_miss),
            final=outcome.final,
            cached=outcome.cached,
        ))
        return outcome

    async def _invoke_with_retry(
        self, number: float, step: Step, call_context: dict[str, Any],
    ) -> StepOutcome:
        outcome = await self._executor.invoke(step.tool, step.input, call_context)
        if (
            not outcome.success
            and outcome.retryable
            and step.tool != FALLBACK_TOOL
            and is_transient_error(str(outcome.output))
        ):
            logger.info(
                "Retrying step %s (%s) after transient error: %s",
                number, step.tool, str(outcome.output)[:120],
            )
            await self._sleep(self._retry_delay)
            outcome = await self._executor.invoke(step.tool, step.input, call_context)
        return outcome

    def _apply_budget(self, step: Step, ctx: RunContext) -> Step:
        """Count the call; swap in an llm step once the tool's ceiling is passed."""
        count = ctx.count_call(step.tool)
        ceiling = self._budgets.get(step.tool)
        if ceiling is None or count <= ceiling:
            return step
        logger.warning(
            "Budget for '%s' exhausted (%d > %d); falling back to %s",
            step.tool, count, ceiling, FALLBACK_TOOL,
        )
        ctx.count_call(FALLBACK_TOOL)
        return Step(
            tool=FALLBACK_TOOL,
            input=step.input,
            context={"budget_exceeded": step.tool},
            confidence=0.5,
        )

    async def _prepare_context(
        self, step: Step, trace: StateGraph, ctx: RunContext,
    ) -> dict[str, Any]:
        enriched = dict(step.context)

        if step.tool == "weather":
            if not enriched.get("city") and ctx.profile.location:
                enriched["city"] = ctx.profile.location
            if enriched.get("city") == GEOLOCATION_SENTINEL:
                enriched["city"] = await self._locate(ctx.client_ip) or ctx.profile.location or None
                enriched["was_geolocation_attempt"] = True

        if step.tool in FILE_AWARE_TOOLS and ctx.file_ids:
            enriched["file_ids"] = list(ctx.file_ids)

        for previous in trace:
            key = CONTEXT_PIPES.get(previous.tool)
            if key and previous.success:
                enriched[key] = previous.output

        return enriched

    async def _locate(self, client_ip: Optional[str]) -> Optional[str]:
        if self._geo is None:
            return None
        try:
            city = await self._geo.resolve_city(client_ip)
        except Exception:
            logger.warning("Geolocation failed for %s", client_ip, exc_info=True)
            return None
        if city:
            logger.info("Resolved geolocation: %s", city)
        return city
