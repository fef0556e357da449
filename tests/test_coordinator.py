"""Coordinator loop: budgets, retries, piping, streaming, failure handling."""

import asyncio

import pytest

from agent.audit import MIN_CONFIDENCE
from agent.coordinator import NO_PLAN_REPLY, Coordinator, is_transient_error
from agent.planner import GEOLOCATION_SENTINEL, RuleBasedPlanner
from application.context import RunContext
from domain.entities import UserProfile
from domain.models import Step, ToolResult

from conftest import FakeGeoLocator, RecordingTool, StubPlanner

SEARCH_HIT = ToolResult.ok({"query": "q", "results": [{"title": "t", "snippet": "s", "url": "u"}]})


@pytest.fixture
def build(make_registry, make_executor, no_sleep):
    def _build(planner, *tools, geo=None, budgets=None):
        executor = make_executor(make_registry(*tools))
        return Coordinator(planner, executor, geo_locator=geo, budgets=budgets, sleep=no_sleep)

    return _build


def run(coordinator, request="go", **kwargs):
    return asyncio.run(coordinator.run(request, **kwargs))


# -- end to end with the rule planner ----------------------------------------

def test_arithmetic_request_end_to_end(build):
    result = run(build(RuleBasedPlanner()), "what's 12*7")
    assert len(result.trace) == 1
    assert result.trace[0].tool == "calculator"
    assert "84" in result.trace[0].output
    assert result.tool == "calculator"
    assert result.success
    assert "84" in result.reply


def test_third_search_in_one_run_falls_back_to_llm(build, drafter):
    search = RecordingTool("search", SEARCH_HIT)
    request = "who is Ada Lovelace; who is Alan Turing; who is Grace Hopper"
    ctx = RunContext()
    result = run(build(RuleBasedPlanner(), search), request, context=ctx)

    assert [e.tool for e in result.trace] == ["search", "search", "llm"]
    assert len(search.calls) == 2
    assert ctx.tool_usage == {"search": 3, "llm": 1}
    assert result.tool == "llm"
    assert result.reply == drafter.reply


# -- budgets -----------------------------------------------------------------

def test_second_calculator_call_is_redirected(build):
    calculator = RecordingTool("calculator", ToolResult.ok({"text": "4"}))
    llm = RecordingTool("llm", ToolResult.ok({"text": "about nine"}, final=True))
    planner = StubPlanner([Step("calculator", "2+2"), Step("calculator", "3*3")])
    ctx = RunContext()

    result = run(build(planner, calculator, llm), context=ctx)

    assert [e.tool for e in result.trace] == ["calculator", "llm"]
    assert len(calculator.calls) == 1
    llm_input, llm_context = llm.calls[0]
    assert llm_input == "3*3"
    assert llm_context["budget_exceeded"] == "calculator"
    assert ctx.tool_usage == {"calculator": 2, "llm": 1}
    assert result.success


def test_budgets_are_per_run(build):
    search = RecordingTool("search", SEARCH_HIT)
    coordinator = build(StubPlanner([Step("search", "a"), Step("search", "b")]), search)
    first = run(coordinator)
    second = run(coordinator)
    assert [e.tool for e in first.trace] == ["search", "search"]
    assert [e.tool for e in second.trace] == ["search", "search"]


def test_tools_without_budget_are_unlimited(build):
    review = RecordingTool("review", ToolResult.ok({"text": "fine"}))
    planner = StubPlanner([Step("review", str(i)) for i in range(5)])
    result = run(build(planner, review))
    assert len(review.calls) == 5
    assert result.success


# -- retries -----------------------------------------------------------------

@pytest.mark.parametrize("error", ["ECONNRESET", "Request timed out", "Rate limit reached", "socket hang up"])
def test_transient_failure_is_retried_once(build, no_sleep, error):
    search = RecordingTool("search", ToolResult.fail(error), SEARCH_HIT)
    result = run(build(StubPlanner([Step("search", "q")]), search))

    assert len(search.calls) == 2
    assert no_sleep.delays == [1.0]
    assert result.success
    assert len(result.trace) == 1


def test_raised_network_error_is_retried(build, no_sleep):
    search = RecordingTool("search", ConnectionError("connection refused"), SEARCH_HIT)
    result = run(build(StubPlanner([Step("search", "q")]), search))
    assert len(search.calls) == 2
    assert result.success


def test_second_transient_failure_ends_the_run(build, no_sleep):
    search = RecordingTool("search", ToolResult.fail("ECONNRESET"))
    planner = StubPlanner([Step("search", "q"), Step("llm", "never")])
    result = run(build(planner, search))

    assert len(search.calls) == 2
    assert not result.success
    assert result.reply == "ECONNRESET"
    assert [e.tool for e in result.trace] == ["search"]


def test_non_transient_failure_is_not_retried(build, no_sleep):
    search = RecordingTool("search", ToolResult.fail("invalid input"))
    result = run(build(StubPlanner([Step("search", "q")]), search))
    assert len(search.calls) == 1
    assert no_sleep.delays == []
    assert not result.success


def test_unknown_tool_is_not_retried(build, no_sleep):
    result = run(build(StubPlanner([Step("network_scan", "q")])))
    assert no_sleep.delays == []
    assert not result.success
    assert result.reply == "Tool 'network_scan' not found"


def test_is_transient_error():
    assert is_transient_error("connect ECONNREFUSED 127.0.0.1:443")
    assert is_transient_error("Network is unreachable")
    assert is_transient_error("fetch failure while calling upstream")
    assert is_transient_error("fetch failed")
    assert is_transient_error("Rate limited by upstream")
    assert is_transient_error("request was rate-limited")
    assert not is_transient_error("No valid math expression found")
    assert not is_transient_error("")


# -- context ------------------------------------------------------------------

def test_producer_output_is_piped_into_later_steps(build):
    review = RecordingTool("review", ToolResult.ok({"text": "use f-strings"}))
    llm = RecordingTool("llm", ToolResult.ok({"text": "done"}, final=True))
    planner = StubPlanner([Step("review", "code"), Step("llm", "summarize")])

    run(build(planner, review, llm))

    _, context = llm.calls[0]
    assert context["review_suggestions"] == "use f-strings"


def test_only_producers_that_ran_are_piped(build):
    trending = RecordingTool("github_trending", ToolResult.ok({"text": "rust"}))
    llm = RecordingTool("llm", ToolResult.ok({"text": "done"}, final=True))
    planner = StubPlanner([Step("github_trending", "x"), Step("llm", "summarize")])

    run(build(planner, trending, llm))

    _, context = llm.calls[0]
    assert context["trending_patterns"] == "rust"
    assert "review_suggestions" not in context


def test_weather_here_uses_geolocation(build):
    weather = RecordingTool("weather", ToolResult.ok({"city": "Lisbon", "temperature": 21}))
    geo = FakeGeoLocator("Lisbon")
    ctx = RunContext(client_ip="203.0.113.9")

    run(build(RuleBasedPlanner(), weather, geo=geo), "what's the weather here", context=ctx)

    _, context = weather.calls[0]
    assert geo.ips == ["203.0.113.9"]
    assert context["city"] == "Lisbon"
    assert context["was_geolocation_attempt"] is True
    assert GEOLOCATION_SENTINEL not in context.values()


def test_weather_defaults_to_profile_location(build):
    weather = RecordingTool("weather", ToolResult.ok({"city": "Porto", "temperature": 18}))
    ctx = RunContext(profile=UserProfile(location="Porto"))
    run(build(StubPlanner([Step("weather", "weather?")]), weather), context=ctx)
    assert weather.calls[0][1]["city"] == "Porto"


def test_profile_location_backs_up_failed_geolocation(build):
    weather = RecordingTool("weather", ToolResult.ok({"city": "Porto", "temperature": 18}))
    geo = FakeGeoLocator(None)
    ctx = RunContext(client_ip="203.0.113.9", profile=UserProfile(location="Porto"))

    run(build(RuleBasedPlanner(), weather, geo=geo), "what's the weather here", context=ctx)

    _, context = weather.calls[0]
    assert geo.ips == ["203.0.113.9"]
    assert context["city"] == "Porto"
    assert context["was_geolocation_attempt"] is True


def test_file_ids_reach_file_aware_tools(build):
    file_tool = RecordingTool("file", ToolResult.ok({"operation": "scan", "entries": []}))
    ctx = RunContext(file_ids=["f1", "f2"])
    run(build(StubPlanner([Step("file", "scan")]), file_tool), context=ctx)
    assert file_tool.calls[0][1]["file_ids"] == ["f1", "f2"]


def test_shared_context_is_passed_to_every_tool(build):
    search = RecordingTool("search", SEARCH_HIT)
    ctx = RunContext(conversation_id="c-1", profile=UserProfile(name="Sam"))
    run(build(StubPlanner([Step("search", "q")]), search), context=ctx)
    context = search.calls[0][1]
    assert context["conversation_id"] == "c-1"
    assert context["profile"].name == "Sam"


# -- citation misses ------------------------------------------------------------

def test_empty_search_triggers_llm_follow_up(build, drafter):
    search = RecordingTool("search", ToolResult.ok({"query": "q", "results": []}))
    result = run(build(StubPlanner([Step("search", "obscure thing")]), search))

    assert [(e.step, e.tool) for e in result.trace] == [(1, "search"), (1.5, "llm")]
    assert result.trace[0].citation_miss == ["search returned no results"]
    assert result.tool == "llm"
    assert result.reply == drafter.reply
    assert '"no_results_from": "search"' in drafter.prompts[-1]


# -- termination and results ------------------------------------------------------

def test_final_step_short_circuits_the_plan(build):
    planner = StubPlanner([Step("calculator", "2+2"), Step("llm", "more")])
    result = run(build(planner))
    assert [e.tool for e in result.trace] == ["calculator"]
    assert result.reply == "2+2 = 4"


def test_empty_plan(build):
    result = run(build(StubPlanner([])))
    assert result.reply == NO_PLAN_REPLY
    assert result.tool == "error"
    assert not result.success
    assert len(result.trace) == 0


def test_planner_exception_becomes_failed_result(build):
    result = run(build(StubPlanner(error=RuntimeError("planner exploded"))))
    assert result.reply == "planner exploded"
    assert result.tool == "error"
    assert not result.success
    assert result.confidence == MIN_CONFIDENCE


def test_confidence_is_computed_from_trace(build):
    search = RecordingTool("search", SEARCH_HIT)
    result = run(build(StubPlanner([Step("search", "q")]), search))
    assert result.confidence == 0.7


# -- streaming -------------------------------------------------------------------

def test_step_events_and_chunks_only_for_last_step(build, drafter):
    search = RecordingTool("search", SEARCH_HIT)
    planner = StubPlanner([Step("search", "q"), Step("llm", "answer")])
    events, chunks = [], []

    async def on_step(event):
        events.append(event)

    result = run(build(planner, search), on_step=on_step, on_chunk=chunks.append)

    assert events == [
        {"event": "step_start", "step": 1, "total": 2, "tool": "search"},
        {"event": "step_end", "step": 1, "total": 2, "tool": "search", "success": True},
        {"event": "step_start", "step": 2, "total": 2, "tool": "llm"},
        {"event": "step_end", "step": 2, "total": 2, "tool": "llm", "success": True},
    ]
    # the search summary is drafted, only the final answer streams
    assert drafter.draft_calls == 1
    assert drafter.stream_calls == 1
    assert "".join(chunks) == result.reply


def test_failing_sink_does_not_break_the_run(build):
    def on_step(event):
        raise RuntimeError("socket closed")

    result = run(build(RuleBasedPlanner()), "2+2", on_step=on_step)
    assert result.success
    assert result.reply == "2+2 = 4"


def test_run_without_context_builds_one(build):
    result = asyncio.run(build(RuleBasedPlanner()).run("2*3", "conv-9", []))
    assert result.success
    assert result.trace[0].step == 1
