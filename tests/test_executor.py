import asyncio
import json

from agent.executor import StepExecutor, render_reply
from application.context import RunContext
from domain.entities import UserProfile
from domain.models import DRAFT_UNAVAILABLE, StateGraph, ToolResult, TraceEntry

from conftest import FakeDrafter, RecordingTool

RESULTS = {"query": "rust", "results": [{"title": "Rust", "snippet": "A language", "url": "u"}]}


def run_step(executor, tool, input="q", context=None, trace=None, **kwargs):
    return asyncio.run(executor.execute_step(tool, input, context or {}, trace or StateGraph(), **kwargs))


def test_unknown_tool_is_a_terminal_failure(make_registry, make_executor):
    outcome = run_step(make_executor(make_registry()), "teleport")
    assert not outcome.success
    assert outcome.output == "Tool 'teleport' not found"
    assert outcome.retryable is False


def test_raising_tool_becomes_failure(make_registry, make_executor):
    boom = RecordingTool("search", RuntimeError("socket hang up"))
    outcome = run_step(make_executor(make_registry(boom)), "search")
    assert not outcome.success
    assert outcome.output == "socket hang up"
    assert outcome.retryable is True


def test_failed_result_keeps_error_and_is_not_summarized(make_registry, make_executor, drafter):
    failing = RecordingTool("weather", ToolResult.fail("City not found"))
    outcome = run_step(make_executor(make_registry(failing)), "weather")
    assert not outcome.success
    assert outcome.output == "City not found"
    assert drafter.draft_calls == 0


def test_plain_dict_results_are_accepted(make_registry, make_executor):
    tool = RecordingTool("search", {"success": False, "error": "nope"})
    outcome = run_step(make_executor(make_registry(tool)), "search")
    assert not outcome.success
    assert outcome.output == "nope"


def test_structured_result_is_summarized(make_registry, make_executor, drafter):
    tool = RecordingTool("search", ToolResult.ok(RESULTS))
    ctx = RunContext(profile=UserProfile(name="Sam", tone="concise"))
    outcome = run_step(make_executor(make_registry(tool)), "search", "rust lang in a table", run_ctx=ctx)
    assert outcome.success
    assert outcome.output == drafter.reply
    assert outcome.reasoning == "Summarized search result"
    assert outcome.data == RESULTS
    assert drafter.draft_calls == 1
    prompt = drafter.prompts[0]
    assert "rust lang in a table" in prompt
    assert "HTML table" in prompt
    assert "Be minimal and direct" in prompt
    assert '"name": "Sam"' in prompt


def test_streaming_summary_uses_chunk_sink(make_registry, make_executor, drafter):
    tool = RecordingTool("search", ToolResult.ok(RESULTS))
    chunks = []
    outcome = run_step(make_executor(make_registry(tool)), "search", on_chunk=chunks.append)
    assert "".join(chunks) == drafter.reply == outcome.output
    assert drafter.stream_calls == 1


def test_unavailable_drafter_falls_back_to_raw_result(make_registry):
    tool = RecordingTool("search", ToolResult.ok(RESULTS))
    executor = StepExecutor(make_registry(tool), FakeDrafter(DRAFT_UNAVAILABLE))
    outcome = run_step(executor, "search")
    assert outcome.success
    assert json.loads(outcome.output) == RESULTS
    assert outcome.reasoning is None


def test_empty_results_flag_a_citation_miss_without_drafting(make_registry, make_executor, drafter):
    tool = RecordingTool("search", ToolResult.ok({"query": "x", "results": []}))
    outcome = run_step(make_executor(make_registry(tool)), "search")
    assert outcome.success
    assert outcome.citation_miss == ["search returned no results"]
    assert drafter.draft_calls == 0


def test_final_flag_is_passed_through(make_registry, make_executor):
    outcome = run_step(make_executor(make_registry()), "calculator", "12*7")
    assert outcome.final
    assert outcome.output == "12*7 = 84"


def test_contradiction_with_previous_step_is_reported(make_registry, make_executor):
    trace = StateGraph([TraceEntry(step=1, tool="calculator", input="2+2", output="4", success=True)])
    outcome = run_step(make_executor(make_registry()), "calculator", "2+3", trace=trace)
    assert outcome.contradictions == ["Potential contradiction detected"]


def test_render_reply_prefers_html_then_text():
    assert render_reply({"html": "<b>x</b>", "text": "x"}) == "<b>x</b>"
    assert render_reply({"html": " ", "text": "x"}) == "x"
    assert render_reply(None) == ""
    assert json.loads(render_reply([1, 2])) == [1, 2]
