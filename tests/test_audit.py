from agent.audit import (
    CONTRADICTION_MARKER,
    MAX_CONFIDENCE,
    MIN_CONFIDENCE,
    calculate_confidence,
    detect_contradictions,
)
from domain.models import StateGraph, TraceEntry


def entry(tool="search", output="answer", success=True, **kwargs):
    return TraceEntry(step=1, tool=tool, input="q", output=output, success=success, **kwargs)


def test_no_contradiction_without_prior_output():
    assert detect_contradictions(StateGraph(), "anything") == []
    assert detect_contradictions(StateGraph([entry(output="")]), "anything") == []


def test_case_insensitive_match_is_not_a_contradiction():
    trace = StateGraph([entry(output="Paris is the capital")])
    assert detect_contradictions(trace, "paris is the CAPITAL") == []


def test_different_wording_is_flagged():
    trace = StateGraph([entry(output="The answer is 84")])
    assert detect_contradictions(trace, "84") == [CONTRADICTION_MARKER]


def test_structured_outputs_are_compared_serialized():
    trace = StateGraph([entry(output={"b": 2, "a": 1})])
    assert detect_contradictions(trace, {"a": 1, "b": 2}) == []
    assert detect_contradictions(trace, {"a": 1}) == [CONTRADICTION_MARKER]


def test_empty_new_output_is_never_flagged():
    trace = StateGraph([entry(output="something")])
    assert detect_contradictions(trace, "") == []
    assert detect_contradictions(trace, None) == []


def test_empty_trace_scores_baseline():
    assert calculate_confidence(StateGraph()) == 0.5


def test_single_search_with_output():
    assert calculate_confidence(StateGraph([entry()])) == 0.7


def test_many_bonuses_are_clamped_to_max():
    trace = StateGraph([
        entry(tool="finance", cached=True),
        entry(tool="search"),
        entry(tool="weather"),
    ])
    assert calculate_confidence(trace) == MAX_CONFIDENCE


def test_penalties_are_clamped_to_min():
    trace = StateGraph([
        entry(tool="llm", output="", success=False,
              contradictions=["x"], citation_miss=["search returned no results"]),
    ])
    assert calculate_confidence(trace) == MIN_CONFIDENCE


def test_confidence_always_within_bounds():
    traces = [
        StateGraph(),
        StateGraph([entry(success=False, output="boom")]),
        StateGraph([entry(contradictions=["x"])]),
        StateGraph([entry(tool="stock_price"), entry(tool="finance")]),
    ]
    for trace in traces:
        assert MIN_CONFIDENCE <= calculate_confidence(trace) <= MAX_CONFIDENCE
