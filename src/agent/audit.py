"""
agent.audit - Confidence scoring and contradiction flags for a trace.

Both checks are cheap heuristics over the StateGraph. The contradiction
check is lexical only: two differently worded outputs that mean the same
thing are still flagged.
"""

from __future__ import annotations

from typing import Any

from domain.models import StateGraph, comparable_text

CONTRADICTION_MARKER = "Potential contradiction detected"

BASELINE = 0.5
MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.95

EVIDENCE_WEIGHTS = {
    "finance": 0.25,
    "stock_price": 0.25,
    "search": 0.15,
    "weather": 0.15,
}
DIVERSE_EVIDENCE_BONUS = 0.05
CACHED_BONUS = 0.05
FINAL_OUTPUT_BONUS = 0.05
CONTRADICTION_PENALTY = 0.2
CITATION_MISS_PENALTY = 0.2


def detect_contradictions(trace: StateGraph, new_output: Any) -> list[str]:
    """Compare new_output with the most recent trace output.

    Returns [CONTRADICTION_MARKER] when both are non-empty and differ
    (case-insensitively), else an empty list.
    """
    new_text = comparable_text(new_output)
    if not new_text:
        return []
    last = trace.last()
    if last is None:
        return []
    previous = comparable_text(last.output)
    if not previous:
        return []
    if previous == new_text or previous.casefold() == new_text.casefold():
        return []
    return [CONTRADICTION_MARKER]


def calculate_confidence(trace: StateGraph) -> float:
    """Score a finished run, clamped to [MIN_CONFIDENCE, MAX_CONFIDENCE]."""
    score = BASELINE
    entries = list(trace)

    evidence = [e for e in entries if e.success and e.tool in EVIDENCE_WEIGHTS]
    used = {e.tool for e in evidence}
    # finance and stock_price share one weight
    if used & {"finance", "stock_price"}:
        score += EVIDENCE_WEIGHTS["finance"]
    if used & {"search", "weather"}:
        score += EVIDENCE_WEIGHTS["search"]
    if len(used) >= 2 or len(evidence) >= 2:
        score += DIVERSE_EVIDENCE_BONUS

    if any(e.cached for e in entries):
        score += CACHED_BONUS

    final = next((e for e in reversed(entries) if e.success), None)
    if final is not None and comparable_text(final.output).strip():
        score += FINAL_OUTPUT_BONUS

    if any(e.contradictions for e in entries):
        score -= CONTRADICTION_PENALTY
    if any(e.citation_miss for e in entries):
        score -= CITATION_MISS_PENALTY

    return round(min(max(score, MIN_CONFIDENCE), MAX_CONFIDENCE), 4)
