"""
domain.models - Value objects for the orchestration engine.

These are plain data containers with no dependencies on infrastructure
(no LangChain, no SQLite, no HTTP). The coordinator, executor, planner
and scheduler exchange only these types.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Union


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Message:
    """One conversation turn as seen by the planner and the drafter."""
    role: str
    content: str


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Step:
    """One planned tool invocation.

    confidence is advisory; nothing downstream enforces it.
    """
    tool: str
    input: Any
    context: dict[str, Any] = field(default_factory=dict)
    confidence: float = 1.0


# ---------------------------------------------------------------------------
# Tool contract
# ---------------------------------------------------------------------------

@dataclass
class ToolResult:
    """Result returned by every tool invocation.

    success:  Whether the tool did its job.
    data:     Structured payload (dict, list or text) for the user or later steps.
    error:    Failure text, set when success is False.
    final:    The tool answered the request outright; stop the run.
    cached:   The data came from a cache rather than a fresh call.
    """
    success: bool
    data: Any = None
    error: Optional[str] = None
    final: bool = False
    cached: bool = False

    @classmethod
    def ok(cls, data: Any = None, *, final: bool = False, cached: bool = False) -> ToolResult:
        return cls(success=True, data=data, final=final, cached=cached)

    @classmethod
    def fail(cls, error: str) -> ToolResult:
        return cls(success=False, error=error)

    @classmethod
    def coerce(cls, raw: Any) -> ToolResult:
        """Accept a ToolResult or a plain {success, data, error, final} mapping."""
        if isinstance(raw, ToolResult):
            return raw
        if isinstance(raw, dict) and "success" in raw:
            return cls(
                success=bool(raw.get("success")),
                data=raw.get("data"),
                error=raw.get("error"),
                final=bool(raw.get("final", False)),
                cached=bool(raw.get("cached", False)),
            )
        return cls.ok(raw)


@dataclass
class StepOutcome:
    """What the executor reports for one step."""
    success: bool
    output: Any
    final: bool = False
    reasoning: Optional[str] = None
    data: Any = None
    cached: bool = False
    citation_miss: list[str] = field(default_factory=list)
    contradictions: list[str] = field(default_factory=list)
    retryable: bool = True


# ---------------------------------------------------------------------------
# Execution trace
# ---------------------------------------------------------------------------

@dataclass
class TraceEntry:
    """One executed step.

    step is 1-based; a synthesized follow-up sub-step uses a fractional
    number (2.5 follows step 2).
    """
    step: Union[int, float]
    tool: str
    input: Any
    output: Any
    success: bool
    contradictions: list[str] = field(default_factory=list)
    citation_miss: list[str] = field(default_factory=list)
    final: bool = False
    cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "tool": self.tool,
            "input": self.input,
            "output": self.output,
            "success": self.success,
            "contradictions": list(self.contradictions),
            "citation_miss": list(self.citation_miss),
            "final": self.final,
            "cached": self.cached,
        }


class StateGraph:
    """Append-only ordered record of the steps executed in one run."""

    def __init__(self, entries: Optional[list[TraceEntry]] = None):
        self._entries: list[TraceEntry] = list(entries or [])

    def append(self, entry: TraceEntry) -> None:
        self._entries.append(entry)

    def last(self) -> Optional[TraceEntry]:
        return self._entries[-1] if self._entries else None

    @property
    def entries(self) -> tuple[TraceEntry, ...]:
        return tuple(self._entries)

    def __iter__(self) -> Iterator[TraceEntry]:
        return iter(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> TraceEntry:
        return self._entries[index]

    def to_list(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]


def comparable_text(value: Any) -> str:
    """Serialize a step output so two outputs can be compared as strings."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, sort_keys=True, default=str)
    except (TypeError, ValueError):
        return str(value)


# ---------------------------------------------------------------------------
# Orchestration result and streaming events
# ---------------------------------------------------------------------------

@dataclass
class OrchestrationResult:
    """What the coordinator hands back to the request-handling layer."""
    reply: str
    trace: StateGraph
    tool: str
    success: bool
    data: Any = None
    confidence: float = 0.5
    reasoning: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "reply": self.reply,
            "trace": self.trace.to_list(),
            "tool": self.tool,
            "success": self.success,
            "data": self.data,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class StepEvent:
    """Lifecycle notification sent to the step sink."""
    event: str  # "step_start" | "step_end"
    step: Union[int, float]
    total: int
    tool: str
    success: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "event": self.event,
            "step": self.step,
            "total": self.total,
            "tool": self.tool,
        }
        if self.success is not None:
            payload["success"] = self.success
        return payload


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------

def _check_clock(hour: int, minute: int) -> None:
    if not 0 <= hour <= 23:
        raise ValueError(f"hour must be in [0, 23], got {hour}")
    if not 0 <= minute <= 59:
        raise ValueError(f"minute must be in [0, 59], got {minute}")


@dataclass(frozen=True)
class IntervalSchedule:
    """Fire every N minutes."""
    minutes: int
    kind: str = field(default="interval", init=False)

    def __post_init__(self) -> None:
        if self.minutes < 1:
            raise ValueError(f"interval must be at least one minute, got {self.minutes}")

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "minutes": self.minutes}


@dataclass(frozen=True)
class DailySchedule:
    """Fire once a day at hour:minute."""
    hour: int
    minute: int = 0
    kind: str = field(default="daily", init=False)

    def __post_init__(self) -> None:
        _check_clock(self.hour, self.minute)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "hour": self.hour, "minute": self.minute}


@dataclass(frozen=True)
class WeeklySchedule:
    """Fire once a week. day_of_week: 0 = Sunday ... 6 = Saturday."""
    day_of_week: int
    hour: int
    minute: int = 0
    kind: str = field(default="weekly", init=False)

    def __post_init__(self) -> None:
        if not 0 <= self.day_of_week <= 6:
            raise ValueError(f"day_of_week must be in [0, 6], got {self.day_of_week}")
        _check_clock(self.hour, self.minute)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "day_of_week": self.day_of_week,
            "hour": self.hour,
            "minute": self.minute,
        }


ScheduleSpec = Union[IntervalSchedule, DailySchedule, WeeklySchedule]


def schedule_from_dict(data: dict[str, Any]) -> ScheduleSpec:
    """Rebuild a ScheduleSpec from its persisted form."""
    kind = data.get("type")
    if kind == "interval":
        return IntervalSchedule(minutes=int(data["minutes"]))
    if kind == "daily":
        return DailySchedule(hour=int(data["hour"]), minute=int(data.get("minute", 0)))
    if kind == "weekly":
        return WeeklySchedule(
            day_of_week=int(data["day_of_week"]),
            hour=int(data["hour"]),
            minute=int(data.get("minute", 0)),
        )
    raise ValueError(f"Unknown schedule type: {kind!r}")


# Returned by drafters instead of raising when the model backend is down.
DRAFT_UNAVAILABLE = "(the language model is currently unavailable)"
