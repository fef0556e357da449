"""
domain.entities - Persistence-aware types (have IDs, timestamps).

No SQL concerns and no DB imports. Each entity knows how to turn itself
into the plain dict stored in the document store and back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from domain.models import ScheduleSpec, schedule_from_dict


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class TaskRunResult:
    """Outcome of the most recent firing of a scheduled task."""
    success: bool
    summary: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.summary is not None:
            payload["summary"] = self.summary
        if self.error is not None:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional[TaskRunResult]:
        if not data:
            return None
        return cls(
            success=bool(data.get("success")),
            summary=data.get("summary"),
            error=data.get("error"),
        )


@dataclass
class ScheduledTask:
    """A recurring tool invocation."""
    id: str
    name: str
    schedule: ScheduleSpec
    schedule_text: str
    tool: str
    input: Any = None
    context: dict[str, Any] = field(default_factory=dict)
    enabled: bool = True
    created_at: datetime = field(default_factory=datetime.now)
    last_run: Optional[datetime] = None
    run_count: int = 0
    last_result: Optional[TaskRunResult] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "schedule": self.schedule.to_dict(),
            "schedule_text": self.schedule_text,
            "tool": self.tool,
            "input": self.input,
            "context": dict(self.context),
            "enabled": self.enabled,
            "created_at": self.created_at.isoformat(),
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "last_result": self.last_result.to_dict() if self.last_result else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScheduledTask:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            schedule=schedule_from_dict(data["schedule"]),
            schedule_text=data.get("schedule_text", ""),
            tool=data["tool"],
            input=data.get("input"),
            context=dict(data.get("context") or {}),
            enabled=bool(data.get("enabled", True)),
            created_at=_parse_ts(data.get("created_at")) or datetime.now(),
            last_run=_parse_ts(data.get("last_run")),
            run_count=int(data.get("run_count", 0)),
            last_result=TaskRunResult.from_dict(data.get("last_result")),
        )


@dataclass
class ChatMessage:
    """A stored conversation turn."""
    role: str
    content: str
    created_at: str = ""
    tool: Optional[str] = None
    confidence: Optional[float] = None
    success: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "role": self.role,
            "content": self.content,
            "created_at": self.created_at,
        }
        if self.tool is not None:
            payload["tool"] = self.tool
        if self.confidence is not None:
            payload["confidence"] = self.confidence
        if self.success is not None:
            payload["success"] = self.success
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatMessage:
        return cls(
            role=data.get("role", "user"),
            content=data.get("content", ""),
            created_at=data.get("created_at", ""),
            tool=data.get("tool"),
            confidence=data.get("confidence"),
            success=data.get("success"),
        )


@dataclass
class UserProfile:
    """What the assistant remembers about its user."""
    name: str = ""
    location: str = ""
    tone: str = "mediumWarm"
    preferences: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "location": self.location,
            "tone": self.tone,
            "preferences": dict(self.preferences),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> UserProfile:
        data = data or {}
        return cls(
            name=data.get("name", ""),
            location=data.get("location", ""),
            tone=data.get("tone") or "mediumWarm",
            preferences=dict(data.get("preferences") or {}),
        )
