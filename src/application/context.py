"""
application.context - Request-scoped run context.

Every orchestration run receives its context explicitly. Two concurrent
requests get two different RunContext instances, so neither the trace nor
the tool usage counters are ever shared between runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import uuid4

from domain.entities import UserProfile
from domain.models import Message


@dataclass
class RunContext:
    """Per-request context passed from the adapter down to the executor.

    Attributes:
        conversation_id:  Conversation the request belongs to.
        recent_history:   Most recent turns, oldest first.
        profile:          What the assistant remembers about the user.
        client_ip:        Caller address, used for "here" weather lookups.
        file_ids:         Uploaded file ids forwarded to file-aware tools.
        request_id:       Unique per request, for tracing/logging.
        tool_usage:       Per-run invocation counters, keyed by tool name.
    """
    conversation_id: str = "default"
    recent_history: list[Message] = field(default_factory=list)
    profile: UserProfile = field(default_factory=UserProfile)
    client_ip: Optional[str] = None
    file_ids: list[str] = field(default_factory=list)
    request_id: str = field(default_factory=lambda: uuid4().hex)
    tool_usage: dict[str, int] = field(default_factory=dict)

    def count_call(self, tool: str) -> int:
        """Increment and return the usage counter for one tool."""
        self.tool_usage[tool] = self.tool_usage.get(tool, 0) + 1
        return self.tool_usage[tool]

    def tool_context(self) -> dict[str, Any]:
        """Shared keys every tool invocation receives in its context map."""
        return {
            "conversation_id": self.conversation_id,
            "recent_history": list(self.recent_history),
            "profile": self.profile,
        }
