"""
application.dto - Data Transfer Objects for service input/output.

These are the structured results that services return to callers
(REST endpoints, the websocket stream, CLI adapters).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from domain.models import OrchestrationResult


@dataclass(frozen=True)
class ChatReply:
    """One answered chat request."""
    result: OrchestrationResult
    conversation_id: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def reply(self) -> str:
        return self.result.reply

    def to_dict(self) -> dict[str, Any]:
        payload = self.result.to_dict()
        payload["conversation_id"] = self.conversation_id
        payload["metadata"] = dict(self.metadata)
        return payload
