"""
domain.ports - Abstract interfaces (Protocols) for all system boundaries.

These define WHAT the orchestrator needs without specifying HOW.
Infrastructure modules provide concrete implementations; the agent and
application layers depend only on these protocols.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

from domain.models import Message, StateGraph, Step, ToolResult
from domain.entities import ChatMessage, ScheduledTask, UserProfile


ChunkSink = Callable[[str], Union[None, Awaitable[None]]]
StepSink = Callable[[dict[str, Any]], Union[None, Awaitable[None]]]

logger = logging.getLogger(__name__)


async def emit(sink: Optional[Callable[[Any], Any]], payload: Any) -> None:
    """Deliver payload to a sync or async sink.

    A failing sink (for example a closed websocket) is logged and ignored so
    the run that feeds it still completes.
    """
    if sink is None:
        return
    try:
        result = sink(payload)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.warning("Streaming sink failed; continuing without it", exc_info=True)


# ---------------------------------------------------------------------------
# Agent Ports
# ---------------------------------------------------------------------------

@runtime_checkable
class ToolPort(Protocol):
    """An invocable capability resolved by name."""

    name: str

    async def invoke(self, input: Any, context: dict[str, Any]) -> ToolResult: ...


@runtime_checkable
class PlannerPort(Protocol):
    """Turn a request into an ordered, non-empty-or-empty list of Steps."""

    async def plan(
        self,
        request: str,
        recent_history: list[Message],
        trace: StateGraph,
    ) -> list[Step]: ...


@runtime_checkable
class DrafterPort(Protocol):
    """Text generation used to summarize tool output and answer directly.

    Implementations return a sentinel string instead of raising when the
    backend is unavailable.
    """

    async def draft(self, prompt: str) -> str: ...

    async def stream(self, prompt: str, on_chunk: ChunkSink) -> str: ...


@runtime_checkable
class GeoLocatorPort(Protocol):
    """Resolve a client IP address to a city name."""

    async def resolve_city(self, ip: Optional[str]) -> Optional[str]: ...


# ---------------------------------------------------------------------------
# Repository Ports
# ---------------------------------------------------------------------------

@runtime_checkable
class DocumentStore(Protocol):
    """Load and save JSON documents keyed by id."""

    async def load(self, doc_id: str) -> Optional[Any]: ...
    async def save(self, doc_id: str, body: Any) -> None: ...
    async def delete(self, doc_id: str) -> None: ...
    async def list_ids(self, prefix: str = "") -> list[str]: ...


@runtime_checkable
class TaskRepository(Protocol):
    """Whole-list persistence for scheduled tasks."""

    async def load_all(self) -> list[ScheduledTask]: ...
    async def save_all(self, tasks: list[ScheduledTask]) -> None: ...


@runtime_checkable
class ConversationRepository(Protocol):
    """Conversation messages and the user profile."""

    async def get_messages(self, conversation_id: str) -> list[ChatMessage]: ...
    async def append_messages(self, conversation_id: str, messages: list[ChatMessage]) -> None: ...
    async def list_conversations(self) -> list[str]: ...
    async def delete_conversation(self, conversation_id: str) -> None: ...
    async def get_profile(self) -> UserProfile: ...
    async def save_profile(self, profile: UserProfile) -> None: ...


@runtime_checkable
class TelemetrySink(Protocol):
    """Append-only record of completed runs."""

    async def record(self, event: dict[str, Any]) -> None: ...


@runtime_checkable
class HttpClientPort(Protocol):
    """GET a URL and return decoded JSON; failures raise ToolExecutionError."""

    async def get_json(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any: ...
