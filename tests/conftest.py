"""Shared fakes: no network, no language model, no real clock."""

from __future__ import annotations

from typing import Any, Callable, Optional

import pytest

from agent.executor import StepExecutor
from agent.tools.calculator import CalculatorTool
from agent.tools.llm_answer import LLMAnswerTool
from agent.tools.registry import ToolRegistry
from domain.entities import ChatMessage, ScheduledTask, UserProfile
from domain.models import ToolResult
from domain.ports import emit


class FakeDrafter:
    """Echoes a fixed reply; stream() emits it word by word."""

    def __init__(self, reply: str = "Here is the answer."):
        self.reply = reply
        self.prompts: list[str] = []
        self.draft_calls = 0
        self.stream_calls = 0

    async def draft(self, prompt: str) -> str:
        self.draft_calls += 1
        self.prompts.append(prompt)
        return self.reply

    async def stream(self, prompt: str, on_chunk) -> str:
        self.stream_calls += 1
        self.prompts.append(prompt)
        words = self.reply.split(" ")
        for i, word in enumerate(words):
            await emit(on_chunk, word if i == len(words) - 1 else word + " ")
        return self.reply


class RecordingTool:
    """Tool double that records every call and returns scripted results.

    `results` is consumed in order; the last one repeats. An Exception
    instance in the list is raised instead of returned.
    """

    def __init__(self, name: str, *results: Any):
        self.name = name
        self.description = f"fake {name}"
        self._results = list(results) or [ToolResult.ok({"text": f"{name} ok"})]
        self.calls: list[tuple[Any, dict[str, Any]]] = []

    async def invoke(self, input: Any, context: dict[str, Any]) -> ToolResult:
        self.calls.append((input, dict(context)))
        index = min(len(self.calls) - 1, len(self._results) - 1)
        result = self._results[index]
        if isinstance(result, Exception):
            raise result
        return result


class StubPlanner:
    """Returns a fixed plan, or raises the given exception."""

    def __init__(self, steps: Any = None, error: Optional[Exception] = None):
        self._steps = steps if steps is not None else []
        self._error = error
        self.calls = 0

    async def plan(self, request, recent_history=(), trace=None):
        self.calls += 1
        if self._error is not None:
            raise self._error
        return list(self._steps)


class FakeGeoLocator:
    def __init__(self, city: Optional[str]):
        self.city = city
        self.ips: list[Optional[str]] = []

    async def resolve_city(self, ip):
        self.ips.append(ip)
        return self.city


class MemoryTaskRepository:
    def __init__(self, tasks: Optional[list[ScheduledTask]] = None):
        self.tasks = list(tasks or [])
        self.saves = 0

    async def load_all(self) -> list[ScheduledTask]:
        return list(self.tasks)

    async def save_all(self, tasks: list[ScheduledTask]) -> None:
        self.saves += 1
        self.tasks = list(tasks)


class MemoryConversationRepository:
    def __init__(self):
        self.conversations: dict[str, list[ChatMessage]] = {}
        self.profile = UserProfile()

    async def get_messages(self, conversation_id: str) -> list[ChatMessage]:
        return list(self.conversations.get(conversation_id, []))

    async def append_messages(self, conversation_id: str, messages: list[ChatMessage]) -> None:
        self.conversations.setdefault(conversation_id, []).extend(messages)

    async def list_conversations(self) -> list[str]:
        return list(self.conversations)

    async def delete_conversation(self, conversation_id: str) -> None:
        self.conversations.pop(conversation_id, None)

    async def get_profile(self) -> UserProfile:
        return self.profile

    async def save_profile(self, profile: UserProfile) -> None:
        self.profile = profile


class ListTelemetry:
    def __init__(self):
        self.events: list[dict[str, Any]] = []

    async def record(self, event: dict[str, Any]) -> None:
        self.events.append(event)


@pytest.fixture
def drafter() -> FakeDrafter:
    return FakeDrafter()


@pytest.fixture
def make_registry(drafter) -> Callable[..., ToolRegistry]:
    """Registry with the real calculator and llm tools plus any fakes given."""

    def _make(*tools, with_llm: bool = True) -> ToolRegistry:
        registry = ToolRegistry()
        registry.register(CalculatorTool())
        if with_llm:
            registry.register(LLMAnswerTool(drafter))
        for tool in tools:
            registry.register(tool)
        return registry

    return _make


@pytest.fixture
def make_executor(drafter) -> Callable[[ToolRegistry], StepExecutor]:
    def _make(registry: ToolRegistry) -> StepExecutor:
        return StepExecutor(registry=registry, drafter=drafter)

    return _make


@pytest.fixture
def no_sleep():
    """An asyncio.sleep replacement that records the requested delays."""
    delays: list[float] = []

    async def _sleep(delay: float) -> None:
        delays.append(delay)

    _sleep.delays = delays
    return _sleep
