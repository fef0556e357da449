"""ChatService and inline profile memory."""

import asyncio

import pytest

from agent.coordinator import Coordinator
from agent.planner import RuleBasedPlanner
from application.services.chat import ChatService
from application.services.profile import ProfileService, extract_profile_updates
from domain.entities import ChatMessage, UserProfile
from domain.models import Step

from conftest import (
    ListTelemetry,
    MemoryConversationRepository,
    RecordingTool,
    StubPlanner,
)


@pytest.mark.parametrize("message, expected", [
    ("remember my name is Sam.", {"name": "Sam"}),
    ("call me Alex", {"name": "Alex"}),
    ("remember that my location is Porto", {"location": "Porto"}),
    ("remember I prefer a professional tone", {"tone": "professional"}),
    ("remember I prefer a grumpy tone", {}),
    ("what's my name?", {}),
])
def test_extract_profile_updates(message, expected):
    assert extract_profile_updates(message) == expected


def test_profile_service_saves_only_when_something_changed():
    repo = MemoryConversationRepository()
    service = ProfileService(repo)

    unchanged = asyncio.run(service.apply_inline_updates("hello"))
    assert unchanged is repo.profile

    updated = asyncio.run(service.apply_inline_updates("remember my location is Lisbon"))
    assert updated.location == "Lisbon"
    assert repo.profile == UserProfile(location="Lisbon")


@pytest.fixture
def service_parts(make_registry, make_executor):
    def _make(planner=None, *tools):
        conversations = MemoryConversationRepository()
        telemetry = ListTelemetry()
        coordinator = Coordinator(planner or RuleBasedPlanner(), make_executor(make_registry(*tools)))
        service = ChatService(
            coordinator, conversations, ProfileService(conversations), telemetry, history_window=2,
        )
        return service, conversations, telemetry

    return _make


def test_handle_runs_request_and_stores_both_turns(service_parts):
    service, conversations, telemetry = service_parts()

    reply = asyncio.run(service.handle("what's 12*7", "conv-1"))

    assert reply.conversation_id == "conv-1"
    assert reply.reply == "12*7 = 84"
    stored = conversations.conversations["conv-1"]
    assert [(m.role, m.content) for m in stored] == [("user", "what's 12*7"), ("assistant", "12*7 = 84")]
    assert stored[1].tool == "calculator"
    assert stored[1].success is True
    assert reply.metadata["steps"] == 1
    assert reply.metadata["message_count"] == 2

    event = telemetry.events[0]
    assert event["conversation_id"] == "conv-1"
    assert event["tool"] == "calculator"
    assert event["steps"] == 1


def test_handle_generates_conversation_id(service_parts):
    service, conversations, _ = service_parts()
    reply = asyncio.run(service.handle("2+2"))
    assert reply.conversation_id
    assert list(conversations.conversations) == [reply.conversation_id]


def test_recent_history_is_windowed(service_parts):
    llm = RecordingTool("llm")
    service, conversations, _ = service_parts(StubPlanner([Step("llm", "hi")]), llm)
    conversations.conversations["c"] = [
        ChatMessage("user", "one"), ChatMessage("assistant", "two"), ChatMessage("user", "three"),
    ]

    asyncio.run(service.handle("hi", "c"))

    history = llm.calls[0][1]["recent_history"]
    assert [m.content for m in history] == ["two", "three"]


def test_profile_update_is_visible_in_the_same_run(service_parts):
    llm = RecordingTool("llm")
    service, conversations, _ = service_parts(StubPlanner([Step("llm", "hi")]), llm)

    asyncio.run(service.handle("remember my name is Sam", "c"))

    assert conversations.profile.name == "Sam"
    assert llm.calls[0][1]["profile"].name == "Sam"


def test_telemetry_failure_does_not_fail_the_request(service_parts):
    service, _, telemetry = service_parts()

    async def broken(event):
        raise OSError("disk full")

    telemetry.record = broken
    reply = asyncio.run(service.handle("2+2", "c"))
    assert reply.result.success


def test_reply_to_dict_carries_result_and_metadata(service_parts):
    service, _, _ = service_parts()
    payload = asyncio.run(service.handle("2+2", "c")).to_dict()
    assert payload["reply"] == "2+2 = 4"
    assert payload["conversation_id"] == "c"
    assert payload["trace"][0]["tool"] == "calculator"
    assert "execution_time_ms" in payload["metadata"]


def test_conversation_listing_and_delete(service_parts):
    service, _, _ = service_parts()

    async def scenario():
        await service.handle("2+2", "a")
        await service.handle("3+3", "b")
        before = await service.list_conversations()
        await service.delete_conversation("a")
        return before, await service.list_conversations(), await service.get_messages("a")

    before, after, messages = asyncio.run(scenario())
    assert sorted(before) == ["a", "b"]
    assert after == ["b"]
    assert messages == []
