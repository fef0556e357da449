"""TaskScheduler: task management and due-task execution."""

import asyncio
import re
from datetime import datetime, timedelta

import pytest

from agent.tools.registry import ToolRegistry
from application.services.scheduler import TaskScheduler, new_task_id, summarize_result
from domain.entities import ScheduledTask
from domain.exceptions import ScheduleParseError, TaskNotFoundError
from domain.models import DailySchedule, IntervalSchedule, ToolResult

from conftest import MemoryTaskRepository, RecordingTool

NOW = datetime(2026, 10, 19, 9, 0)


def make_scheduler(*tools, tasks=None):
    registry = ToolRegistry()
    for tool in tools:
        registry.register(tool)
    repo = MemoryTaskRepository(tasks)
    return TaskScheduler(registry, repo, clock=lambda: NOW), repo


def task(name, tool, schedule=None, **kwargs):
    return ScheduledTask(
        id=f"task_{name}",
        name=name,
        schedule=schedule or IntervalSchedule(30),
        schedule_text="every 30 minutes",
        tool=tool,
        **kwargs,
    )


def test_new_task_id_shape():
    assert re.fullmatch(r"task_\d+_[a-z0-9]{4}", new_task_id())


def test_summarize_result_prefers_text_and_truncates():
    assert summarize_result(ToolResult.ok({"text": "sunny", "temp": 20})) == "sunny"
    assert summarize_result(ToolResult.ok({"temp": 20})) == '{"temp": 20}'
    assert summarize_result(ToolResult.ok("x" * 500)) == "x" * 200
    assert summarize_result(ToolResult.ok(None)) == ""


def test_add_task_parses_and_persists():
    scheduler, repo = make_scheduler()

    async def scenario():
        added = await scheduler.add_task("digest", "daily at 9am", "search", "rust news")
        return added, await scheduler.list_tasks()

    added, listing = asyncio.run(scenario())
    assert added.schedule == DailySchedule(9, 0)
    assert added.enabled
    assert added.run_count == 0
    assert repo.tasks == [added]
    assert listing == [{
        "id": added.id,
        "name": "digest",
        "schedule": "daily at 9am",
        "tool": "search",
        "enabled": True,
        "last_run": None,
        "run_count": 0,
        "last_result": None,
    }]


def test_add_task_with_bad_schedule_changes_nothing():
    scheduler, repo = make_scheduler()
    with pytest.raises(ScheduleParseError):
        asyncio.run(scheduler.add_task("x", "sometime soon", "search"))
    assert repo.saves == 0
    assert repo.tasks == []


def test_toggle_and_remove_by_id_or_name():
    scheduler, repo = make_scheduler(tasks=[task("Morning Weather", "weather")])

    async def scenario():
        await scheduler.disable_task("morning weather")
        disabled = (await scheduler.status())["enabled_count"]
        await scheduler.enable_task("task_Morning Weather")
        enabled = (await scheduler.status())["enabled_count"]
        removed = await scheduler.remove_task("MORNING WEATHER")
        return disabled, enabled, removed

    disabled, enabled, removed = asyncio.run(scenario())
    assert (disabled, enabled) == (0, 1)
    assert removed.name == "Morning Weather"
    assert repo.tasks == []
    assert repo.saves == 3


def test_unknown_task_raises():
    scheduler, _ = make_scheduler()
    with pytest.raises(TaskNotFoundError):
        asyncio.run(scheduler.remove_task("nope"))


def test_check_due_fires_enabled_due_tasks_only():
    weather = RecordingTool("weather", ToolResult.ok({"text": "Sunny, 21C"}))
    tasks = [
        task("due", "weather", input="Lisbon", context={"units": "metric"}),
        task("paused", "weather", enabled=False),
        task("not yet", "weather", last_run=NOW - timedelta(minutes=5)),
    ]
    scheduler, repo = make_scheduler(weather, tasks=tasks)

    fired = asyncio.run(scheduler.check_due(NOW))

    assert [t.name for t in fired] == ["due"]
    assert weather.calls == [("Lisbon", {"units": "metric"})]
    due = repo.tasks[0]
    assert due.last_run == NOW
    assert due.run_count == 1
    assert due.last_result.success
    assert due.last_result.summary == "Sunny, 21C"
    assert repo.saves == 1


def test_nothing_due_does_not_save():
    scheduler, repo = make_scheduler(tasks=[task("later", "weather", last_run=NOW)])
    assert asyncio.run(scheduler.check_due(NOW)) == []
    assert repo.saves == 0


def test_daily_task_fires_once_per_day():
    weather = RecordingTool("weather")
    daily = task("daily", "weather", schedule=DailySchedule(9, 0))
    scheduler, _ = make_scheduler(weather, tasks=[daily])

    async def scenario():
        first = await scheduler.check_due(NOW)
        second = await scheduler.check_due(NOW + timedelta(seconds=30))
        return first, second

    first, second = asyncio.run(scenario())
    assert len(first) == 1
    assert second == []


def test_one_failing_task_does_not_stop_the_others():
    broken = RecordingTool("search", RuntimeError("backend down"))
    reported = RecordingTool("finance", ToolResult.fail("API key missing"))
    healthy = RecordingTool("weather", ToolResult.ok({"text": "ok"}))
    tasks = [
        task("broken", "search"),
        task("missing tool", "nonexistent"),
        task("reported", "finance"),
        task("healthy", "weather"),
    ]
    scheduler, repo = make_scheduler(broken, reported, healthy, tasks=tasks)

    fired = asyncio.run(scheduler.check_due(NOW))

    assert len(fired) == 4
    by_name = {t.name: t for t in repo.tasks}
    assert by_name["broken"].last_result.error == "backend down"
    assert by_name["broken"].run_count == 0
    assert by_name["broken"].last_run == NOW
    assert by_name["missing tool"].last_result.error == "Tool 'nonexistent' not found"
    assert by_name["reported"].last_result.success is False
    assert by_name["reported"].last_result.error == "API key missing"
    assert by_name["reported"].run_count == 1
    assert by_name["healthy"].last_result.success
    assert len(healthy.calls) == 1


def test_plain_dict_results_are_accepted():
    raw = RecordingTool("search", {"success": True, "data": {"text": "rust 1.90 is out"}})
    raw_failure = RecordingTool("finance", {"success": False, "error": "quota exceeded"})
    healthy = RecordingTool("weather", ToolResult.ok({"text": "ok"}))
    tasks = [task("raw", "search"), task("raw failure", "finance"), task("healthy", "weather")]
    scheduler, repo = make_scheduler(raw, raw_failure, healthy, tasks=tasks)

    fired = asyncio.run(scheduler.check_due(NOW))

    assert len(fired) == 3
    assert repo.saves == 1
    by_name = {t.name: t for t in repo.tasks}
    assert by_name["raw"].last_result.success
    assert by_name["raw"].last_result.summary == "rust 1.90 is out"
    assert by_name["raw"].run_count == 1
    assert by_name["raw failure"].last_result.error == "quota exceeded"
    assert len(healthy.calls) == 1


def test_start_loads_tasks_and_stop_cancels():
    scheduler, _ = make_scheduler(tasks=[task("a", "weather")])

    async def scenario():
        await scheduler.start()
        running = scheduler.running
        status = await scheduler.status()
        await scheduler.stop()
        return running, status, scheduler.running

    running, status, after = asyncio.run(scenario())
    assert running
    assert status["running"]
    assert status["task_count"] == 1
    assert not after


def test_background_loop_ticks():
    weather = RecordingTool("weather")
    registry = ToolRegistry()
    registry.register(weather)
    scheduler = TaskScheduler(
        registry, MemoryTaskRepository([task("a", "weather")]),
        interval_seconds=0.01, clock=lambda: NOW,
    )

    async def scenario():
        await scheduler.start()
        for _ in range(100):
            if weather.calls:
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()

    asyncio.run(scenario())
    assert len(weather.calls) == 1
