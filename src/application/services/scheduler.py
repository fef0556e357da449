"""
application.services.scheduler - Recurring tool invocations.

TaskScheduler owns the task list, the background tick and the tool
registry it calls. It is built once by the ServiceFactory, started in the
API lifespan (or by `cli scheduler run`) and stopped on shutdown.

Tasks fire through the registry directly; there is no planning step. The
persisted document is the source of truth: the list is loaded on start
and the whole list is written back after every mutation and after every
tick that fired at least one task.
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import string
import time
from datetime import datetime
from typing import Any, Callable, Optional

from agent.tools.registry import ToolRegistry
from application.scheduling import is_due, parse_schedule
from domain.entities import ScheduledTask, TaskRunResult
from domain.exceptions import TaskNotFoundError
from domain.models import ToolResult
from domain.ports import TaskRepository

logger = logging.getLogger(__name__)

CHECK_INTERVAL_SECONDS = 60
SUMMARY_LIMIT = 200

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_task_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(4))
    return f"task_{int(time.time() * 1000)}_{suffix}"


def summarize_result(result: ToolResult) -> str:
    """The tool's `text` field, else its stringified data, capped at 200 chars."""
    data = result.data
    if isinstance(data, dict) and isinstance(data.get("text"), str):
        text = data["text"]
    elif data is None:
        text = ""
    elif isinstance(data, str):
        text = data
    else:
        text = json.dumps(data, ensure_ascii=False, default=str)
    return text[:SUMMARY_LIMIT]


class TaskScheduler:
    """Background loop that fires due tasks."""

    def __init__(
        self,
        registry: ToolRegistry,
        repository: TaskRepository,
        interval_seconds: float = CHECK_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._registry = registry
        self._repo = repository
        self._interval = interval_seconds
        self._clock = clock
        self._tasks: list[ScheduledTask] = []
        self._loaded = False
        self._runner: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def load(self) -> None:
        """Replace the in-memory list with the persisted one."""
        async with self._lock:
            self._tasks = await self._repo.load_all()
            self._loaded = True

    async def start(self) -> None:
        if self.running:
            return
        await self.load()
        self._runner = asyncio.create_task(self._loop(), name="task-scheduler")
        logger.info(
            "Scheduler started with %d task(s), checking every %ss",
            len(self._tasks), self._interval,
        )

    async def stop(self) -> None:
        runner, self._runner = self._runner, None
        if runner is not None:
            runner.cancel()
            try:
                await runner
            except asyncio.CancelledError:
                pass
        logger.info("Scheduler stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.check_due(self._clock())
            except Exception:
                logger.exception("Scheduler tick failed")

    # ── Task management ──────────────────────────────────────────────────

    async def add_task(
        self,
        name: str,
        schedule_text: str,
        tool: str,
        input: Any = None,
        context: Optional[dict[str, Any]] = None,
    ) -> ScheduledTask:
        """Create and persist a task.

        Raises:
            ScheduleParseError: schedule_text is not a recognised shape.
        """
        schedule = parse_schedule(schedule_text)
        task = ScheduledTask(
            id=new_task_id(),
            name=name,
            schedule=schedule,
            schedule_text=schedule_text,
            tool=tool,
            input=input,
            context=dict(context or {}),
            created_at=self._clock(),
        )
        async with self._lock:
            await self._ensure_loaded()
            self._tasks.append(task)
            await self._repo.save_all(self._tasks)
        logger.info("Task added: '%s' (%s) -> %s", name, schedule_text, tool)
        return task

    async def remove_task(self, id_or_name: str) -> ScheduledTask:
        async with self._lock:
            await self._ensure_loaded()
            task = self._find(id_or_name)
            self._tasks.remove(task)
            await self._repo.save_all(self._tasks)
        logger.info("Task removed: '%s'", task.name)
        return task

    async def toggle_task(self, id_or_name: str, enabled: bool) -> ScheduledTask:
        async with self._lock:
            await self._ensure_loaded()
            task = self._find(id_or_name)
            task.enabled = enabled
            await self._repo.save_all(self._tasks)
        logger.info("Task '%s' %s", task.name, "enabled" if enabled else "disabled")
        return task

    async def enable_task(self, id_or_name: str) -> ScheduledTask:
        return await self.toggle_task(id_or_name, True)

    async def disable_task(self, id_or_name: str) -> ScheduledTask:
        return await self.toggle_task(id_or_name, False)

    async def list_tasks(self) -> list[dict[str, Any]]:
        async with self._lock:
            await self._ensure_loaded()
            return [_listing(t) for t in self._tasks]

    async def status(self) -> dict[str, Any]:
        tasks = await self.list_tasks()
        return {
            "running": self.running,
            "task_count": len(tasks),
            "enabled_count": sum(1 for t in tasks if t["enabled"]),
            "tasks": tasks,
        }

    def _find(self, id_or_name: str) -> ScheduledTask:
        key = (id_or_name or "").lower()
        for task in self._tasks:
            if task.id == id_or_name or task.name.lower() == key:
                return task
        raise TaskNotFoundError(id_or_name)

    async def _ensure_loaded(self) -> None:
        if not self._loaded:
            self._tasks = await self._repo.load_all()
            self._loaded = True

    # ── Execution ────────────────────────────────────────────────────────

    async def check_due(self, now: Optional[datetime] = None) -> list[ScheduledTask]:
        """Run one tick: fire every enabled task that is due at `now`.

        Returns the tasks that fired. One task failing never stops the
        rest from being checked.
        """
        now = now or self._clock()
        fired: list[ScheduledTask] = []
        async with self._lock:
            await self._ensure_loaded()
            for task in list(self._tasks):
                if not task.enabled or not is_due(task.schedule, task.last_run, now):
                    continue
                await self._fire(task, now)
                fired.append(task)
            if fired:
                await self._repo.save_all(self._tasks)
        return fired

    async def _fire(self, task: ScheduledTask, now: datetime) -> None:
        logger.info("Running task '%s' (%s)", task.name, task.tool)
        try:
            tool = self._registry.get(task.tool)
            result = ToolResult.coerce(await tool.invoke(task.input, dict(task.context)))
            summary = summarize_result(result)
        except Exception as e:
            logger.error("Task '%s' failed: %s", task.name, e)
            task.last_run = now
            task.last_result = TaskRunResult(success=False, error=str(e) or type(e).__name__)
            return

        task.last_run = now
        task.run_count += 1
        if result.success:
            task.last_result = TaskRunResult(success=True, summary=summary)
        else:
            task.last_result = TaskRunResult(success=False, summary=summary, error=result.error)
        logger.info("Task '%s' completed (run #%d)", task.name, task.run_count)


def _listing(task: ScheduledTask) -> dict[str, Any]:
    return {
        "id": task.id,
        "name": task.name,
        "schedule": task.schedule_text,
        "tool": task.tool,
        "enabled": task.enabled,
        "last_run": task.last_run.isoformat() if task.last_run else None,
        "run_count": task.run_count,
        "last_result": task.last_result.to_dict() if task.last_result else None,
    }
