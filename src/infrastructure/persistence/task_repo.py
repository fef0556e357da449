"""
infrastructure.persistence.task_repo - Scheduled-task list persistence.

The whole list lives in one document and is rewritten on every save.
"""

from __future__ import annotations

import logging

from domain.entities import ScheduledTask
from domain.ports import DocumentStore

logger = logging.getLogger(__name__)

TASKS_DOCUMENT = "scheduled_tasks"


class DocumentTaskRepository:
    """Implements TaskRepository over a DocumentStore."""

    def __init__(self, store: DocumentStore, doc_id: str = TASKS_DOCUMENT):
        self._store = store
        self._doc_id = doc_id

    async def load_all(self) -> list[ScheduledTask]:
        body = await self._store.load(self._doc_id)
        if not isinstance(body, list):
            return []
        tasks: list[ScheduledTask] = []
        for raw in body:
            try:
                tasks.append(ScheduledTask.from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable scheduled task %r: %s", raw, e)
        return tasks

    async def save_all(self, tasks: list[ScheduledTask]) -> None:
        await self._store.save(self._doc_id, [task.to_dict() for task in tasks])
