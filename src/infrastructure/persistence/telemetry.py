"""
infrastructure.persistence.telemetry - Append-only JSON-lines run log.

One line per chat run. Writes happen in the thread pool, serialised by a
lock so lines from concurrent requests never interleave.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class JsonlTelemetrySink:
    """Implements TelemetrySink by appending to a .jsonl file."""

    def __init__(self, path: str):
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def record(self, event: dict[str, Any]) -> None:
        line = json.dumps(event, ensure_ascii=False, default=str)
        async with self._lock:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, self._append, line)

    def _append(self, line: str) -> None:
        """Synchronous write (runs in thread pool)."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")
