"""
agent.tools.file_system - Sandboxed local file operations.

Supports scan, read, write, delete and duplicates. Every path is resolved
against the sandbox root and rejected if it escapes it. Disk access runs
in the default thread pool.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections import defaultdict
from functools import partial
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from agent.tools.base import BaseTool, ToolResult

logger = logging.getLogger(__name__)

_MAX_READ_BYTES = 100_000
_MAX_SCAN_ENTRIES = 500


class FileInput(BaseModel):
    """Input schema for the file tool."""
    text: str = ""
    operation: Literal["scan", "read", "write", "delete", "duplicates"] = "scan"
    path: str = Field(default=".", description="File or folder, relative to the sandbox root")
    content: str = Field(default="", description="Text to write (write only)")


class FileTool(BaseTool):
    """Inspect and edit files under one root directory."""

    name = "file"
    description = (
        "Scan a folder, read, write or delete a file, or find duplicate files "
        "inside the local workspace."
    )

    def __init__(self, root: Path):
        self._root = Path(root).resolve()

    def get_schema(self) -> type[BaseModel]:
        return FileInput

    async def invoke(self, input: Any, context: dict[str, Any]) -> ToolResult:
        params = self.parse_params(input, context)
        try:
            target = self._resolve(params.path)
        except PermissionError as e:
            return ToolResult.fail(str(e))

        handler = {
            "scan": self._scan,
            "read": self._read,
            "write": partial(self._write, content=params.content),
            "delete": self._delete,
            "duplicates": self._duplicates,
        }[params.operation]

        loop = asyncio.get_event_loop()
        try:
            data = await loop.run_in_executor(None, handler, target)
        except (OSError, ValueError) as e:
            logger.info("File %s failed on %s: %s", params.operation, target, e)
            return ToolResult.fail(f"{params.operation} failed: {e}")
        return ToolResult.ok({"operation": params.operation, **data})

    def _resolve(self, raw: str) -> Path:
        candidate = Path(raw.strip() or ".").expanduser()
        if not candidate.is_absolute():
            candidate = self._root / candidate
        resolved = candidate.resolve()
        if resolved != self._root and not resolved.is_relative_to(self._root):
            raise PermissionError(f"Path is outside the allowed folder: {raw}")
        return resolved

    def _relative(self, path: Path) -> str:
        return str(path.relative_to(self._root)) if path != self._root else "."

    # -- operations (run in thread pool) -----------------------------------

    def _scan(self, target: Path) -> dict[str, Any]:
        if not target.is_dir():
            raise ValueError(f"not a folder: {self._relative(target)}")
        entries = []
        for child in sorted(target.iterdir())[:_MAX_SCAN_ENTRIES]:
            is_dir = child.is_dir()
            entries.append({
                "name": child.name,
                "type": "folder" if is_dir else "file",
                "size": None if is_dir else child.stat().st_size,
            })
        return {"path": self._relative(target), "results": entries}

    def _read(self, target: Path) -> dict[str, Any]:
        if not target.is_file():
            raise ValueError(f"not a file: {self._relative(target)}")
        raw = target.read_bytes()[:_MAX_READ_BYTES]
        return {
            "path": self._relative(target),
            "text": raw.decode("utf-8", errors="replace"),
            "truncated": target.stat().st_size > _MAX_READ_BYTES,
        }

    def _write(self, target: Path, *, content: str) -> dict[str, Any]:
        if target.is_dir():
            raise ValueError(f"is a folder: {self._relative(target)}")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return {"path": self._relative(target), "bytes": len(content.encode("utf-8"))}

    def _delete(self, target: Path) -> dict[str, Any]:
        if not target.is_file():
            raise ValueError(f"only files can be deleted: {self._relative(target)}")
        target.unlink()
        return {"path": self._relative(target), "deleted": True}

    def _duplicates(self, target: Path) -> dict[str, Any]:
        if not target.is_dir():
            raise ValueError(f"not a folder: {self._relative(target)}")
        by_hash: dict[str, list[str]] = defaultdict(list)
        for path in sorted(target.rglob("*")):
            if path.is_file() and not path.is_symlink():
                by_hash[_digest(path)].append(self._relative(path))
        groups = [files for files in by_hash.values() if len(files) > 1]
        return {"path": self._relative(target), "results": groups}


def _digest(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as fh:
        for block in iter(lambda: fh.read(65536), b""):
            h.update(block)
    return h.hexdigest()
