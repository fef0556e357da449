"""
infrastructure.persistence.document_store - JSON documents in SQLite.

Implements DocumentStore: load/save/delete a JSON body keyed by doc_id.
A save replaces the whole body (no partial updates).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Optional

import aiosqlite

from domain.exceptions import RepositoryError
from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)


class SQLiteDocumentStore:
    """Async SQLite implementation of DocumentStore."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def load(self, doc_id: str) -> Optional[Any]:
        try:
            async with self._conn.acquire() as conn:
                rows = await conn.execute_fetchall(
                    "SELECT body FROM documents WHERE doc_id = ?", (doc_id,),
                )
        except aiosqlite.Error as e:
            raise RepositoryError(f"Could not load document {doc_id}: {e}") from e
        if not rows:
            return None
        try:
            return json.loads(rows[0]["body"])
        except ValueError:
            logger.error("Document %s holds invalid JSON; treating as missing", doc_id)
            return None

    async def save(self, doc_id: str, body: Any) -> None:
        now = datetime.now().isoformat()
        payload = json.dumps(body, ensure_ascii=False, default=str)
        try:
            async with self._conn.acquire() as conn:
                await conn.execute(
                    """INSERT INTO documents (doc_id, body, created_at, updated_at)
                       VALUES (?, ?, ?, ?)
                       ON CONFLICT(doc_id) DO UPDATE
                       SET body = excluded.body, updated_at = excluded.updated_at""",
                    (doc_id, payload, now, now),
                )
        except aiosqlite.Error as e:
            raise RepositoryError(f"Could not save document {doc_id}: {e}") from e

    async def delete(self, doc_id: str) -> None:
        try:
            async with self._conn.acquire() as conn:
                await conn.execute("DELETE FROM documents WHERE doc_id = ?", (doc_id,))
        except aiosqlite.Error as e:
            raise RepositoryError(f"Could not delete document {doc_id}: {e}") from e

    async def list_ids(self, prefix: str = "") -> list[str]:
        """Document ids starting with prefix, most recently updated first."""
        pattern = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT doc_id FROM documents
                   WHERE doc_id LIKE ? ESCAPE '\\'
                   ORDER BY updated_at DESC""",
                (pattern,),
            )
        return [row["doc_id"] for row in rows]
