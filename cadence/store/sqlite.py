"""
SQLite document store.

Uses aiosqlite for async SQLite access.
WAL mode enabled for concurrent read support.
Documents are stored as JSON text; filters run through json_extract().
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any

import aiosqlite

from cadence.core.errors import StorageError
from cadence.store.base import DocumentStore, Filter

logger = logging.getLogger(__name__)

# Equality uses IS / IS NOT so that None compares like any other value
_SQL_OPS = {
    "==": "IS",
    "!=": "IS NOT",
    "<": "<",
    "<=": "<=",
    ">": ">",
    ">=": ">=",
}


class SQLiteDocumentStore(DocumentStore):
    """
    SQLite-based document store.

    Usage:
        store = SQLiteDocumentStore("~/.cadence/cadence.db")
        await store.initialize()

        await store.put("jobs", job.id, job.to_dict())
        doc = await store.get("jobs", job.id)
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Initialize the database and create tables."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._db = await aiosqlite.connect(str(self._db_path))

            await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.execute("PRAGMA synchronous=NORMAL")

            await self._db.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id         TEXT NOT NULL,
                    body       TEXT NOT NULL,
                    updated_at REAL NOT NULL,
                    PRIMARY KEY (collection, id)
                )
                """
            )

            await self._db.commit()
            logger.debug(f"SQLite document store initialized at {self._db_path}")

        except Exception as e:
            raise StorageError(f"Failed to initialize SQLite at {self._db_path}: {e}") from e

    async def _ensure_db(self) -> aiosqlite.Connection:
        """Ensure database is initialized."""
        if self._db is None:
            await self.initialize()
        return self._db  # type: ignore[return-value]

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        db = await self._ensure_db()
        try:
            async with db.execute(
                "SELECT body FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            ) as cursor:
                row = await cursor.fetchone()
                return json.loads(row[0]) if row else None
        except Exception as e:
            raise StorageError(f"Failed to get {collection}/{doc_id}: {e}") from e

    async def put(self, collection: str, doc_id: str, document: dict[str, Any]) -> None:
        db = await self._ensure_db()
        try:
            body = json.dumps(document)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Document {collection}/{doc_id} is not JSON-serializable: {e}") from e
        try:
            await db.execute(
                """
                INSERT INTO documents (collection, id, body, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(collection, id) DO UPDATE SET body = excluded.body, updated_at = excluded.updated_at
                """,
                (collection, doc_id, body, time.time()),
            )
            await db.commit()
        except Exception as e:
            raise StorageError(f"Failed to put {collection}/{doc_id}: {e}") from e

    async def query(
        self, collection: str, filters: list[Filter] | None = None
    ) -> list[dict[str, Any]]:
        db = await self._ensure_db()
        clauses = ["collection = ?"]
        params: list[Any] = [collection]
        for f in filters or []:
            clauses.append(f"json_extract(body, ?) {_SQL_OPS[f.op]} ?")
            params.extend([f"$.{f.field}", f.value])

        sql = f"SELECT body FROM documents WHERE {' AND '.join(clauses)} ORDER BY id"
        try:
            async with db.execute(sql, params) as cursor:
                rows = await cursor.fetchall()
            return [json.loads(row[0]) for row in rows]
        except Exception as e:
            raise StorageError(f"Failed to query {collection}: {e}") from e

    async def delete(self, collection: str, doc_id: str) -> bool:
        db = await self._ensure_db()
        try:
            cursor = await db.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )
            await db.commit()
            return cursor.rowcount > 0
        except Exception as e:
            raise StorageError(f"Failed to delete {collection}/{doc_id}: {e}") from e

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None
