"""
In-memory document store — for testing.

Dict-based storage. Data lost when process exits.
"""

from __future__ import annotations

import copy
from typing import Any

from cadence.store.base import DocumentStore, Filter


class InMemoryDocumentStore(DocumentStore):
    """
    In-memory document store for testing.

    Usage:
        store = InMemoryDocumentStore()
        await store.put("jobs", "abc", {"type": "instance", "date": "2024-01-01"})
        docs = await store.query("jobs", [where("type", "==", "instance")])
    """

    def __init__(self) -> None:
        self._data: dict[str, dict[str, dict[str, Any]]] = {}

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        doc = self._data.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def put(self, collection: str, doc_id: str, document: dict[str, Any]) -> None:
        self._data.setdefault(collection, {})[doc_id] = copy.deepcopy(document)

    async def query(
        self, collection: str, filters: list[Filter] | None = None
    ) -> list[dict[str, Any]]:
        filters = filters or []
        return [
            copy.deepcopy(doc)
            for _, doc in sorted(self._data.get(collection, {}).items())
            if all(f.matches(doc) for f in filters)
        ]

    async def delete(self, collection: str, doc_id: str) -> bool:
        docs = self._data.get(collection, {})
        if doc_id in docs:
            del docs[doc_id]
            return True
        return False

    async def close(self) -> None:
        self._data.clear()
