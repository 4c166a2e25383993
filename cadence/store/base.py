"""
Document store interface.

Collections of JSON-like documents keyed by id, with simple field
predicates for queries. Used by the job repository and the calendar
credential manager.
"""

from __future__ import annotations

import operator
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

_OPS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}

_FIELD = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


@dataclass(frozen=True, slots=True)
class Filter:
    """A single field predicate, e.g. Filter("date", ">=", "2024-01-01")."""

    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in _OPS:
            raise ValueError(f"Unsupported filter operator: {self.op!r}")
        if not _FIELD.match(self.field):
            raise ValueError(f"Invalid filter field: {self.field!r}")

    def matches(self, document: dict[str, Any]) -> bool:
        actual = lookup(document, self.field)
        if actual is None and self.op not in ("==", "!="):
            return False
        try:
            return _OPS[self.op](actual, self.value)
        except TypeError:
            return False


def where(field: str, op: str, value: Any) -> Filter:
    return Filter(field, op, value)


def lookup(document: dict[str, Any], dotted: str) -> Any:
    """Resolve a dotted field path ("providers.google.enabled")."""
    current: Any = document
    for part in dotted.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


class DocumentStore(ABC):
    """
    Abstract base class for document store backends.

    Documents are dicts that must survive a JSON round trip.
    get/query return copies; mutating them does not change the store.

    Implementations:
        SQLiteDocumentStore — file-based, default
        InMemoryDocumentStore — for testing
    """

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Get a document by id. Returns None if not found."""
        ...

    @abstractmethod
    async def put(self, collection: str, doc_id: str, document: dict[str, Any]) -> None:
        """Insert or replace a document."""
        ...

    @abstractmethod
    async def query(
        self, collection: str, filters: list[Filter] | None = None
    ) -> list[dict[str, Any]]:
        """Return every document in the collection matching all filters."""
        ...

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns True if it existed."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the storage backend."""
        ...

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> bool:
        """
        Merge top-level fields into an existing document.

        Returns False (and writes nothing) if the document does not exist.
        """
        current = await self.get(collection, doc_id)
        if current is None:
            return False
        current.update(fields)
        await self.put(collection, doc_id, current)
        return True
