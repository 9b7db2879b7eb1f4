"""Protocol definition for record stores."""

from __future__ import annotations

from typing import Any, Protocol

from .query import Query


class RecordStore(Protocol):
    """Protocol for the generic record store behind content, catalog and orders.

    Records are flat JSON objects with a store-assigned ``id``. Reads may be
    served from a bounded-staleness cache; every write invalidates cached
    reads of the collection it touched.
    """

    def list(self, collection: str, query: Query | None = None) -> list[dict[str, Any]]:
        """Return the records of a collection matching the query.

        Raises:
            StoreError: If the store is unreachable or times out.
        """
        ...

    def get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        """Return a record by store ID, or None if it doesn't exist."""
        ...

    def create(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a record and return it with its assigned ``id``.

        Raises:
            UniqueConstraintError: If a unique index of the collection
                already holds the same value.
        """
        ...

    def update(self, collection: str, record_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        """Set only the given fields of a record (last write wins per field).

        Raises:
            StoreError: If the record doesn't exist.
        """
        ...

    def increment(self, collection: str, key: str, start: int) -> int:
        """Atomically increment the counter named ``key`` and return the new value.

        A counter that doesn't exist yet is created as ``start + 1``.
        """
        ...


def first(store: RecordStore, collection: str, query: Query) -> dict[str, Any] | None:
    """Return the first record matching the query, or None."""
    items = store.list(collection, query.take(1))
    return items[0] if items else None
