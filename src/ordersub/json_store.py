"""File-backed record store for ordersub."""

import fcntl
import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from .errors import StoreError, UniqueConstraintError
from .models import _generate_id, _utc_now
from .query import Query

SCHEMA_VERSION = 1

# Unique indexes enforced on create. None values never collide.
UNIQUE_INDEXES: dict[str, list[tuple[str, ...]]] = {
    "registrations": [("order_id",), ("trial_key",)],
    "counters": [("key",)],
}


class JsonRecordStore:
    """Stores each collection as one JSON document under a data directory."""

    def __init__(
        self,
        data_dir: Path,
        unique_indexes: dict[str, list[tuple[str, ...]]] | None = None,
    ):
        """
        Initialize JsonRecordStore.

        Args:
            data_dir: Directory holding one ``<collection>.json`` per collection.
            unique_indexes: Override the default unique indexes (for testing).
        """
        self.data_dir = Path(data_dir)
        self.unique_indexes = UNIQUE_INDEXES if unique_indexes is None else unique_indexes

    def _path(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    def _ensure_dir(self) -> None:
        """Ensure data directory exists."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _lock(self) -> Iterator[None]:
        """Acquire exclusive lock on the store for read-modify-write operations."""
        self._ensure_dir()
        lock_path = self.data_dir / ".store.lock"
        with open(lock_path, "w") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _load(self, collection: str) -> list[dict[str, Any]]:
        path = self._path(collection)
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError("read", collection, str(e)) from e
        return data.get("records", [])

    def _save(self, collection: str, records: list[dict[str, Any]]) -> None:
        """Save a collection to disk atomically."""
        self._ensure_dir()

        data = {"schema_version": SCHEMA_VERSION, "records": records}
        fd, temp_path = tempfile.mkstemp(
            dir=self.data_dir, prefix=f".{collection}_", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.write("\n")
            os.replace(temp_path, self._path(collection))
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def _check_unique(
        self, collection: str, records: list[dict[str, Any]], data: dict[str, Any]
    ) -> None:
        record_id = data.get("id")
        if record_id and any(r.get("id") == record_id for r in records):
            raise UniqueConstraintError(collection, ("id",))
        for fields in self.unique_indexes.get(collection, []):
            values = tuple(data.get(f) for f in fields)
            if any(v is None or v == "" for v in values):
                continue
            for existing in records:
                if tuple(existing.get(f) for f in fields) == values:
                    raise UniqueConstraintError(collection, fields)

    def list(self, collection: str, query: Query | None = None) -> list[dict[str, Any]]:
        records = self._load(collection)
        if query is None:
            return records
        return query.apply(records)

    def get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        for record in self._load(collection):
            if record.get("id") == record_id:
                return record
        return None

    def create(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        with self._lock():
            records = self._load(collection)
            self._check_unique(collection, records, data)

            record = dict(data)
            record.setdefault("id", _generate_id())
            record.setdefault("created", _utc_now())
            records.append(record)
            self._save(collection, records)
        return record

    def update(self, collection: str, record_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        with self._lock():
            records = self._load(collection)
            for record in records:
                if record.get("id") == record_id:
                    record.update(patch)
                    record["updated"] = _utc_now()
                    self._save(collection, records)
                    return record

        raise StoreError("update", collection, f"record {record_id} not found")

    def increment(self, collection: str, key: str, start: int) -> int:
        with self._lock():
            records = self._load(collection)
            for record in records:
                if record.get("key") == key:
                    value = int(record.get("value") or start) + 1
                    record["value"] = value
                    record["updated"] = _utc_now()
                    break
            else:
                value = start + 1
                records.append(
                    {"id": _generate_id(), "key": key, "value": value, "created": _utc_now()}
                )
            self._save(collection, records)
        return value
