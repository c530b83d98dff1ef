"""Record storage used by the engine.

The engine talks to storage only through the `Repository` primitives:
lookup by filter, insert, upsert on a conflict key, update and delete
by id. Two backends are provided: an in-process store and a JSON file
store with one file per table.
"""

import copy
import json
import os
import tempfile
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from loguru import logger
from platformdirs import user_data_dir

from planmeter.config.manager import ConfigManager
from planmeter.core.errors import NotFound


Record = dict[str, Any]

# One lock per data directory, shared by every JsonFileRepository on it
_dir_locks: dict[Path, threading.Lock] = {}
_dir_locks_guard = threading.Lock()


def _lock_for(directory: Path) -> threading.Lock:
    with _dir_locks_guard:
        return _dir_locks.setdefault(directory.resolve(), threading.Lock())


def _matches(record: Record, filters: dict[str, Any]) -> bool:
    return all(record.get(key) == value for key, value in filters.items())


class Repository(ABC):
    """Abstract table-of-records store."""

    @abstractmethod
    def get(self, table: str, filters: dict[str, Any]) -> Record | None:
        """Return the first record matching all filters, or None."""

    @abstractmethod
    def select(self, table: str, filters: dict[str, Any], order_by: str | None = None) -> list[Record]:
        """Return every record matching the filters, optionally sorted by a column."""

    @abstractmethod
    def insert(self, table: str, record: Record) -> Record:
        """Insert a record, assigning an id when it has none."""

    @abstractmethod
    def upsert(self, table: str, record: Record, conflict_key: tuple[str, ...]) -> Record:
        """Insert, or replace the record that shares the conflict key values."""

    @abstractmethod
    def update(self, table: str, record_id: str, patch: Record) -> Record:
        """Apply a partial update. Raises NotFound for a missing id."""

    @abstractmethod
    def delete(self, table: str, record_id: str):
        """Remove a record. Raises NotFound for a missing id."""

    @abstractmethod
    def delete_where(self, table: str, filters: dict[str, Any]) -> int:
        """Remove every matching record and return how many were removed."""


class InMemoryRepository(Repository):
    """Keeps tables as lists of dicts, in insertion order."""

    def __init__(self):
        self._tables: dict[str, list[Record]] = {}
        self._lock = threading.Lock()

    # Subclasses hook persistence in here
    def _load_table(self, table: str) -> list[Record]:
        return self._tables.setdefault(table, [])

    def _store_table(self, table: str, rows: list[Record]):
        self._tables[table] = rows

    def get(self, table: str, filters: dict[str, Any]) -> Record | None:
        with self._lock:
            for row in self._load_table(table):
                if _matches(row, filters):
                    return copy.deepcopy(row)
        return None

    def select(self, table: str, filters: dict[str, Any], order_by: str | None = None) -> list[Record]:
        with self._lock:
            rows = [copy.deepcopy(r) for r in self._load_table(table) if _matches(r, filters)]
        if order_by is not None:
            # Stable sort keeps insertion order between equal keys
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by)))
        return rows

    def insert(self, table: str, record: Record) -> Record:
        row = copy.deepcopy(record)
        row.setdefault("id", None)
        if row["id"] is None:
            row["id"] = str(uuid.uuid4())
        with self._lock:
            rows = self._load_table(table)
            rows.append(row)
            self._store_table(table, rows)
        return copy.deepcopy(row)

    def upsert(self, table: str, record: Record, conflict_key: tuple[str, ...]) -> Record:
        key = {k: record.get(k) for k in conflict_key}
        with self._lock:
            rows = self._load_table(table)
            for index, existing in enumerate(rows):
                if _matches(existing, key):
                    row = copy.deepcopy(record)
                    row["id"] = existing["id"]
                    if existing.get("created_at") is not None:
                        row["created_at"] = existing["created_at"]
                    rows[index] = row
                    self._store_table(table, rows)
                    return copy.deepcopy(row)
            row = copy.deepcopy(record)
            if row.get("id") is None:
                row["id"] = str(uuid.uuid4())
            rows.append(row)
            self._store_table(table, rows)
        return copy.deepcopy(row)

    def update(self, table: str, record_id: str, patch: Record) -> Record:
        with self._lock:
            rows = self._load_table(table)
            for row in rows:
                if row.get("id") == record_id:
                    row.update(copy.deepcopy(patch))
                    row["id"] = record_id
                    self._store_table(table, rows)
                    return copy.deepcopy(row)
        raise NotFound(f"No record {record_id} in {table}")

    def delete(self, table: str, record_id: str):
        with self._lock:
            rows = self._load_table(table)
            remaining = [r for r in rows if r.get("id") != record_id]
            if len(remaining) == len(rows):
                raise NotFound(f"No record {record_id} in {table}")
            self._store_table(table, remaining)

    def delete_where(self, table: str, filters: dict[str, Any]) -> int:
        with self._lock:
            rows = self._load_table(table)
            remaining = [r for r in rows if not _matches(r, filters)]
            removed = len(rows) - len(remaining)
            if removed:
                self._store_table(table, remaining)
        return removed


class JsonFileRepository(InMemoryRepository):
    """Persists each table to `<data_dir>/<table>.json`.

    Files are re-read before every operation. Instances in one process
    that point at the same directory share a lock, and each table file
    is replaced atomically so readers never see a partial write.
    """

    def __init__(self, data_dir: str | Path):
        super().__init__()
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = _lock_for(self._data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _table_path(self, table: str) -> Path:
        return self._data_dir / f"{table}.json"

    def _load_table(self, table: str) -> list[Record]:
        path = self._table_path(table)
        if not path.exists():
            return []
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _store_table(self, table: str, rows: list[Record]):
        path = self._table_path(table)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{table}.", suffix=".tmp", dir=self._data_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(rows, f, indent=2, default=str)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Wrote {len(rows)} rows to {path}")


def open_repository(config: ConfigManager) -> Repository:
    """Build the storage backend named in the `storage` config group."""
    storage = config.get_group("storage")
    backend = storage.get("backend", "memory")
    if backend == "memory":
        return InMemoryRepository()
    if backend == "json":
        data_dir = storage.get("data_dir") or user_data_dir("PlanMeter", "PlanMeter")
        logger.info(f"Using JSON storage in {data_dir}")
        return JsonFileRepository(data_dir)
    raise ValueError(f"Unknown storage backend: {backend!r}")
