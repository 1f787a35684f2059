"""Record storage for route-recall.

Provides atomic file operations and record stores keyed by record id.
Every store returns fully materialized copies, so a caller's snapshot is
never changed underneath it by a later write.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable, Iterable, Mapping, Protocol, runtime_checkable

from pydantic import ValidationError as PydanticValidationError

from route_recall.errors import StorageError
from route_recall.logging import get_logger
from route_recall.models.record import AddressRecord

logger = get_logger(__name__)

STORE_FORMAT_VERSION = 1


def atomic_write(path: Path, data: str, encoding: str = "utf-8") -> None:
    """Write data to a file atomically.

    Writes to a temporary file in the same directory, then renames to target.
    This prevents a half-written file if the process dies mid-write.

    Args:
        path: Target file path
        data: String data to write
        encoding: File encoding (default utf-8)

    Raises:
        StorageError: If the write operation fails
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    # Same directory keeps the rename on one filesystem
    fd = None
    temp_path = None
    try:
        fd, temp_path = tempfile.mkstemp(
            suffix=".tmp",
            prefix=path.stem + "_",
            dir=path.parent,
        )
        os.write(fd, data.encode(encoding))
        os.fsync(fd)
        os.close(fd)
        fd = None

        os.replace(temp_path, path)
        temp_path = None

    except OSError as e:
        raise StorageError(f"Failed to write {path}: {e}", {"path": str(path)}) from e
    finally:
        if fd is not None:
            try:
                os.close(fd)
            except OSError:
                pass
        if temp_path is not None:
            try:
                os.unlink(temp_path)
            except OSError:
                pass


def atomic_write_json(path: Path, data: dict | list, indent: int = 2) -> None:
    """Write JSON data to a file atomically."""
    atomic_write(path, json.dumps(data, indent=indent, ensure_ascii=False, default=str))


def read_json(path: Path) -> dict | list:
    """Read JSON data from a file.

    Raises:
        StorageError: If the file is missing or not valid JSON
    """
    if not path.exists():
        raise StorageError(f"File not found: {path}", {"path": str(path)})

    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise StorageError(f"Invalid JSON in {path}: {e}", {"path": str(path)}) from e


# Takes the stored record, returns its replacement
RecordChange = Callable[[AddressRecord], AddressRecord]


@runtime_checkable
class RecordStore(Protocol):
    """Key-value store of address records keyed by id."""

    def get_all(self) -> list[AddressRecord]: ...

    def get(self, record_id: str) -> AddressRecord | None: ...

    def put(self, record: AddressRecord) -> None: ...

    def put_many(self, records: Iterable[AddressRecord]) -> None: ...

    def update_many(self, changes: Mapping[str, RecordChange]) -> list[AddressRecord]: ...

    def delete(self, record_id: str) -> bool: ...


class InMemoryRecordStore:
    """Record store held in a dict. Insertion order is preserved."""

    def __init__(self, records: Iterable[AddressRecord] = ()):
        self._lock = threading.RLock()
        self._records: dict[str, AddressRecord] = {}
        self.put_many(records)

    def get_all(self) -> list[AddressRecord]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._records.values()]

    def get(self, record_id: str) -> AddressRecord | None:
        with self._lock:
            record = self._records.get(record_id)
            return record.model_copy(deep=True) if record else None

    def put(self, record: AddressRecord) -> None:
        with self._lock:
            self._records[record.id] = record.model_copy(deep=True)

    def put_many(self, records: Iterable[AddressRecord]) -> None:
        with self._lock:
            for record in records:
                self._records[record.id] = record.model_copy(deep=True)

    def update_many(self, changes: Mapping[str, RecordChange]) -> list[AddressRecord]:
        with self._lock:
            updated = []
            for record_id, change in changes.items():
                current = self._records.get(record_id)
                if current is None:
                    continue
                record = change(current.model_copy(deep=True))
                self._records[record_id] = record.model_copy(deep=True)
                updated.append(record)
            return updated

    def delete(self, record_id: str) -> bool:
        with self._lock:
            return self._records.pop(record_id, None) is not None

    def __len__(self) -> int:
        return len(self._records)


class JsonRecordStore:
    """Record store backed by one JSON file.

    Each write rewrites the whole file atomically. A lock serializes
    read-modify-write cycles within the process.
    """

    def __init__(self, path: Path | str):
        """Initialize the store.

        Args:
            path: Path of the JSON file; created on first write
        """
        self.path = Path(path)
        self._lock = threading.RLock()

    def _load(self) -> dict[str, AddressRecord]:
        if not self.path.exists():
            return {}

        data = read_json(self.path)
        if not isinstance(data, dict) or not isinstance(data.get("records"), list):
            raise StorageError(f"Unrecognized record file layout: {self.path}", {"path": str(self.path)})

        records: dict[str, AddressRecord] = {}
        for raw in data["records"]:
            try:
                record = AddressRecord.model_validate(raw)
            except PydanticValidationError as e:
                raise StorageError(
                    f"Invalid record in {self.path}: {e}",
                    {"path": str(self.path)},
                ) from e
            records[record.id] = record
        return records

    def _save(self, records: dict[str, AddressRecord]) -> None:
        atomic_write_json(
            self.path,
            {
                "version": STORE_FORMAT_VERSION,
                "records": [r.model_dump(mode="json") for r in records.values()],
            },
        )

    def exists(self) -> bool:
        return self.path.exists()

    def get_all(self) -> list[AddressRecord]:
        with self._lock:
            return list(self._load().values())

    def get(self, record_id: str) -> AddressRecord | None:
        with self._lock:
            return self._load().get(record_id)

    def put(self, record: AddressRecord) -> None:
        self.put_many([record])

    def put_many(self, records: Iterable[AddressRecord]) -> None:
        with self._lock:
            current = self._load()
            for record in records:
                current[record.id] = record
            self._save(current)

    def update_many(self, changes: Mapping[str, RecordChange]) -> list[AddressRecord]:
        """Apply each change to the stored record in one read-modify-write.

        Ids that are not in the store are skipped.

        Returns:
            The replacement records, in the order of `changes`
        """
        with self._lock:
            current = self._load()
            updated = [
                change(current[record_id])
                for record_id, change in changes.items()
                if record_id in current
            ]
            for record in updated:
                current[record.id] = record
            if updated:
                self._save(current)
            return updated

    def delete(self, record_id: str) -> bool:
        with self._lock:
            current = self._load()
            if current.pop(record_id, None) is None:
                return False
            self._save(current)
            logger.debug("Deleted record", extra={"record_id": record_id})
            return True

    def __len__(self) -> int:
        return len(self.get_all())
