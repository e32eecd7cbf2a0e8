"""Flat-file entity storage for aquaflow."""

from __future__ import annotations

import fcntl
import json
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, TypeVar

from .entity_store import apply_changes, check_filters, check_model, matches, model_label
from .errors import DuplicateRecordError, InvalidSchemaVersionError, NotFoundError
from .logger import setup_logger
from .models import ENTITY_MODELS

T = TypeVar("T")

SCHEMA_VERSION = 1
DATA_FILE = "store.json"
LOCK_FILE = ".store.lock"

logger = setup_logger(__name__)


class JsonEntityStore:
    """Keeps every collection in one JSON document on local disk.

    Writes go to a temp file that is renamed over the document, and every
    read-modify-write holds an exclusive lock on a sibling lock file.
    """

    def __init__(self, data_dir: Path | str):
        """
        Initialize JsonEntityStore.

        Args:
            data_dir: Directory holding store.json (created on first write).
        """
        self.data_dir = Path(data_dir)
        self.data_path = self.data_dir / DATA_FILE
        self._local = threading.local()

    @property
    def _pending(self) -> dict[str, Any] | None:
        """The document of this thread's open transaction, if any."""
        return getattr(self._local, "pending", None)

    @_pending.setter
    def _pending(self, data: dict[str, Any] | None) -> None:
        self._local.pending = data

    def _ensure_dir(self) -> None:
        """Ensure data directory exists."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _lock(self) -> Iterator[None]:
        """Acquire exclusive lock on the data file for read-modify-write operations."""
        self._ensure_dir()
        lock_path = self.data_dir / LOCK_FILE
        with open(lock_path, "w") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _empty_data(self) -> dict[str, Any]:
        data: dict[str, Any] = {"schema_version": SCHEMA_VERSION}
        for model in ENTITY_MODELS:
            data[model.collection] = []
        return data

    def _load_data(self) -> dict[str, Any]:
        """
        Load the data document from disk.

        Raises:
            InvalidSchemaVersionError: If schema version is unsupported.
        """
        if not self.data_path.exists():
            return self._empty_data()

        with open(self.data_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        version = data.get("schema_version", 0)
        if version != SCHEMA_VERSION:
            raise InvalidSchemaVersionError(version, SCHEMA_VERSION)

        for model in ENTITY_MODELS:
            data.setdefault(model.collection, [])
        return data

    def _save_data(self, data: dict[str, Any]) -> None:
        """Save the data document to disk atomically."""
        self._ensure_dir()

        fd, temp_path = tempfile.mkstemp(dir=self.data_dir, prefix=".store_", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
            os.replace(temp_path, self.data_path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise
        logger.debug("Saved %s", self.data_path)

    def _read(self) -> dict[str, Any]:
        if self._pending is not None:
            return self._pending
        return self._load_data()

    @contextmanager
    def _writing(self) -> Iterator[dict[str, Any]]:
        """Yield the document for one write; saved on clean exit only."""
        if self._pending is not None:
            yield self._pending
            return
        with self._lock():
            data = self._load_data()
            yield data
            self._save_data(data)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Load once, apply every write in memory, save once at the end.

        An exception inside the block discards all writes made in it.
        Nested transactions on the same thread join the outer one; other
        threads wait on the file lock.
        """
        if self._pending is not None:
            yield
            return
        with self._lock():
            self._pending = self._load_data()
            try:
                yield
                self._save_data(self._pending)
            finally:
                self._pending = None

    def _check_unique(
        self, model: type, rows: list[dict[str, Any]], row: dict[str, Any], replacing: bool
    ) -> None:
        for existing in rows:
            if existing["id"] == row["id"]:
                if replacing:
                    continue
                raise DuplicateRecordError(model.collection, "id", row["id"])
            for name in model.unique_fields:
                if existing.get(name) == row.get(name):
                    raise DuplicateRecordError(model.collection, name, str(row.get(name)))

    def create(self, record: T) -> T:
        model = type(record)
        check_model(model)
        row = record.to_dict()
        with self._writing() as data:
            rows = data[model.collection]
            self._check_unique(model, rows, row, replacing=False)
            rows.append(row)
        return record

    def get(self, model: type[T], record_id: str) -> T | None:
        check_model(model)
        for row in self._read()[model.collection]:
            if row["id"] == record_id:
                return model.from_dict(row)
        return None

    def list(self, model: type[T], **filters: Any) -> list[T]:
        check_model(model)
        check_filters(model, filters)
        records = [model.from_dict(row) for row in self._read()[model.collection]]
        if filters:
            records = [r for r in records if matches(r, filters)]
        return records

    def update(self, model: type[T], record_id: str, changes: dict[str, Any]) -> T:
        check_model(model)
        with self._writing() as data:
            rows = data[model.collection]
            for i, row in enumerate(rows):
                if row["id"] == record_id:
                    updated = apply_changes(model.from_dict(row), changes)
                    new_row = updated.to_dict()
                    self._check_unique(model, rows, new_row, replacing=True)
                    rows[i] = new_row
                    return updated

            raise NotFoundError(model_label(model), record_id)

    def delete(self, model: type[T], record_id: str) -> None:
        check_model(model)
        with self._writing() as data:
            rows = data[model.collection]
            for i, row in enumerate(rows):
                if row["id"] == record_id:
                    rows.pop(i)
                    return

            raise NotFoundError(model_label(model), record_id)
