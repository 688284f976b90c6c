"""YAML-file record store.

All tables live in a single ``records.yaml`` inside the state directory.  A
cross-process :class:`filelock.FileLock` plus a thread lock serialize
transactions; commits write a temp file and atomically replace the original.
"""

from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import yaml
from filelock import FileLock, Timeout

from ..constants import ENTITIES, LOCK_FILENAME, LOCK_TIMEOUT, STORE_FILENAME
from ..errors import StoreFailure
from ..models import RECORD_TYPES
from .memory import MemoryRecordStore, Tables, _empty_tables

logger = logging.getLogger(__name__)


def _load_raw(path: Path) -> dict[str, list[dict[str, Any]]]:
    """Load the raw tables from *path*, returning ``{}`` if missing."""
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise StoreFailure(f"Corrupt record file: {path}") from exc
    if not isinstance(data, dict):
        return {}
    tables = data.get("tables")
    return tables if isinstance(tables, dict) else {}


def _save_raw(path: Path, tables: dict[str, list[dict[str, Any]]]) -> None:
    payload = {"version": 1, "tables": tables}
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    with tmp_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(payload, handle, sort_keys=False)
        handle.flush()
        os.fsync(handle.fileno())
    os.replace(tmp_path, path)


class FileRecordStore(MemoryRecordStore):
    """Record store persisted to ``<state_dir>/records.yaml``.

    Parameters
    ----------
    state_dir:
        Directory holding the record and lock files; created on first write.
    """

    def __init__(self, state_dir: Path) -> None:
        super().__init__()
        self._state_dir = state_dir
        self._store_path = state_dir / STORE_FILENAME
        self._file_lock = FileLock(str(state_dir / LOCK_FILENAME), timeout=LOCK_TIMEOUT)
        self._thread_lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._store_path

    @contextmanager
    def _locked(self) -> Iterator[None]:
        self._state_dir.mkdir(parents=True, exist_ok=True)
        with self._thread_lock:
            try:
                with self._file_lock:
                    yield
            except Timeout as exc:
                raise StoreFailure("Timed out waiting for the record store lock") from exc

    def _load(self) -> Tables:
        raw = _load_raw(self._store_path)
        tables = _empty_tables()
        for entity in ENTITIES:
            record_cls = RECORD_TYPES[entity]
            for item in raw.get(entity, []) or []:
                if isinstance(item, dict):
                    record = record_cls.from_dict(item)
                    tables[entity][record.id] = record
        return tables

    def _snapshot(self) -> Tables:
        return self._load()

    def _save(self, tables: Tables) -> None:
        _save_raw(
            self._store_path,
            {entity: [r.to_dict() for r in tables[entity].values()] for entity in ENTITIES},
        )
        logger.debug("Saved record store to %s", self._store_path)
