"""Record store implementations and the factory that picks one from settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .file_store import FileRecordStore
from .interfaces import RecordStore, UpdateOp
from .memory import MemoryRecordStore

if TYPE_CHECKING:
    from ..config import Settings

__all__ = ["FileRecordStore", "MemoryRecordStore", "RecordStore", "UpdateOp", "build_store"]


def build_store(settings: "Settings") -> RecordStore:
    if settings.store_backend == "file":
        return FileRecordStore(settings.state_dir)
    return MemoryRecordStore()
