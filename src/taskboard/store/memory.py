"""In-memory record store with all-or-nothing transactions.

Each transaction works on a deep copy of the committed tables.  The copy
replaces the committed state only when the ``with`` block exits cleanly, so a
failure anywhere in a batch leaves nothing partially applied.  Single-shot
reads skip the table copy and detach only the records they return.
"""

from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, Optional, Sequence

from ..constants import ENTITIES
from ..errors import ConflictError, MissingRecordError, StoreFailure, ValidationError
from ..models import ENUM_FIELDS
from ..utils import _now_iso
from .interfaces import OrderBy, RecordStore, UpdateOp, Where

logger = logging.getLogger(__name__)

Tables = dict[str, dict[str, Any]]


def _empty_tables() -> Tables:
    return {entity: {} for entity in ENTITIES}


def _sortable(value: Any) -> Any:
    if isinstance(value, Enum):
        key = getattr(value, "sort_key", None)
        return key if key is not None else value.value
    if isinstance(value, str):
        return value.lower()
    return value


def _apply_order(records: list[Any], order_by: Optional[OrderBy]) -> list[Any]:
    """Stable multi-key sort; each key is a field name or a callable."""
    if not order_by:
        return records
    out = list(records)
    for key, direction in reversed(list(order_by)):
        getter = key if callable(key) else (lambda r, name=key: getattr(r, name, None))
        present = [r for r in out if getter(r) is not None]
        missing = [r for r in out if getter(r) is None]
        present.sort(key=lambda r: _sortable(getter(r)), reverse=direction.lower() == "desc")
        out = present + missing
    return out


class RecordTx:
    """Mutable view over one transaction's tables."""

    def __init__(self, tables: Tables) -> None:
        self.tables = tables
        self.dirty = False

    def _table(self, entity: str) -> dict[str, Any]:
        try:
            return self.tables[entity]
        except KeyError:
            raise ValidationError(f"Unknown entity type: {entity}") from None

    # -- lookups ------------------------------------------------------------

    def get(self, entity: str, record_id: str, *, include_deleted: bool = False) -> Optional[Any]:
        record = self._table(entity).get(record_id)
        if record is None:
            return None
        if record.deleted_at is not None and not include_deleted:
            return None
        return record

    def find(
        self,
        entity: str,
        *,
        where: Optional[Where] = None,
        include_deleted: bool = False,
        order_by: Optional[OrderBy] = None,
        skip: int = 0,
        take: Optional[int] = None,
    ) -> list[Any]:
        out = []
        for record in self._table(entity).values():
            if record.deleted_at is not None and not include_deleted:
                continue
            if where is not None and not where(record):
                continue
            out.append(record)
        out = _apply_order(out, order_by)
        if skip:
            out = out[skip:]
        if take is not None:
            out = out[:take]
        return out

    def count(self, entity: str, *, where: Optional[Where] = None, include_deleted: bool = False) -> int:
        return len(self.find(entity, where=where, include_deleted=include_deleted))

    # -- mutations ----------------------------------------------------------

    def create(self, entity: str, record: Any) -> Any:
        table = self._table(entity)
        if record.id in table:
            raise ConflictError(f"{entity} {record.id} already exists")
        table[record.id] = record
        self.dirty = True
        return record

    def update(
        self,
        entity: str,
        record_id: str,
        patch: dict[str, Any],
        *,
        guard: Optional[Where] = None,
    ) -> Any:
        record = self.get(entity, record_id)
        if record is None or (guard is not None and not guard(record)):
            raise MissingRecordError(entity, record_id)
        for key, value in patch.items():
            if key == "id" or not hasattr(record, key):
                continue
            enum_cls = ENUM_FIELDS.get(key)
            if enum_cls is not None and value is not None and not isinstance(value, enum_cls):
                try:
                    value = enum_cls(value)
                except ValueError:
                    raise ValidationError(f"Invalid {key}: {value!r}") from None
            setattr(record, key, value)
        record.updated_at = _now_iso()
        self.dirty = True
        return record


class MemoryRecordStore(RecordStore):
    """Thread-safe store keeping committed tables in process memory."""

    def __init__(self) -> None:
        self._tables: Tables = _empty_tables()
        self._lock = threading.RLock()

    # -- persistence hooks --------------------------------------------------

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._lock:
            yield

    def _load(self) -> Tables:
        return copy.deepcopy(self._tables)

    def _snapshot(self) -> Tables:
        """Committed tables for read-only use; callers copy what they return."""
        return self._tables

    def _save(self, tables: Tables) -> None:
        self._tables = copy.deepcopy(tables)

    # -- transactions -------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[RecordTx]:
        """Yield a transaction and commit it if the block exits without error.

        Usage::

            with store.transaction() as tx:
                task = tx.update("task", task_id, {"position": 3})
                # committed on exit
        """
        with self._locked():
            tx = RecordTx(self._load())
            yield tx
            if tx.dirty:
                try:
                    self._save(tx.tables)
                except OSError as exc:
                    logger.exception("Failed to commit transaction")
                    raise StoreFailure("Failed to persist changes") from exc

    @contextmanager
    def _reading(self) -> Iterator[RecordTx]:
        with self._locked():
            yield RecordTx(self._snapshot())

    def apply_batch(self, ops: Sequence[UpdateOp]) -> list[Any]:
        with self.transaction() as tx:
            results = [
                tx.update(op.entity, op.record_id, op.patch, guard=op.guard)
                for op in ops
            ]
        logger.debug("Applied batch of %d updates", len(results))
        return results

    # -- single-shot operations ---------------------------------------------

    def find(
        self,
        entity: str,
        *,
        where: Optional[Where] = None,
        include_deleted: bool = False,
        order_by: Optional[OrderBy] = None,
        skip: int = 0,
        take: Optional[int] = None,
    ) -> list[Any]:
        with self._reading() as tx:
            return copy.deepcopy(tx.find(
                entity,
                where=where,
                include_deleted=include_deleted,
                order_by=order_by,
                skip=skip,
                take=take,
            ))

    def find_unique(self, entity: str, record_id: str, *, include_deleted: bool = False) -> Optional[Any]:
        with self._reading() as tx:
            return copy.deepcopy(tx.get(entity, record_id, include_deleted=include_deleted))

    def count(self, entity: str, *, where: Optional[Where] = None, include_deleted: bool = False) -> int:
        with self._reading() as tx:
            return tx.count(entity, where=where, include_deleted=include_deleted)

    def max_value(self, entity: str, field_name: str, *, where: Optional[Where] = None) -> Optional[Any]:
        with self._reading() as tx:
            values = [
                getattr(record, field_name)
                for record in tx.find(entity, where=where)
                if getattr(record, field_name, None) is not None
            ]
        return max(values) if values else None

    def create(self, entity: str, record: Any) -> Any:
        with self.transaction() as tx:
            return tx.create(entity, record)

    def update(self, entity: str, record_id: str, patch: dict[str, Any], *, guard: Optional[Where] = None) -> Any:
        with self.transaction() as tx:
            return tx.update(entity, record_id, patch, guard=guard)
