from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence, Union

Where = Callable[[Any], bool]
SortKey = Union[str, Callable[[Any], Any]]
OrderBy = Sequence[tuple[SortKey, str]]


@dataclass
class UpdateOp:
    """One independent single-record update inside a batch.

    ``guard`` narrows which live record may be targeted; a record that exists
    but fails the guard is treated as missing.
    """

    entity: str
    record_id: str
    patch: dict[str, Any] = field(default_factory=dict)
    guard: Optional[Where] = None


class RecordStore(ABC):
    """Durable storage for users, projects, and tasks.

    Tombstoned records (``deleted_at`` set) are excluded from every read unless
    the caller passes ``include_deleted=True``.
    """

    @abstractmethod
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
        raise NotImplementedError

    @abstractmethod
    def find_unique(self, entity: str, record_id: str, *, include_deleted: bool = False) -> Optional[Any]:
        raise NotImplementedError

    @abstractmethod
    def count(self, entity: str, *, where: Optional[Where] = None, include_deleted: bool = False) -> int:
        raise NotImplementedError

    @abstractmethod
    def max_value(self, entity: str, field_name: str, *, where: Optional[Where] = None) -> Optional[Any]:
        raise NotImplementedError

    @abstractmethod
    def create(self, entity: str, record: Any) -> Any:
        raise NotImplementedError

    @abstractmethod
    def update(self, entity: str, record_id: str, patch: dict[str, Any], *, guard: Optional[Where] = None) -> Any:
        raise NotImplementedError

    @abstractmethod
    def transaction(self) -> AbstractContextManager[Any]:
        raise NotImplementedError

    @abstractmethod
    def apply_batch(self, ops: Sequence[UpdateOp]) -> list[Any]:
        """Apply every op or none of them; results follow the order of *ops*."""
        raise NotImplementedError
