"""A hash index from keys to serial numbers of records held in a lookup column family."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Optional

from chronikdb.store import (
    PREFIX_DELETE,
    PREFIX_INSERT,
    Db,
    WriteBatch,
    ordered_list_merge_operator,
)


class InconsistentDatabaseError(Exception):
    """Raised when the index refers to a record the lookup column family lacks."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Inconsistent database: {detail}")
        self.detail = detail


class Indexable(ABC):
    """Describes how records are indexed.

    Serials and values are stored as bytes; ``serial_size`` is the fixed
    size of a serial. A subclass may define ``serial_sort_key`` as a method
    giving the ordering of serials; without one they sort by their bytes.
    """

    serial_size: int
    serial_sort_key: ClassVar[Optional[Callable[[bytes], Any]]] = None

    @abstractmethod
    def hash(self, key: Any) -> bytes:
        """The bucket in the index under which ``key`` is stored."""

    @abstractmethod
    def value_key(self, value: bytes) -> Any:
        """The key of a stored value."""


@dataclass(frozen=True)
class Index:
    lookup_cf_name: str
    index_cf_name: str
    indexable: Indexable

    @classmethod
    def add_cfs(cls, db: Db, index_cf_name: str, indexable: Indexable) -> None:
        size = getattr(indexable, "serial_size", 0)
        if not isinstance(size, int) or size <= 0:
            raise ValueError("Indexable must define a positive serial_size")
        db.add_column_family(
            index_cf_name, ordered_list_merge_operator(size, indexable.serial_sort_key)
        )

    def _require_cf(self, db: Db, name: str) -> None:
        if name not in db:
            raise KeyError(f"Column family {name!r} doesn't exist")

    def get(self, db: Db, key: Any) -> Optional[tuple[bytes, bytes]]:
        """Return ``(serial, value)`` of the record with ``key``, or None."""
        self._require_cf(db, self.lookup_cf_name)
        hash_items = db.get(self.index_cf_name, self.indexable.hash(key))
        if hash_items is None:
            return None
        size = self.indexable.serial_size
        if len(hash_items) % size:
            raise InconsistentDatabaseError(
                f"Entry in {self.index_cf_name} is not a list of {size}-byte serials"
            )
        for pos in range(0, len(hash_items), size):
            serial = hash_items[pos:pos + size]
            value = db.get(self.lookup_cf_name, serial)
            if value is None:
                raise InconsistentDatabaseError(
                    f"Lookup in {self.lookup_cf_name} for item indexed in "
                    f"{self.index_cf_name} doesn't exist"
                )
            if self.indexable.value_key(value) == key:
                return serial, value
        return None

    def insert(self, db: Db, batch: WriteBatch, serial: bytes, value: bytes) -> None:
        key = self.indexable.value_key(value)
        self._merge_value(db, batch, serial, key, PREFIX_INSERT)

    def delete(self, db: Db, batch: WriteBatch, serial: bytes, key: Any) -> None:
        self._merge_value(db, batch, serial, key, PREFIX_DELETE)

    def _merge_value(self, db: Db, batch: WriteBatch, serial: bytes, key: Any, flag: int) -> None:
        self._require_cf(db, self.index_cf_name)
        serial = bytes(serial)
        if len(serial) != self.indexable.serial_size:
            raise ValueError(
                f"Serial must be {self.indexable.serial_size} bytes, got {len(serial)}"
            )
        batch.merge(self.index_cf_name, self.indexable.hash(key), bytes([flag]) + serial)