"""In-memory column-family key-value store with write batches and merge operators."""

from __future__ import annotations

import enum
from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, NamedTuple, Optional, Sequence

PREFIX_INSERT = ord("I")
PREFIX_DELETE = ord("D")

MergeOperator = Callable[[Optional[bytes], Sequence[bytes]], Optional[bytes]]
SortKey = Callable[[bytes], Any]


class MergeError(Exception):
    """Raised when a merge operand or stored list cannot be merged."""


class _OpKind(enum.Enum):
    PUT = "put"
    MERGE = "merge"
    DELETE = "delete"


class _BatchOp(NamedTuple):
    kind: _OpKind
    cf: str
    key: bytes
    value: Optional[bytes]


@dataclass
class WriteBatch:
    """An ordered set of writes applied atomically by :meth:`Db.write_batch`."""

    _ops: list = field(default_factory=list)

    def put(self, cf: str, key: bytes, value: bytes) -> None:
        self._ops.append(_BatchOp(_OpKind.PUT, cf, bytes(key), bytes(value)))

    def merge(self, cf: str, key: bytes, operand: bytes) -> None:
        self._ops.append(_BatchOp(_OpKind.MERGE, cf, bytes(key), bytes(operand)))

    def delete(self, cf: str, key: bytes) -> None:
        self._ops.append(_BatchOp(_OpKind.DELETE, cf, bytes(key), None))

    def __iter__(self) -> Iterator[_BatchOp]:
        return iter(self._ops)

    def __len__(self) -> int:
        return len(self._ops)


@dataclass
class _ColumnFamily:
    merge_operator: Optional[MergeOperator]
    data: dict = field(default_factory=dict)


class Db:
    """A store of named column families, each an ordered map of bytes to bytes."""

    def __init__(self) -> None:
        self._cfs: dict[str, _ColumnFamily] = {}

    def add_column_family(self, name: str, merge_operator: Optional[MergeOperator] = None) -> None:
        if name in self._cfs:
            raise ValueError(f"Column family {name!r} already exists")
        self._cfs[name] = _ColumnFamily(merge_operator)

    def __contains__(self, name: object) -> bool:
        return name in self._cfs

    def _cf(self, name: str) -> _ColumnFamily:
        try:
            return self._cfs[name]
        except KeyError:
            raise KeyError(f"Column family {name!r} doesn't exist") from None

    def get(self, cf: str, key: bytes) -> Optional[bytes]:
        return self._cf(cf).data.get(bytes(key))

    def write_batch(self, batch: WriteBatch) -> None:
        """Apply every write of ``batch``; on error nothing is written."""
        staged: dict[tuple[str, bytes], Optional[bytes]] = {}
        for op in batch:
            column = self._cf(op.cf)
            slot = (op.cf, op.key)
            if op.kind is _OpKind.PUT:
                staged[slot] = op.value
            elif op.kind is _OpKind.DELETE:
                staged[slot] = None
            else:
                if column.merge_operator is None:
                    raise MergeError(f"Column family {op.cf!r} has no merge operator")
                current = staged[slot] if slot in staged else column.data.get(op.key)
                merged = column.merge_operator(current, [op.value])
                if merged is None:
                    raise MergeError(f"Merge failed for key {op.key.hex()} in {op.cf!r}")
                staged[slot] = bytes(merged)
        for (cf_name, key), value in staged.items():
            data = self._cfs[cf_name].data
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value

    def iterate_from(
        self, cf: str, start: bytes, reverse: bool = False
    ) -> Iterator[tuple[bytes, bytes]]:
        """Yield ``(key, value)`` pairs from ``start`` onwards in key order.

        Forward iteration starts at the first key >= ``start``; reverse
        iteration starts at the last key <= ``start`` and walks downwards.
        """
        data = self._cf(cf).data
        keys = sorted(data)
        start = bytes(start)
        if reverse:
            selected = reversed(keys[: bisect_right(keys, start)])
        else:
            selected = iter(keys[bisect_left(keys, start):])
        snapshot = [(key, data[key]) for key in selected]
        return iter(snapshot)


def _split_items(value: bytes, item_size: int) -> list[bytes]:
    if item_size <= 0:
        raise MergeError(f"Invalid item size {item_size}")
    if len(value) % item_size:
        raise MergeError(
            f"Value of {len(value)} bytes is not a list of {item_size}-byte items"
        )
    return [bytes(value[pos:pos + item_size]) for pos in range(0, len(value), item_size)]


def _check_operand(operand: bytes) -> tuple[int, bytes]:
    if not operand:
        raise MergeError("Empty merge operand")
    flag, item = operand[0], bytes(operand[1:])
    if flag not in (PREFIX_INSERT, PREFIX_DELETE):
        raise MergeError(f"Wrong merge byte: {flag}")
    return flag, item


def full_merge_ordered_list(
    existing_value: Optional[bytes],
    operands: Iterable[bytes],
    item_size: int,
    sort_key: Optional[SortKey] = None,
) -> bytes:
    """Apply insert/delete operands to a sorted list of fixed-size items."""
    order = sort_key if sort_key is not None else bytes
    entries = _split_items(existing_value, item_size) if existing_value is not None else []
    keys = [order(entry) for entry in entries]
    for operand in operands:
        flag, item = _check_operand(operand)
        if len(item) != item_size:
            raise MergeError(f"Merge item has {len(item)} bytes, expected {item_size}")
        item_key = order(item)
        idx = bisect_left(keys, item_key)
        found = idx < len(keys) and keys[idx] == item_key
        if flag == PREFIX_INSERT and not found:
            entries.insert(idx, item)
            keys.insert(idx, item_key)
        elif flag == PREFIX_DELETE and found:
            del entries[idx]
            del keys[idx]
    return b"".join(entries)


def partial_merge_ordered_list(
    existing_value: Optional[bytes], operands: Iterable[bytes]
) -> Optional[bytes]:
    """Check the operands; they are never combined ahead of a full merge.

    Raises :class:`MergeError` for a malformed operand and otherwise
    returns None, leaving the operands to the full merge.
    """
    for operand in operands:
        _check_operand(operand)
    return None


def ordered_list_merge_operator(item_size: int, sort_key: Optional[SortKey] = None) -> MergeOperator:
    """Build a merge operator keeping a sorted list of ``item_size``-byte items."""

    def merge(existing_value: Optional[bytes], operands: Sequence[bytes]) -> bytes:
        return full_merge_ordered_list(existing_value, operands, item_size, sort_key)

    return merge