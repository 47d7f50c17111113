"""Paged index of the transactions that touch each script payload."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Sequence

from chronikdb.outpoint_data import TX_NUM_SIZE, decode_tx_num, encode_tx_num
from chronikdb.script_payload import PayloadPrefix, script_payloads
from chronikdb.store import (
    PREFIX_DELETE,
    PREFIX_INSERT,
    Db,
    WriteBatch,
    ordered_list_merge_operator,
)
from chronikdb.tx import Tx, TxOutput

CF_SCRIPT_TXS = "script_txs"
PAGE_NUM_SIZE = 4
_MAX_PAGE_NUM = (1 << 32) - 1

SpentOutputFn = Callable[[int, int], TxOutput]


def key_for_script_payload(script_payload: bytes, page_num: int) -> bytes:
    """The index key of one page: the payload followed by the big-endian page number."""
    if not 0 <= page_num <= _MAX_PAGE_NUM:
        raise ValueError(f"page_num {page_num} out of range 0..{_MAX_PAGE_NUM}")
    return bytes(script_payload) + page_num.to_bytes(PAGE_NUM_SIZE, "big")


def _key_payload(key: bytes) -> bytes | None:
    if len(key) < PAGE_NUM_SIZE:
        return None
    return key[: len(key) - PAGE_NUM_SIZE]


def _decode_tx_nums(value: bytes) -> list[int]:
    if len(value) % TX_NUM_SIZE:
        raise ValueError(f"Value of {len(value)} bytes is not a list of tx_nums")
    return [
        decode_tx_num(value[pos:pos + TX_NUM_SIZE])
        for pos in range(0, len(value), TX_NUM_SIZE)
    ]


def _prefixed_payload(prefix: PayloadPrefix, payload_data: bytes) -> bytes:
    return bytes([int(prefix)]) + bytes(payload_data)


@dataclass(frozen=True)
class ScriptTxsConf:
    page_size: int

    def __post_init__(self) -> None:
        if self.page_size <= 0:
            raise ValueError(f"page_size must be positive, got {self.page_size}")


class ScriptTxsWriterCache:
    """LRU cache of the number of txs indexed per script payload.

    A capacity of 0 disables caching.
    """

    def __init__(self, capacity: int = 0) -> None:
        if capacity < 0:
            raise ValueError(f"capacity must not be negative, got {capacity}")
        self.capacity = capacity
        self._num_txs: OrderedDict[bytes, int] = OrderedDict()

    def __len__(self) -> int:
        return len(self._num_txs)

    def _remember(self, payload: bytes, num_txs: int) -> None:
        if self.capacity == 0:
            return
        self._num_txs[payload] = num_txs
        self._num_txs.move_to_end(payload)
        while len(self._num_txs) > self.capacity:
            self._num_txs.popitem(last=False)

    def _num_txs_by_payload(self, db: Db, conf: ScriptTxsConf, payload: bytes) -> int:
        if self.capacity > 0 and payload in self._num_txs:
            self._num_txs.move_to_end(payload)
            return self._num_txs[payload]
        last_key = key_for_script_payload(payload, _MAX_PAGE_NUM)
        for key, value in db.iterate_from(CF_SCRIPT_TXS, last_key, reverse=True):
            if _key_payload(key) != payload:
                break
            if value:
                page_num = int.from_bytes(key[len(key) - PAGE_NUM_SIZE:], "big")
                num_txs = page_num * conf.page_size + len(_decode_tx_nums(value))
                self._remember(payload, num_txs)
                return num_txs
        self._remember(payload, 0)
        return 0

    def _adjust(self, payload: bytes, delta: int) -> None:
        if payload in self._num_txs:
            updated = self._num_txs[payload] + delta
            if updated < 0:
                raise ValueError("Number of txs for a script can't become negative")
            self._num_txs[payload] = updated
            self._num_txs.move_to_end(payload)


def _tx_nums_by_payload(
    first_tx_num: int, txs: Sequence[Tx], block_spent_output_fn: SpentOutputFn
) -> dict[bytes, list[int]]:
    payload_tx_nums: dict[bytes, set[int]] = {}
    for tx_idx, tx in enumerate(txs):
        tx_num = first_tx_num + tx_idx
        for output in tx.outputs:
            for state in script_payloads(output.script):
                payload_tx_nums.setdefault(state.payload.into_bytes(), set()).add(tx_num)
        if tx_idx == 0:
            # coinbase spends nothing
            continue
        for input_idx in range(len(tx.inputs)):
            spent_output = block_spent_output_fn(tx_idx - 1, input_idx)
            for state in script_payloads(spent_output.script):
                payload_tx_nums.setdefault(state.payload.into_bytes(), set()).add(tx_num)
    return {payload: sorted(nums) for payload, nums in payload_tx_nums.items()}


def _require_cf(db: Db) -> None:
    if CF_SCRIPT_TXS not in db:
        raise KeyError(f"Column family {CF_SCRIPT_TXS!r} doesn't exist")


@dataclass
class ScriptTxsWriter:
    db: Db
    conf: ScriptTxsConf

    def __post_init__(self) -> None:
        _require_cf(self.db)

    @staticmethod
    def add_cfs(db: Db) -> None:
        db.add_column_family(CF_SCRIPT_TXS, ordered_list_merge_operator(TX_NUM_SIZE))

    def _merge_page_entries(
        self, batch: WriteBatch, payload: bytes, start_num_txs: int, tx_nums: list[int], flag: int
    ) -> None:
        for offset, tx_num in enumerate(tx_nums):
            page_num = (start_num_txs + offset) // self.conf.page_size
            key = key_for_script_payload(payload, page_num)
            batch.merge(CF_SCRIPT_TXS, key, bytes([flag]) + encode_tx_num(tx_num))

    def insert_block_txs(
        self,
        batch: WriteBatch,
        first_tx_num: int,
        txs: Sequence[Tx],
        block_spent_output_fn: SpentOutputFn,
        cache: ScriptTxsWriterCache,
    ) -> None:
        """Append the block's txs to the pages of every script they touch.

        ``block_spent_output_fn(tx_pos, input_idx)`` gives the output spent by
        an input, where ``tx_pos`` counts txs after the coinbase.
        """
        payload_tx_nums = _tx_nums_by_payload(first_tx_num, txs, block_spent_output_fn)
        for payload, tx_nums in payload_tx_nums.items():
            start = cache._num_txs_by_payload(self.db, self.conf, payload)
            self._merge_page_entries(batch, payload, start, tx_nums, PREFIX_INSERT)
            cache._adjust(payload, len(tx_nums))

    def delete_block_txs(
        self,
        batch: WriteBatch,
        first_tx_num: int,
        txs: Sequence[Tx],
        block_spent_output_fn: SpentOutputFn,
        cache: ScriptTxsWriterCache,
    ) -> None:
        """Remove the block's txs, which must be the last ones indexed per script."""
        payload_tx_nums = _tx_nums_by_payload(first_tx_num, txs, block_spent_output_fn)
        for payload, tx_nums in payload_tx_nums.items():
            total = cache._num_txs_by_payload(self.db, self.conf, payload)
            start = total - len(tx_nums)
            if start < 0:
                raise ValueError(
                    f"Script payload {payload.hex()} has {total} txs, can't delete {len(tx_nums)}"
                )
            self._merge_page_entries(batch, payload, start, tx_nums, PREFIX_DELETE)
            cache._adjust(payload, -len(tx_nums))


@dataclass
class ScriptTxsReader:
    db: Db
    conf: ScriptTxsConf

    def __post_init__(self) -> None:
        _require_cf(self.db)

    def page_size(self) -> int:
        return self.conf.page_size

    def num_pages_by_payload(self, prefix: PayloadPrefix, payload_data: bytes) -> int:
        script_payload = _prefixed_payload(prefix, payload_data)
        num_pages = 0
        for key, value in self.db.iterate_from(CF_SCRIPT_TXS, script_payload):
            if _key_payload(key) != script_payload:
                break
            if value:
                num_pages += 1
        return num_pages

    def page_txs(self, page_num: int, prefix: PayloadPrefix, payload_data: bytes) -> list[int]:
        script_payload = _prefixed_payload(prefix, payload_data)
        value = self.db.get(CF_SCRIPT_TXS, key_for_script_payload(script_payload, page_num))
        if value is None:
            return []
        return _decode_tx_nums(value)