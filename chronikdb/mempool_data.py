"""Mempool bookkeeping: txs, per-script tx sets, UTXO deltas and spends."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterable, Optional

from chronikdb.script import Script
from chronikdb.script_payload import PayloadPrefix, script_payloads
from chronikdb.tx import Coin, OutPoint, Tx


class MempoolDataError(Exception):
    """Raised when a mempool update is inconsistent with the mempool's state."""


class NoSuchTxError(MempoolDataError):
    def __init__(self, txid: bytes) -> None:
        super().__init__(f"No such mempool tx: {txid.hex()}")
        self.txid = txid


class DuplicateUtxoError(MempoolDataError):
    def __init__(self, outpoint: OutPoint) -> None:
        super().__init__(f"UTXO {outpoint!r} already exists in mempool")
        self.outpoint = outpoint


class DuplicateTxError(MempoolDataError):
    def __init__(self, txid: bytes) -> None:
        super().__init__(f"Tx {txid.hex()} already exists in mempool")
        self.txid = txid


class UtxoAlreadySpentError(MempoolDataError):
    def __init__(self, outpoint: OutPoint) -> None:
        super().__init__(f"UTXO {outpoint!r} already spent in mempool")
        self.outpoint = outpoint


class OutputAlreadySpentError(MempoolDataError):
    def __init__(self, outpoint: OutPoint) -> None:
        super().__init__(f"Output {outpoint!r} already spent in mempool")
        self.outpoint = outpoint


class UtxoAlreadyUnspentError(MempoolDataError):
    def __init__(self, outpoint: OutPoint) -> None:
        super().__init__(f"UTXO {outpoint!r} already unspent in mempool")
        self.outpoint = outpoint


class OutputAlreadyUnspentError(MempoolDataError):
    def __init__(self, outpoint: OutPoint) -> None:
        super().__init__(f"Output {outpoint!r} already unspent in mempool")
        self.outpoint = outpoint


class UtxoDoesntExistError(MempoolDataError):
    def __init__(self, outpoint: OutPoint) -> None:
        super().__init__(f"UTXO {outpoint!r} doesn't exist in mempool")
        self.outpoint = outpoint


@dataclass(frozen=True)
class MempoolTxEntry:
    tx: Tx = field(default_factory=Tx)
    spent_coins: tuple[Coin, ...] = ()
    time_first_seen: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "spent_coins", tuple(self.spent_coins))


@dataclass
class UtxoDelta:
    """Outpoints a script gains (inserts) and loses (deletes) through the mempool."""

    inserts: set[OutPoint] = field(default_factory=set)
    deletes: set[OutPoint] = field(default_factory=set)

    def is_empty(self) -> bool:
        return not self.inserts and not self.deletes


class MempoolDeleteMode(enum.Enum):
    REMOVE = "remove"
    MINED = "mined"


def _payload_keys(script: Script) -> list[bytes]:
    return [state.payload.into_bytes() for state in script_payloads(script)]


def _script_key(prefix: PayloadPrefix, payload: bytes) -> bytes:
    return bytes([int(prefix)]) + bytes(payload)


@dataclass
class MempoolData:
    _txs: dict[bytes, MempoolTxEntry] = field(default_factory=dict, init=False)
    _script_txs: dict[bytes, set[tuple[int, bytes]]] = field(default_factory=dict, init=False)
    _utxos: dict[bytes, UtxoDelta] = field(default_factory=dict, init=False)
    _spends: dict[bytes, set[tuple[int, bytes, int]]] = field(default_factory=dict, init=False)

    def insert_mempool_tx(
        self,
        txid: bytes,
        tx: Tx,
        spent_coins: Iterable[Coin],
        time_first_seen: int,
    ) -> None:
        txid = bytes(txid)
        spent_coins = tuple(spent_coins)
        seen = (time_first_seen, txid)
        for out_idx, output in enumerate(tx.outputs):
            outpoint = OutPoint(txid, out_idx)
            for key in _payload_keys(output.script):
                self._script_txs.setdefault(key, set()).add(seen)
                delta = self._utxos.setdefault(key, UtxoDelta())
                if outpoint in delta.inserts:
                    raise DuplicateUtxoError(outpoint)
                delta.inserts.add(outpoint)
        for input_idx, (tx_input, coin) in enumerate(zip(tx.inputs, spent_coins)):
            prev_out = tx_input.prev_out
            for key in _payload_keys(coin.tx_output.script):
                self._script_txs.setdefault(key, set()).add(seen)
                delta = self._utxos.setdefault(key, UtxoDelta())
                if prev_out in delta.inserts:
                    delta.inserts.remove(prev_out)
                elif prev_out in delta.deletes:
                    raise UtxoAlreadySpentError(prev_out)
                else:
                    # Only recorded as a delete if the output isn't in the mempool
                    delta.deletes.add(prev_out)
                if delta.is_empty():
                    del self._utxos[key]
            spends = self._spends.setdefault(prev_out.txid, set())
            spend = (prev_out.out_idx, txid, input_idx)
            if spend in spends:
                raise OutputAlreadySpentError(prev_out)
            spends.add(spend)
        existed = txid in self._txs
        self._txs[txid] = MempoolTxEntry(tx, spent_coins, time_first_seen)
        if existed:
            raise DuplicateTxError(txid)

    def delete_mempool_tx(self, txid: bytes, mode: MempoolDeleteMode) -> Tx:
        """Remove a tx, either evicted or mined, and return it."""
        txid = bytes(txid)
        entry = self._txs.pop(txid, None)
        if entry is None:
            raise NoSuchTxError(txid)
        seen = (entry.time_first_seen, txid)
        for input_idx, (tx_input, coin) in enumerate(zip(entry.tx.inputs, entry.spent_coins)):
            prev_out = tx_input.prev_out
            for key in _payload_keys(coin.tx_output.script):
                self._discard_script_tx(key, seen)
                delta = self._utxos.setdefault(key, UtxoDelta())
                if prev_out in delta.deletes:
                    delta.deletes.remove(prev_out)
                elif prev_out in delta.inserts:
                    raise UtxoAlreadyUnspentError(prev_out)
                else:
                    delta.inserts.add(prev_out)
                if delta.is_empty():
                    del self._utxos[key]
            spends = self._spends.get(prev_out.txid)
            spend = (prev_out.out_idx, txid, input_idx)
            if spends is None or spend not in spends:
                raise OutputAlreadyUnspentError(prev_out)
            spends.remove(spend)
            if not spends:
                del self._spends[prev_out.txid]
        for out_idx, output in enumerate(entry.tx.outputs):
            outpoint = OutPoint(txid, out_idx)
            for key in _payload_keys(output.script):
                self._discard_script_tx(key, seen)
                if mode is MempoolDeleteMode.REMOVE:
                    delta = self._utxos.get(key)
                    if delta is None or outpoint not in delta.inserts:
                        raise UtxoDoesntExistError(outpoint)
                    delta.inserts.remove(outpoint)
                else:
                    delta = self._utxos.setdefault(key, UtxoDelta())
                    if outpoint in delta.inserts:
                        delta.inserts.remove(outpoint)
                    elif outpoint in delta.deletes:
                        raise UtxoAlreadySpentError(outpoint)
                    else:
                        delta.deletes.add(outpoint)
                if delta.is_empty():
                    del self._utxos[key]
        return entry.tx

    def _discard_script_tx(self, key: bytes, seen: tuple[int, bytes]) -> None:
        txs = self._script_txs.get(key)
        if txs is not None:
            txs.discard(seen)
            if not txs:
                del self._script_txs[key]

    def tx(self, txid: bytes) -> Optional[MempoolTxEntry]:
        return self._txs.get(bytes(txid))

    def script_txs(self, prefix: PayloadPrefix, payload: bytes) -> Optional[list[tuple[int, bytes]]]:
        """``(time_first_seen, txid)`` pairs touching a script, in order."""
        txs = self._script_txs.get(_script_key(prefix, payload))
        return None if txs is None else sorted(txs)

    def utxos(self, prefix: PayloadPrefix, payload: bytes) -> Optional[UtxoDelta]:
        return self._utxos.get(_script_key(prefix, payload))

    def spends(self, txid: bytes) -> Optional[list[tuple[int, bytes, int]]]:
        """``(out_idx, spending_txid, input_idx)`` for spent outputs of ``txid``, in order."""
        spends = self._spends.get(bytes(txid))
        return None if spends is None else sorted(spends)