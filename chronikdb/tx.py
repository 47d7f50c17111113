"""Transactions, their inputs and outputs, and the coins they spend."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from chronikdb.script import Script

TXID_SIZE = 32
_MAX_U32 = (1 << 32) - 1


def _check_u32(name: str, value: int) -> int:
    if not 0 <= value <= _MAX_U32:
        raise ValueError(f"{name} {value} out of range 0..{_MAX_U32}")
    return value


@dataclass(frozen=True, order=True)
class OutPoint:
    """A reference to one output of a transaction; ordered by txid, then index."""

    txid: bytes
    out_idx: int

    def __post_init__(self) -> None:
        txid = bytes(self.txid)
        if len(txid) != TXID_SIZE:
            raise ValueError(f"txid must be {TXID_SIZE} bytes, got {len(txid)}")
        object.__setattr__(self, "txid", txid)
        _check_u32("out_idx", self.out_idx)


@dataclass(frozen=True)
class TxInput:
    prev_out: OutPoint
    script: Script = field(default_factory=Script)
    sequence: int = 0

    def __post_init__(self) -> None:
        _check_u32("sequence", self.sequence)


@dataclass(frozen=True)
class TxOutput:
    value: int = 0
    script: Script = field(default_factory=Script)


@dataclass(frozen=True)
class Tx:
    """A transaction without its hash; inputs and outputs are kept as tuples."""

    version: int = 1
    inputs: tuple[TxInput, ...] = ()
    outputs: tuple[TxOutput, ...] = ()
    lock_time: int = 0

    def __init__(
        self,
        version: int = 1,
        inputs: Iterable[TxInput] = (),
        outputs: Iterable[TxOutput] = (),
        lock_time: int = 0,
    ) -> None:
        object.__setattr__(self, "version", version)
        object.__setattr__(self, "inputs", tuple(inputs))
        object.__setattr__(self, "outputs", tuple(outputs))
        object.__setattr__(self, "lock_time", _check_u32("lock_time", lock_time))


@dataclass(frozen=True)
class Coin:
    """An output together with where it was created."""

    tx_output: TxOutput = field(default_factory=TxOutput)
    height: Optional[int] = None
    is_coinbase: bool = False