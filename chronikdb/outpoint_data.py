"""Transaction numbers and outpoints in their stored form."""

from __future__ import annotations

from dataclasses import dataclass

TX_NUM_SIZE = 8
OUT_IDX_SIZE = 4
_MAX_TX_NUM = (1 << 64) - 1
_MAX_OUT_IDX = (1 << 32) - 1


def _check_range(name: str, value: int, maximum: int) -> int:
    if not 0 <= value <= maximum:
        raise ValueError(f"{name} {value} out of range 0..{maximum}")
    return value


def encode_tx_num(tx_num: int) -> bytes:
    """Encode a transaction number as 8 big-endian bytes, so byte order is numeric order."""
    return _check_range("tx_num", tx_num, _MAX_TX_NUM).to_bytes(TX_NUM_SIZE, "big")


def decode_tx_num(data: bytes) -> int:
    if len(data) != TX_NUM_SIZE:
        raise ValueError(f"tx_num must be {TX_NUM_SIZE} bytes, got {len(data)}")
    return int.from_bytes(data, "big")


@dataclass(frozen=True, order=True)
class OutpointEntry:
    tx_num: int
    out_idx: int


@dataclass(frozen=True, order=True)
class OutpointData:
    """An outpoint as stored: tx_num then out_idx, both big-endian."""

    tx_num: int
    out_idx: int

    SIZE = TX_NUM_SIZE + OUT_IDX_SIZE

    def to_bytes(self) -> bytes:
        out_idx = _check_range("out_idx", self.out_idx, _MAX_OUT_IDX)
        return encode_tx_num(self.tx_num) + out_idx.to_bytes(OUT_IDX_SIZE, "big")

    @classmethod
    def from_bytes(cls, data: bytes) -> "OutpointData":
        if len(data) != cls.SIZE:
            raise ValueError(f"Outpoint must be {cls.SIZE} bytes, got {len(data)}")
        return cls(
            decode_tx_num(data[:TX_NUM_SIZE]),
            int.from_bytes(data[TX_NUM_SIZE:], "big"),
        )