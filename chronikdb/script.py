"""Output scripts and recognition of their standard forms."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

OP_1 = 0x51
OP_SCRIPTTYPE = 0x62
OP_RETURN = 0x6A
OP_DUP = 0x76
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_HASH160 = 0xA9
OP_CHECKSIG = 0xAC

PUBKEY_SIZE = 33
LEGACY_PUBKEY_SIZE = 65
HASH160_SIZE = 20
P2TR_STATE_SIZE = 32


class ScriptKind(enum.Enum):
    P2PK = "p2pk"
    P2PK_LEGACY = "p2pk_legacy"
    P2PKH = "p2pkh"
    P2SH = "p2sh"
    P2TR = "p2tr"
    OTHER = "other"


@dataclass(frozen=True)
class ScriptVariant:
    """The recognised form of a script and the data it carries.

    For ``OTHER`` scripts ``data`` is the whole bytecode.
    """

    kind: ScriptKind
    data: bytes
    state: Optional[bytes] = None


def _check_size(name: str, value: bytes, size: int) -> bytes:
    value = bytes(value)
    if len(value) != size:
        raise ValueError(f"{name} must be {size} bytes, got {len(value)}")
    return value


@dataclass(frozen=True)
class Script:
    """A script given by its bytecode."""

    bytecode: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "bytecode", bytes(self.bytecode))

    @classmethod
    def p2pk(cls, pubkey: bytes) -> "Script":
        pubkey = _check_size("Public key", pubkey, PUBKEY_SIZE)
        return cls(bytes([PUBKEY_SIZE]) + pubkey + bytes([OP_CHECKSIG]))

    @classmethod
    def p2pk_legacy(cls, pubkey: bytes) -> "Script":
        pubkey = _check_size("Legacy public key", pubkey, LEGACY_PUBKEY_SIZE)
        return cls(bytes([LEGACY_PUBKEY_SIZE]) + pubkey + bytes([OP_CHECKSIG]))

    @classmethod
    def p2pkh(cls, hash160: bytes) -> "Script":
        hash160 = _check_size("Hash160", hash160, HASH160_SIZE)
        return cls(
            bytes([OP_DUP, OP_HASH160, HASH160_SIZE])
            + hash160
            + bytes([OP_EQUALVERIFY, OP_CHECKSIG])
        )

    @classmethod
    def p2sh(cls, hash160: bytes) -> "Script":
        hash160 = _check_size("Hash160", hash160, HASH160_SIZE)
        return cls(bytes([OP_HASH160, HASH160_SIZE]) + hash160 + bytes([OP_EQUAL]))

    @classmethod
    def p2tr(cls, commitment: bytes, state: Optional[bytes] = None) -> "Script":
        commitment = _check_size("Commitment", commitment, PUBKEY_SIZE)
        bytecode = bytes([OP_SCRIPTTYPE, OP_1, PUBKEY_SIZE]) + commitment
        if state is not None:
            state = _check_size("State", state, P2TR_STATE_SIZE)
            bytecode += bytes([P2TR_STATE_SIZE]) + state
        return cls(bytecode)

    def is_opreturn(self) -> bool:
        return self.bytecode[:1] == bytes([OP_RETURN])

    def parse_variant(self) -> ScriptVariant:
        code = self.bytecode
        size = len(code)
        if size == PUBKEY_SIZE + 2 and code[0] == PUBKEY_SIZE and code[-1] == OP_CHECKSIG:
            return ScriptVariant(ScriptKind.P2PK, code[1:-1])
        if (
            size == LEGACY_PUBKEY_SIZE + 2
            and code[0] == LEGACY_PUBKEY_SIZE
            and code[-1] == OP_CHECKSIG
        ):
            return ScriptVariant(ScriptKind.P2PK_LEGACY, code[1:-1])
        if (
            size == HASH160_SIZE + 5
            and code[:3] == bytes([OP_DUP, OP_HASH160, HASH160_SIZE])
            and code[-2:] == bytes([OP_EQUALVERIFY, OP_CHECKSIG])
        ):
            return ScriptVariant(ScriptKind.P2PKH, code[3:-2])
        if (
            size == HASH160_SIZE + 3
            and code[:2] == bytes([OP_HASH160, HASH160_SIZE])
            and code[-1] == OP_EQUAL
        ):
            return ScriptVariant(ScriptKind.P2SH, code[2:-1])
        if code[:3] == bytes([OP_SCRIPTTYPE, OP_1, PUBKEY_SIZE]):
            commitment_end = 3 + PUBKEY_SIZE
            if size == commitment_end:
                return ScriptVariant(ScriptKind.P2TR, code[3:commitment_end])
            if (
                size == commitment_end + 1 + P2TR_STATE_SIZE
                and code[commitment_end] == P2TR_STATE_SIZE
            ):
                return ScriptVariant(
                    ScriptKind.P2TR, code[3:commitment_end], code[commitment_end + 1:]
                )
        return ScriptVariant(ScriptKind.OTHER, code)