"""Index payloads derived from output scripts."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from chronikdb.script import Script, ScriptKind


class PayloadPrefix(enum.IntEnum):
    OTHER = 0
    P2PK = 1
    P2PK_LEGACY = 2
    P2PKH = 3
    P2SH = 4
    P2TR_COMMITMENT = 5
    P2TR_STATE = 6


@dataclass(frozen=True, order=True)
class ScriptPayload:
    payload_prefix: PayloadPrefix
    payload_data: bytes

    def into_bytes(self) -> bytes:
        """The payload as stored in the index: prefix byte followed by data."""
        return bytes([int(self.payload_prefix)]) + bytes(self.payload_data)

    def reconstruct_script(self) -> Optional[Script]:
        """Rebuild the script this payload came from, where it is complete."""
        data = bytes(self.payload_data)
        builders = {
            PayloadPrefix.P2PK: Script.p2pk,
            PayloadPrefix.P2PK_LEGACY: Script.p2pk_legacy,
            PayloadPrefix.P2PKH: Script.p2pkh,
            PayloadPrefix.P2SH: Script.p2sh,
            PayloadPrefix.P2TR_COMMITMENT: Script.p2tr,
        }
        if self.payload_prefix == PayloadPrefix.OTHER:
            return Script(data)
        builder = builders.get(self.payload_prefix)
        if builder is None:
            return None
        try:
            return builder(data)
        except ValueError:
            return None


@dataclass(frozen=True, order=True)
class ScriptPayloadState:
    payload: ScriptPayload
    is_partial: bool
    """Whether ``payload`` covers only part of the script it is based on."""


def _full(prefix: PayloadPrefix, data: bytes) -> ScriptPayloadState:
    return ScriptPayloadState(ScriptPayload(prefix, bytes(data)), False)


def script_payloads(script: Script) -> list[ScriptPayloadState]:
    """The payloads under which a script is indexed; none for OP_RETURN."""
    variant = script.parse_variant()
    match variant.kind:
        case ScriptKind.P2PK:
            return [_full(PayloadPrefix.P2PK, variant.data)]
        case ScriptKind.P2PK_LEGACY:
            return [_full(PayloadPrefix.P2PK_LEGACY, variant.data)]
        case ScriptKind.P2PKH:
            return [_full(PayloadPrefix.P2PKH, variant.data)]
        case ScriptKind.P2SH:
            return [_full(PayloadPrefix.P2SH, variant.data)]
        case ScriptKind.P2TR if variant.state is None:
            return [_full(PayloadPrefix.P2TR_COMMITMENT, variant.data)]
        case ScriptKind.P2TR:
            return [
                ScriptPayloadState(ScriptPayload(PayloadPrefix.P2TR_COMMITMENT, variant.data), True),
                ScriptPayloadState(ScriptPayload(PayloadPrefix.P2TR_STATE, variant.state), True),
            ]
        case _:
            if script.is_opreturn():
                return []
            return [_full(PayloadPrefix.OTHER, script.bytecode)]