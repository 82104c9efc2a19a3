from __future__ import annotations

from typing import Protocol, Union

import base58
from eth_utils import keccak

from .project_constants import FIELD_MODULUS

FieldLike = Union[int, str, bytes]


class FieldHasher(Protocol):
    """Two-to-one hash over the scalar field (Poseidon2 in the circuit)."""

    name: str

    def hash2(self, a: int, b: int) -> int: ...


def mod_field(x: int) -> int:
    return x % FIELD_MODULUS


def to_bytes32(x: int) -> bytes:
    return mod_field(x).to_bytes(32, "big")


def keccak_field(data: bytes) -> int:
    return mod_field(int.from_bytes(keccak(data), "big"))


class KeccakFieldHasher:
    """
    Reference hasher: keccak256(a || b) reduced into the field.

    Useful for local runs and audits. It does NOT match the Poseidon2
    hasher used by the claim circuit, so roots produced with it can never
    be proven against.
    """

    name = "keccak256"

    def hash2(self, a: int, b: int) -> int:
        return keccak_field(to_bytes32(a) + to_bytes32(b))


def to_field(value: FieldLike) -> int:
    """
    Accepts an int, a 0x-prefixed hex string (bytes32 style) or raw bytes.
    The value is returned as-is when already an int; callers decide whether
    to reduce.
    """
    if isinstance(value, bool):
        raise TypeError("Field element cannot be a bool.")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Field element must be non-negative, got {value}")
        return value
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, "big")
    if isinstance(value, str):
        s = value.strip()
        if s.startswith(("0x", "0X")):
            return int(s, 16)
        return int(s)
    raise TypeError(f"Unsupported field element type: {type(value).__name__}")


def address_bytes(address: str) -> bytes:
    """
    Byte form of an account identity, in order of preference:

    1) 0x-prefixed hex (EVM style) -> the raw hex bytes
    2) base58 (ed25519 public keys) -> the decoded bytes
    3) anything else -> keccak256 of the UTF-8 text

    Every string maps to exactly one value, so seeds and recipient
    bindings never reject an identity the ledger accepts.
    """
    s = address.strip()
    if s[:2] in ("0x", "0X") and len(s) > 2:
        digits = s[2:]
        try:
            return bytes.fromhex(digits if len(digits) % 2 == 0 else "0" + digits)
        except ValueError:
            pass
    if s:
        try:
            return base58.b58decode(s)
        except ValueError:
            pass
    return keccak(text=address)


def address_to_field(address: str) -> int:
    return mod_field(int.from_bytes(address_bytes(address), "big"))
