from __future__ import annotations

import os
from typing import Callable, Tuple

from eth_utils import keccak

from .field import address_bytes

# Returns fresh bytes from a source outside the caller's control
# (a recent block hash, for example).
EntropySource = Callable[[], bytes]


def local_entropy() -> bytes:
    return os.urandom(32)


def _word(x: int) -> bytes:
    return int(x).to_bytes(32, "big")


def derive_seed(
    raffle_id: int,
    root: int,
    caller: str,
    timestamp: int,
    entropy: bytes,
) -> Tuple[int, str]:
    """
    Seed handed to the oracle: keccak256 over the raffle id, current root,
    caller, time and external entropy, packed as in an EVM abi.encodePacked.
    Returns (seed_int, seed_hex).
    """
    packed = (
        _word(raffle_id)
        + _word(root)
        + address_bytes(caller)
        + _word(timestamp)
        + entropy
    )
    digest = keccak(packed)
    return int.from_bytes(digest, "big"), digest.hex()


def compute_winner_index(random_word: int, participants: int) -> int:
    if participants <= 0:
        raise ValueError("Cannot draw a winner without participants.")
    return random_word % participants
