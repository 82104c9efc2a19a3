from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict

from .draw import compute_winner_index
from .field import FieldHasher
from .merkle import MerkleAccumulator
from .models import RaffleStatus
from .registry import PrivateRaffle


def export_audit(engine: PrivateRaffle, raffle_id: int) -> Dict[str, Any]:
    raffle = engine.get_raffle(raffle_id)
    if raffle.status is RaffleStatus.ACTIVE:
        raise RuntimeError(f"Raffle {raffle_id} has not been drawn yet.")

    return {
        "metadata": {
            "tool": "private-raffle",
            "version": "1.0.0",
            "generated_at_utc": datetime.now(timezone.utc).isoformat(),
            "raffle_id": raffle_id,
            "hasher": engine.hasher.name,
            "tree_depth": raffle.levels,
            "participants": raffle.next_index,
            # big ints; store as strings for safety
            "root": str(raffle.root),
            "random_word": str(raffle.random_word),
            "winner_index": raffle.winner_index,
            "status": raffle.status.name,
        },
        # Leaf order is the insertion order, which fixes the root.
        "commitments": [str(c) for c in engine.get_commitments(raffle_id)],
    }


def verify_audit(audit_path: str, hasher: FieldHasher) -> Dict[str, Any]:
    with open(audit_path, "r", encoding="utf-8") as f:
        audit = json.load(f)

    meta = audit["metadata"]
    if meta["hasher"] != hasher.name:
        raise RuntimeError(
            f"Audit was produced with hasher {meta['hasher']!r}, not {hasher.name!r}"
        )
    raffle_id = int(meta["raffle_id"])
    depth = int(meta["tree_depth"])
    commitments = [int(c) for c in audit["commitments"]]

    if len(commitments) != int(meta["participants"]):
        raise RuntimeError(
            f"Participant mismatch: audit={meta['participants']} commitments={len(commitments)}"
        )

    # Replay the deposits into a fresh accumulator.
    tree = MerkleAccumulator(hasher)
    tree.initialize(raffle_id, depth)
    for c in commitments:
        tree.insert(raffle_id, c)
    root = tree.current_root(raffle_id)
    if root != int(meta["root"]):
        raise RuntimeError(f"Root mismatch: audit={meta['root']} recomputed={root}")

    word = int(meta["random_word"])
    winner_index = compute_winner_index(word, len(commitments))
    if winner_index != int(meta["winner_index"]):
        raise RuntimeError(
            f"Winner index mismatch: audit={meta['winner_index']} recomputed={winner_index}"
        )

    return {
        "ok": True,
        "raffle_id": raffle_id,
        "root": root,
        "winner_index": winner_index,
        "winning_commitment": commitments[winner_index],
        "participants": len(commitments),
    }
