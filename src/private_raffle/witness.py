"""
Off-chain helpers for the claimant: rebuild the tree from the published
leaves and extract the Merkle path of the winning leaf, in the shape the
claim circuit expects (siblings and left/right bits padded to MAX_DEPTH).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from .claims import PublicInputs, recipient_binding
from .field import FieldHasher, mod_field
from .project_constants import MAX_DEPTH
from .zero_hashes import ZeroHashTable


@dataclass(frozen=True)
class MerkleWitness:
    root: int
    leaf: int
    index: int
    siblings: List[int]
    path_indices: List[int]  # 0 = node is a left child, 1 = right child


def build_witness(
    hasher: FieldHasher, depth: int, leaves: Sequence[int], index: int
) -> MerkleWitness:
    if not 0 <= index < len(leaves):
        raise IndexError(f"Leaf index {index} out of range (have {len(leaves)} leaves).")
    if len(leaves) > 1 << depth:
        raise ValueError(f"{len(leaves)} leaves do not fit a depth-{depth} tree.")

    zeros = ZeroHashTable(hasher, depth)
    nodes: Dict[Tuple[int, int], int] = {(0, i): leaf for i, leaf in enumerate(leaves)}

    width = len(leaves)
    for level in range(depth):
        for i in range(0, width, 2):
            left = nodes.get((level, i), zeros[level])
            right = nodes.get((level, i + 1), zeros[level])
            nodes[(level + 1, i // 2)] = mod_field(hasher.hash2(left, right))
        width = (width + 1) // 2

    siblings: List[int] = []
    path_indices: List[int] = []
    node_index = index
    for level in range(depth):
        is_right = node_index % 2
        siblings.append(nodes.get((level, node_index ^ 1), zeros[level]))
        path_indices.append(is_right)
        node_index //= 2

    return MerkleWitness(
        root=nodes[(depth, 0)],
        leaf=leaves[index],
        index=index,
        siblings=siblings,
        path_indices=path_indices,
    )


def root_from_path(
    hasher: FieldHasher, leaf: int, siblings: Sequence[int], path_indices: Sequence[int]
) -> int:
    node = leaf
    for sibling, is_right in zip(siblings, path_indices):
        if is_right:
            node = mod_field(hasher.hash2(sibling, node))
        else:
            node = mod_field(hasher.hash2(node, sibling))
    return node


def pad_path(witness: MerkleWitness, size: int = MAX_DEPTH) -> Tuple[List[int], List[int]]:
    pad = size - len(witness.siblings)
    if pad < 0:
        raise ValueError(f"Path of {len(witness.siblings)} levels exceeds {size}.")
    return witness.siblings + [0] * pad, witness.path_indices + [0] * pad


def commitment(hasher: FieldHasher, secret: int, nullifier: int) -> int:
    """The leaf a ticket deposits: H(secret, nullifier)."""
    return mod_field(hasher.hash2(secret, nullifier))


def build_public_inputs(
    hasher: FieldHasher,
    witness: MerkleWitness,
    nullifier_hash: int,
    recipient: str,
    raffle_id: int,
) -> PublicInputs:
    """
    Public inputs for a claim of ``witness.leaf``. The root, winner index
    and depth come from the witness; the recipient binding is computed the
    same way the claim check recomputes it.
    """
    return PublicInputs(
        root=witness.root,
        nullifier_hash=nullifier_hash,
        recipient_binding=recipient_binding(hasher, nullifier_hash, recipient),
        raffle_id=raffle_id,
        winner_index=witness.index,
        tree_depth=len(witness.siblings),
    )
