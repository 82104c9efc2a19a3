"""
Incremental Merkle accumulator, one append-only tree per raffle.

Each tree keeps only one cached left-subtree hash per level plus a ring
buffer of the last ROOT_HISTORY_SIZE roots, so inserts cost O(depth)
hashes and O(depth) storage regardless of how many leaves were added.

Leaves are accepted as given (no range check). A leaf outside the field
still hashes, but the circuit will compute a different root for it.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import AlreadyInitialized, InvalidDepth, NotInitialized, TreeFull
from .field import FieldHasher, mod_field
from .project_constants import MAX_DEPTH, MIN_DEPTH, ROOT_HISTORY_SIZE
from .zero_hashes import ZeroHashTable

log = logging.getLogger(__name__)


@dataclass
class TreeState:
    depth: int
    next_leaf_index: int = 0
    current_root_index: int = 0
    cached_subtrees: List[int] = field(default_factory=list)
    roots: List[int] = field(default_factory=lambda: [0] * ROOT_HISTORY_SIZE)
    initialized: bool = False

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    @property
    def current_root(self) -> int:
        return self.roots[self.current_root_index]


class MerkleAccumulator:
    def __init__(self, hasher: FieldHasher) -> None:
        self.hasher = hasher
        self.zeros = ZeroHashTable(hasher, MAX_DEPTH)
        self.trees: Dict[int, TreeState] = {}

    def _hash(self, left: int, right: int) -> int:
        return mod_field(self.hasher.hash2(left, right))

    def _tree(self, raffle_id: int) -> TreeState:
        tree = self.trees.get(raffle_id)
        if tree is None or not tree.initialized:
            raise NotInitialized(f"Raffle {raffle_id}: tree not initialized.")
        return tree

    def initialize(self, raffle_id: int, depth: int) -> TreeState:
        if depth < MIN_DEPTH or depth > MAX_DEPTH:
            raise InvalidDepth(
                f"Tree depth must be in [{MIN_DEPTH},{MAX_DEPTH}], got {depth}"
            )
        if raffle_id in self.trees:
            raise AlreadyInitialized(f"Raffle {raffle_id}: tree already initialized.")

        tree = TreeState(
            depth=depth,
            cached_subtrees=[self.zeros[level] for level in range(depth)],
            initialized=True,
        )
        tree.roots[0] = self.zeros.empty_root(depth)
        self.trees[raffle_id] = tree
        log.debug("Raffle %d: tree initialized, depth=%d", raffle_id, depth)
        return tree

    def insert(self, raffle_id: int, leaf: int) -> int:
        tree = self._tree(raffle_id)
        index = tree.next_leaf_index
        if index >= tree.capacity:
            raise TreeFull(f"Raffle {raffle_id}: all {tree.capacity} leaves used.")

        node = leaf
        node_index = index
        for level in range(tree.depth):
            if node_index % 2 == 0:
                # Left child: remember it for the right sibling still to come.
                tree.cached_subtrees[level] = node
                node = self._hash(node, self.zeros[level])
            else:
                node = self._hash(tree.cached_subtrees[level], node)
            node_index //= 2

        # Overwrites the oldest remembered root.
        tree.current_root_index = (tree.current_root_index + 1) % ROOT_HISTORY_SIZE
        tree.roots[tree.current_root_index] = node
        tree.next_leaf_index = index + 1
        log.debug("Raffle %d: leaf %d inserted, root=%d", raffle_id, index, node)
        return index

    def current_root(self, raffle_id: int) -> int:
        return self._tree(raffle_id).current_root

    def is_known_root(self, raffle_id: int, root: int) -> bool:
        if root == 0:
            return False
        tree = self.trees.get(raffle_id)
        if tree is None or not tree.initialized:
            return False
        i = tree.current_root_index
        for _ in range(ROOT_HISTORY_SIZE):
            if tree.roots[i] == root:
                return True
            i = (i - 1) % ROOT_HISTORY_SIZE
        return False

    def snapshot_tree(self, raffle_id: int) -> Optional[TreeState]:
        """Copy of one tree: O(depth + ROOT_HISTORY_SIZE)."""
        tree = self.trees.get(raffle_id)
        return copy.deepcopy(tree) if tree is not None else None

    def restore_tree(self, raffle_id: int, tree: Optional[TreeState]) -> None:
        if tree is None:
            self.trees.pop(raffle_id, None)
        else:
            self.trees[raffle_id] = tree
