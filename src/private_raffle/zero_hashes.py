from __future__ import annotations

from typing import List

from .field import FieldHasher, keccak_field, mod_field
from .project_constants import MAX_DEPTH, MIN_DEPTH, ZERO_DOMAIN


def zero_leaf() -> int:
    """Value of an empty leaf: keccak256("raffero") reduced into the field."""
    return keccak_field(ZERO_DOMAIN)


class ZeroHashTable:
    """
    Hashes of empty subtrees, zeros[i] being the root of an empty tree of
    height i. Built once up to ``depth`` and read by index afterwards.
    """

    def __init__(self, hasher: FieldHasher, depth: int = MAX_DEPTH) -> None:
        if depth < MIN_DEPTH or depth > MAX_DEPTH:
            raise ValueError(f"Zero table depth must be in [{MIN_DEPTH},{MAX_DEPTH}]")
        zeros: List[int] = [zero_leaf()]
        for _ in range(depth):
            zeros.append(mod_field(hasher.hash2(zeros[-1], zeros[-1])))
        self.depth = depth
        self._zeros = tuple(zeros)

    def __getitem__(self, level: int) -> int:
        return self._zeros[level]

    def __len__(self) -> int:
        return len(self._zeros)

    def empty_root(self, depth: int) -> int:
        return self._zeros[depth]

    def as_list(self, depth: int | None = None) -> List[int]:
        end = self.depth if depth is None else depth
        return list(self._zeros[: end + 1])
