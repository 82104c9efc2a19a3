import pytest

from private_raffle.errors import AlreadyInitialized, InvalidDepth, NotInitialized, TreeFull
from private_raffle.field import keccak_field
from private_raffle.merkle import MerkleAccumulator
from private_raffle.project_constants import FIELD_MODULUS, ROOT_HISTORY_SIZE
from private_raffle.witness import build_witness
from private_raffle.zero_hashes import ZeroHashTable, zero_leaf


def test_zero_leaf_is_reduced_domain_hash():
    z = zero_leaf()
    assert z == keccak_field(b"raffero")
    assert 0 <= z < FIELD_MODULUS


def test_zero_chain(hasher):
    table = ZeroHashTable(hasher, 4)
    assert len(table) == 5
    for i in range(1, 5):
        assert table[i] == hasher.hash2(table[i - 1], table[i - 1])


def test_initialize_sets_empty_root(hasher):
    acc = MerkleAccumulator(hasher)
    tree = acc.initialize(1, 5)
    assert acc.current_root(1) == acc.zeros.empty_root(5)
    assert tree.cached_subtrees == [acc.zeros[i] for i in range(5)]
    assert tree.next_leaf_index == 0
    assert tree.current_root_index == 0


@pytest.mark.parametrize("depth", [0, 33, -1])
def test_initialize_rejects_bad_depth(hasher, depth):
    with pytest.raises(InvalidDepth):
        MerkleAccumulator(hasher).initialize(1, depth)


def test_initialize_twice_fails(hasher):
    acc = MerkleAccumulator(hasher)
    acc.initialize(1, 3)
    with pytest.raises(AlreadyInitialized):
        acc.initialize(1, 3)


def test_insert_requires_initialized_tree(hasher):
    with pytest.raises(NotInitialized):
        MerkleAccumulator(hasher).insert(9, 123)


def test_depth_one_tree(hasher):
    acc = MerkleAccumulator(hasher)
    acc.initialize(1, 1)
    a, b = 11, 22

    assert acc.insert(1, a) == 0
    assert acc.current_root(1) == hasher.hash2(a, zero_leaf())

    assert acc.insert(1, b) == 1
    assert acc.current_root(1) == hasher.hash2(a, b)

    root = acc.current_root(1)
    tree_before = acc.snapshot_tree(1)
    with pytest.raises(TreeFull):
        acc.insert(1, 33)
    assert acc.trees[1] == tree_before
    assert acc.current_root(1) == root


def test_root_matches_full_tree_rebuild(hasher):
    acc = MerkleAccumulator(hasher)
    acc.initialize(7, 4)
    leaves = [100 + i * 7 for i in range(11)]
    for n, leaf in enumerate(leaves, start=1):
        acc.insert(7, leaf)
        expected = build_witness(hasher, 4, leaves[:n], 0).root
        assert acc.current_root(7) == expected


def test_roots_are_independent_of_other_trees(hasher):
    acc = MerkleAccumulator(hasher)
    acc.initialize(1, 3)
    acc.initialize(2, 3)
    acc.insert(1, 5)
    acc.insert(2, 6)
    acc.insert(1, 7)

    other = MerkleAccumulator(hasher)
    other.initialize(1, 3)
    other.insert(1, 5)
    other.insert(1, 7)
    assert acc.current_root(1) == other.current_root(1)


def test_zero_root_never_known(hasher):
    acc = MerkleAccumulator(hasher)
    acc.initialize(1, 3)
    assert not acc.is_known_root(1, 0)


def test_unknown_tree_knows_no_roots(hasher):
    assert not MerkleAccumulator(hasher).is_known_root(1, 12345)


def test_root_history_window(hasher):
    acc = MerkleAccumulator(hasher)
    acc.initialize(1, 6)
    empty_root = acc.current_root(1)
    roots = []
    for i in range(ROOT_HISTORY_SIZE):
        acc.insert(1, 500 + i)
        roots.append(acc.current_root(1))

    # 30 inserts: the empty root's slot has been reused.
    assert not acc.is_known_root(1, empty_root)
    assert all(acc.is_known_root(1, r) for r in roots)

    acc.insert(1, 999)
    assert not acc.is_known_root(1, roots[0])
    assert all(acc.is_known_root(1, r) for r in roots[1:])
    assert acc.is_known_root(1, acc.current_root(1))


def test_history_before_wraparound_includes_empty_root(hasher):
    acc = MerkleAccumulator(hasher)
    acc.initialize(1, 3)
    empty_root = acc.current_root(1)
    acc.insert(1, 1)
    acc.insert(1, 2)
    assert acc.is_known_root(1, empty_root)
    assert not acc.is_known_root(1, 424242)


def test_tree_snapshot_is_detached_and_restorable(hasher):
    acc = MerkleAccumulator(hasher)
    acc.initialize(1, 3)
    acc.insert(1, 5)
    saved = acc.snapshot_tree(1)
    root = acc.current_root(1)

    acc.insert(1, 6)
    assert saved.next_leaf_index == 1
    acc.restore_tree(1, saved)
    assert acc.current_root(1) == root

    assert acc.snapshot_tree(2) is None
    acc.restore_tree(1, None)
    assert 1 not in acc.trees
