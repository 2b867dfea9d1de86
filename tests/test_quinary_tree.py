"""
Quinary Poseidon Merkle tree
"""

import pytest

from fieldmath.poseidon import poseidon
from merkle import (QuinaryTree, MalformedPathError, TreeIndexError, compute_zero_hashes,
                    extend_tree_root, num_hashers, path_index_for, root_from_path,
                    verify_inclusion)


class TestHelpers:

    @pytest.mark.parametrize("depth,expected", [(1, 1), (2, 6), (3, 31), (4, 156)])
    def test_num_hashers(self, depth, expected):
        assert num_hashers(depth) == expected

    def test_zero_hashes(self):
        zeros = compute_zero_hashes(2)
        assert zeros[0] == 0
        assert zeros[1] == poseidon([0] * 5)
        assert zeros[2] == poseidon([zeros[1]] * 5)

    def test_path_index_for(self):
        assert path_index_for(7, 2) == [2, 1]
        assert path_index_for(24, 2) == [4, 4]
        with pytest.raises(TreeIndexError):
            path_index_for(25, 2)


class TestQuinaryTree:

    def test_empty_root(self):
        for depth in (1, 2, 3):
            assert QuinaryTree(depth).root == compute_zero_hashes(depth)[depth]

    def test_custom_zero_leaf(self):
        zero = 12345
        tree = QuinaryTree(2, zero)
        assert tree.leaf(3) == zero
        assert tree.root == compute_zero_hashes(2, zero)[2]

    def test_invalid_depth(self):
        with pytest.raises(ValueError):
            QuinaryTree(0)

    def test_single_level_root(self):
        tree = QuinaryTree(1)
        tree.update_leaf(2, 9)
        assert tree.root == poseidon([0, 0, 9, 0, 0])

    def test_inclusion_after_update(self):
        tree = QuinaryTree(2)
        tree.update_leaf(7, 42)
        path = tree.path_element_of(7)
        assert tree.path_index_of(7) == [2, 1]
        assert tree.verify_inclusion(7, 42, path)
        assert verify_inclusion(42, path, [2, 1], tree.root)

    def test_tampered_path_fails(self):
        tree = QuinaryTree(2)
        tree.update_leaf(7, 42)
        path = tree.path_element_of(7)
        path[0][0] = 1
        assert not tree.verify_inclusion(7, 42, path)
        assert not tree.verify_inclusion(7, 43, tree.path_element_of(7))

    def test_wrong_root_fails(self):
        tree = QuinaryTree(2)
        tree.update_leaf(7, 42)
        path = tree.path_element_of(7)
        assert verify_inclusion(42, path, [2, 1], tree.root)
        assert not verify_inclusion(42, path, [2, 1], tree.root + 1)

    def test_malformed_path(self):
        tree = QuinaryTree(2)
        path = tree.path_element_of(0)
        with pytest.raises(MalformedPathError):
            tree.verify_inclusion(0, 0, path[:1])
        with pytest.raises(MalformedPathError):
            root_from_path(0, [[0, 0, 0]], [0])
        with pytest.raises(MalformedPathError):
            root_from_path(0, [[0, 0, 0, 0]], [5])

    def test_index_out_of_range(self):
        tree = QuinaryTree(2)
        with pytest.raises(TreeIndexError):
            tree.update_leaf(25, 1)
        with pytest.raises(TreeIndexError):
            tree.leaf(-1)

    def test_value_outside_field(self):
        from fieldmath.field import SNARK_FIELD_SIZE
        with pytest.raises(ValueError):
            QuinaryTree(1).update_leaf(0, SNARK_FIELD_SIZE)

    def test_init_leaves_matches_sequential_updates(self):
        values = [3, 1, 4, 1, 5, 9, 2]
        bulk = QuinaryTree(2)
        bulk.init_leaves(values)
        sequential = QuinaryTree(2)
        for i, value in enumerate(values):
            sequential.update_leaf(i, value)
        assert bulk.root == sequential.root
        assert bulk.leaves()[:7] == values

    def test_init_leaves_overflow(self):
        with pytest.raises(TreeIndexError):
            QuinaryTree(1).init_leaves([1] * 6)

    def test_extend_tree_root(self):
        small = QuinaryTree(1)
        small.init_leaves([1, 2, 3])
        big = QuinaryTree(3)
        big.init_leaves([1, 2, 3])
        zeros = compute_zero_hashes(3)
        assert extend_tree_root(small.root, 1, 3, zeros) == big.root

    def test_sub_tree(self):
        tree = QuinaryTree(2)
        tree.init_leaves([5, 6, 7, 8, 9, 10])
        sub = tree.sub_tree(3)
        expected = QuinaryTree(2)
        expected.init_leaves([5, 6, 7])
        assert sub.root == expected.root
        # the original tree is left untouched
        assert tree.leaf(5) == 10

    def test_copy_is_independent(self):
        tree = QuinaryTree(2)
        clone = tree.copy()
        clone.update_leaf(0, 1)
        assert tree.root != clone.root
        assert len(tree) == 25
