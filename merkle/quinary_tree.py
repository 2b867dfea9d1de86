"""
Quinary Incremental Merkle Tree
===============================
Fixed-depth 5-ary Poseidon tree stored as a flat node array (root at 0,
children of node i at 5i+1 .. 5i+5). Used for the state, active-state,
deactivate, vote-option and tally-result trees.
"""

import logging
from typing import List, Optional, Sequence

from fieldmath.field import SNARK_FIELD_SIZE
from fieldmath.poseidon import poseidon

logger = logging.getLogger(__name__)

ARITY = 5


# ============================================================================
# EXCEPTIONS
# ============================================================================


class TreeError(Exception):
    """Base exception for Merkle tree misuse"""
    pass


class TreeIndexError(TreeError):
    """Leaf index outside [0, 5^depth)"""
    pass


class MalformedPathError(TreeError):
    """Inclusion path with the wrong shape for the tree"""
    pass


# ============================================================================
# HELPERS
# ============================================================================


def num_hashers(depth: int) -> int:
    """Internal nodes of a depth-D tree: sum of 5^i for i < D"""
    return sum(ARITY ** i for i in range(depth))


def compute_zero_hashes(depth: int, zero: int = 0) -> List[int]:
    """zeros[i] is the root of an empty subtree of height i"""
    zeros = [zero]
    for _ in range(depth):
        zeros.append(poseidon([zeros[-1]] * ARITY))
    return zeros


def extend_tree_root(root: int, from_depth: int, to_depth: int, zero_hashes: Sequence[int]) -> int:
    """Root of a deeper tree whose left-most subtree is the given tree"""
    if to_depth < from_depth:
        raise ValueError("Cannot extend a tree to a smaller depth")
    if len(zero_hashes) < to_depth:
        raise ValueError(f"Need zero hashes up to level {to_depth - 1}")
    current = root
    for level in range(from_depth, to_depth):
        current = poseidon([current] + [zero_hashes[level]] * (ARITY - 1))
    return current


def path_index_for(leaf_idx: int, depth: int) -> List[int]:
    """Base-5 digits of a leaf position, leaf level first"""
    digits = []
    for _ in range(depth):
        digits.append(leaf_idx % ARITY)
        leaf_idx //= ARITY
    if leaf_idx:
        raise TreeIndexError(f"Leaf index does not fit a depth-{depth} tree")
    return digits


def _check_path_shape(path_elements: Sequence[Sequence[int]], path_index: Sequence[int]):
    if len(path_elements) != len(path_index):
        raise MalformedPathError(
            f"Path has {len(path_elements)} levels of siblings but {len(path_index)} indices")
    for level, (siblings, digit) in enumerate(zip(path_elements, path_index)):
        if len(siblings) != ARITY - 1:
            raise MalformedPathError(
                f"Level {level} carries {len(siblings)} siblings, expected {ARITY - 1}")
        if not 0 <= digit < ARITY:
            raise MalformedPathError(f"Level {level} index {digit} is not a base-5 digit")


def root_from_path(leaf: int, path_elements: Sequence[Sequence[int]], path_index: Sequence[int]) -> int:
    _check_path_shape(path_elements, path_index)
    current = leaf
    for siblings, digit in zip(path_elements, path_index):
        children = list(siblings[:digit]) + [current] + list(siblings[digit:])
        current = poseidon(children)
    return current


def verify_inclusion(leaf: int, path_elements: Sequence[Sequence[int]],
                     path_index: Sequence[int], root: int) -> bool:
    """Recompute the root bottom-up; malformed paths raise, wrong data returns False"""
    return root_from_path(leaf, path_elements, path_index) == root


# ============================================================================
# TREE
# ============================================================================


class QuinaryTree:
    """5-ary Merkle tree with Poseidon-5 internal nodes"""

    def __init__(self, depth: int, zero: int = 0, zero_hashes: Optional[List[int]] = None):
        if depth < 1:
            raise ValueError("Tree depth must be at least 1")
        if not 0 <= zero < SNARK_FIELD_SIZE:
            raise ValueError(f"Zero leaf {zero} outside field bounds")

        self.depth = depth
        self.leaves_count = ARITY ** depth
        self.leaves_idx_0 = (ARITY ** depth - 1) // (ARITY - 1)
        self.nodes_count = (ARITY ** (depth + 1) - 1) // (ARITY - 1)

        if zero_hashes is not None and len(zero_hashes) > depth and zero_hashes[0] == zero:
            self.zeros = list(zero_hashes[:depth + 1])
        else:
            self.zeros = compute_zero_hashes(depth, zero)

        self.nodes: List[int] = [0] * self.nodes_count
        self._init_nodes()

    def _init_nodes(self):
        # Level l starts at (5^l - 1) / 4 and holds 5^l nodes of height depth - l
        for level in range(self.depth + 1):
            start = (ARITY ** level - 1) // (ARITY - 1)
            fill = self.zeros[self.depth - level]
            for i in range(start, start + ARITY ** level):
                self.nodes[i] = fill

    @property
    def root(self) -> int:
        return self.nodes[0]

    @property
    def zero(self) -> int:
        return self.zeros[0]

    def _check_index(self, leaf_idx: int):
        if not isinstance(leaf_idx, int) or leaf_idx < 0 or leaf_idx >= self.leaves_count:
            raise TreeIndexError(
                f"Leaf index {leaf_idx} out of bounds for depth {self.depth}")

    def leaf(self, leaf_idx: int) -> int:
        self._check_index(leaf_idx)
        return self.nodes[self.leaves_idx_0 + leaf_idx]

    def leaves(self) -> List[int]:
        return self.nodes[self.leaves_idx_0:]

    def update_leaf(self, leaf_idx: int, value: int) -> int:
        """Set a leaf and rehash its depth ancestors; returns the new root"""
        self._check_index(leaf_idx)
        if not 0 <= value < SNARK_FIELD_SIZE:
            raise ValueError(f"Value {value} outside field bounds")

        node_idx = self.leaves_idx_0 + leaf_idx
        self.nodes[node_idx] = value
        self._update(node_idx)
        return self.root

    def _update(self, node_idx: int):
        idx = node_idx
        while idx > 0:
            parent_idx = (idx - 1) // ARITY
            children_idx_0 = parent_idx * ARITY + 1
            self.nodes[parent_idx] = poseidon(self.nodes[children_idx_0:children_idx_0 + ARITY])
            idx = parent_idx

    def init_leaves(self, leaves: Sequence[int]):
        """Bulk-load leaves from index 0 and rebuild the touched ancestors once"""
        if len(leaves) > self.leaves_count:
            raise TreeIndexError(
                f"{len(leaves)} leaves do not fit a depth-{self.depth} tree")
        for i, value in enumerate(leaves):
            if not 0 <= value < SNARK_FIELD_SIZE:
                raise ValueError(f"Value {value} outside field bounds")
            self.nodes[self.leaves_idx_0 + i] = value
        self._rebuild(len(leaves))

    def _rebuild(self, touched: int):
        # Recompute parents of the first `touched` leaves, level by level
        level_start = self.leaves_idx_0
        count = touched
        while level_start > 0 and count > 0:
            parent_start = (level_start - 1) // ARITY
            parents = (count + ARITY - 1) // ARITY
            for p in range(parent_start, parent_start + parents):
                first = p * ARITY + 1
                self.nodes[p] = poseidon(self.nodes[first:first + ARITY])
            level_start = parent_start
            count = parents

    def path_index_of(self, leaf_idx: int) -> List[int]:
        """Base-5 digits of the leaf position, leaf level first"""
        self._check_index(leaf_idx)
        idx = self.leaves_idx_0 + leaf_idx
        path_index = []
        for _ in range(self.depth):
            parent_idx = (idx - 1) // ARITY
            children_idx_0 = parent_idx * ARITY + 1
            path_index.append(idx - children_idx_0)
            idx = parent_idx
        return path_index

    def path_element_of(self, leaf_idx: int) -> List[List[int]]:
        """The four siblings at every level, leaf level first"""
        self._check_index(leaf_idx)
        idx = self.leaves_idx_0 + leaf_idx
        path_elements = []
        for _ in range(self.depth):
            parent_idx = (idx - 1) // ARITY
            children_idx_0 = parent_idx * ARITY + 1
            path_elements.append([
                self.nodes[i]
                for i in range(children_idx_0, children_idx_0 + ARITY)
                if i != idx
            ])
            idx = parent_idx
        return path_elements

    def verify_inclusion(self, leaf_idx: int, leaf: int, path_elements: Sequence[Sequence[int]],
                         root: Optional[int] = None) -> bool:
        if len(path_elements) != self.depth:
            raise MalformedPathError(
                f"Path of length {len(path_elements)} for a depth-{self.depth} tree")
        return verify_inclusion(leaf, path_elements, self.path_index_of(leaf_idx),
                                self.root if root is None else root)

    def sub_tree(self, length: int) -> "QuinaryTree":
        """Copy of this tree with every leaf from `length` on reset to zero"""
        if length < 0 or length > self.leaves_count:
            raise TreeIndexError(f"Sub tree length {length} out of bounds")
        tree = self.copy()
        if length == self.leaves_count:
            return tree
        for i in range(self.leaves_idx_0 + length, self.nodes_count):
            tree.nodes[i] = self.zeros[0]
        for i in range(self.leaves_idx_0 - 1, -1, -1):
            first = i * ARITY + 1
            tree.nodes[i] = poseidon(tree.nodes[first:first + ARITY])
        return tree

    def copy(self) -> "QuinaryTree":
        tree = QuinaryTree.__new__(QuinaryTree)
        tree.depth = self.depth
        tree.leaves_count = self.leaves_count
        tree.leaves_idx_0 = self.leaves_idx_0
        tree.nodes_count = self.nodes_count
        tree.zeros = list(self.zeros)
        tree.nodes = list(self.nodes)
        return tree

    def __len__(self) -> int:
        return self.leaves_count

    def __repr__(self) -> str:
        return f"QuinaryTree(depth={self.depth}, root={self.root})"
