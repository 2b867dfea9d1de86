"""Quinary Poseidon Merkle trees."""

from .quinary_tree import (
    ARITY,
    QuinaryTree,
    TreeError,
    TreeIndexError,
    MalformedPathError,
    num_hashers,
    path_index_for,
    compute_zero_hashes,
    extend_tree_root,
    root_from_path,
    verify_inclusion,
)

__all__ = [
    'ARITY',
    'QuinaryTree',
    'TreeError',
    'TreeIndexError',
    'MalformedPathError',
    'num_hashers',
    'path_index_for',
    'compute_zero_hashes',
    'extend_tree_root',
    'root_from_path',
    'verify_inclusion',
]
