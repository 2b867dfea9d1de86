"""
State leaves and deactivate leaves
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from babyjub.curve import Point
from babyjub.elgamal import ElGamalCiphertext
from fieldmath.poseidon import hash5, poseidon
from merkle.quinary_tree import QuinaryTree

logger = logging.getLogger(__name__)

# Anonymity layer constant; the decoded x-coordinate is used directly
X_INCREMENT = 0


def state_tree_zero_leaf() -> int:
    """Hash of an empty anonymous leaf: H(H5(0...), H5(0...))"""
    zero_hash5 = hash5([0, 0, 0, 0, 0])
    return poseidon([zero_hash5, zero_hash5])


@dataclass
class StateLeaf:
    """One voter's slot in the state tree"""
    pub_key: Point
    balance: int
    vo_tree: QuinaryTree
    nonce: int = 0
    voted: bool = False
    d1: Point = (0, 0)
    d2: Point = (0, 0)

    @classmethod
    def empty(cls, vote_option_tree_depth: int, zero_hashes: Optional[List[int]] = None) -> "StateLeaf":
        return cls(
            pub_key=(0, 0),
            balance=0,
            vo_tree=QuinaryTree(vote_option_tree_depth, 0, zero_hashes),
        )

    @property
    def vo_root(self) -> int:
        # An untouched ballot contributes 0, not the empty-tree root
        return self.vo_tree.root if self.voted else 0

    @property
    def ciphertext(self) -> ElGamalCiphertext:
        return ElGamalCiphertext(c1=self.d1, c2=self.d2, x_increment=X_INCREMENT)

    def hash_layer1(self) -> int:
        return poseidon([self.pub_key[0], self.pub_key[1], self.balance, self.vo_root, self.nonce])

    def hash_layer2(self) -> int:
        return poseidon([self.d1[0], self.d1[1], self.d2[0], self.d2[1], X_INCREMENT])

    def hash(self) -> int:
        """Anonymous two-layer leaf hash"""
        return poseidon([self.hash_layer1(), self.hash_layer2()])

    def as_circuit_input(self) -> List[int]:
        return [
            self.pub_key[0],
            self.pub_key[1],
            self.balance,
            self.vo_root,
            self.nonce,
            self.d1[0],
            self.d1[1],
            self.d2[0],
            self.d2[1],
            X_INCREMENT,
        ]

    def copy(self) -> "StateLeaf":
        return StateLeaf(
            pub_key=self.pub_key,
            balance=self.balance,
            vo_tree=self.vo_tree.copy(),
            nonce=self.nonce,
            voted=self.voted,
            d1=self.d1,
            d2=self.d2,
        )


@dataclass(frozen=True)
class DeactivateLeaf:
    """ElGamal parity ciphertext plus the voter/coordinator shared-key hash"""
    c1: Point
    c2: Point
    shared_key_hash: int

    def as_list(self) -> List[int]:
        return [self.c1[0], self.c1[1], self.c2[0], self.c2[1], self.shared_key_hash]

    def hash(self) -> int:
        return poseidon(self.as_list())

    @property
    def ciphertext(self) -> ElGamalCiphertext:
        return ElGamalCiphertext(c1=self.c1, c2=self.c2)

    @classmethod
    def from_list(cls, values: Sequence[int]) -> "DeactivateLeaf":
        if len(values) != 5:
            raise ValueError("A deactivate leaf has exactly 5 elements")
        return cls(c1=(values[0], values[1]), c2=(values[2], values[3]), shared_key_hash=values[4])
