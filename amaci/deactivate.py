"""
Deactivation Subsystem
======================
Voter-side key rotation inputs and the coordinator-side helpers that back
deactivate message processing.

A processed deactivate request leaves a leaf [c1, c2, H(sharedKey)] in the
deactivate tree. The ElGamal pair encrypts a point whose x parity is odd when
the request was rejected. A voter later finds their leaf by the shared-key
hash, rerandomizes the pair and spends a nullifier to attach it to a fresh
state leaf.

The add-new-key witness (old key, leaf position, rerandomization value) never
leaves the voter. It goes to a proving backend, and the coordinator only sees
the public request: deactivate root, nullifier, d1, d2 and an opaque proof.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from babyjub.curve import Point, in_curve, mul_point_escalar
from babyjub.elgamal import ElGamalCiphertext, encrypt_odevity, rerandomize
from babyjub.keys import Keypair, gen_ecdh_shared_key, gen_random_babyjub_value
from fieldmath.input_hash import compute_input_hash
from fieldmath.poseidon import poseidon
from merkle.quinary_tree import (MalformedPathError, QuinaryTree, TreeIndexError, path_index_for,
                                 verify_inclusion)

from .state import DeactivateLeaf

logger = logging.getLogger(__name__)

# Domain separator for add-new-key nullifiers
NULLIFIER_DOMAIN = 1444992409218394441042

# Salt for the coordinator's per-slot deterministic encryption randomness
DEACTIVATE_RANDOM_SALT = 20040


def compute_nullifier(formatted_priv_key: int) -> int:
    return poseidon([formatted_priv_key, NULLIFIER_DOMAIN])


def deactivate_commitment(active_state_root: int, deactivate_root: int) -> int:
    return poseidon([active_state_root, deactivate_root])


def shared_key_hash(priv_key: int, pub_key: Sequence[int]) -> int:
    return poseidon(list(gen_ecdh_shared_key(priv_key, pub_key)))


def build_deactivate_leaf(is_odd: bool, coord_keypair: Keypair, voter_pub_key: Sequence[int],
                          random_val: Optional[int] = None) -> DeactivateLeaf:
    """Encrypt the parity flag and bind it to the voter through ECDH"""
    ciphertext = encrypt_odevity(is_odd, coord_keypair.pub_key, random_val)
    return DeactivateLeaf(
        c1=ciphertext.c1,
        c2=ciphertext.c2,
        shared_key_hash=poseidon(list(coord_keypair.shared_key(voter_pub_key))),
    )


def _leaf_hashes(deactivates: Sequence[Optional[DeactivateLeaf]]) -> List[int]:
    # Slots left empty by the coordinator stay at the zero leaf
    return [leaf.hash() if leaf is not None else 0 for leaf in deactivates]


def build_deactivate_tree(depth: int, deactivates: Sequence[Optional[DeactivateLeaf]]) -> QuinaryTree:
    tree = QuinaryTree(depth, 0)
    tree.init_leaves(_leaf_hashes(deactivates))
    return tree


# ============================================================================
# RESULTS
# ============================================================================


@dataclass
class DeactivateBatchResult:
    """Witness and public values for one deactivate batch"""
    input_hash: int
    batch_start_idx: int
    batch_end_idx: int
    batch_start_hash: int
    batch_end_hash: int
    msgs: List[List[int]]
    enc_pub_keys: List[Point]
    coord_pub_key: Point
    coord_priv_key: int
    new_active_state: List[int]
    current_active_state_root: int
    current_deactivate_root: int
    current_deactivate_commitment: int
    new_deactivate_root: int
    new_deactivate_commitment: int
    sub_state_tree_length: int
    sub_state_root: int
    current_state_leaves: List[List[int]] = field(default_factory=list)
    current_state_leaves_path_elements: List[List[List[int]]] = field(default_factory=list)
    active_state_leaves: List[int] = field(default_factory=list)
    active_state_leaves_path_elements: List[List[List[int]]] = field(default_factory=list)
    deactivate_leaves_path_elements: List[List[List[int]]] = field(default_factory=list)
    c1: List[Point] = field(default_factory=list)
    c2: List[Point] = field(default_factory=list)
    new_deactivates: List[DeactivateLeaf] = field(default_factory=list)
    verdicts: List[Optional[str]] = field(default_factory=list)


@dataclass
class AddKeyWitness:
    """Private add-new-key witness; only the voter and their prover see it"""
    input_hash: int
    coord_pub_key: Point
    deactivate_root: int
    deactivate_index: int
    deactivate_leaf: int
    c1: Point
    c2: Point
    random_val: int
    d1: Point
    d2: Point
    path_elements: List[List[int]]
    nullifier: int
    old_private_key: int

    @property
    def d(self) -> List[int]:
        return [self.d1[0], self.d1[1], self.d2[0], self.d2[1]]


@dataclass(frozen=True)
class AddKeyProof:
    """Opaque proof that some witness satisfies the add-new-key relations"""
    input_hash: int
    tag: int


@dataclass
class AddKeyRequest:
    """Public values a voter hands the coordinator to claim a new state leaf"""
    deactivate_root: int
    nullifier: int
    d1: Point
    d2: Point
    proof: Optional[AddKeyProof]

    @property
    def d(self) -> List[int]:
        return [self.d1[0], self.d1[1], self.d2[0], self.d2[1]]

    def input_hash(self, coord_pub_key: Sequence[int]) -> int:
        return add_key_input_hash(self.deactivate_root, coord_pub_key, self.nullifier, self.d1, self.d2)


@dataclass
class PreDeactivateResult:
    """Pre-registration deactivate tree published before the round opens"""
    root: int
    leaves: List[DeactivateLeaf]
    tree: QuinaryTree


def add_key_input_hash(deactivate_root: int, coord_pub_key: Sequence[int], nullifier: int,
                       d1: Sequence[int], d2: Sequence[int]) -> int:
    return compute_input_hash([
        deactivate_root,
        poseidon(list(coord_pub_key)),
        nullifier,
        d1[0],
        d1[1],
        d2[0],
        d2[1],
    ])


# ============================================================================
# VOTER SIDE
# ============================================================================


def gen_add_key_witness(depth: int, coord_pub_key: Sequence[int], old_keypair: Keypair,
                        deactivates: Sequence[Optional[DeactivateLeaf]],
                        random_val: Optional[int] = None) -> Optional[AddKeyWitness]:
    """Build the add-new-key witness for old_keypair, or None if it has no deactivate leaf

    deactivates is the published deactivate tree content in slot order; None
    marks a slot that was left empty.
    """
    own_hash = poseidon(list(old_keypair.shared_key(coord_pub_key)))
    deactivate_idx = next(
        (i for i, leaf in enumerate(deactivates)
         if leaf is not None and leaf.shared_key_hash == own_hash),
        -1)
    if deactivate_idx < 0:
        logger.debug("No deactivate leaf matches this key")
        return None

    leaf = deactivates[deactivate_idx]
    if random_val is None:
        random_val = gen_random_babyjub_value()
    rerandomized = rerandomize(coord_pub_key, leaf.ciphertext, random_val)

    nullifier = compute_nullifier(old_keypair.formatted_priv_key)
    tree = build_deactivate_tree(depth, deactivates)

    coord_pub_key = (coord_pub_key[0], coord_pub_key[1])
    return AddKeyWitness(
        input_hash=add_key_input_hash(tree.root, coord_pub_key, nullifier,
                                      rerandomized.c1, rerandomized.c2),
        coord_pub_key=coord_pub_key,
        deactivate_root=tree.root,
        deactivate_index=deactivate_idx,
        deactivate_leaf=leaf.hash(),
        c1=leaf.c1,
        c2=leaf.c2,
        random_val=random_val,
        d1=rerandomized.c1,
        d2=rerandomized.c2,
        path_elements=tree.path_element_of(deactivate_idx),
        nullifier=nullifier,
        old_private_key=old_keypair.formatted_priv_key,
    )


# ============================================================================
# PROVING BACKEND
# ============================================================================


def verify_add_key_witness(witness: AddKeyWitness, coord_pub_key: Sequence[int]) -> bool:
    """Recompute every relation an add-new-key proof attests to

    Root membership and nullifier freshness are the coordinator's concern.
    """
    inp = witness
    if tuple(inp.coord_pub_key) != tuple(coord_pub_key):
        return False
    for point in (inp.c1, inp.c2, inp.d1, inp.d2):
        if not in_curve(point):
            return False

    shared_hash = poseidon(list(
        mul_point_escalar(coord_pub_key, inp.old_private_key)))
    leaf = DeactivateLeaf(c1=inp.c1, c2=inp.c2, shared_key_hash=shared_hash)
    if leaf.hash() != inp.deactivate_leaf:
        logger.debug("Deactivate leaf is not bound to the submitted key")
        return False

    try:
        included = verify_inclusion(
            inp.deactivate_leaf, inp.path_elements,
            path_index_for(inp.deactivate_index, len(inp.path_elements)),
            inp.deactivate_root)
    except (MalformedPathError, TreeIndexError) as e:
        logger.debug(f"Malformed deactivate path: {e}")
        return False
    if not included:
        return False

    expected = rerandomize(coord_pub_key, ElGamalCiphertext(c1=inp.c1, c2=inp.c2), inp.random_val)
    if (expected.c1, expected.c2) != (tuple(inp.d1), tuple(inp.d2)):
        return False

    if compute_nullifier(inp.old_private_key) != inp.nullifier:
        return False

    return inp.input_hash == add_key_input_hash(
        inp.deactivate_root, coord_pub_key, inp.nullifier, inp.d1, inp.d2)


class WitnessCheckingBackend:
    """In-process stand-in for the add-new-key prover and verifier

    prove() runs next to the voter. It evaluates the relations directly on the
    witness and, when they hold, issues a proof tagged with a key only this
    backend knows. verify() sees nothing but the proof and the public input
    hash, so a circuit backend exposing the same two methods drops in as is.
    """

    def __init__(self, coord_pub_key: Sequence[int], secret: Optional[int] = None):
        self.coord_pub_key = (coord_pub_key[0], coord_pub_key[1])
        self._secret = secret if secret is not None else gen_random_babyjub_value()

    def _tag(self, input_hash: int) -> int:
        return poseidon([self._secret, input_hash])

    def prove(self, witness: AddKeyWitness, input_hash: int) -> Optional[AddKeyProof]:
        """Proof for (witness, input_hash), or None when the witness is rejected"""
        if witness.input_hash != input_hash:
            return None
        if not verify_add_key_witness(witness, self.coord_pub_key):
            logger.debug("Add-new-key witness rejected by the prover")
            return None
        return AddKeyProof(input_hash=input_hash, tag=self._tag(input_hash))

    def verify(self, proof: Optional[AddKeyProof], input_hash: int) -> bool:
        if proof is None:
            return False
        return proof.input_hash == input_hash and proof.tag == self._tag(input_hash)


def gen_add_key_request(witness: AddKeyWitness, backend: WitnessCheckingBackend) -> Optional[AddKeyRequest]:
    """Prove the witness and keep only the values the coordinator may see"""
    proof = backend.prove(witness, witness.input_hash)
    if proof is None:
        return None
    return AddKeyRequest(
        deactivate_root=witness.deactivate_root,
        nullifier=witness.nullifier,
        d1=witness.d1,
        d2=witness.d2,
        proof=proof,
    )


# ============================================================================
# COORDINATOR SIDE
# ============================================================================


def gen_account_deactivate_root(coord_keypair: Keypair, accounts: Sequence[Sequence[int]],
                                depth: int) -> PreDeactivateResult:
    """Deactivate tree for pre-registered accounts, every leaf active (even)"""
    leaves = [build_deactivate_leaf(False, coord_keypair, account) for account in accounts]
    tree = build_deactivate_tree(depth, leaves)
    logger.info(f"Pre-deactivate tree built for {len(leaves)} accounts, root {tree.root}")
    return PreDeactivateResult(root=tree.root, leaves=leaves, tree=tree)
