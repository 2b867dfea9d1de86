"""
ElGamal over Baby Jubjub for the deactivation flag.

The flag is carried by the parity of a curve point's x-coordinate: an even
x means the key is active, odd means deactivated. Ciphertexts can be
rerandomized under the coordinator key without changing the decrypted point.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence

from fieldmath.field import field_sub

from .curve import BASE8, Point, add_point, mul_point_escalar, negate_point
from .keys import gen_keypair, gen_random_babyjub_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ElGamalCiphertext:
    c1: Point
    c2: Point
    x_increment: int = 0

    def as_list(self) -> List[int]:
        return [self.c1[0], self.c1[1], self.c2[0], self.c2[1]]

    @classmethod
    def from_list(cls, values: Sequence[int], x_increment: int = 0) -> "ElGamalCiphertext":
        return cls(c1=(values[0], values[1]), c2=(values[2], values[3]), x_increment=x_increment)


def encrypt_odevity(is_odd: bool, pub_key: Sequence[int], random_val: int = None) -> ElGamalCiphertext:
    """Encrypt a point whose x parity equals is_odd

    Candidate points are public keys of random_val, random_val + 1, ... so the
    result is deterministic in random_val.
    """
    if random_val is None:
        random_val = gen_random_babyjub_value()

    i = 0
    point = gen_keypair(random_val + i).pub_key
    while (point[0] % 2 == 1) != is_odd:
        i += 1
        point = gen_keypair(random_val + i).pub_key

    c1 = mul_point_escalar(BASE8, random_val)
    c2 = add_point(point, mul_point_escalar(pub_key, random_val))
    return ElGamalCiphertext(c1=c1, c2=c2)


def decrypt_point(formatted_priv_key: int, ciphertext: ElGamalCiphertext) -> Point:
    shared = mul_point_escalar(ciphertext.c1, formatted_priv_key)
    return add_point(negate_point(shared), ciphertext.c2)


def decrypt(formatted_priv_key: int, ciphertext: ElGamalCiphertext) -> int:
    """Decoded value: x of the recovered point minus the x-increment"""
    point = decrypt_point(formatted_priv_key, ciphertext)
    return field_sub(point[0], ciphertext.x_increment)


def rerandomize(pub_key: Sequence[int], ciphertext: ElGamalCiphertext, random_val: int = None) -> ElGamalCiphertext:
    """(c1 + r*G, c2 + r*pk): same plaintext, unlinkable ciphertext"""
    if random_val is None:
        random_val = gen_random_babyjub_value()
    d1 = add_point(mul_point_escalar(BASE8, random_val), ciphertext.c1)
    d2 = add_point(mul_point_escalar(pub_key, random_val), ciphertext.c2)
    return ElGamalCiphertext(c1=d1, c2=d2, x_increment=ciphertext.x_increment)


# ============================================================================
# ANONYMITY PREDICATES
# ============================================================================


def parity_is_even(value: int) -> bool:
    return value % 2 == 0


def is_active_state(active_state_leaf: int) -> bool:
    """ActiveStateTree leaf 0 means the key was never deactivated"""
    return active_state_leaf == 0


def is_key_active(active_state_leaf: int, formatted_priv_key: int, ciphertext: ElGamalCiphertext) -> bool:
    """Both predicates must hold for a key to be usable"""
    tree_ok = is_active_state(active_state_leaf)
    parity_ok = parity_is_even(decrypt(formatted_priv_key, ciphertext))
    return tree_ok and parity_ok
