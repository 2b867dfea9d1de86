"""
Key generation, formatting and ECDH for Baby Jubjub keypairs
"""

import logging
import secrets
from dataclasses import dataclass, field
from typing import Optional, Sequence

from fieldmath.field import SNARK_FIELD_SIZE
from fieldmath.poseidon import poseidon

from .curve import Point, mul_point_escalar
from .eddsa import Signature, derive_public_key, derive_secret_scalar, sign_message

logger = logging.getLogger(__name__)

# Smallest 256-bit value for which (rand mod 2^253) is unbiased
_RANDOM_MIN = 6350874878119819312338956282401532410528162663560392320966563075034087161851
_RANDOM_MODULUS = 1 << 253


def gen_random_babyjub_value() -> int:
    """Uniform value below 2^253, usable as a private key or salt"""
    while True:
        rand = int.from_bytes(secrets.token_bytes(32), "big")
        if rand >= _RANDOM_MIN:
            return rand % _RANDOM_MODULUS


def gen_priv_key() -> int:
    return int.from_bytes(secrets.token_bytes(32), "big")


def gen_random_salt() -> int:
    return gen_random_babyjub_value()


def format_priv_key_for_babyjub(priv_key: int) -> int:
    return derive_secret_scalar(priv_key)


def gen_pub_key(priv_key: int) -> Point:
    return derive_public_key(priv_key)


def gen_ecdh_shared_key(priv_key: int, pub_key: Sequence[int]) -> Point:
    """Shared point pub_key * formatted(priv_key)"""
    return mul_point_escalar(pub_key, format_priv_key_for_babyjub(priv_key))


def gen_static_random_key(priv_key: int, salt: int, index: int) -> int:
    """Deterministic per-slot randomness derived from a private key"""
    return poseidon([priv_key, salt, index])


@dataclass
class Keypair:
    """Private key with its public key and circuit-formatted scalar"""
    priv_key: int
    pub_key: Point = field(default=None)
    formatted_priv_key: int = field(default=None)

    def __post_init__(self):
        if self.pub_key is None:
            self.pub_key = gen_pub_key(self.priv_key)
        if self.formatted_priv_key is None:
            self.formatted_priv_key = format_priv_key_for_babyjub(self.priv_key)

    def sign(self, message: int) -> Signature:
        return sign_message(self.priv_key, message)

    def shared_key(self, pub_key: Sequence[int]) -> Point:
        return gen_ecdh_shared_key(self.priv_key, pub_key)

    def pub_key_hash(self) -> int:
        return poseidon(list(self.pub_key))


def gen_keypair(priv_key: Optional[int] = None) -> Keypair:
    """Keypair from a given seed (reduced mod P) or a fresh random one"""
    if priv_key is not None:
        priv_key = priv_key % SNARK_FIELD_SIZE
    else:
        priv_key = gen_priv_key()
    return Keypair(priv_key=priv_key)
