"""
EdDSA over Baby Jubjub with Poseidon as the challenge hash.

Key derivation and nonce generation hash the private key with BLAKE2b-512.
A signature over message m is (R8, S) with
    R8 = r * Base8,  hm = Poseidon5(R8, A, m),  S = r + hm * s  (mod l)
and verifies iff S < l and S * Base8 == R8 + (8 * hm) * A.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

from cryptography.hazmat.primitives import hashes

from fieldmath.field import SNARK_FIELD_SIZE
from fieldmath.poseidon import poseidon

from .curve import BASE8, SUBGROUP_ORDER, Point, add_point, in_curve, mul_point_escalar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Signature:
    r8: Point
    s: int

    def as_list(self):
        return [self.r8[0], self.r8[1], self.s]


def blake_hash(data: bytes) -> bytes:
    """64-byte BLAKE2b digest"""
    digest = hashes.Hash(hashes.BLAKE2b(64))
    digest.update(data)
    return digest.finalize()


def int_to_buffer(value: int) -> bytes:
    """Minimal big-endian encoding (at least one byte)"""
    if value < 0:
        raise ValueError("Private key must be non-negative")
    return value.to_bytes(max(1, (value.bit_length() + 7) // 8), "big")


def prune_buffer(buff: bytes) -> bytes:
    pruned = bytearray(buff[:32])
    pruned[0] &= 0xF8
    pruned[31] &= 0x7F
    pruned[31] |= 0x40
    return bytes(pruned)


def _private_key_bytes(private_key) -> bytes:
    if isinstance(private_key, int):
        return int_to_buffer(private_key)
    return bytes(private_key)


def derive_secret_scalar(private_key) -> int:
    """Pruned, shifted scalar used for public keys and ECDH"""
    h = blake_hash(_private_key_bytes(private_key))
    s = int.from_bytes(prune_buffer(h[:32]), "little")
    return (s >> 3) % SUBGROUP_ORDER


def derive_public_key(private_key) -> Point:
    return mul_point_escalar(BASE8, derive_secret_scalar(private_key))


def sign_message(private_key, message: int) -> Signature:
    if not 0 <= message < SNARK_FIELD_SIZE:
        raise ValueError("Message must be a field element")

    h = blake_hash(_private_key_bytes(private_key))
    s = int.from_bytes(prune_buffer(h[:32]), "little")
    public_key = mul_point_escalar(BASE8, s >> 3)

    r_buff = blake_hash(h[32:64] + message.to_bytes(32, "little"))
    r = int.from_bytes(r_buff, "little") % SUBGROUP_ORDER
    r8 = mul_point_escalar(BASE8, r)

    hm = poseidon([r8[0], r8[1], public_key[0], public_key[1], message])
    signature_s = (r + hm * s) % SUBGROUP_ORDER
    return Signature(r8=r8, s=signature_s)


def verify_signature(message: int, signature: Signature, public_key: Sequence[int]) -> bool:
    """Never raises; malformed inputs simply fail verification"""
    try:
        r8 = (int(signature.r8[0]), int(signature.r8[1]))
        pub = (int(public_key[0]), int(public_key[1]))
        s = int(signature.s)
    except (TypeError, ValueError, IndexError, AttributeError):
        return False

    if not in_curve(r8) or not in_curve(pub):
        return False
    if not 0 <= s < SUBGROUP_ORDER:
        return False
    if not 0 <= message < SNARK_FIELD_SIZE:
        return False

    hm = poseidon([r8[0], r8[1], pub[0], pub[1], message])
    left = mul_point_escalar(BASE8, s)
    right = add_point(r8, mul_point_escalar(pub, (hm * 8) % SUBGROUP_ORDER))
    return left == right
