"""
Baby Jubjub primitives: curve arithmetic, EdDSA-Poseidon signatures,
key derivation, ECDH and parity-encoded ElGamal.
"""

from .curve import (
    A,
    D,
    BASE8,
    GENERATOR,
    IDENTITY,
    SUBGROUP_ORDER,
    Point,
    add_point,
    sub_point,
    negate_point,
    mul_point_escalar,
    in_curve,
    in_subgroup,
    pack_point,
    unpack_point,
)
from .eddsa import Signature, sign_message, verify_signature, derive_public_key, derive_secret_scalar
from .keys import (
    Keypair,
    gen_keypair,
    gen_priv_key,
    gen_pub_key,
    gen_random_salt,
    gen_random_babyjub_value,
    format_priv_key_for_babyjub,
    gen_ecdh_shared_key,
    gen_static_random_key,
)
from .elgamal import (
    ElGamalCiphertext,
    encrypt_odevity,
    decrypt,
    decrypt_point,
    rerandomize,
    parity_is_even,
    is_active_state,
    is_key_active,
)

__version__ = "1.0.0"

__all__ = [
    # Curve
    'A',
    'D',
    'BASE8',
    'GENERATOR',
    'IDENTITY',
    'SUBGROUP_ORDER',
    'Point',
    'add_point',
    'sub_point',
    'negate_point',
    'mul_point_escalar',
    'in_curve',
    'in_subgroup',
    'pack_point',
    'unpack_point',

    # Signatures
    'Signature',
    'sign_message',
    'verify_signature',
    'derive_public_key',
    'derive_secret_scalar',

    # Keys
    'Keypair',
    'gen_keypair',
    'gen_priv_key',
    'gen_pub_key',
    'gen_random_salt',
    'gen_random_babyjub_value',
    'format_priv_key_for_babyjub',
    'gen_ecdh_shared_key',
    'gen_static_random_key',

    # ElGamal
    'ElGamalCiphertext',
    'encrypt_odevity',
    'decrypt',
    'decrypt_point',
    'rerandomize',
    'parity_is_even',
    'is_active_state',
    'is_key_active',
]
