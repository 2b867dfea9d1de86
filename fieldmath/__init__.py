"""
Field math for the AMACI coordinator: BN254 arithmetic, Poseidon hashing,
Poseidon encryption, bit packing and batch input hashing.
"""

from .field import (
    SNARK_FIELD_SIZE,
    GF,
    MAX_VOTE_WEIGHT,
    UINT32,
    UINT96,
    to_field,
    is_field_element,
    field_add,
    field_sub,
    field_mul,
    field_neg,
    field_inverse,
    field_div,
    field_sqrt,
    select,
    select_point,
    bool_to_field,
)
from .poseidon import (
    CircomPoseidon,
    PoseidonParams,
    get_params,
    poseidon,
    poseidon_perm,
    hash_left_right,
    hash_one,
    hash_n,
    hash2,
    hash3,
    hash4,
    hash5,
    hash10,
    hash12,
)
from .cipher import DecryptionError, poseidon_encrypt, poseidon_decrypt
from .packing import pack_words, unpack_words, pack_process_vals, pack_tally_vals
from .input_hash import compute_input_hash, sha256_hash, fold_chunks, digest_chunks

__version__ = "1.0.0"

__all__ = [
    'SNARK_FIELD_SIZE',
    'GF',
    'MAX_VOTE_WEIGHT',
    'UINT32',
    'UINT96',
    'to_field',
    'is_field_element',
    'field_add',
    'field_sub',
    'field_mul',
    'field_neg',
    'field_inverse',
    'field_div',
    'field_sqrt',
    'select',
    'select_point',
    'bool_to_field',

    'CircomPoseidon',
    'PoseidonParams',
    'get_params',
    'poseidon',
    'poseidon_perm',
    'hash_left_right',
    'hash_one',
    'hash_n',
    'hash2',
    'hash3',
    'hash4',
    'hash5',
    'hash10',
    'hash12',

    'DecryptionError',
    'poseidon_encrypt',
    'poseidon_decrypt',

    'pack_words',
    'unpack_words',
    'pack_process_vals',
    'pack_tally_vals',

    'compute_input_hash',
    'sha256_hash',
    'fold_chunks',
    'digest_chunks',
]
