"""
Poseidon sponge encryption (t = 4) keyed by an ECDH shared point
"""

import logging
from typing import List, Sequence

from .field import SNARK_FIELD_SIZE, field_add, field_sub
from .poseidon import poseidon_perm

logger = logging.getLogger(__name__)

TWO_128 = 1 << 128


class DecryptionError(Exception):
    """Raised when a ciphertext fails authentication or padding checks"""
    pass


def _initial_state(key: Sequence[int], nonce: int, length: int) -> List[int]:
    if not 0 <= nonce < TWO_128:
        raise ValueError("The nonce must be less than 2 ^ 128")
    return [0, key[0] % SNARK_FIELD_SIZE, key[1] % SNARK_FIELD_SIZE,
            field_add(nonce, length * TWO_128)]


def poseidon_encrypt(message: Sequence[int], key: Sequence[int], nonce: int = 0) -> List[int]:
    """Encrypt field elements; output length is ceil(len/3)*3 + 1"""
    message = [m % SNARK_FIELD_SIZE for m in message]
    length = len(message)
    state = _initial_state(key, nonce, length)

    while len(message) % 3 != 0:
        message.append(0)

    ciphertext = []
    for i in range(0, len(message), 3):
        state = poseidon_perm(state)
        for j in range(3):
            state[j + 1] = field_add(state[j + 1], message[i + j])
            ciphertext.append(state[j + 1])

    state = poseidon_perm(state)
    ciphertext.append(state[1])
    return ciphertext


def poseidon_decrypt(ciphertext: Sequence[int], key: Sequence[int], nonce: int, length: int) -> List[int]:
    """Decrypt and authenticate; raises DecryptionError on any mismatch"""
    expected = -(-length // 3) * 3 + 1
    if len(ciphertext) != expected:
        raise DecryptionError(
            f"Ciphertext of {len(ciphertext)} elements cannot hold {length} values")

    state = _initial_state(key, nonce, length)
    message = []
    for i in range(0, len(ciphertext) - 1, 3):
        state = poseidon_perm(state)
        for j in range(3):
            message.append(field_sub(ciphertext[i + j], state[j + 1]))
            state[j + 1] = ciphertext[i + j] % SNARK_FIELD_SIZE

    if any(m != 0 for m in message[length:]):
        raise DecryptionError("The last elements of the message should be zero")

    state = poseidon_perm(state)
    if ciphertext[-1] % SNARK_FIELD_SIZE != state[1]:
        raise DecryptionError("The last ciphertext element must match the second item of the permuted state")

    return message[:length]
