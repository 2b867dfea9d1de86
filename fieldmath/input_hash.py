"""
Batch input-hash binding.

The verifier takes one public input per batch, so batch metadata is
abi-packed as uint256 words, SHA-256 hashed, and the digest is folded back
into the field 32 bits at a time.
"""

import hashlib
import logging
import struct
from typing import List, Sequence

from .field import SNARK_FIELD_SIZE

logger = logging.getLogger(__name__)

WORD_BYTES = 32
CHUNK_BITS = 32


def encode_packed_uint256(values: Sequence[int]) -> bytes:
    """Equivalent of abi.encodePacked(uint256, ...)"""
    out = bytearray()
    for value in values:
        if value < 0 or value >= 1 << 256:
            raise ValueError(f"Value {value} is not a uint256")
        out += value.to_bytes(WORD_BYTES, "big")
    return bytes(out)


def digest_chunks(digest: bytes) -> List[int]:
    """Split a 256-bit digest into eight 32-bit words, high to low"""
    if len(digest) != 32:
        raise ValueError("Expected a 32-byte digest")
    return list(struct.unpack(">8I", digest))


def fold_chunks(chunks: Sequence[int]) -> int:
    acc = 0
    for chunk in chunks:
        acc = ((acc << CHUNK_BITS) | chunk) % SNARK_FIELD_SIZE
    return acc


def sha256_hash(values: Sequence[int]) -> int:
    """SHA-256 over packed uint256 words, reduced into the field"""
    digest = hashlib.sha256(encode_packed_uint256(values)).digest()
    return fold_chunks(digest_chunks(digest))


def compute_input_hash(values: Sequence[int]) -> int:
    value = sha256_hash(values)
    logger.debug(f"Input hash over {len(values)} words: {value}")
    return value
