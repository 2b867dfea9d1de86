"""
Circom-Compatible Poseidon Hash
===============================
x^5 Poseidon over the BN254 scalar field, matching circomlib for widths
t = 2..17. Round constants and MDS matrices are regenerated from the Grain
LFSR the same way the reference parameter script does, then cached per width.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Sequence

import numpy as np

from .field import GF, SNARK_FIELD_SIZE, field_list, to_field

logger = logging.getLogger(__name__)

# ============================================================================
# PARAMETERS
# ============================================================================

FULL_ROUNDS = 8
# Partial rounds for t = 2, 3, ..., 17
PARTIAL_ROUNDS = [56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68]

MIN_WIDTH = 2
MAX_WIDTH = MIN_WIDTH + len(PARTIAL_ROUNDS) - 1
MAX_INPUTS = MAX_WIDTH - 1

FIELD_BITS = SNARK_FIELD_SIZE.bit_length()
SBOX_EXPONENT = 5


@dataclass(frozen=True)
class PoseidonParams:
    """Per-width Poseidon parameter set"""
    width: int
    full_rounds: int
    partial_rounds: int
    round_constants: tuple
    mds: tuple

    def validate(self):
        total = (self.full_rounds + self.partial_rounds) * self.width
        if len(self.round_constants) != total:
            raise ValueError(
                f"Expected {total} round constants for t={self.width}, "
                f"got {len(self.round_constants)}")
        if len(self.mds) != self.width or any(len(row) != self.width for row in self.mds):
            raise ValueError(f"MDS matrix must be {self.width}x{self.width}")
        if any(c >= SNARK_FIELD_SIZE for c in self.round_constants):
            raise ValueError("Round constant outside field")


# ============================================================================
# GRAIN LFSR CONSTANT GENERATION
# ============================================================================


class GrainLFSR:
    """80-bit self-shrinking Grain LFSR used to derive Poseidon constants"""

    STATE_BITS = 80
    # Taps b[62], b[51], b[38], b[23], b[13], b[0] counted from the oldest bit
    TAPS = (62, 51, 38, 23, 13, 0)

    def __init__(self, field_bits: int, width: int, full_rounds: int, partial_rounds: int):
        bits = []
        bits += self._to_bits(1, 2)       # prime field
        bits += self._to_bits(0, 4)       # x^alpha s-box
        bits += self._to_bits(field_bits, 12)
        bits += self._to_bits(width, 12)
        bits += self._to_bits(full_rounds, 10)
        bits += self._to_bits(partial_rounds, 10)
        bits += [1] * 30

        self.state = 0
        for bit in bits:
            self.state = (self.state << 1) | bit
        self._mask = (1 << self.STATE_BITS) - 1
        self._shifts = [self.STATE_BITS - 1 - tap for tap in self.TAPS]

        for _ in range(160):
            self._step()

    @staticmethod
    def _to_bits(value: int, length: int) -> List[int]:
        return [(value >> (length - 1 - i)) & 1 for i in range(length)]

    def _step(self) -> int:
        state = self.state
        bit = 0
        for shift in self._shifts:
            bit ^= (state >> shift) & 1
        self.state = ((state << 1) & self._mask) | bit
        return bit

    def next_bit(self) -> int:
        # Self-shrinking: emit the second bit of a pair only when the first is 1
        while True:
            if self._step() == 1:
                return self._step()
            self._step()

    def random_bits(self, num_bits: int) -> int:
        value = 0
        for _ in range(num_bits):
            value = (value << 1) | self.next_bit()
        return value

    def field_element(self) -> int:
        """Rejection-sample an element strictly below P"""
        while True:
            value = self.random_bits(FIELD_BITS)
            if value < SNARK_FIELD_SIZE:
                return value


def _cauchy_mds(lfsr: GrainLFSR, width: int):
    while True:
        rand = [lfsr.random_bits(FIELD_BITS) % SNARK_FIELD_SIZE for _ in range(2 * width)]
        while len(set(rand)) != len(rand):
            rand = [lfsr.random_bits(FIELD_BITS) % SNARK_FIELD_SIZE for _ in range(2 * width)]

        xs = GF(rand[:width])
        ys = GF(rand[width:])
        sums = xs[:, np.newaxis] + ys[np.newaxis, :]
        if np.any(sums == 0):
            continue
        inverse = np.reciprocal(sums)
        return tuple(tuple(field_list(row)) for row in inverse)


@lru_cache(maxsize=None)
def get_params(width: int) -> PoseidonParams:
    """Generate (once) the Poseidon parameters for state width t"""
    if width < MIN_WIDTH or width > MAX_WIDTH:
        raise ValueError(f"Unsupported Poseidon width t={width}")

    partial_rounds = PARTIAL_ROUNDS[width - MIN_WIDTH]
    lfsr = GrainLFSR(FIELD_BITS, width, FULL_ROUNDS, partial_rounds)

    constants = tuple(
        lfsr.field_element()
        for _ in range((FULL_ROUNDS + partial_rounds) * width)
    )
    mds = _cauchy_mds(lfsr, width)

    params = PoseidonParams(
        width=width,
        full_rounds=FULL_ROUNDS,
        partial_rounds=partial_rounds,
        round_constants=constants,
        mds=mds,
    )
    params.validate()
    logger.debug(f"Generated Poseidon parameters for t={width}")
    return params


# ============================================================================
# PERMUTATION
# ============================================================================


class CircomPoseidon:
    """Poseidon permutation and sponge-less hash matching circomlib"""

    PRIME = SNARK_FIELD_SIZE

    @staticmethod
    def ark(state: List[int], constants: Sequence[int], offset: int) -> List[int]:
        """Add round constants"""
        return [(x + constants[offset + i]) % CircomPoseidon.PRIME for i, x in enumerate(state)]

    @staticmethod
    def sbox(state: List[int], full_round: bool) -> List[int]:
        """Apply S-box (x^5 mod p)"""
        if full_round:
            return [pow(x, SBOX_EXPONENT, CircomPoseidon.PRIME) for x in state]
        return [pow(state[0], SBOX_EXPONENT, CircomPoseidon.PRIME)] + state[1:]

    @staticmethod
    def mix(state: List[int], mds) -> List[int]:
        """Apply MDS matrix multiplication"""
        return [
            sum(m * x for m, x in zip(row, state)) % CircomPoseidon.PRIME
            for row in mds
        ]

    @staticmethod
    def permute(state: Sequence[int]) -> List[int]:
        params = get_params(len(state))
        state = [to_field(x) for x in state]
        half_full = params.full_rounds // 2
        total_rounds = params.full_rounds + params.partial_rounds

        for r in range(total_rounds):
            state = CircomPoseidon.ark(state, params.round_constants, r * params.width)
            full = r < half_full or r >= half_full + params.partial_rounds
            state = CircomPoseidon.sbox(state, full)
            state = CircomPoseidon.mix(state, params.mds)
        return state

    @staticmethod
    def hash(inputs: Sequence[int]) -> int:
        """Poseidon hash of 1..16 field elements"""
        if not 0 < len(inputs) <= MAX_INPUTS:
            raise ValueError(f"Poseidon accepts 1..{MAX_INPUTS} inputs, got {len(inputs)}")
        return CircomPoseidon.permute([0] + list(inputs))[0]


poseidon = CircomPoseidon.hash
poseidon_perm = CircomPoseidon.permute


# ============================================================================
# FIXED-ARITY HELPERS
# ============================================================================


def hash_left_right(left: int, right: int) -> int:
    return poseidon([left, right])


def hash_one(pre_image: int) -> int:
    return poseidon([pre_image, 0])


def hash_n(num_elements: int, elements: Sequence[int]) -> int:
    """Hash up to num_elements values, zero-padding the remainder"""
    elements = list(elements)
    if len(elements) > num_elements:
        raise ValueError(
            f"the length of the elements array should be at most {num_elements}; "
            f"got {len(elements)}")
    elements += [0] * (num_elements - len(elements))
    return poseidon(elements)


def hash2(elements: Sequence[int]) -> int:
    return hash_n(2, elements)


def hash3(elements: Sequence[int]) -> int:
    return hash_n(3, elements)


def hash4(elements: Sequence[int]) -> int:
    return hash_n(4, elements)


def hash5(elements: Sequence[int]) -> int:
    return hash_n(5, elements)


def hash10(elements: Sequence[int]) -> int:
    """Two-level hash of up to ten elements: H(H5(e[0:5]), H5(e[5:10]))"""
    elements = list(elements)
    if len(elements) > 10:
        raise ValueError(f"the length of the elements array should be at most 10; got {len(elements)}")
    elements += [0] * (10 - len(elements))
    return poseidon([hash5(elements[:5]), hash5(elements[5:])])


def hash12(elements: Sequence[int]) -> int:
    elements = list(elements)
    if len(elements) > 12:
        raise ValueError(f"the length of the elements array should be at most 12; got {len(elements)}")
    elements += [0] * (12 - len(elements))
    return poseidon([hash5(elements[:5]), hash5(elements[5:10]), elements[10], elements[11]])
