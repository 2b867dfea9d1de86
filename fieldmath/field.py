"""
BN254 Scalar Field Arithmetic
Prime-field helpers shared by the hashing, curve and coordinator layers
"""

import logging
from math import isqrt
from typing import Iterable, List

import galois
import numpy as np

logger = logging.getLogger(__name__)

# ============================================================================
# FIELD CONSTANTS
# ============================================================================

# BN254 scalar field prime (the SNARK field)
SNARK_FIELD_SIZE = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# 5 generates the multiplicative group; passing it skips factoring p - 1
GF = galois.GF(SNARK_FIELD_SIZE, primitive_element=5, verify=False)

# Largest admissible vote weight is MAX_VOTE_WEIGHT - 1 so v^2 never wraps
MAX_VOTE_WEIGHT = isqrt(SNARK_FIELD_SIZE)

UINT32 = 1 << 32
UINT96 = 1 << 96


# ============================================================================
# SCALAR OPERATIONS
# ============================================================================


def to_field(value: int) -> int:
    """Reduce an integer into [0, P)"""
    return int(value) % SNARK_FIELD_SIZE


def is_field_element(value: int) -> bool:
    return isinstance(value, int) and 0 <= value < SNARK_FIELD_SIZE


def field_add(a: int, b: int) -> int:
    return (a + b) % SNARK_FIELD_SIZE


def field_sub(a: int, b: int) -> int:
    return (a - b) % SNARK_FIELD_SIZE


def field_mul(a: int, b: int) -> int:
    return (a * b) % SNARK_FIELD_SIZE


def field_neg(a: int) -> int:
    return (-a) % SNARK_FIELD_SIZE


def field_inverse(a: int) -> int:
    """Multiplicative inverse in GF(P); raises ZeroDivisionError for 0"""
    a = to_field(a)
    if a == 0:
        raise ZeroDivisionError("0 has no inverse in the SNARK field")
    return int(np.reciprocal(GF(a)))


def field_div(a: int, b: int) -> int:
    return field_mul(a, field_inverse(b))


def field_sqrt(a: int):
    """Return the smaller square root of a, or None for a non-residue"""
    # galois square-root helpers need a 1-d array
    element = GF([to_field(a)])
    if not element.is_square()[0]:
        return None
    root = int(np.sqrt(element)[0])
    return min(root, SNARK_FIELD_SIZE - root)


def field_array(values: Iterable[int]) -> "galois.FieldArray":
    """Lift a sequence of ints into a galois array over the SNARK field"""
    return GF([to_field(v) for v in values])


def field_list(array) -> List[int]:
    """Lower a galois array back to plain ints"""
    return [int(x) for x in array]


# ============================================================================
# CIRCUIT-STYLE SELECTION
# ============================================================================


def select(flag: int, if_true: int, if_false: int) -> int:
    """Multiplexer: flag * if_true + (1 - flag) * if_false over the field

    Both operands are always evaluated by the caller; flag must be 0 or 1.
    """
    if flag not in (0, 1):
        raise ValueError(f"Selector must be boolean, got {flag}")
    return (flag * if_true + (1 - flag) * if_false) % SNARK_FIELD_SIZE


def select_point(flag: int, if_true, if_false):
    return (select(flag, if_true[0], if_false[0]),
            select(flag, if_true[1], if_false[1]))


def bool_to_field(value: bool) -> int:
    return 1 if value else 0
