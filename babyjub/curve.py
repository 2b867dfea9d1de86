"""
Baby Jubjub twisted Edwards curve over the BN254 scalar field
"""

import logging
from typing import Optional, Sequence, Tuple

from fieldmath.field import SNARK_FIELD_SIZE, field_div, field_sqrt

logger = logging.getLogger(__name__)

Point = Tuple[int, int]

# ============================================================================
# CURVE CONSTANTS
# ============================================================================

A = 168700
D = 168696

IDENTITY: Point = (0, 1)

GENERATOR: Point = (
    995203441582195749578291179787384436505546430278305826713579947235728471134,
    5472060717959818805561601436314318772137091100104008585924551046643952123905,
)

BASE8: Point = (
    5299619240641551281634865583518297030282874472190772894086521144482721001553,
    16950150798460657717958625567821834550301663161624707787222815936182638968203,
)

# Order of the prime subgroup generated by BASE8
SUBGROUP_ORDER = 2736030358979909402780800718157159386076813972158567259200215660948447373041

_P = SNARK_FIELD_SIZE


# ============================================================================
# POINT ARITHMETIC
# ============================================================================


def _projective_add(p1, p2):
    """Unified projective addition (complete for a square, d non-square)"""
    x1, y1, z1 = p1
    x2, y2, z2 = p2
    a_ = z1 * z2 % _P
    b_ = a_ * a_ % _P
    c_ = x1 * x2 % _P
    d_ = y1 * y2 % _P
    e_ = D * c_ % _P * d_ % _P
    f_ = (b_ - e_) % _P
    g_ = (b_ + e_) % _P
    x3 = a_ * f_ % _P * (((x1 + y1) * (x2 + y2) - c_ - d_) % _P) % _P
    y3 = a_ * g_ % _P * ((d_ - A * c_) % _P) % _P
    z3 = f_ * g_ % _P
    return x3, y3, z3


def _to_affine(point) -> Point:
    x, y, z = point
    return field_div(x, z), field_div(y, z)


def add_point(p1: Sequence[int], p2: Sequence[int]) -> Point:
    """Edwards addition of two affine points"""
    result = _projective_add((p1[0] % _P, p1[1] % _P, 1), (p2[0] % _P, p2[1] % _P, 1))
    return _to_affine(result)


def mul_point_escalar(base: Sequence[int], scalar: int) -> Point:
    """Double-and-add from the identity, LSB first"""
    if scalar < 0:
        raise ValueError("Scalar must be non-negative")
    result = (0, 1, 1)
    exp = (base[0] % _P, base[1] % _P, 1)
    remaining = scalar
    while remaining:
        if remaining & 1:
            result = _projective_add(result, exp)
        exp = _projective_add(exp, exp)
        remaining >>= 1
    return _to_affine(result)


def negate_point(point: Sequence[int]) -> Point:
    return (-point[0]) % _P, point[1] % _P


def sub_point(p1: Sequence[int], p2: Sequence[int]) -> Point:
    return add_point(p1, negate_point(p2))


def in_curve(point: Sequence[int]) -> bool:
    """Check a*x^2 + y^2 == 1 + d*x^2*y^2"""
    if len(point) != 2:
        return False
    x, y = point[0], point[1]
    if not (0 <= x < _P and 0 <= y < _P):
        return False
    x2 = x * x % _P
    y2 = y * y % _P
    return (A * x2 + y2) % _P == (1 + D * x2 % _P * y2) % _P


def in_subgroup(point: Sequence[int]) -> bool:
    return in_curve(point) and mul_point_escalar(point, SUBGROUP_ORDER) == IDENTITY


# ============================================================================
# POINT COMPRESSION
# ============================================================================


def pack_point(point: Sequence[int]) -> int:
    """Compress to y with the x sign in bit 255 (little-endian buffer form)"""
    packed = point[1] % _P
    if point[0] % _P > (_P - 1) // 2:
        packed |= 1 << 255
    return packed


def unpack_point(packed: int) -> Optional[Point]:
    sign = bool(packed >> 255 & 1)
    y = packed & ((1 << 255) - 1)
    if y >= _P:
        return None

    y2 = y * y % _P
    numerator = (1 - y2) % _P
    denominator = (A - D * y2) % _P
    if denominator == 0:
        return None
    x = field_sqrt(field_div(numerator, denominator))
    if x is None:
        return None
    if sign:
        x = (-x) % _P
    return x, y
