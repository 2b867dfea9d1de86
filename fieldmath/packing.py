"""
Bit-window packing of several small values into one field element
"""

from typing import List, Sequence

from .field import SNARK_FIELD_SIZE, UINT32


def pack_words(values: Sequence[int], widths: Sequence[int]) -> int:
    """Concatenate values LSB-first, each confined to its bit width

    A width of None marks an open-ended top window.
    """
    if len(values) != len(widths):
        raise ValueError("values and widths must have the same length")

    packed = 0
    offset = 0
    for value, width in zip(values, widths):
        if value < 0:
            raise ValueError(f"Cannot pack negative value {value}")
        if width is not None and value >= (1 << width):
            raise ValueError(f"Value {value} does not fit in {width} bits")
        packed += value << offset
        if width is not None:
            offset += width
    if packed >= SNARK_FIELD_SIZE:
        raise ValueError("Packed value exceeds the field size")
    return packed


def unpack_words(packed: int, widths: Sequence[int]) -> List[int]:
    values = []
    offset = 0
    for width in widths:
        if width is None:
            values.append(packed >> offset)
        else:
            values.append((packed >> offset) % (1 << width))
            offset += width
    return values


def pack_process_vals(max_vote_options: int, num_sign_ups: int, is_quadratic: bool) -> int:
    """packedVals bound into every process-messages input hash"""
    return pack_words(
        [max_vote_options, num_sign_ups, 1 if is_quadratic else 0],
        [32, 32, None],
    )


def pack_tally_vals(batch_num: int, num_sign_ups: int) -> int:
    """packedVals bound into every tally input hash"""
    if batch_num >= UINT32:
        raise ValueError("Tally batch number overflows 32 bits")
    return pack_words([batch_num, num_sign_ups], [32, None])
