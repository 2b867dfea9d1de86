"""
Tally Aggregator
================
Each result leaf accumulates sum(v * (v + MAX_VOTES)), which packs the sum of
votes (high part) and the sum of squared votes (low part) into one field
element. The split is exact while the sum of squares stays below MAX_VOTES.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Tuple

from fieldmath.field import SNARK_FIELD_SIZE

logger = logging.getLogger(__name__)

MAX_VOTES = 10 ** 24


def pack_tally_value(votes: int) -> int:
    return votes * (votes + MAX_VOTES) % SNARK_FIELD_SIZE


def unpack_tally_value(packed: int) -> Tuple[int, int]:
    """(sum of votes, sum of squared votes)"""
    return packed // MAX_VOTES, packed % MAX_VOTES


def accumulate(results: List[int], vote_weights: List[int]) -> List[int]:
    """Add one voter's option weights onto the running result leaves"""
    return [
        (current + pack_tally_value(weight)) % SNARK_FIELD_SIZE
        for current, weight in zip(results, vote_weights)
    ]


@dataclass
class ProcessTallyResult:
    """Witness and public values for one tally batch"""
    input_hash: int
    packed_vals: int
    batch_num: int
    batch_start_idx: int
    batch_end_idx: int
    state_root: int
    state_salt: int
    state_commitment: int
    current_tally_commitment: int
    new_tally_commitment: int
    current_results: List[int]
    current_results_root: int
    current_results_root_salt: int
    new_results_root: int
    new_results_root_salt: int
    state_path_elements: List[List[int]]
    state_leaves: List[List[int]] = field(default_factory=list)
    votes: List[List[int]] = field(default_factory=list)
