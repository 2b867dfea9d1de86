"""
Message Validator and State Leaf Transformer
============================================
Mirrors the circuit: every check is evaluated, the results are ANDed, and the
new leaf is chosen from the "apply" and "keep" candidates by a multiplexer
rather than by branching on validity.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional

from babyjub.elgamal import is_active_state, parity_is_even
from fieldmath.field import MAX_VOTE_WEIGHT, SNARK_FIELD_SIZE, bool_to_field, select, select_point

from .command import Command, verify_command_signature
from .state import StateLeaf

logger = logging.getLogger(__name__)

# Stand-in evaluated for padding slots so both mux branches always exist
NULL_COMMAND = Command(nonce=0, state_idx=0, vo_idx=0, new_votes=0, new_pub_key=(0, 0))


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    new_balance: int
    checks: Dict[str, bool]

    @property
    def failed_checks(self) -> List[str]:
        return [name for name, ok in self.checks.items() if not ok]

    @property
    def reason(self) -> Optional[str]:
        failed = self.failed_checks
        return failed[0] if failed else None


def vote_cost(weight: int, is_quadratic: bool) -> int:
    return weight * weight if is_quadratic else weight


def validate_command(state_leaf: StateLeaf, current_vote: int, command: Command,
                     num_sign_ups: int, max_vote_options: int,
                     is_quadratic: bool) -> ValidationResult:
    """Run the six command checks against the current leaf snapshot

    The prior vote's cost is refunded before the new cost is charged.
    """
    refund = vote_cost(current_vote, is_quadratic)
    charge = vote_cost(command.new_votes, is_quadratic)

    checks = OrderedDict()
    checks['state_index'] = command.state_idx <= num_sign_ups
    checks['vote_option_index'] = command.vo_idx < max_vote_options
    checks['nonce'] = command.nonce == state_leaf.nonce + 1
    checks['signature'] = verify_command_signature(command, state_leaf.pub_key)
    checks['vote_weight'] = command.new_votes < MAX_VOTE_WEIGHT
    checks['balance'] = state_leaf.balance + refund >= charge

    new_balance = (state_leaf.balance + refund - charge) % SNARK_FIELD_SIZE
    return ValidationResult(is_valid=all(checks.values()), new_balance=new_balance, checks=checks)


def is_active(active_state_value: int, decrypted: int) -> bool:
    """A key is usable only while its active-state leaf is 0 and its flag decrypts even"""
    return is_active_state(active_state_value) and parity_is_even(decrypted)


def transform_state_leaf(state_leaf: StateLeaf, command: Command, vo_idx: int,
                         current_vote: int, is_valid: bool, new_balance: int) -> StateLeaf:
    """Return the updated leaf if is_valid else an identical copy of the old one"""
    flag = bool_to_field(is_valid)
    leaf = state_leaf.copy()

    leaf.pub_key = select_point(flag, command.new_pub_key, state_leaf.pub_key)
    leaf.balance = select(flag, new_balance, state_leaf.balance)
    leaf.nonce = select(flag, command.nonce, state_leaf.nonce)
    leaf.voted = bool(select(flag, 1, bool_to_field(state_leaf.voted)))
    leaf.vo_tree.update_leaf(vo_idx, select(flag, command.new_votes, current_vote))
    return leaf
