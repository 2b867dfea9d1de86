"""
Command validation and branch-free state leaf transformation
"""

import pytest

from amaci.command import Command
from amaci.state import StateLeaf
from amaci.validator import is_active, transform_state_leaf, validate_command, vote_cost
from babyjub.keys import gen_keypair
from fieldmath.field import MAX_VOTE_WEIGHT
from merkle import QuinaryTree

NUM_SIGN_UPS = 10
MAX_VOTE_OPTIONS = 5


@pytest.fixture(scope="module")
def voter():
    return gen_keypair(2024)


@pytest.fixture
def leaf(voter):
    return StateLeaf(pub_key=voter.pub_key, balance=100, vo_tree=QuinaryTree(1))


def signed(voter, nonce=1, vo_idx=0, new_votes=5, state_idx=0):
    return Command(nonce=nonce, state_idx=state_idx, vo_idx=vo_idx, new_votes=new_votes,
                   new_pub_key=voter.pub_key, salt=1).sign(voter.priv_key)


def check(leaf, command, current_vote=0, quadratic=False):
    return validate_command(leaf, current_vote, command, NUM_SIGN_UPS, MAX_VOTE_OPTIONS, quadratic)


class TestVoteCost:

    def test_linear_and_quadratic(self):
        assert vote_cost(5, False) == 5
        assert vote_cost(5, True) == 25


class TestValidateCommand:

    def test_linear_vote(self, voter, leaf):
        result = check(leaf, signed(voter, new_votes=5))
        assert result.is_valid
        assert result.new_balance == 95
        assert result.reason is None

    def test_quadratic_vote(self, voter, leaf):
        result = check(leaf, signed(voter, new_votes=5), quadratic=True)
        assert result.is_valid
        assert result.new_balance == 75

    def test_quadratic_vote_modification_refunds(self, voter, leaf):
        leaf.balance = 75
        leaf.nonce = 1
        result = check(leaf, signed(voter, nonce=2, new_votes=3), current_vote=5, quadratic=True)
        assert result.is_valid
        assert result.new_balance == 91

    def test_insufficient_balance(self, voter, leaf):
        result = check(leaf, signed(voter, new_votes=11), quadratic=True)
        assert not result.is_valid
        assert result.failed_checks == ['balance']

    def test_spending_whole_balance(self, voter, leaf):
        result = check(leaf, signed(voter, new_votes=10), quadratic=True)
        assert result.is_valid
        assert result.new_balance == 0

    def test_replayed_nonce(self, voter, leaf):
        leaf.nonce = 1
        result = check(leaf, signed(voter, nonce=1))
        assert result.reason == 'nonce'

    def test_wrong_signer(self, voter, leaf):
        intruder = gen_keypair(1)
        command = Command(nonce=1, state_idx=0, vo_idx=0, new_votes=1,
                          new_pub_key=voter.pub_key, salt=1).sign(intruder.priv_key)
        result = check(leaf, command)
        assert result.failed_checks == ['signature']

    def test_vote_option_out_of_range(self, voter, leaf):
        result = check(leaf, signed(voter, vo_idx=MAX_VOTE_OPTIONS))
        assert result.reason == 'vote_option_index'

    def test_state_index_out_of_range(self, voter, leaf):
        result = check(leaf, signed(voter, state_idx=NUM_SIGN_UPS + 1))
        assert result.reason == 'state_index'

    def test_vote_weight_bound(self, voter, leaf):
        command = Command(nonce=1, state_idx=0, vo_idx=0, new_votes=MAX_VOTE_WEIGHT,
                          new_pub_key=voter.pub_key, salt=1)
        result = check(leaf, command)
        assert not result.is_valid
        assert 'vote_weight' in result.failed_checks


class TestTransformStateLeaf:

    def test_valid_command_applies(self, voter, leaf):
        new_key = gen_keypair(77).pub_key
        command = Command(nonce=1, state_idx=0, vo_idx=2, new_votes=4,
                          new_pub_key=new_key, salt=1)
        updated = transform_state_leaf(leaf, command, 2, 0, True, 96)
        assert updated.pub_key == new_key
        assert updated.balance == 96
        assert updated.nonce == 1
        assert updated.voted
        assert updated.vo_tree.leaf(2) == 4
        # the input leaf is never mutated
        assert leaf.vo_tree.leaf(2) == 0
        assert leaf.nonce == 0

    def test_invalid_command_keeps_leaf(self, voter, leaf):
        original_hash = leaf.hash()
        command = Command(nonce=9, state_idx=0, vo_idx=2, new_votes=4,
                          new_pub_key=gen_keypair(77).pub_key, salt=1)
        updated = transform_state_leaf(leaf, command, 2, 0, False, 0)
        assert updated.hash() == original_hash
        assert updated.pub_key == voter.pub_key
        assert not updated.voted

    def test_fresh_ballot_hashes_zero_vote_root(self, leaf):
        assert leaf.vo_root == 0
        leaf.voted = True
        assert leaf.vo_root == leaf.vo_tree.root


class TestIsActive:

    def test_both_conditions(self):
        assert is_active(0, 0)
        assert is_active(0, 10)
        assert not is_active(1, 10)
        assert not is_active(0, 11)
