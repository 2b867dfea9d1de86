"""
Round lifecycle, message batch processing and tallying
"""

import pytest

from amaci.coordinator import Coordinator, Phase
from amaci.errors import AMACIError, CommitmentMismatchError, PhaseError
from amaci.tally import MAX_VOTES, unpack_tally_value
from amaci.voter import VoterClient
from babyjub.elgamal import encrypt_odevity
from babyjub.keys import gen_keypair
from fieldmath.input_hash import compute_input_hash
from fieldmath.packing import pack_process_vals, pack_tally_vals
from fieldmath.poseidon import poseidon
from merkle import TreeIndexError
from utils import PerformanceMonitor

from conftest import BALANCE, finish_round, push_command


def sign_up_voters(coordinator, keypairs, count):
    for i in range(count):
        coordinator.sign_up(i, keypairs[i].pub_key, BALANCE)


class TestSignUp:

    def test_sign_up_updates_state_root(self, coordinator, voter_keypairs):
        empty_root = coordinator.state_tree.root
        coordinator.sign_up(0, voter_keypairs[0].pub_key, BALANCE)
        assert coordinator.state_tree.root != empty_root
        assert coordinator.get_state_leaf(0).balance == BALANCE

    def test_index_outside_round(self, coordinator, voter_keypairs):
        with pytest.raises(TreeIndexError):
            coordinator.sign_up(coordinator.num_sign_ups, voter_keypairs[0].pub_key, BALANCE)

    def test_slot_taken(self, coordinator, voter_keypairs):
        coordinator.sign_up(3, voter_keypairs[0].pub_key, BALANCE)
        with pytest.raises(AMACIError):
            coordinator.sign_up(3, voter_keypairs[1].pub_key, BALANCE)


class TestPhases:

    def test_operations_out_of_phase(self, coordinator, voter_keypairs):
        with pytest.raises(PhaseError):
            coordinator.process_messages()
        with pytest.raises(PhaseError):
            coordinator.process_tally()
        with pytest.raises(PhaseError):
            coordinator.get_tally_results()

        coordinator.end_vote_period()
        with pytest.raises(PhaseError):
            coordinator.end_vote_period()
        with pytest.raises(PhaseError):
            coordinator.sign_up(0, voter_keypairs[0].pub_key, BALANCE)
        with pytest.raises(PhaseError):
            push_command(coordinator, voter_keypairs[0], 1, 0, 0, 1)

    def test_end_vote_period_commits_state(self, coordinator):
        commitment = coordinator.end_vote_period()
        assert commitment == poseidon([coordinator.state_tree.root, 0])
        assert coordinator.phase == Phase.PROCESSING

    def test_empty_queue(self, coordinator, voter_keypairs):
        sign_up_voters(coordinator, voter_keypairs, 2)
        coordinator.end_vote_period()
        result = coordinator.process_messages()

        assert (result.batch_start_idx, result.batch_end_idx) == (0, 0)
        assert result.batch_start_hash == 0
        assert result.batch_end_hash == 0
        assert result.new_state_root == result.current_state_root
        assert result.verdicts == ["empty command"] * 5
        assert coordinator.phase == Phase.TALLYING

    def test_round_ends_after_last_tally_batch(self, coordinator, voter_keypairs):
        _, tally_results = finish_round(coordinator)
        # 10 sign-ups in batches of 5
        assert len(tally_results) == 2
        assert coordinator.phase == Phase.ENDED
        with pytest.raises(PhaseError):
            coordinator.process_tally()


class TestProcessMessages:

    def test_linear_round(self, coordinator, voter_keypairs):
        sign_up_voters(coordinator, voter_keypairs, 8)
        for i in range(8):
            push_command(coordinator, voter_keypairs[i], 1, i, 1, 2)

        process_results, _ = finish_round(coordinator)

        assert [(r.batch_start_idx, r.batch_end_idx) for r in process_results] == [(5, 8), (0, 5)]
        assert process_results[0].verdicts == [None, None, None, "empty command", "empty command"]
        assert process_results[1].verdicts == [None] * 5

        results = coordinator.get_tally_results()
        assert results[1] == 8 * 2 * (2 + MAX_VOTES)
        assert unpack_tally_value(results[1]) == (16, 32)
        assert results[0] == 0
        assert coordinator.get_state_leaf(3).balance == BALANCE - 2

    def test_quadratic_round(self, coord_keypair, quadratic_config, voter_keypairs):
        coordinator = Coordinator(coord_keypair, quadratic_config)
        sign_up_voters(coordinator, voter_keypairs, 1)
        push_command(coordinator, voter_keypairs[0], 1, 0, 2, 5)

        finish_round(coordinator)

        assert coordinator.get_state_leaf(0).balance == 75
        assert unpack_tally_value(coordinator.get_tally_results()[2]) == (5, 25)

    def test_replayed_nonce_keeps_later_message(self, coordinator, voter_keypairs):
        sign_up_voters(coordinator, voter_keypairs, 1)
        push_command(coordinator, voter_keypairs[0], 1, 0, 0, 3)
        push_command(coordinator, voter_keypairs[0], 1, 0, 1, 4)

        coordinator.end_vote_period()
        result = coordinator.process_messages()

        assert result.verdicts[:2] == ["nonce", None]
        leaf = coordinator.get_state_leaf(0)
        assert leaf.vo_tree.leaf(1) == 4
        assert leaf.vo_tree.leaf(0) == 0
        assert leaf.balance == BALANCE - 4

    def test_odd_ciphertext_blocks_vote_while_leaf_active(self, coordinator, voter_keypairs):
        odd = encrypt_odevity(True, coordinator.keypair.pub_key, 4321)
        coordinator.sign_up(0, voter_keypairs[0].pub_key, BALANCE, odd.as_list())
        coordinator.sign_up(1, voter_keypairs[1].pub_key, BALANCE)
        push_command(coordinator, voter_keypairs[0], 1, 0, 1, 3)
        push_command(coordinator, voter_keypairs[1], 1, 1, 1, 2)

        process_results, _ = finish_round(coordinator)

        assert coordinator.active_state_tree.leaf(0) == 0
        assert process_results[0].verdicts[:2] == ["active", None]
        assert coordinator.get_state_leaf(0).balance == BALANCE
        assert unpack_tally_value(coordinator.get_tally_results()[1]) == (2, 4)


    def test_vote_plan_applies_in_nonce_order(self, coordinator, coord_keypair, voter_keypairs):
        sign_up_voters(coordinator, voter_keypairs, 1)
        client = VoterClient(voter_keypairs[0], coord_keypair.pub_key)
        for payload in client.gen_vote_payload(0, [(1, 3), (2, 4)]):
            coordinator.push_message(payload.ciphertext, payload.enc_pub_key)

        coordinator.end_vote_period()
        result = coordinator.process_messages()

        assert result.accepted == 2
        leaf = coordinator.get_state_leaf(0)
        assert leaf.nonce == 2
        assert leaf.balance == BALANCE - 7
        # The final command locks the leaf with an empty key
        assert leaf.pub_key == (0, 0)

    def test_garbage_message_is_dropped(self, coordinator, voter_keypairs):
        sign_up_voters(coordinator, voter_keypairs, 1)
        coordinator.push_message([1, 2, 3, 4, 5, 6, 7], gen_keypair(9).pub_key)

        coordinator.end_vote_period()
        result = coordinator.process_messages()

        assert result.verdicts[0] == "empty command"
        assert result.new_state_root == result.current_state_root
        assert coordinator.verdicts["empty command"] == 5

    def test_invalid_signature_leaves_root(self, coordinator, voter_keypairs):
        sign_up_voters(coordinator, voter_keypairs, 2)
        push_command(coordinator, voter_keypairs[1], 1, 0, 0, 3)

        coordinator.end_vote_period()
        result = coordinator.process_messages()

        assert result.verdicts[0] == "signature"
        assert result.new_state_root == result.current_state_root

    def test_seven_messages_take_two_batches(self, coordinator, voter_keypairs):
        sign_up_voters(coordinator, voter_keypairs, 7)
        for i in range(7):
            push_command(coordinator, voter_keypairs[i], 1, i, 0, 1)

        coordinator.end_vote_period()
        first = coordinator.process_messages()
        assert (first.batch_start_idx, first.batch_end_idx) == (5, 7)
        assert coordinator.phase == Phase.PROCESSING
        second = coordinator.process_messages()
        assert (second.batch_start_idx, second.batch_end_idx) == (0, 5)
        assert second.current_state_commitment == first.new_state_commitment
        assert coordinator.phase == Phase.TALLYING

    def test_input_hash_binds_batch(self, coordinator, voter_keypairs):
        sign_up_voters(coordinator, voter_keypairs, 2)
        push_command(coordinator, voter_keypairs[0], 1, 0, 0, 1)
        push_command(coordinator, voter_keypairs[1], 1, 1, 0, 1)

        start_commitment = coordinator.end_vote_period()
        result = coordinator.process_messages(new_state_salt=77)

        assert result.current_state_commitment == start_commitment
        assert result.new_state_commitment == poseidon([result.new_state_root, 77])
        assert result.batch_end_hash == coordinator.messages.head
        expected = compute_input_hash([
            pack_process_vals(5, 10, False),
            poseidon(list(coordinator.keypair.pub_key)),
            result.batch_start_hash,
            result.batch_end_hash,
            result.current_state_commitment,
            result.new_state_commitment,
            result.deactivate_commitment,
        ])
        assert result.input_hash == expected

    def test_commitment_mismatch(self, coordinator):
        coordinator.end_vote_period()
        coordinator.state_commitment = 123
        with pytest.raises(CommitmentMismatchError):
            coordinator.process_messages()

    def test_monitor_records_batches(self, coord_keypair, round_config):
        monitor = PerformanceMonitor()
        coordinator = Coordinator(coord_keypair, round_config, monitor=monitor)
        finish_round(coordinator)
        operations = monitor.get_summary()['operations']
        assert operations['process_messages']['count'] == 1
        assert operations['process_tally']['count'] == 2


class TestTally:

    def test_tally_chain(self, coordinator, voter_keypairs):
        sign_up_voters(coordinator, voter_keypairs, 6)
        for i in range(6):
            push_command(coordinator, voter_keypairs[i], 1, i, i % 2, 1)

        _, tally_results = finish_round(coordinator)

        first, second = tally_results
        assert first.current_tally_commitment == 0
        assert second.current_tally_commitment == first.new_tally_commitment
        assert second.batch_num == 1
        assert first.input_hash == compute_input_hash([
            pack_tally_vals(0, 10),
            coordinator.state_commitment,
            0,
            first.new_tally_commitment,
        ])
        results = coordinator.get_tally_results()
        assert unpack_tally_value(results[0]) == (3, 3)
        assert unpack_tally_value(results[1]) == (3, 3)

    def test_non_voters_add_nothing(self, coordinator, voter_keypairs):
        sign_up_voters(coordinator, voter_keypairs, 4)
        finish_round(coordinator)
        assert coordinator.get_tally_results() == [0] * 5
