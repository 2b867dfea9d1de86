"""
Batch Processor
===============
The coordinator for one anonymous quadratic-voting round.

It owns the state, active-state, deactivate and tally-result trees, drives
the FILLING -> PROCESSING -> TALLYING -> ENDED state machine, and emits for
every batch the witness material plus the single public input hash the
verifier checks. Invalid voter input never raises: it is routed to the dummy
state index, leaves every root unchanged and is reported as a verdict.
"""

import logging
from collections import Counter
from contextlib import nullcontext
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from babyjub.curve import Point, in_curve
from babyjub.elgamal import decrypt, parity_is_even
from babyjub.keys import Keypair, gen_static_random_key
from config.config import RoundConfig
from fieldmath.field import bool_to_field, select
from fieldmath.input_hash import compute_input_hash
from fieldmath.packing import pack_process_vals, pack_tally_vals
from fieldmath.poseidon import poseidon
from merkle.quinary_tree import QuinaryTree, TreeIndexError, compute_zero_hashes

from .command import Command, MessageChain, decrypt_command, empty_message, verify_command_signature
from .commitments import DEACTIVATE, STATE, TALLY, CommitmentLog, NullifierSet
from .deactivate import (DEACTIVATE_RANDOM_SALT, AddKeyRequest, DeactivateBatchResult, WitnessCheckingBackend,
                         build_deactivate_leaf, deactivate_commitment)
from .errors import AMACIError, PhaseError
from .state import DeactivateLeaf, StateLeaf, state_tree_zero_leaf
from .tally import ProcessTallyResult, accumulate
from .validator import NULL_COMMAND, is_active, transform_state_leaf, validate_command

logger = logging.getLogger(__name__)

ACCEPTED = "accepted"


class Phase(Enum):
    """Round lifecycle"""
    FILLING = "filling"
    PROCESSING = "processing"
    TALLYING = "tallying"
    ENDED = "ended"


@dataclass
class ProcessMessagesResult:
    """Witness and public values for one message batch"""
    input_hash: int
    packed_vals: int
    batch_start_idx: int
    batch_end_idx: int
    batch_start_hash: int
    batch_end_hash: int
    msgs: List[List[int]]
    enc_pub_keys: List[Point]
    coord_pub_key: Point
    coord_priv_key: int
    current_state_root: int
    current_state_salt: int
    current_state_commitment: int
    new_state_root: int
    new_state_salt: int
    new_state_commitment: int
    active_state_root: int
    deactivate_root: int
    deactivate_commitment: int
    current_state_leaves: List[List[int]] = field(default_factory=list)
    current_state_leaves_path_elements: List[List[List[int]]] = field(default_factory=list)
    current_vote_weights: List[int] = field(default_factory=list)
    current_vote_weights_path_elements: List[List[List[int]]] = field(default_factory=list)
    active_state_leaves: List[int] = field(default_factory=list)
    active_state_leaves_path_elements: List[List[List[int]]] = field(default_factory=list)
    verdicts: List[Optional[str]] = field(default_factory=list)

    @property
    def accepted(self) -> int:
        return sum(1 for v in self.verdicts if v is None)


class Coordinator:
    """Round coordinator holding the private key and every tree"""

    def __init__(self, keypair: Keypair, round_config: Optional[RoundConfig] = None,
                 nullifiers: Optional[NullifierSet] = None,
                 commitment_log: Optional[CommitmentLog] = None,
                 monitor=None, add_key_backend=None):
        self.keypair = keypair
        self.config = round_config if round_config is not None else RoundConfig()
        self.nullifiers = nullifiers if nullifiers is not None else NullifierSet()
        self.commitment_log = commitment_log if commitment_log is not None else CommitmentLog()
        self.monitor = monitor
        # Verifies add-new-key proofs against the public input hash only
        self.add_key_backend = (add_key_backend if add_key_backend is not None
                                else WitnessCheckingBackend(keypair.pub_key))

        cfg = self.config
        self.pub_key_hasher = poseidon(list(keypair.pub_key))
        self._vo_zero_hashes = compute_zero_hashes(cfg.vote_option_tree_depth, 0)

        self.state_tree = QuinaryTree(cfg.state_tree_depth, state_tree_zero_leaf())
        self.active_state_tree = QuinaryTree(cfg.state_tree_depth, 0)
        self.deactivate_tree = QuinaryTree(cfg.deactivate_tree_depth, 0)
        self.state_leaves: Dict[int, StateLeaf] = {}

        self.messages = MessageChain()
        self.commands: List[Optional[Command]] = []
        self.deactivate_messages = MessageChain()
        self.deactivate_commands: List[Optional[Command]] = []
        self.deactivate_leaves: Dict[int, DeactivateLeaf] = {}
        self.processed_deactivate_count = 0
        self.pre_deactivate_root: Optional[int] = None

        self.phase = Phase.FILLING
        self.msg_end_idx: Optional[int] = None
        self.state_salt = 0
        self.state_commitment = 0

        self.batch_num = 0
        self.tally_salt = 0
        self.tally_commitment = 0
        self.tally_results: Optional[QuinaryTree] = None

        self.verdicts: Counter = Counter()

        self.commitment_log.append(DEACTIVATE, 0, self.deactivate_commitment)

        logger.info(
            f"Coordinator initialized: state depth {cfg.state_tree_depth}, "
            f"{cfg.max_vote_options} options, batch size {cfg.batch_size}, "
            f"{'quadratic' if cfg.is_quadratic_cost else 'linear'} cost")

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    @property
    def num_sign_ups(self) -> int:
        return self.config.num_sign_ups

    @property
    def dummy_state_idx(self) -> int:
        """Sink for invalid commands: the last state slot"""
        return self.state_tree.leaves_count - 1

    @property
    def vote_option_size(self) -> int:
        return self.config.vote_option_capacity

    @property
    def deactivate_commitment(self) -> int:
        return deactivate_commitment(self.active_state_tree.root, self.deactivate_tree.root)

    def _require_phase(self, *phases: Phase, message: str):
        if self.phase not in phases:
            raise PhaseError(message)

    def _track(self, operation: str):
        if self.monitor is None:
            return nullcontext()
        return self.monitor.start_operation(operation)

    def get_state_leaf(self, index: int) -> StateLeaf:
        if not 0 <= index < self.state_tree.leaves_count:
            raise TreeIndexError(f"State index {index} outside the state tree")
        leaf = self.state_leaves.get(index)
        if leaf is None:
            leaf = StateLeaf.empty(self.config.vote_option_tree_depth, self._vo_zero_hashes)
        return leaf

    # ========================================================================
    # FILLING
    # ========================================================================

    def sign_up(self, index: int, pub_key: Sequence[int], balance: int,
                d: Optional[Sequence[int]] = None) -> int:
        """Register a voter leaf; d carries an optional rerandomized (d1, d2)"""
        self._require_phase(Phase.FILLING, message="Vote period ended")
        if not 0 <= index < self.num_sign_ups:
            raise TreeIndexError(f"Sign-up index {index} outside [0, {self.num_sign_ups})")
        if index in self.state_leaves:
            raise AMACIError(f"State index {index} is already taken")

        d = list(d) if d is not None else [0, 0, 0, 0]
        leaf = StateLeaf(
            pub_key=(pub_key[0], pub_key[1]),
            balance=balance,
            vo_tree=QuinaryTree(self.config.vote_option_tree_depth, 0, self._vo_zero_hashes),
            d1=(d[0], d[1]),
            d2=(d[2], d[3]),
        )
        self.state_leaves[index] = leaf
        self.state_tree.update_leaf(index, leaf.hash())
        logger.info(f"Signed up state leaf {index} with balance {balance}")
        return index

    init_state_leaf = sign_up

    def _next_free_index(self) -> int:
        for index in range(self.num_sign_ups):
            if index not in self.state_leaves:
                return index
        raise AMACIError("No free state slot left in this round")

    def push_message(self, ciphertext: Sequence[int], enc_pub_key: Sequence[int]):
        self._require_phase(Phase.FILLING, message="Vote period ended")
        message = self.messages.append(ciphertext, enc_pub_key)
        command = decrypt_command(ciphertext, enc_pub_key, self.keypair.priv_key)
        self.commands.append(command)
        logger.debug(f"Message {len(self.messages) - 1} queued, decrypted: {command is not None}")
        return message

    def push_deactivate_message(self, ciphertext: Sequence[int], enc_pub_key: Sequence[int]):
        self._require_phase(Phase.FILLING, message="Vote period ended")
        message = self.deactivate_messages.append(ciphertext, enc_pub_key)
        command = decrypt_command(ciphertext, enc_pub_key, self.keypair.priv_key)
        self.deactivate_commands.append(command)
        logger.debug(f"Deactivate message {len(self.deactivate_messages) - 1} queued")
        return message

    def set_pre_deactivate_root(self, root: int):
        """Accept add-new-key inputs built against a pre-registration tree"""
        self.pre_deactivate_root = root

    def end_vote_period(self) -> int:
        if self.phase != Phase.FILLING:
            raise PhaseError("Vote period already ended")
        self.phase = Phase.PROCESSING
        self.msg_end_idx = len(self.messages)
        self.state_salt = 0
        self.state_commitment = poseidon([self.state_tree.root, 0])
        self.commitment_log.append(STATE, 0, self.state_commitment)
        logger.info(f"Vote period ended with {self.msg_end_idx} messages, entering processing")
        return self.state_commitment

    # ========================================================================
    # MESSAGE PROCESSING
    # ========================================================================

    def _check_command(self, command: Optional[Command]) -> Tuple[Optional[str], int, int, int]:
        """(verdict, state index, vote option index, new balance) for one slot"""
        cfg = self.config
        dummy = self.dummy_state_idx
        if command is None:
            return "empty command", dummy, 0, 0

        probe_idx = command.state_idx if command.state_idx < self.state_tree.leaves_count else dummy
        probe_vo = command.vo_idx if command.vo_idx < cfg.max_vote_options else 0
        leaf = self.get_state_leaf(probe_idx)

        result = validate_command(leaf, leaf.vo_tree.leaf(probe_vo), command, self.num_sign_ups,
                                  cfg.max_vote_options, cfg.is_quadratic_cost)
        checks = dict(result.checks)
        checks['state_index'] = checks['state_index'] and probe_idx == command.state_idx
        checks['active'] = is_active(
            self.active_state_tree.leaf(probe_idx),
            decrypt(self.keypair.formatted_priv_key, leaf.ciphertext))

        verdict = next((name for name, ok in checks.items() if not ok), None)
        flag = bool_to_field(verdict is None)
        state_idx = select(flag, command.state_idx, dummy)
        vo_idx = select(flag, command.vo_idx, 0)
        return verdict, state_idx, vo_idx, result.new_balance

    def process_messages(self, new_state_salt: int = 0) -> ProcessMessagesResult:
        """Process the last unprocessed batch, commands from last to first"""
        self._require_phase(Phase.PROCESSING, message="Period error - not in processing state")
        with self._track("process_messages"):
            result = self._process_message_batch(new_state_salt)
        if result.batch_start_idx == 0:
            self._end_processing_period()
        return result

    def _process_message_batch(self, new_state_salt: int) -> ProcessMessagesResult:
        cfg = self.config
        batch_size = cfg.batch_size
        batch_start = (self.msg_end_idx - 1) // batch_size * batch_size if self.msg_end_idx else 0
        batch_end = min(batch_start + batch_size, self.msg_end_idx)

        messages = list(self.messages[batch_start:batch_end])
        commands = list(self.commands[batch_start:batch_end])
        while len(messages) < batch_size:
            messages.append(empty_message())
            commands.append(None)

        current_state_root = self.state_tree.root
        current_state_commitment = self.state_commitment
        self.commitment_log.check(STATE, current_state_commitment)

        active_state_root = self.active_state_tree.root
        deactivate_root = self.deactivate_tree.root
        current_deactivate_commitment = deactivate_commitment(active_state_root, deactivate_root)

        current_state_leaves = [None] * batch_size
        current_state_paths = [None] * batch_size
        current_vote_weights = [0] * batch_size
        current_vote_paths = [None] * batch_size
        active_state_leaves = [0] * batch_size
        active_state_paths = [None] * batch_size
        verdicts: List[Optional[str]] = [None] * batch_size

        for i in reversed(range(batch_size)):
            command = commands[i]
            verdict, state_idx, vo_idx, new_balance = self._check_command(command)

            leaf = self.get_state_leaf(state_idx)
            current_vote = leaf.vo_tree.leaf(vo_idx)

            current_state_leaves[i] = leaf.as_circuit_input()
            current_state_paths[i] = self.state_tree.path_element_of(state_idx)
            current_vote_weights[i] = current_vote
            current_vote_paths[i] = leaf.vo_tree.path_element_of(vo_idx)
            active_state_leaves[i] = self.active_state_tree.leaf(state_idx)
            active_state_paths[i] = self.active_state_tree.path_element_of(state_idx)

            new_leaf = transform_state_leaf(
                leaf, command if command is not None else NULL_COMMAND,
                vo_idx, current_vote, verdict is None, new_balance)
            self.state_leaves[state_idx] = new_leaf
            self.state_tree.update_leaf(state_idx, new_leaf.hash())

            verdicts[i] = verdict
            self.verdicts[verdict or ACCEPTED] += 1
            if batch_start + i < batch_end:
                logger.debug(f"Message {batch_start + i}: {verdict or ACCEPTED}")

        new_state_root = self.state_tree.root
        new_state_commitment = poseidon([new_state_root, new_state_salt])
        packed_vals = pack_process_vals(cfg.max_vote_options, self.num_sign_ups, cfg.is_quadratic_cost)

        if batch_end > batch_start:
            batch_start_hash = self.messages[batch_start].prev_hash
            batch_end_hash = self.messages[batch_end - 1].hash
        else:
            batch_start_hash = batch_end_hash = 0

        input_hash = compute_input_hash([
            packed_vals,
            self.pub_key_hasher,
            batch_start_hash,
            batch_end_hash,
            current_state_commitment,
            new_state_commitment,
            current_deactivate_commitment,
        ])

        self.commitment_log.append(STATE, current_state_commitment, new_state_commitment)
        current_state_salt = self.state_salt
        self.state_commitment = new_state_commitment
        self.state_salt = new_state_salt
        self.msg_end_idx = batch_start

        result = ProcessMessagesResult(
            input_hash=input_hash,
            packed_vals=packed_vals,
            batch_start_idx=batch_start,
            batch_end_idx=batch_end,
            batch_start_hash=batch_start_hash,
            batch_end_hash=batch_end_hash,
            msgs=[m.ciphertext for m in messages],
            enc_pub_keys=[m.enc_pub_key for m in messages],
            coord_pub_key=self.keypair.pub_key,
            coord_priv_key=self.keypair.formatted_priv_key,
            current_state_root=current_state_root,
            current_state_salt=current_state_salt,
            current_state_commitment=current_state_commitment,
            new_state_root=new_state_root,
            new_state_salt=new_state_salt,
            new_state_commitment=new_state_commitment,
            active_state_root=active_state_root,
            deactivate_root=deactivate_root,
            deactivate_commitment=current_deactivate_commitment,
            current_state_leaves=current_state_leaves,
            current_state_leaves_path_elements=current_state_paths,
            current_vote_weights=current_vote_weights,
            current_vote_weights_path_elements=current_vote_paths,
            active_state_leaves=active_state_leaves,
            active_state_leaves_path_elements=active_state_paths,
            verdicts=verdicts,
        )
        logger.info(
            f"Processed messages [{batch_start}, {batch_end}): "
            f"{result.accepted} accepted, new state commitment {new_state_commitment}")
        return result

    def _end_processing_period(self):
        self.phase = Phase.TALLYING
        self.batch_num = 0
        self.tally_salt = 0
        self.tally_commitment = 0
        self.tally_results = QuinaryTree(self.config.vote_option_tree_depth, 0, self._vo_zero_hashes)
        logger.info("All messages processed, entering tallying")

    # ========================================================================
    # DEACTIVATION
    # ========================================================================

    def _check_deactivate_command(self, command: Optional[Command], sub_state_tree_length: int) -> Optional[str]:
        if command is None:
            return "empty command"
        if command.state_idx >= sub_state_tree_length:
            return "state_index"
        leaf = self.get_state_leaf(command.state_idx)
        if not parity_is_even(decrypt(self.keypair.formatted_priv_key, leaf.ciphertext)):
            return "deactivated"
        if not verify_command_signature(command, leaf.pub_key):
            return "signature"
        return None

    def process_deactivate_messages(self, input_size: Optional[int] = None,
                                    sub_state_tree_length: Optional[int] = None) -> DeactivateBatchResult:
        """Process the next deactivate batch in submission order"""
        self._require_phase(Phase.FILLING, Phase.PROCESSING,
                            message="Period error - deactivate processing is closed")
        batch_size = self.config.batch_size
        if input_size is None:
            input_size = batch_size
        if not 1 <= input_size <= batch_size:
            raise ValueError(f"input_size must lie in [1, {batch_size}]")
        if sub_state_tree_length is None:
            sub_state_tree_length = self.num_sign_ups

        batch_start = self.processed_deactivate_count
        pending = len(self.deactivate_messages) - batch_start
        if pending <= 0:
            raise AMACIError("No deactivate messages to process")
        batch_end = batch_start + min(input_size, pending)
        if batch_end > self.deactivate_tree.leaves_count:
            raise AMACIError("Deactivate tree is full")

        with self._track("process_deactivate_messages"):
            return self._process_deactivate_batch(batch_start, batch_end, sub_state_tree_length)

    def _process_deactivate_batch(self, batch_start: int, batch_end: int,
                                  sub_state_tree_length: int) -> DeactivateBatchResult:
        batch_size = self.config.batch_size
        dummy = self.dummy_state_idx
        sub_state_tree = self.state_tree.sub_tree(sub_state_tree_length)

        messages = list(self.deactivate_messages[batch_start:batch_end])
        commands = list(self.deactivate_commands[batch_start:batch_end])
        while len(messages) < batch_size:
            messages.append(empty_message())
            commands.append(None)

        current_active_root = self.active_state_tree.root
        current_deactivate_root = self.deactivate_tree.root
        current_commitment = deactivate_commitment(current_active_root, current_deactivate_root)
        self.commitment_log.check(DEACTIVATE, current_commitment)

        new_active_state = [batch_start + i + 1 for i in range(batch_size)]
        result = DeactivateBatchResult(
            input_hash=0,
            batch_start_idx=batch_start,
            batch_end_idx=batch_end,
            batch_start_hash=self.deactivate_messages[batch_start].prev_hash,
            batch_end_hash=self.deactivate_messages[batch_end - 1].hash,
            msgs=[m.ciphertext for m in messages],
            enc_pub_keys=[m.enc_pub_key for m in messages],
            coord_pub_key=self.keypair.pub_key,
            coord_priv_key=self.keypair.formatted_priv_key,
            new_active_state=new_active_state,
            current_active_state_root=current_active_root,
            current_deactivate_root=current_deactivate_root,
            current_deactivate_commitment=current_commitment,
            new_deactivate_root=0,
            new_deactivate_commitment=0,
            sub_state_tree_length=sub_state_tree_length,
            sub_state_root=sub_state_tree.root,
        )

        for i in range(batch_size):
            command = commands[i]
            verdict = self._check_deactivate_command(command, sub_state_tree_length)
            flag = bool_to_field(verdict is None)
            state_idx = select(flag, (command or NULL_COMMAND).state_idx, dummy)
            leaf = self.get_state_leaf(state_idx)
            slot = batch_start + i

            result.current_state_leaves.append(leaf.as_circuit_input())
            result.current_state_leaves_path_elements.append(sub_state_tree.path_element_of(state_idx))
            result.active_state_leaves.append(self.active_state_tree.leaf(state_idx))
            result.active_state_leaves_path_elements.append(self.active_state_tree.path_element_of(state_idx))
            if slot < self.deactivate_tree.leaves_count:
                result.deactivate_leaves_path_elements.append(self.deactivate_tree.path_element_of(slot))

            random_key = gen_static_random_key(
                self.keypair.priv_key, DEACTIVATE_RANDOM_SALT, new_active_state[i])
            deactivate_leaf = build_deactivate_leaf(verdict is not None, self.keypair, leaf.pub_key, random_key)
            result.c1.append(deactivate_leaf.c1)
            result.c2.append(deactivate_leaf.c2)

            self.active_state_tree.update_leaf(
                state_idx, select(flag, new_active_state[i], self.active_state_tree.leaf(state_idx)))

            # Rejected but non-empty requests still take a slot, with odd parity
            if verdict is None or not messages[i].is_empty():
                self.deactivate_tree.update_leaf(slot, deactivate_leaf.hash())
                self.deactivate_leaves[slot] = deactivate_leaf
                result.new_deactivates.append(deactivate_leaf)

            result.verdicts.append(verdict)
            if slot < batch_end:
                logger.debug(f"Deactivate message {slot}: {verdict or ACCEPTED}")

        result.new_deactivate_root = self.deactivate_tree.root
        result.new_deactivate_commitment = self.deactivate_commitment
        result.input_hash = compute_input_hash([
            result.new_deactivate_root,
            self.pub_key_hasher,
            result.batch_start_hash,
            result.batch_end_hash,
            current_commitment,
            result.new_deactivate_commitment,
            result.sub_state_root,
        ])

        self.commitment_log.append(DEACTIVATE, current_commitment, result.new_deactivate_commitment)
        self.processed_deactivate_count = batch_end
        logger.info(
            f"Processed deactivate messages [{batch_start}, {batch_end}): "
            f"{sum(1 for v in result.verdicts if v is None)} accepted")
        return result

    def published_deactivates(self) -> List[Optional[DeactivateLeaf]]:
        """Deactivate tree content in slot order, None for untouched slots"""
        return [self.deactivate_leaves.get(i) for i in range(self.processed_deactivate_count)]

    def add_new_key(self, request: AddKeyRequest, new_pub_key: Sequence[int], balance: int,
                    index: Optional[int] = None) -> Optional[int]:
        """Attach a deactivated slot to a new key; None when the request is rejected

        Only public values are checked here. The input hash is rebuilt from
        this coordinator's key and handed with the proof to the backend.
        """
        self._require_phase(Phase.FILLING, message="Vote period ended")

        accepted_roots = {self.deactivate_tree.root}
        if self.pre_deactivate_root is not None:
            accepted_roots.add(self.pre_deactivate_root)
        if request.deactivate_root not in accepted_roots:
            logger.warning("Add-new-key request references an unknown deactivate root")
            return None
        if request.nullifier in self.nullifiers:
            logger.warning("Add-new-key nullifier already spent")
            return None
        if not (in_curve(request.d1) and in_curve(request.d2)):
            logger.warning("Add-new-key ciphertext is not on the curve")
            return None
        if not self.add_key_backend.verify(request.proof, request.input_hash(self.keypair.pub_key)):
            logger.warning("Add-new-key proof rejected")
            return None

        if index is None:
            index = self._next_free_index()
        self.sign_up(index, new_pub_key, balance, request.d)
        self.nullifiers.add(request.nullifier)
        logger.info(f"New key attached at state leaf {index}")
        return index

    # ========================================================================
    # TALLY
    # ========================================================================

    def process_tally(self, tally_salt: int = 0) -> ProcessTallyResult:
        self._require_phase(Phase.TALLYING, message="Period error - not in tallying state")
        with self._track("process_tally"):
            return self._process_tally_batch(tally_salt)

    def _process_tally_batch(self, tally_salt: int) -> ProcessTallyResult:
        cfg = self.config
        batch_size = cfg.tally_batch_size
        batch_start = self.batch_num * batch_size
        batch_end = batch_start + batch_size

        current_tally_commitment = self.tally_commitment
        self.commitment_log.check(TALLY, current_tally_commitment)

        state_path_elements = self.state_tree.path_element_of(batch_start)[cfg.int_state_tree_depth:]
        current_results = self.tally_results.leaves()
        current_results_root = self.tally_results.root

        results = list(current_results)
        state_leaves = []
        votes = []
        for index in range(batch_start, batch_end):
            leaf = self.get_state_leaf(index)
            weights = [leaf.vo_tree.leaf(j) for j in range(self.vote_option_size)]
            state_leaves.append(leaf.as_circuit_input())
            votes.append(weights)
            if leaf.voted:
                results = accumulate(results, weights)

        self.tally_results.init_leaves(results)
        new_results_root = self.tally_results.root
        new_tally_commitment = poseidon([new_results_root, tally_salt])

        packed_vals = pack_tally_vals(self.batch_num, self.num_sign_ups)
        input_hash = compute_input_hash([
            packed_vals,
            self.state_commitment,
            current_tally_commitment,
            new_tally_commitment,
        ])
        self.commitment_log.append(TALLY, current_tally_commitment, new_tally_commitment)

        result = ProcessTallyResult(
            input_hash=input_hash,
            packed_vals=packed_vals,
            batch_num=self.batch_num,
            batch_start_idx=batch_start,
            batch_end_idx=batch_end,
            state_root=self.state_tree.root,
            state_salt=self.state_salt,
            state_commitment=self.state_commitment,
            current_tally_commitment=current_tally_commitment,
            new_tally_commitment=new_tally_commitment,
            current_results=current_results,
            current_results_root=current_results_root,
            current_results_root_salt=self.tally_salt,
            new_results_root=new_results_root,
            new_results_root_salt=tally_salt,
            state_path_elements=state_path_elements,
            state_leaves=state_leaves,
            votes=votes,
        )

        self.batch_num += 1
        self.tally_salt = tally_salt
        self.tally_commitment = new_tally_commitment
        logger.info(f"Tally batch {result.batch_num} covered leaves [{batch_start}, {batch_end})")

        if batch_end >= self.num_sign_ups:
            self.phase = Phase.ENDED
            logger.info("Tally complete, round ended")
        return result

    def get_tally_results(self) -> List[int]:
        if self.tally_results is None:
            raise PhaseError("Tally has not started")
        return self.tally_results.leaves()[:self.config.max_vote_options]
