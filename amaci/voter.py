"""
Voter-side message construction.

A vote plan is submitted newest-nonce first so that the coordinator, which
processes messages last to first, applies the commands in nonce order.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from babyjub.curve import Point
from babyjub.keys import Keypair, gen_keypair

from .command import Command, encrypt_command, gen_command_salt
from .deactivate import AddKeyRequest, AddKeyWitness, gen_add_key_request, gen_add_key_witness
from .state import DeactivateLeaf

logger = logging.getLogger(__name__)


@dataclass
class MessagePayload:
    ciphertext: List[int]
    enc_pub_key: Point


class VoterClient:
    """Builds signed, encrypted commands for one voter keypair"""

    def __init__(self, keypair: Keypair, coord_pub_key: Sequence[int]):
        self.keypair = keypair
        self.coord_pub_key = (coord_pub_key[0], coord_pub_key[1])

    def build_message(self, command: Command) -> MessagePayload:
        """Sign with the voter key and encrypt under a fresh ephemeral key"""
        enc_keypair = gen_keypair()
        signed = command.sign(self.keypair.priv_key)
        return MessagePayload(
            ciphertext=encrypt_command(signed, enc_keypair.priv_key, self.coord_pub_key),
            enc_pub_key=enc_keypair.pub_key,
        )

    def gen_vote_payload(self, state_idx: int, plan: Sequence[Tuple[int, int]],
                         new_pub_key: Optional[Point] = None) -> List[MessagePayload]:
        """Messages for a list of (vote option, weight) pairs

        Every command keeps the current key except the final one, which
        carries new_pub_key (defaults to (0, 0), locking the leaf).
        """
        payload = []
        for i in reversed(range(len(plan))):
            vo_idx, weight = plan[i]
            is_last = i == len(plan) - 1
            if is_last:
                command_key = new_pub_key if new_pub_key is not None else (0, 0)
            else:
                command_key = self.keypair.pub_key
            command = Command(
                nonce=i + 1,
                state_idx=state_idx,
                vo_idx=vo_idx,
                new_votes=weight,
                new_pub_key=command_key,
                salt=gen_command_salt(),
            )
            payload.append(self.build_message(command))
        logger.debug(f"Built {len(payload)} vote messages for state leaf {state_idx}")
        return payload

    def gen_deactivate_payload(self, state_idx: int) -> MessagePayload:
        """A single zero-weight command with nonce 1 and a (0, 0) key"""
        return self.gen_vote_payload(state_idx, [(0, 0)])[0]

    def gen_add_key_witness(self, depth: int, deactivates: Sequence[Optional[DeactivateLeaf]],
                            random_val: Optional[int] = None) -> Optional[AddKeyWitness]:
        return gen_add_key_witness(depth, self.coord_pub_key, self.keypair, deactivates, random_val)

    def gen_add_key_request(self, depth: int, deactivates: Sequence[Optional[DeactivateLeaf]], backend,
                            random_val: Optional[int] = None) -> Optional[AddKeyRequest]:
        """Public add-new-key request; the witness stays with this client"""
        witness = self.gen_add_key_witness(depth, deactivates, random_val)
        if witness is None:
            return None
        return gen_add_key_request(witness, backend)
