"""
Shared fixtures for the coordinator test suite
"""

import sys
from pathlib import Path
from typing import List, Sequence, Tuple

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from amaci.command import Command, encrypt_command  # noqa: E402
from amaci.coordinator import Coordinator, Phase  # noqa: E402
from babyjub.keys import Keypair, gen_keypair  # noqa: E402
from config.config import RoundConfig  # noqa: E402

BALANCE = 100


@pytest.fixture(scope="session")
def coord_keypair() -> Keypair:
    return gen_keypair(111111)


@pytest.fixture(scope="session")
def voter_keypairs() -> List[Keypair]:
    return [gen_keypair(1000 + i) for i in range(10)]


@pytest.fixture
def round_config() -> RoundConfig:
    return RoundConfig(
        state_tree_depth=2,
        int_state_tree_depth=1,
        vote_option_tree_depth=1,
        batch_size=5,
        max_vote_options=5,
        num_sign_ups=10,
        is_quadratic_cost=False,
    )


@pytest.fixture
def quadratic_config(round_config) -> RoundConfig:
    round_config.is_quadratic_cost = True
    return round_config


@pytest.fixture
def coordinator(coord_keypair, round_config) -> Coordinator:
    return Coordinator(coord_keypair, round_config)


def push_command(coordinator: Coordinator, signer: Keypair, nonce: int, state_idx: int,
                 vo_idx: int, new_votes: int, new_pub_key: Sequence[int] = None):
    """Sign, encrypt and queue one command with full control over its fields"""
    command = Command(
        nonce=nonce,
        state_idx=state_idx,
        vo_idx=vo_idx,
        new_votes=new_votes,
        new_pub_key=tuple(new_pub_key) if new_pub_key is not None else signer.pub_key,
        salt=12345,
    ).sign(signer.priv_key)
    enc_keypair = gen_keypair()
    ciphertext = encrypt_command(command, enc_keypair.priv_key, coordinator.keypair.pub_key)
    return coordinator.push_message(ciphertext, enc_keypair.pub_key)


def finish_round(coordinator: Coordinator) -> Tuple[list, list]:
    """End voting and run every processing and tally batch"""
    coordinator.end_vote_period()
    process_results = []
    while coordinator.phase == Phase.PROCESSING:
        process_results.append(coordinator.process_messages())
    tally_results = []
    while coordinator.phase == Phase.TALLYING:
        tally_results.append(coordinator.process_tally())
    return process_results, tally_results
