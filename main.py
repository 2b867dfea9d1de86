import argparse
import dataclasses
import logging
import sys
import time
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Tuple

import numpy as np

from amaci.coordinator import Coordinator, Phase
from amaci.tally import unpack_tally_value
from amaci.voter import VoterClient
from babyjub.keys import Keypair, gen_keypair
from config.config import TREE_ARITY, RoundConfig, SystemConfig, load_config
from utils.utils import setup_logging, save_results, PerformanceMonitor, create_performance_report, format_duration

logger = logging.getLogger(__name__)

VOICE_CREDITS = 100


def _depth_for(capacity: int) -> int:
    depth = 1
    while TREE_ARITY ** depth < capacity:
        depth += 1
    return depth


def build_round_config(base: RoundConfig, num_voters: int, num_options: int,
                       quadratic: bool, deactivate: bool) -> RoundConfig:
    """Size the trees for the requested electorate"""
    num_sign_ups = num_voters + (1 if deactivate else 0)
    state_depth = max(base.state_tree_depth, _depth_for(num_sign_ups))
    return dataclasses.replace(
        base,
        state_tree_depth=state_depth,
        int_state_tree_depth=min(base.int_state_tree_depth, state_depth),
        vote_option_tree_depth=max(base.vote_option_tree_depth, _depth_for(num_options)),
        max_vote_options=num_options,
        num_sign_ups=num_sign_ups,
        is_quadratic_cost=quadratic or base.is_quadratic_cost,
    )


class RoundOrchestrator:
    """Drives one full round: sign-up, voting, processing and tally"""

    def __init__(self, config: SystemConfig, round_config: RoundConfig, seed: int = 42):
        self.config = config
        self.round_config = round_config
        self.performance_monitor = PerformanceMonitor()
        self.rng = np.random.default_rng(seed)

        self.coord_keypair = gen_keypair()
        self.coordinator = Coordinator(self.coord_keypair, round_config, monitor=self.performance_monitor)
        self.expected_votes = [0] * round_config.max_vote_options
        self.results: Dict[str, Any] = {
            'round': round_config.to_dict(),
            'tally': [],
            'commitments': {},
            'verdicts': {},
            'performance_metrics': {},
            'integrity_checks': {},
        }

        logger.info("Initialized round orchestrator")

    def _random_plan(self) -> Tuple[int, int]:
        max_weight = 10 if self.round_config.is_quadratic_cost else VOICE_CREDITS
        option = int(self.rng.integers(0, self.round_config.max_vote_options))
        weight = int(self.rng.integers(1, max_weight))
        return option, weight

    def sign_up_voters(self, num_voters: int) -> List[VoterClient]:
        voters = []
        with self.performance_monitor.start_operation("sign_up"):
            for index in range(num_voters):
                keypair = gen_keypair()
                self.coordinator.sign_up(index, keypair.pub_key, VOICE_CREDITS)
                voters.append(VoterClient(keypair, self.coord_keypair.pub_key))
        return voters

    def cast_vote(self, voter: VoterClient, state_idx: int, counted: bool = True):
        option, weight = self._random_plan()
        with self.performance_monitor.start_operation("cast_vote"):
            for message in voter.gen_vote_payload(state_idx, [(option, weight)]):
                self.coordinator.push_message(message.ciphertext, message.enc_pub_key)
        if counted:
            self.expected_votes[option] += weight

    def rotate_key(self, voter: VoterClient, state_idx: int) -> Tuple[VoterClient, int]:
        """Deactivate a voter's key and attach the slot to a fresh key"""
        deactivate = voter.gen_deactivate_payload(state_idx)
        self.coordinator.push_deactivate_message(deactivate.ciphertext, deactivate.enc_pub_key)
        self.coordinator.process_deactivate_messages()

        new_keypair = gen_keypair()
        request = voter.gen_add_key_request(
            self.round_config.deactivate_tree_depth, self.coordinator.published_deactivates(),
            self.coordinator.add_key_backend)
        if request is None:
            raise RuntimeError("Deactivated key has no provable deactivate leaf")
        new_idx = self.coordinator.add_new_key(request, new_keypair.pub_key, VOICE_CREDITS)
        if new_idx is None:
            raise RuntimeError("Coordinator rejected the add-new-key request")
        return VoterClient(new_keypair, self.coord_keypair.pub_key), new_idx

    def run_round(self, num_voters: int, deactivate: bool = False) -> Dict[str, Any]:
        round_start = time.time()
        voters = self.sign_up_voters(num_voters)

        if deactivate and voters:
            new_voter, new_idx = self.rotate_key(voters[0], 0)
            # The old key is inactive now; its vote must be dropped
            self.cast_vote(voters[0], 0, counted=False)
            self.cast_vote(new_voter, new_idx)
            voters = voters[1:]
            first_idx = 1
        else:
            first_idx = 0

        for offset, voter in enumerate(voters):
            self.cast_vote(voter, first_idx + offset)

        self.coordinator.end_vote_period()
        while self.coordinator.phase == Phase.PROCESSING:
            self.coordinator.process_messages()
        while self.coordinator.phase == Phase.TALLYING:
            self.coordinator.process_tally()

        tally = self.coordinator.get_tally_results()
        for option, packed in enumerate(tally):
            votes, credits = unpack_tally_value(packed)
            self.results['tally'].append({'option': option, 'votes': votes, 'voice_credits': credits})

        round_time = time.time() - round_start
        self.results['commitments'] = {
            'state': self.coordinator.state_commitment,
            'tally': self.coordinator.tally_commitment,
            'deactivate': self.coordinator.deactivate_commitment,
        }
        self.results['verdicts'] = dict(self.coordinator.verdicts)
        self.results['performance_metrics'] = {
            'total_voters': num_voters,
            'messages': len(self.coordinator.messages),
            'total_round_time': round_time,
        }
        self.results['integrity_checks'] = self._perform_integrity_checks()
        logger.info(f"Round completed in {format_duration(round_time)}")
        return self.results

    def _perform_integrity_checks(self) -> Dict[str, bool]:
        checks = {}
        votes = [entry['votes'] for entry in self.results['tally']]
        checks['tally_matches_plans'] = votes == self.expected_votes
        checks['round_ended'] = self.coordinator.phase == Phase.ENDED
        log = self.coordinator.commitment_log
        checks['state_chain_closed'] = log.latest('state') == self.coordinator.state_commitment
        checks['tally_chain_closed'] = log.latest('tally') == self.coordinator.tally_commitment
        checks['all_checks_passed'] = all(checks.values())
        return checks


def run_demo(config: SystemConfig, num_voters: int, num_options: int,
             quadratic: bool, deactivate: bool) -> bool:
    print("=" * 80)
    print("ANONYMOUS QUADRATIC VOTING - COORDINATOR DEMONSTRATION")
    print("=" * 80)

    round_config = build_round_config(config.round, num_voters, num_options, quadratic, deactivate)
    orchestrator = RoundOrchestrator(config, round_config)

    print(f"\nRound: {num_voters} voters, {num_options} options, "
          f"{'quadratic' if round_config.is_quadratic_cost else 'linear'} cost, "
          f"state tree depth {round_config.state_tree_depth}")

    try:
        results = orchestrator.run_round(num_voters, deactivate)
    except (ValueError, RuntimeError) as e:
        print(f"\nDemo failed: {e}")
        logger.exception("Round failed")
        return False

    print("\nFinal Tally:")
    for entry in results['tally']:
        print(f"  Option {entry['option']}: {entry['votes']} votes ({entry['voice_credits']} credits)")

    print("\nMessage verdicts:")
    for reason, count in Counter(results['verdicts']).most_common():
        print(f"  {reason}: {count}")

    print("\nIntegrity Checks:")
    for check, passed in results['integrity_checks'].items():
        print(f"  {check}: {'PASSED' if passed else 'FAILED'}")

    report_path = config.results_dir / "round_report.json"
    save_results(results, report_path)
    perf_path = config.results_dir / "performance_report.txt"
    with open(perf_path, "w") as f:
        f.write(create_performance_report(orchestrator.performance_monitor))

    print(f"\nFull results saved to: {report_path}")
    print(f"Performance report: {perf_path}")
    return results['integrity_checks']['all_checks_passed']


def run_benchmark(config: SystemConfig, num_voters: int, num_options: int,
                  quadratic: bool, deactivate: bool) -> bool:
    round_config = build_round_config(config.round, num_voters, num_options, quadratic, deactivate)
    orchestrator = RoundOrchestrator(config, round_config)
    results = orchestrator.run_round(num_voters, deactivate)

    report = create_performance_report(orchestrator.performance_monitor)
    print(report)
    save_results({'benchmark': orchestrator.performance_monitor.get_summary(), **results},
                 config.results_dir / "benchmark.json")
    return results['integrity_checks']['all_checks_passed']


def main():
    parser = argparse.ArgumentParser(
        description='Anonymous quadratic voting coordinator')
    parser.add_argument('--voters', type=int, default=8,
                        help='Number of voters')
    parser.add_argument('--options', type=int, default=5,
                        help='Number of vote options')
    parser.add_argument('--config', type=str,
                        default='config.yaml', help='Config file path')
    parser.add_argument(
        '--mode', choices=['demo', 'benchmark'], default='demo')
    parser.add_argument('--quadratic', action='store_true',
                        help='Charge weight squared instead of weight')
    parser.add_argument('--deactivate', action='store_true',
                        help='Rotate the first voter key through deactivation')

    args = parser.parse_args()

    config = load_config(Path(args.config))
    setup_logging(config.log_level, config.log_dir / "coordinator.log")

    if args.mode == 'demo':
        success = run_demo(config, args.voters, args.options, args.quadratic, args.deactivate)
    else:
        success = run_benchmark(config, args.voters, args.options, args.quadratic, args.deactivate)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
