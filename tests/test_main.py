"""
End-to-end round driven through the command-line orchestrator
"""

import pytest

from config.config import RoundConfig, SystemConfig
from main import RoundOrchestrator, build_round_config


class TestBuildRoundConfig:

    def test_grows_trees_for_electorate(self):
        config = build_round_config(RoundConfig(), 30, 7, quadratic=True, deactivate=True)
        assert config.num_sign_ups == 31
        assert config.state_tree_depth == 3
        assert config.vote_option_tree_depth == 2
        assert config.max_vote_options == 7
        assert config.is_quadratic_cost

    def test_keeps_small_defaults(self):
        config = build_round_config(RoundConfig(), 4, 3, quadratic=False, deactivate=False)
        assert config.state_tree_depth == 2
        assert config.num_sign_ups == 4


class TestRoundOrchestrator:

    @pytest.mark.parametrize("quadratic,deactivate", [(False, False), (True, True)])
    def test_round_passes_integrity_checks(self, tmp_path, monkeypatch, quadratic, deactivate):
        monkeypatch.chdir(tmp_path)
        system_config = SystemConfig()
        round_config = build_round_config(system_config.round, 3, 3, quadratic, deactivate)

        results = RoundOrchestrator(system_config, round_config).run_round(3, deactivate)

        assert results['integrity_checks']['all_checks_passed']
        assert len(results['tally']) == 3
        if deactivate:
            assert results['verdicts']['active'] == 1
