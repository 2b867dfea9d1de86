from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any

import yaml

# Largest Poseidon arity is 16 inputs, the quinary tree needs 5
TREE_ARITY = 5


@dataclass
class RoundConfig:
    """Shape of one voting round

    Depths are in quinary levels; the deactivate tree is always two levels
    deeper than the state tree.
    """
    state_tree_depth: int = 2
    int_state_tree_depth: int = 1
    vote_option_tree_depth: int = 1
    batch_size: int = 5
    max_vote_options: int = 5
    num_sign_ups: int = 25
    is_quadratic_cost: bool = False

    def __post_init__(self):
        if self.state_tree_depth < 1:
            raise ValueError("state_tree_depth must be at least 1")
        if not 1 <= self.int_state_tree_depth <= self.state_tree_depth:
            raise ValueError("int_state_tree_depth must lie in [1, state_tree_depth]")
        if self.vote_option_tree_depth < 1:
            raise ValueError("vote_option_tree_depth must be at least 1")
        if self.batch_size < 1:
            raise ValueError("batch_size must be positive")
        if not 1 <= self.max_vote_options <= self.vote_option_capacity:
            raise ValueError(
                f"max_vote_options must lie in [1, {self.vote_option_capacity}]")
        if not 1 <= self.num_sign_ups <= self.state_capacity:
            raise ValueError(f"num_sign_ups must lie in [1, {self.state_capacity}]")

    @property
    def deactivate_tree_depth(self) -> int:
        return self.state_tree_depth + 2

    @property
    def state_capacity(self) -> int:
        return TREE_ARITY ** self.state_tree_depth

    @property
    def vote_option_capacity(self) -> int:
        return TREE_ARITY ** self.vote_option_tree_depth

    @property
    def tally_batch_size(self) -> int:
        return TREE_ARITY ** self.int_state_tree_depth

    def to_dict(self) -> Dict[str, Any]:
        return {
            'state_tree_depth': self.state_tree_depth,
            'int_state_tree_depth': self.int_state_tree_depth,
            'vote_option_tree_depth': self.vote_option_tree_depth,
            'batch_size': self.batch_size,
            'max_vote_options': self.max_vote_options,
            'num_sign_ups': self.num_sign_ups,
            'is_quadratic_cost': self.is_quadratic_cost,
        }


@dataclass
class SystemConfig:
    round: RoundConfig = field(default_factory=RoundConfig)

    log_dir: Path = field(default_factory=lambda: Path("logs"))
    results_dir: Path = field(default_factory=lambda: Path("results"))
    log_level: str = "INFO"
    enable_benchmarking: bool = True
    enable_debug_mode: bool = False

    def __post_init__(self):
        self.log_dir = Path(self.log_dir)
        self.results_dir = Path(self.results_dir)

        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.results_dir.mkdir(parents=True, exist_ok=True)

        if self.enable_debug_mode:
            self.log_level = "DEBUG"


def load_config(config_path: Optional[Path] = None) -> SystemConfig:
    """Load configuration from file or return default"""
    if config_path is None:
        config_path = Path("config.yaml")
    config_path = Path(config_path)

    if config_path.exists():
        try:
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}

            defaults = RoundConfig()
            round_data = config_data.get('round', {})
            round_config = RoundConfig(
                state_tree_depth=round_data.get('state_tree_depth', defaults.state_tree_depth),
                int_state_tree_depth=round_data.get(
                    'int_state_tree_depth', defaults.int_state_tree_depth),
                vote_option_tree_depth=round_data.get(
                    'vote_option_tree_depth', defaults.vote_option_tree_depth),
                batch_size=round_data.get('batch_size', defaults.batch_size),
                max_vote_options=round_data.get('max_vote_options', defaults.max_vote_options),
                num_sign_ups=round_data.get('num_sign_ups', defaults.num_sign_ups),
                is_quadratic_cost=round_data.get('is_quadratic_cost', defaults.is_quadratic_cost),
            )

            return SystemConfig(
                round=round_config,
                log_dir=Path(config_data.get('log_dir', 'logs')),
                results_dir=Path(config_data.get('results_dir', 'results')),
                log_level=config_data.get('log_level', 'INFO'),
                enable_benchmarking=config_data.get('enable_benchmarking', True),
                enable_debug_mode=config_data.get('enable_debug_mode', False)
            )
        except (yaml.YAMLError, AttributeError, TypeError, ValueError) as e:
            print(f"Warning: Could not load config file {config_path}: {e}")
            print("Using default configuration")

    return SystemConfig()


def save_config(config: SystemConfig, config_path: Optional[Path] = None):
    """Save configuration to YAML file"""
    if config_path is None:
        config_path = Path("config.yaml")

    config_data = {
        'round': config.round.to_dict(),
        'log_dir': str(config.log_dir),
        'results_dir': str(config.results_dir),
        'log_level': config.log_level,
        'enable_benchmarking': config.enable_benchmarking,
        'enable_debug_mode': config.enable_debug_mode
    }

    try:
        with open(config_path, 'w') as f:
            yaml.dump(config_data, f, default_flow_style=False)
    except OSError as e:
        print(f"Warning: Could not save config file {config_path}: {e}")
