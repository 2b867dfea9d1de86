"""Configuration management for the voting coordinator."""

from .config import RoundConfig, SystemConfig, load_config, save_config

__all__ = ['RoundConfig', 'SystemConfig', 'load_config', 'save_config']
