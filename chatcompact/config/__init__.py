"""Configuration module for chatcompact."""

from chatcompact.config.loader import load_config, get_config_path, save_config
from chatcompact.config.schema import CompactionConfig, Config, SummaryConfig

__all__ = [
    "CompactionConfig",
    "Config",
    "SummaryConfig",
    "get_config_path",
    "load_config",
    "save_config",
]
