"""Configuration system for quarterly signal runs."""

from quarter_signal.config.schema import (
    RunConfig,
    DataConfig,
    SignalConfig,
    EvaluatorSettings,
)
from quarter_signal.config.loader import load_config, load_config_from_dict, save_config
from quarter_signal.config.defaults import get_default_config

__all__ = [
    "RunConfig",
    "DataConfig",
    "SignalConfig",
    "EvaluatorSettings",
    "load_config",
    "load_config_from_dict",
    "save_config",
    "get_default_config",
]
