"""YAML configuration loader with validation."""

from pathlib import Path
from typing import Dict, Any, Union
import yaml
from pydantic import ValidationError

from quarter_signal.config.schema import RunConfig
from quarter_signal.config.defaults import get_default_config


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load YAML file.

    Args:
        path: Path to YAML file

    Returns:
        Dictionary with YAML contents

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If YAML is invalid or empty
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r") as f:
        try:
            config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML file: {e}")

    if config is None:
        raise ValueError(f"Empty configuration file: {path}")

    return config


def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge two dictionaries (override wins)."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def merge_with_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """Merge configuration with defaults.

    Signals are never merged: a user config without 'signals' gets an empty
    list rather than the example signal.

    Args:
        config: User configuration

    Returns:
        Merged configuration
    """
    defaults = get_default_config()
    defaults["signals"] = []
    return deep_merge(defaults, config)


def load_config_from_dict(config_dict: Dict[str, Any], validate: bool = True) -> RunConfig:
    """Load and validate run configuration from dictionary.

    Args:
        config_dict: Configuration dictionary
        validate: Whether to validate configuration (default: True)

    Returns:
        RunConfig object

    Example:
        >>> config = load_config_from_dict({"data": {"path": "quarters.csv"}})
    """
    config_dict = merge_with_defaults(config_dict)

    if validate:
        try:
            config = RunConfig(**config_dict)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e}")
    else:
        config = RunConfig.model_construct(**config_dict)

    return config


def load_config(path: Union[str, Path], validate: bool = True) -> RunConfig:
    """Load and validate run configuration from YAML file.

    Args:
        path: Path to YAML configuration file
        validate: Whether to validate configuration (default: True)

    Returns:
        Validated RunConfig object

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If configuration is invalid

    Example:
        >>> config = load_config("signals.yaml")
        >>> print(config.data.path)
    """
    return load_config_from_dict(load_yaml(path), validate=validate)


def save_config(config: RunConfig, path: Union[str, Path]) -> None:
    """Save configuration to YAML file.

    Args:
        config: RunConfig object
        path: Output path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)
