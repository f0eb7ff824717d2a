"""
Configuration handling for TwiddlePID.

Configuration lives in a YAML file with three sections: initial PID gains,
twiddle tuner parameters and the optional error history. Only starting
values are stored; tuned gains are never written back.
"""

import copy
import math
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from loguru import logger

from .controller import DEFAULT_KD, DEFAULT_KI, DEFAULT_KP
from .error_history import DEFAULT_HISTORY_SIZE
from .exceptions import ConfigurationError


def create_default_config() -> Dict[str, Any]:
    """Create default configuration structure."""
    return {
        "pid": {
            "kp": DEFAULT_KP,
            "ki": DEFAULT_KI,
            "kd": DEFAULT_KD,
        },
        "twiddle": {
            "tolerance": 0.2,
            "initial_step": 1.0,
            "error_scale": 1000.0,
            "increase_factor": 1.1,
            "decrease_factor": 0.9,
            "samples_per_window": 100,
            "max_windows": None,
        },
        "history": {
            "enabled": False,
            "size": DEFAULT_HISTORY_SIZE,
        },
    }


def merge_config(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge updates into a copy of base.

    Args:
        base: Configuration to start from
        updates: Partial configuration overriding base

    Returns:
        New merged configuration
    """
    merged = copy.deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def _require_number(section: Dict[str, Any], name: str, key: str) -> float:
    if key not in section:
        raise ConfigurationError(f"Missing required {name} parameter: {key}")

    value = section[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name}.{key} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ConfigurationError(f"{name}.{key} must be finite")
    return value


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and value ranges.

    Raises:
        ConfigurationError: If a section or parameter is missing or invalid
    """
    if not isinstance(config, dict):
        raise ConfigurationError("Configuration must be a mapping")

    for section in ("pid", "twiddle"):
        if not isinstance(config.get(section), dict):
            raise ConfigurationError(
                f"Missing required configuration section: {section}"
            )

    pid_config = config["pid"]
    for key in ("kp", "ki", "kd"):
        _require_number(pid_config, "pid", key)

    twiddle_config = config["twiddle"]
    if _require_number(twiddle_config, "twiddle", "tolerance") <= 0:
        raise ConfigurationError("twiddle.tolerance must be positive")
    if _require_number(twiddle_config, "twiddle", "initial_step") <= 0:
        raise ConfigurationError("twiddle.initial_step must be positive")
    if _require_number(twiddle_config, "twiddle", "error_scale") <= 0:
        raise ConfigurationError("twiddle.error_scale must be positive")
    if _require_number(twiddle_config, "twiddle", "increase_factor") <= 1:
        raise ConfigurationError("twiddle.increase_factor must be greater than 1")
    if not 0 < _require_number(twiddle_config, "twiddle", "decrease_factor") < 1:
        raise ConfigurationError("twiddle.decrease_factor must be between 0 and 1")

    samples = twiddle_config.get("samples_per_window", 100)
    if isinstance(samples, bool) or not isinstance(samples, int) or samples <= 0:
        raise ConfigurationError("twiddle.samples_per_window must be a positive integer")

    max_windows = twiddle_config.get("max_windows")
    if max_windows is not None and (
        isinstance(max_windows, bool)
        or not isinstance(max_windows, int)
        or max_windows <= 0
    ):
        raise ConfigurationError("twiddle.max_windows must be a positive integer or null")

    history_config = config.get("history", {})
    if not isinstance(history_config, dict):
        raise ConfigurationError("history section must be a mapping")
    size = history_config.get("size", DEFAULT_HISTORY_SIZE)
    if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
        raise ConfigurationError("history.size must be a positive integer")


def save_config(config: Dict[str, Any], path: Union[str, Path]) -> None:
    """
    Save configuration to a YAML file.

    Raises:
        ConfigurationError: If the file cannot be written
    """
    config_path = Path(path)
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            yaml.dump(config, f, default_flow_style=False, indent=2)
        logger.info(f"Configuration saved to {config_path}")

    except OSError as e:
        logger.error(f"Failed to save configuration: {e}")
        raise ConfigurationError(f"Configuration save error: {e}") from e


def load_config(
    path: Union[str, Path], create_if_missing: bool = True
) -> Dict[str, Any]:
    """
    Load configuration from a YAML file.

    Missing sections and keys fall back to the defaults. When the file does
    not exist and create_if_missing is set, the defaults are written to it.

    Args:
        path: Path to YAML configuration file
        create_if_missing: Write the default configuration if the file is absent

    Returns:
        Validated configuration

    Raises:
        ConfigurationError: If the file cannot be read, parsed or validated
    """
    config_path = Path(path)

    if not config_path.exists():
        if not create_if_missing:
            logger.error(f"Configuration file not found: {config_path}")
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        logger.warning(
            f"Configuration file not found, creating default: {config_path}"
        )
        config = create_default_config()
        save_config(config, config_path)
        return config

    logger.info(f"Loading existing configuration from {config_path}")
    try:
        with open(config_path, "r") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration: {e}")
        raise ConfigurationError(f"Configuration parsing error: {e}") from e
    except OSError as e:
        logger.error(f"Failed to load configuration: {e}")
        raise ConfigurationError(f"Configuration loading error: {e}") from e

    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        logger.error(f"Configuration root is not a mapping: {config_path}")
        raise ConfigurationError("Configuration must be a mapping")

    config = merge_config(create_default_config(), loaded)
    validate_config(config)
    return config
