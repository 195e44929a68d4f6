"""Load and validate ramp configuration files (YAML or JSON)."""

import json
import os
from dataclasses import fields
from typing import List

import yaml

from rampload.models import RampConfig


class ConfigValidationError(Exception):
    """Raised when a ramp config fails validation."""


_INT_FIELDS = (
    "start_freq",
    "slope_per_minute",
    "duration_minutes",
    "plateau_minutes",
    "max_workers",
    "metrics_period_seconds",
)


def load_config(path: str) -> RampConfig:
    """Load ramp parameters from a YAML or JSON file.

    Keys that are absent keep their RampConfig defaults.

    Args:
        path: Path to the config file.

    Returns:
        A validated RampConfig instance.

    Raises:
        ConfigValidationError: If the file is missing, unreadable, or invalid.
    """
    if not os.path.isfile(path):
        raise ConfigValidationError(f"config file not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    try:
        with open(path, "r") as f:
            if ext in (".yaml", ".yml"):
                raw = yaml.safe_load(f)
            elif ext == ".json":
                raw = json.load(f)
            else:
                raise ConfigValidationError(
                    f"unsupported file extension: {ext} (expected .yaml, .yml, or .json)"
                )
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigValidationError(f"failed to parse {path}: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigValidationError("config must be a mapping/object at the top level")

    return build_config(raw)


def build_config(raw: dict) -> RampConfig:
    """Construct and validate a RampConfig from a raw dict."""
    errors: List[str] = []
    known = {f.name for f in fields(RampConfig)}

    for key in sorted(set(raw) - known):
        errors.append(f"unknown key '{key}'")

    values = {}
    for key in _INT_FIELDS:
        if key not in raw:
            continue
        val = raw[key]
        # bool is an int subclass; reject it explicitly
        if isinstance(val, bool) or not isinstance(val, int):
            errors.append(f"'{key}' must be an integer")
            continue
        values[key] = val

    if "timeout_seconds" in raw:
        timeout = raw["timeout_seconds"]
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            errors.append("'timeout_seconds' must be a number")
        else:
            values["timeout_seconds"] = float(timeout)

    if "attack_name" in raw:
        if not isinstance(raw["attack_name"], str):
            errors.append("'attack_name' must be a string")
        else:
            values["attack_name"] = raw["attack_name"]

    config = RampConfig().with_overrides(**values)
    errors.extend(validate_config(config))

    if errors:
        raise ConfigValidationError(
            "config validation failed:\n  - " + "\n  - ".join(errors)
        )
    return config


def validate_config(config: RampConfig) -> List[str]:
    """Range checks shared by file-loaded and command-line configs.

    Frequencies and slopes are not checked.
    """
    errors = []
    if config.duration_minutes < 1:
        errors.append("'duration_minutes' must be >= 1")
    if config.plateau_minutes < 0:
        errors.append("'plateau_minutes' must be >= 0")
    if config.max_workers < 1:
        errors.append("'max_workers' must be >= 1")
    if config.metrics_period_seconds < 1:
        errors.append("'metrics_period_seconds' must be >= 1")
    if config.timeout_seconds <= 0:
        errors.append("'timeout_seconds' must be > 0")
    return errors
