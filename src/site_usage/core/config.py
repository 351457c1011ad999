"""Configuration loading utilities.

Supports YAML and JSON configuration files with schema validation.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from site_usage.core.schemas import MonitorConfig


def load_config(path: Path | str) -> MonitorConfig:
    """Load and validate a monitor configuration file.

    Args:
        path: Path to YAML or JSON configuration file

    Returns:
        Validated MonitorConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported
        pydantic.ValidationError: If config is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    suffix = path.suffix.lower()
    with open(path, encoding="utf-8") as f:
        if suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        elif suffix == ".json":
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported config format: {suffix}. Use .yaml, .yml, or .json")

    return MonitorConfig.model_validate(data or {})


def apply_overrides(config: MonitorConfig, **overrides: Any) -> MonitorConfig:
    """Return a copy of ``config`` with non-None overrides applied and re-validated.

    Raises:
        pydantic.ValidationError: If an override is invalid
    """
    updates = {k: v for k, v in overrides.items() if v is not None}
    if not updates:
        return config
    data = config.model_dump()
    data.update(updates)
    return MonitorConfig.model_validate(data)
