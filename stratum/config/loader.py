"""
Stratum Config - Loader.

Reads ``stratum.yaml`` and applies environment overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import ValidationError

from stratum.config.models import StratumConfig
from stratum.core.exceptions import ConfigurationError

DEFAULT_CONFIG_FILE = Path("stratum.yaml")

# Environment variable -> (section, field)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "STRATUM_MAX_WORKERS": ("engine", "max_workers"),
    "STRATUM_CALL_TIMEOUT": ("engine", "call_timeout"),
    "STRATUM_REPLACE_POLICY": ("engine", "replace_policy"),
    "STRATUM_STATE_PATH": ("state", "path"),
    "STRATUM_STATE_BACKEND": ("state", "backend"),
    "STRATUM_LOG_LEVEL": ("logging", "console_level"),
    "STRATUM_LOG_DIR": ("logging", "log_dir"),
}


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def _apply_env(data: dict[str, Any], environ: dict[str, str]) -> dict[str, Any]:
    for var, (section, field) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value is None or value == "":
            continue
        data.setdefault(section, {})
        if not isinstance(data[section], dict):
            raise ConfigurationError(f"Config section '{section}' must be a mapping")
        # pydantic coerces the string to the field type
        data[section][field] = value.lower() if field.endswith(("level", "policy", "backend")) else value
        logger.debug(f"Config override from {var}: {section}.{field}")
    return data


def load_config(
    path: Path | None = None,
    environ: dict[str, str] | None = None,
) -> StratumConfig:
    """
    Load configuration.

    Args:
        path: Explicit config file. When None, ./stratum.yaml is used if present.
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated StratumConfig

    Raises:
        ConfigurationError: If the file is unreadable or values are invalid
    """
    if path is None:
        path = DEFAULT_CONFIG_FILE if DEFAULT_CONFIG_FILE.exists() else None
    elif not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    data = _read_yaml(path) if path is not None else {}
    data = _apply_env(data, dict(os.environ if environ is None else environ))

    try:
        config = StratumConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}", {"path": str(path)}) from e

    logger.debug(f"Configuration loaded from {path or 'defaults'}")
    return config
