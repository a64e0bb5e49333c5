"""
Configuration Loader (``forecourt_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into a typed
``EngineConfig``.  Callers build the config once at startup and inject it
into services; nothing here is cached at module level.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong structure or out-of-range values  -> ``ConfigurationError``.

Audit relevance
---------------
``compute_checksum`` gives a deterministic SHA-256 of the effective
configuration so that a payroll run can be tied to the rates it used.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from forecourt_config.schema import EngineConfig
from forecourt_kernel.logging_config import get_logger

logger = get_logger("config.loader")

DEFAULT_CONFIG_PATH = Path(__file__).with_name("defaults.yaml")


class ConfigurationError(ValueError):
    """Configuration file parsed but does not describe a valid EngineConfig."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid configuration in {path}: {reason}")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigurationError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(path, "top level must be a mapping")
    return data


def load_config(path: Path | str) -> EngineConfig:
    """Parse ``path`` into an ``EngineConfig``."""
    path = Path(path)
    data = load_yaml_file(path)
    try:
        config = EngineConfig.from_dict(data)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(path, str(exc)) from exc
    logger.info(
        "engine_config_loaded",
        extra={"path": str(path), "checksum": compute_checksum(config)},
    )
    return config


def load_default_config() -> EngineConfig:
    """Load the packaged ``defaults.yaml``."""
    return load_config(DEFAULT_CONFIG_PATH)


def compute_checksum(config: EngineConfig) -> str:
    """Deterministic SHA-256 over the effective configuration values."""
    canonical = json.dumps(config.to_dict(), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
