"""Configuration loading from TOML files and environment variables."""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from svcman.config.models import ConfigError, SvcmanConfig
from svcman.config.paths import get_config_path

logger = logging.getLogger(__name__)

# Environment variable -> (section, key); a section of None means top level
ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "SVCMAN_BACKEND": (None, "backend"),
    "SVCMAN_LEVEL": (None, "level"),
    "SVCMAN_WINSW_BINARY": ("winsw", "binary"),
}


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("svcman.toml"),  # Current directory
        get_config_path(),  # ~/.svcman/config.toml (or SVCMAN_HOME)
        Path("/etc/svcman/config.toml"),  # System-wide
    ]


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply SVCMAN_* environment variables on top of file values."""
    for env_var, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if not value:
            continue
        if section is None:
            config[key] = value.lower() if key in ("backend", "level") else value
        else:
            config.setdefault(section, {})[key] = value
    return config


def load_config(path: Path | None = None) -> SvcmanConfig:
    """Load configuration from TOML file.

    Unlike an explicit path, the default locations are optional: when none
    exists, defaults (plus environment overrides) are returned.

    Args:
        path: Explicit path to config file. If None, searches default locations.

    Returns:
        Validated SvcmanConfig instance.

    Raises:
        FileNotFoundError: If an explicit config file does not exist.
        ConfigError: If the file is not valid TOML.
        pydantic.ValidationError: If values are invalid.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for default_path in _get_default_config_paths():
            expanded = default_path.expanduser()
            if expanded.exists():
                config_path = expanded
                break

    raw_config: dict[str, Any] = {}
    if config_path is not None:
        logger.debug("Loading config from %s", config_path)
        try:
            with config_path.open("rb") as f:
                raw_config = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    raw_config = _apply_env_overrides(raw_config)

    return SvcmanConfig.model_validate(raw_config)


def get_default_config() -> SvcmanConfig:
    """Get a default configuration for development/testing."""
    return SvcmanConfig()
