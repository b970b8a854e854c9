"""Configuration module."""

from svcman.config.loader import get_default_config, load_config
from svcman.config.models import (
    ConfigError,
    LaunchdConfig,
    OpenRcConfig,
    RcdConfig,
    ScConfig,
    SvcmanConfig,
    SystemdConfig,
    WinSwConfig,
)
from svcman.config.paths import get_config_path, get_svcman_home

__all__ = [
    "ConfigError",
    "LaunchdConfig",
    "OpenRcConfig",
    "RcdConfig",
    "ScConfig",
    "SvcmanConfig",
    "SystemdConfig",
    "WinSwConfig",
    "get_config_path",
    "get_default_config",
    "get_svcman_home",
    "load_config",
]
