"""Centralized path management for svcman.

Two kinds of paths live here: svcman's own config location, and the
native directories each service manager reads definitions from. Backend
encoders call these functions rather than hard-coding locations so tests
can redirect them.

svcman home defaults to ~/.svcman and can be overridden with SVCMAN_HOME.
"""

import os
from functools import lru_cache
from pathlib import Path

ENV_VAR = "SVCMAN_HOME"


@lru_cache(maxsize=1)
def get_svcman_home() -> Path:
    """Get the base directory for svcman's own files.

    Resolution order:
    1. SVCMAN_HOME environment variable (if set)
    2. Platform default (~/.svcman)
    """
    if env_home := os.environ.get(ENV_VAR):
        return Path(env_home).expanduser().resolve()
    return Path.home() / ".svcman"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_svcman_home() / "config.toml"


def get_user_config_dir() -> Path:
    """Per-user configuration directory ($XDG_CONFIG_HOME or ~/.config)."""
    if xdg := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg).expanduser()
    return Path.home() / ".config"


def get_systemd_system_dir() -> Path:
    """Directory for system-wide systemd units."""
    return Path("/etc/systemd/system")


def get_systemd_user_dir() -> Path:
    """Directory for per-user systemd units."""
    return get_user_config_dir() / "systemd" / "user"


def get_openrc_dir() -> Path:
    """Directory for OpenRC init scripts."""
    return Path("/etc/init.d")


def get_rcd_dir() -> Path:
    """Directory for locally installed BSD rc.d scripts."""
    return Path("/usr/local/etc/rc.d")


def get_launchd_user_dir() -> Path:
    """Directory for per-user launchd agents."""
    return Path.home() / "Library" / "LaunchAgents"


def get_launchd_system_dir() -> Path:
    """Directory for system-wide launchd daemons."""
    return Path("/Library/LaunchDaemons")


def get_winsw_dir() -> Path:
    """Directory holding WinSW service definitions (%ProgramData%\\svcman)."""
    program_data = os.environ.get("ProgramData", r"C:\ProgramData")
    return Path(program_data) / "svcman"
