"""Configuration models using Pydantic."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from svcman.service.base import ServiceLevel, ServiceManagerKind


class SystemdConfig(BaseModel):
    """Settings applied to generated systemd units."""

    restart_sec: int | None = Field(default=None, ge=0)
    start_limit_interval_sec: int | None = Field(default=None, ge=0)
    start_limit_burst: int | None = Field(default=None, ge=0)


class OpenRcConfig(BaseModel):
    """Settings for OpenRC init scripts."""

    runlevel: str = "default"


class RcdConfig(BaseModel):
    """Settings for BSD rc.d scripts.

    ``script_dir`` of None means the platform default (/usr/local/etc/rc.d).
    """

    script_dir: Path | None = None


class LaunchdConfig(BaseModel):
    """Settings for launchd property lists.

    When ``log_dir`` is set, stdout/stderr of each job go to
    ``<log_dir>/<name>.out.log`` and ``<log_dir>/<name>.err.log``.
    """

    log_dir: Path | None = None


class ScConfig(BaseModel):
    """Settings for Windows services registered with sc.exe."""

    restart_delay_ms: int = Field(default=5000, ge=0)
    reset_period_sec: int = Field(default=86400, ge=0)


class WinSwConfig(BaseModel):
    """Settings for WinSW wrapper services."""

    # Explicit path to the WinSW executable; otherwise found on PATH
    binary: Path | None = None
    config_dir: Path | None = None
    on_failure_delay: str = "10 sec"
    log_mode: Literal["append", "reset", "roll", "none"] = "append"


class ConfigError(Exception):
    """Configuration error."""

    pass


class SvcmanConfig(BaseModel):
    """Root configuration model."""

    # Explicit backend; None means detect
    backend: ServiceManagerKind | None = None
    level: ServiceLevel = ServiceLevel.USER
    systemd: SystemdConfig = Field(default_factory=SystemdConfig)
    openrc: OpenRcConfig = Field(default_factory=OpenRcConfig)
    rcd: RcdConfig = Field(default_factory=RcdConfig)
    launchd: LaunchdConfig = Field(default_factory=LaunchdConfig)
    sc: ScConfig = Field(default_factory=ScConfig)
    winsw: WinSwConfig = Field(default_factory=WinSwConfig)

    def binary_overrides(self) -> dict[ServiceManagerKind, Path]:
        """Explicit control binary paths configured per backend."""
        overrides: dict[ServiceManagerKind, Path] = {}
        if self.winsw.binary is not None:
            overrides[ServiceManagerKind.WINSW] = self.winsw.binary.expanduser()
        return overrides
