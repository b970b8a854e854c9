"""Per-invocation CLI state shared between the root callback and commands."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from pydantic import ValidationError

from svcman.cli.console import error
from svcman.config import ConfigError, load_config
from svcman.service.backends import BackendSelector
from svcman.service.base import BackendHandle, ServiceLevel, ServiceManagerKind
from svcman.service.manager import ServiceManager
from svcman.service.runner import CommandRunner

if TYPE_CHECKING:
    from svcman.config.models import SvcmanConfig


@dataclass
class CliState:
    """Global options plus injectable collaborators.

    ``runner`` and ``selector`` stay None in normal use; tests pass a
    prepared state through ``CliRunner.invoke(..., obj=state)``.
    """

    backend: ServiceManagerKind | None = None
    config_path: Path | None = None
    verbose: bool = False
    runner: CommandRunner | None = None
    selector: BackendSelector | None = None
    _config: SvcmanConfig | None = None

    @property
    def config(self) -> SvcmanConfig:
        """Load configuration once, exiting with code 1 on errors."""
        if self._config is None:
            try:
                self._config = load_config(self.config_path)
            except FileNotFoundError as e:
                error(str(e))
                raise typer.Exit(1) from e
            except (ConfigError, ValidationError) as e:
                error(f"Invalid configuration: {e}")
                raise typer.Exit(1) from e
        return self._config

    def level(self, level: ServiceLevel | None) -> ServiceLevel:
        """Explicit level, else the configured default."""
        return level if level is not None else self.config.level

    def get_selector(self) -> BackendSelector:
        if self.selector is not None:
            return self.selector
        return BackendSelector(binaries=self.config.binary_overrides())

    def detect(self) -> BackendHandle:
        """Detect the backend, honouring --backend and the config file."""
        override = self.backend or self.config.backend
        return self.get_selector().detect(override)

    def manager(self, handle: BackendHandle | None = None) -> ServiceManager:
        """Build a ServiceManager for the detected (or given) backend."""
        return ServiceManager(
            handle=handle or self.detect(),
            config=self.config,
            runner=self.runner,
        )


def get_state(ctx: typer.Context) -> CliState:
    """Return the CliState stored on the root context."""
    return ctx.ensure_object(CliState)
