"""Core types and the abstract encoder interface shared by all backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from svcman.service.errors import UnsupportedOperation

if TYPE_CHECKING:
    from svcman.config.models import SvcmanConfig
    from svcman.service.descriptor import ServiceDescriptor
    from svcman.service.runner import CommandInvocation, CommandResult


class ServiceManagerKind(Enum):
    """Supported native service managers."""

    SYSTEMD = "systemd"
    OPENRC = "openrc"
    RCD = "rcd"
    LAUNCHD = "launchd"
    SC = "sc"
    WINSW = "winsw"


class ServiceLevel(Enum):
    """Scope a service is installed at."""

    USER = "user"
    SYSTEM = "system"


class RestartPolicy(Enum):
    """When the backend should restart the managed process."""

    NEVER = "never"
    ON_FAILURE = "on-failure"
    ALWAYS = "always"


class ServiceState(Enum):
    """Service running state."""

    RUNNING = "running"
    STOPPED = "stopped"
    UNKNOWN = "unknown"


@dataclass
class ServiceStatus:
    """Service status information."""

    state: ServiceState
    pid: int | None = None
    message: str | None = None


@dataclass(frozen=True)
class BackendHandle:
    """A detected backend bound to the path of its control binary."""

    kind: ServiceManagerKind
    binary: Path | None = None

    @property
    def name(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class Artifact:
    """A native configuration file to be written by the manager."""

    path: Path
    content: bytes
    mode: int = 0o644


@dataclass(frozen=True)
class InstallPlan:
    """Everything needed to install a service: an artifact and commands."""

    artifact: Artifact | None
    commands: tuple[CommandInvocation, ...] = ()


@dataclass
class OperationResult:
    """Outcome of a successful facade operation."""

    operation: str
    name: str
    level: ServiceLevel
    kind: ServiceManagerKind
    artifact_path: Path | None = None
    warnings: list[str] = field(default_factory=list)
    commands: list[CommandResult] = field(default_factory=list)


class ServiceEncoder(ABC):
    """Translates descriptors into native artifacts and command plans.

    Encoders are pure: they describe files and commands but never touch the
    filesystem or run anything. The ``ServiceManager`` executes the plan.
    """

    kind: ServiceManagerKind
    supported_levels: tuple[ServiceLevel, ...] = (ServiceLevel.SYSTEM,)
    supports_enable: bool = True

    def __init__(self, handle: BackendHandle, config: SvcmanConfig | None = None):
        from svcman.config.models import SvcmanConfig

        self.handle = handle
        self.config = config or SvcmanConfig()

    @property
    def name(self) -> str:
        """Backend name (e.g., 'systemd', 'launchd')."""
        return self.kind.value

    @property
    def binary(self) -> str:
        """Control binary to invoke."""
        if self.handle.binary is not None:
            return str(self.handle.binary)
        return self.default_binary

    @property
    @abstractmethod
    def default_binary(self) -> str:
        """Binary name used when the handle carries no resolved path."""
        ...

    def check_level(self, level: ServiceLevel) -> None:
        """Raise UnsupportedOperation if ``level`` is not supported."""
        if level not in self.supported_levels:
            raise UnsupportedOperation(
                f"{self.name} does not support {level.value}-level services"
            )

    @abstractmethod
    def artifact_path(self, name: str, level: ServiceLevel) -> Path | None:
        """Path of the native artifact, or None for registry-only backends."""
        ...

    @abstractmethod
    def encode(self, descriptor: ServiceDescriptor, level: ServiceLevel) -> InstallPlan:
        """Render the artifact and post-write commands for ``descriptor``."""
        ...

    def uninstall_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        """Commands run before the artifact is deleted."""
        return []

    def post_uninstall_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        """Commands run after the artifact is deleted."""
        return []

    @abstractmethod
    def start_commands(self, name: str, level: ServiceLevel) -> list[CommandInvocation]:
        ...

    @abstractmethod
    def stop_commands(self, name: str, level: ServiceLevel) -> list[CommandInvocation]:
        ...

    def enable_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        raise UnsupportedOperation(f"{self.name} has no independent enable operation")

    def disable_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        raise UnsupportedOperation(f"{self.name} has no independent disable operation")

    @abstractmethod
    def status_command(self, name: str, level: ServiceLevel) -> CommandInvocation:
        ...

    @abstractmethod
    def parse_status(self, result: CommandResult) -> ServiceStatus:
        """Normalize a status query result.

        Raises:
            NotFound: If the backend reports the service does not exist.
            CommandFailed: If the query itself failed.
        """
        ...

    def is_already_running(self, result: CommandResult) -> bool:
        """True if a failed start means the service was already running."""
        return False

    def is_already_stopped(self, result: CommandResult) -> bool:
        """True if a failed stop means the service was not running."""
        return False

    def is_permission_denied(self, result: CommandResult) -> bool:
        """True if a failed command was refused for lack of privileges."""
        output = result.output.lower()
        return any(
            marker in output
            for marker in (
                "access denied",
                "access is denied",
                "permission denied",
                "operation not permitted",
                "authentication is required",
                "interactive authentication required",
            )
        )
