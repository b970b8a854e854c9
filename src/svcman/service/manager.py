"""High-level service management interface."""

from __future__ import annotations

import logging
import os
import sys
import tempfile
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from svcman.service.backends import BackendSelector, get_encoder
from svcman.service.base import (
    Artifact,
    BackendHandle,
    InstallPlan,
    OperationResult,
    ServiceEncoder,
    ServiceLevel,
    ServiceManagerKind,
    ServiceState,
    ServiceStatus,
)
from svcman.logging import redact
from svcman.service.descriptor import (
    ServiceDescriptor,
    validate_descriptor,
    validate_name,
)
from svcman.service.errors import (
    ArtifactIOError,
    NotFound,
    PermissionDenied,
    ServiceError,
)
from svcman.service.runner import CommandInvocation, CommandResult, CommandRunner

if TYPE_CHECKING:
    from svcman.config.models import SvcmanConfig

logger = logging.getLogger(__name__)


def is_elevated() -> bool:
    """Whether the current process can manage system-level services."""
    if sys.platform == "win32":
        import ctypes

        try:
            return bool(ctypes.windll.shell32.IsUserAnAdmin())
        except (AttributeError, OSError):
            return False
    return os.geteuid() == 0


def write_artifact(artifact: Artifact) -> None:
    """Write an artifact atomically via tempfile + fsync + os.replace().

    Raises:
        PermissionDenied: If the target directory is not writable.
        ArtifactIOError: On any other filesystem failure.
    """
    path = artifact.path
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(artifact.content)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp, artifact.mode)
            Path(tmp).replace(path)
        except BaseException:
            try:
                Path(tmp).unlink()
            except OSError:
                pass
            raise
    except PermissionError as e:
        raise PermissionDenied(f"Cannot write {path}: {e}") from e
    except OSError as e:
        raise ArtifactIOError(f"Failed to write {path}: {e}") from e


def remove_artifact(path: Path) -> None:
    """Delete an artifact file.

    Raises:
        PermissionDenied: If the file cannot be removed for lack of privileges.
        ArtifactIOError: On any other filesystem failure.
    """
    try:
        path.unlink(missing_ok=True)
    except PermissionError as e:
        raise PermissionDenied(f"Cannot remove {path}: {e}") from e
    except OSError as e:
        raise ArtifactIOError(f"Failed to remove {path}: {e}") from e


class ServiceManager:
    """High-level service management interface.

    Binds one backend and translates uniform operations into artifact writes
    and command plans for it. The manager holds no service state of its own;
    every answer comes from the filesystem or the OS service manager.

    Example:
        manager = ServiceManager()
        manager.install(descriptor)
        manager.start("echoer", ServiceLevel.USER)
        status = manager.status("echoer", ServiceLevel.USER)
    """

    def __init__(
        self,
        handle: BackendHandle | None = None,
        config: SvcmanConfig | None = None,
        runner: CommandRunner | None = None,
        selector: BackendSelector | None = None,
    ):
        """Initialize the service manager.

        Args:
            handle: Backend to use, or None to detect one.
            config: Configuration; defaults are used when None.
            runner: Command runner, replaceable in tests.
            selector: Selector used when ``handle`` is None.
        """
        from svcman.config.models import SvcmanConfig

        self.config = config or SvcmanConfig()
        if handle is None:
            selector = selector or BackendSelector(
                binaries=self.config.binary_overrides()
            )
            handle = selector.detect(self.config.backend)
        self._handle = handle
        self._encoder = get_encoder(handle, self.config)
        self._runner = runner or CommandRunner()

    @property
    def handle(self) -> BackendHandle:
        return self._handle

    @property
    def kind(self) -> ServiceManagerKind:
        return self._handle.kind

    @property
    def backend_name(self) -> str:
        """Get the name of the active backend."""
        return self._encoder.name

    @property
    def encoder(self) -> ServiceEncoder:
        return self._encoder

    def _result(
        self, operation: str, name: str, level: ServiceLevel
    ) -> OperationResult:
        return OperationResult(
            operation=operation,
            name=name,
            level=level,
            kind=self.kind,
            artifact_path=self._encoder.artifact_path(name, level),
        )

    def _check_privilege(self, level: ServiceLevel) -> None:
        if level == ServiceLevel.SYSTEM and not is_elevated():
            raise PermissionDenied(
                "System-level services require administrator privileges"
            )

    def _require_artifact(self, name: str, level: ServiceLevel) -> Path | None:
        """Return the artifact path, raising NotFound if it does not exist."""
        path = self._encoder.artifact_path(name, level)
        if path is not None and not path.exists():
            raise NotFound(f"Service '{name}' is not installed ({path} missing)")
        return path

    def _run(
        self,
        commands: Iterable[CommandInvocation],
        result: OperationResult,
        tolerated: Callable[[CommandResult], bool] | None = None,
    ) -> None:
        """Run commands in order, recording results on ``result``.

        A failed command aborts the sequence unless it is best effort (reported
        as a warning) or ``tolerated`` accepts it.
        """
        for command in commands:
            outcome = self._runner.run(command, check=False)
            result.commands.append(outcome)
            if outcome.ok:
                continue
            if tolerated is not None and tolerated(outcome):
                logger.debug(
                    "Tolerated exit %d from %s", outcome.exit_code, command.program
                )
                continue
            if command.best_effort:
                message = f"{command.display()} exited with {outcome.exit_code}"
                logger.warning(redact(message))
                result.warnings.append(message)
                continue
            if self._encoder.is_permission_denied(outcome):
                raise PermissionDenied(
                    f"{command.display()}: {outcome.output or 'permission denied'}"
                )
            outcome.raise_for_status()

    def render(self, descriptor: ServiceDescriptor) -> InstallPlan:
        """Encode a descriptor without touching the system."""
        descriptor = validate_descriptor(descriptor)
        return self._encoder.encode(descriptor, descriptor.install_level)

    def install(self, descriptor: ServiceDescriptor) -> OperationResult:
        """Install a service. Installing never starts it.

        Raises:
            InvalidDescriptor: If the descriptor fails validation.
            PermissionDenied: If the level needs privileges we do not have.
            ArtifactIOError: If the artifact cannot be written.
            CommandFailed: If a registration command fails; the artifact is
                removed first.
        """
        descriptor = validate_descriptor(descriptor)
        level = descriptor.install_level
        plan = self._encoder.encode(descriptor, level)
        self._check_privilege(level)

        result = self._result("install", descriptor.name, level)
        if plan.artifact is not None:
            write_artifact(plan.artifact)
            logger.info("Wrote %s", plan.artifact.path)

        try:
            self._run(plan.commands, result)
        except ServiceError as e:
            if plan.artifact is not None:
                try:
                    remove_artifact(plan.artifact.path)
                except ServiceError as cleanup_error:
                    logger.error(
                        "Failed to remove %s after failed install: %s",
                        plan.artifact.path,
                        cleanup_error,
                    )
                    e.cleanup_error = cleanup_error
            raise
        return result

    def uninstall(self, name: str, level: ServiceLevel) -> OperationResult:
        """Stop (if running) and remove a service.

        Raises:
            NotFound: If the service is not installed.
        """
        validate_name(name)
        path = self._require_artifact(name, level)
        self._check_privilege(level)
        result = self._result("uninstall", name, level)

        try:
            current = self._query(name, level)
        except NotFound:
            # Registry-backed services have no artifact to prove existence
            if path is None:
                raise
            current = None
        except ServiceError as e:
            result.warnings.append(f"Could not query status before uninstall: {e}")
            current = None

        if current is not None and current.state == ServiceState.RUNNING:
            try:
                self._run(
                    self._encoder.stop_commands(name, level),
                    result,
                    tolerated=self._encoder.is_already_stopped,
                )
            except ServiceError as e:
                logger.warning("Failed to stop %s before uninstall: %s", name, e)
                result.warnings.append(f"Failed to stop before uninstall: {e}")

        self._run(self._encoder.uninstall_commands(name, level), result)
        if path is not None:
            remove_artifact(path)
            logger.info("Removed %s", path)
        self._run(self._encoder.post_uninstall_commands(name, level), result)
        return result

    def start(self, name: str, level: ServiceLevel) -> OperationResult:
        """Start a service; starting a running service succeeds."""
        validate_name(name)
        self._require_artifact(name, level)
        result = self._result("start", name, level)
        self._run(
            self._encoder.start_commands(name, level),
            result,
            tolerated=self._encoder.is_already_running,
        )
        return result

    def stop(self, name: str, level: ServiceLevel) -> OperationResult:
        """Stop a service; stopping a stopped service succeeds."""
        validate_name(name)
        self._require_artifact(name, level)
        result = self._result("stop", name, level)
        self._run(
            self._encoder.stop_commands(name, level),
            result,
            tolerated=self._encoder.is_already_stopped,
        )
        return result

    def enable(self, name: str, level: ServiceLevel) -> OperationResult:
        """Register a service to start at boot or login.

        Raises:
            UnsupportedOperation: If the backend has no enable concept.
        """
        validate_name(name)
        commands = self._encoder.enable_commands(name, level)
        self._require_artifact(name, level)
        result = self._result("enable", name, level)
        self._run(commands, result)
        return result

    def disable(self, name: str, level: ServiceLevel) -> OperationResult:
        """Remove a service from boot or login startup.

        Raises:
            UnsupportedOperation: If the backend has no disable concept.
        """
        validate_name(name)
        commands = self._encoder.disable_commands(name, level)
        self._require_artifact(name, level)
        result = self._result("disable", name, level)
        self._run(commands, result)
        return result

    def status(self, name: str, level: ServiceLevel) -> ServiceStatus:
        """Get current service status.

        A stopped service is a normal answer, not an error.

        Raises:
            NotFound: If the service is not installed.
            CommandFailed: If the status query itself failed.
        """
        validate_name(name)
        self._require_artifact(name, level)
        return self._query(name, level)

    def _query(self, name: str, level: ServiceLevel) -> ServiceStatus:
        command = self._encoder.status_command(name, level)
        outcome = self._runner.run(command, check=False)
        if not outcome.ok and self._encoder.is_permission_denied(outcome):
            raise PermissionDenied(
                f"{command.display()}: {outcome.output or 'permission denied'}"
            )
        return self._encoder.parse_status(outcome)
