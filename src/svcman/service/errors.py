"""Structured errors raised by service management operations.

Every failure surfaced by the core is a ``ServiceError`` subclass. Each kind
carries a distinct ``exit_code`` so the CLI can map errors to process exit
codes without inspecting messages.
"""

from collections.abc import Sequence


class ServiceError(Exception):
    """Base class for service management errors."""

    exit_code: int = 1
    # Set when best-effort cleanup after this error also failed
    cleanup_error: "ServiceError | None" = None


class InvalidDescriptor(ServiceError):
    """Descriptor failed validation before any I/O happened."""

    exit_code = 2

    def __init__(self, problems: Sequence[str]):
        self.problems = list(problems)
        super().__init__("Invalid service descriptor: " + "; ".join(self.problems))


class NoBackendAvailable(ServiceError):
    """No candidate service manager was detected on this host."""

    exit_code = 3

    def __init__(self, platform: str, tried: Sequence[str] = ()):
        self.platform = platform
        self.tried = list(tried)
        tried_str = ", ".join(self.tried) if self.tried else "none"
        super().__init__(
            f"No service manager available on platform '{platform}' "
            f"(tried: {tried_str})"
        )


class NotFound(ServiceError):
    """A requested backend, binary, artifact or service does not exist."""

    exit_code = 4


class PermissionDenied(ServiceError):
    """The operation requires elevated privileges."""

    exit_code = 5


class ArtifactIOError(ServiceError):
    """Writing or deleting a service artifact failed."""

    exit_code = 6


class CommandFailed(ServiceError):
    """An external command exited with an unexpected code."""

    exit_code = 7

    def __init__(self, exit_code: int, stderr: str, command: Sequence[str] = ()):
        self.returncode = exit_code
        self.stderr = stderr
        self.command = list(command)
        detail = stderr.strip() or "no output"
        cmd = " ".join(self.command)
        super().__init__(f"Command failed with exit code {exit_code}: {cmd}: {detail}")


class UnsupportedOperation(ServiceError):
    """The operation has no meaning for the selected backend."""

    exit_code = 8


__all__ = [
    "ArtifactIOError",
    "CommandFailed",
    "InvalidDescriptor",
    "NoBackendAvailable",
    "NotFound",
    "PermissionDenied",
    "ServiceError",
    "UnsupportedOperation",
]
