"""Uniform external command execution.

Every command the core runs goes through ``CommandRunner`` so failures are
classified the same way for all backends. There are no retries and no
timeouts: a service manager that hangs blocks the caller.
"""

import logging
import shlex
import subprocess
from dataclasses import dataclass, field

from svcman.logging import redact
from svcman.service.errors import CommandFailed, NotFound, PermissionDenied

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandInvocation:
    """A request to run one external command."""

    program: str
    args: tuple[str, ...] = ()
    expected_codes: frozenset[int] = field(default_factory=lambda: frozenset({0}))
    # Failure is reported as a warning instead of aborting the operation
    best_effort: bool = False

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    def display(self) -> str:
        """Shell-style rendering for logs and dry runs."""
        return shlex.join(self.argv)


def invocation(
    program: str,
    *args: str,
    expected_codes: frozenset[int] | set[int] | None = None,
    best_effort: bool = False,
) -> CommandInvocation:
    """Shorthand for building a CommandInvocation."""
    return CommandInvocation(
        program=program,
        args=tuple(args),
        expected_codes=frozenset(expected_codes or {0}),
        best_effort=best_effort,
    )


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of a command."""

    invocation: CommandInvocation
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code in self.invocation.expected_codes

    @property
    def output(self) -> str:
        """Combined stdout and stderr, for backends that mix the two."""
        return f"{self.stdout}\n{self.stderr}".strip()

    def raise_for_status(self) -> "CommandResult":
        """Raise CommandFailed unless the exit code was expected."""
        if not self.ok:
            raise CommandFailed(
                self.exit_code, self.stderr or self.stdout, self.invocation.argv
            )
        return self


class CommandRunner:
    """Runs CommandInvocations with subprocess and classifies the outcome."""

    def run(self, command: CommandInvocation, check: bool = True) -> CommandResult:
        """Run a command to completion.

        Args:
            command: The invocation to run.
            check: If True, raise CommandFailed on an unexpected exit code.

        Returns:
            The captured result.

        Raises:
            NotFound: If the program does not exist.
            PermissionDenied: If the program cannot be executed.
            CommandFailed: If ``check`` and the exit code is unexpected.
        """
        logger.debug("Running: %s", redact(command.display()))
        try:
            proc = subprocess.run(
                command.argv,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except FileNotFoundError as e:
            raise NotFound(f"Command not found: {command.program}") from e
        except PermissionError as e:
            raise PermissionDenied(f"Cannot execute {command.program}: {e}") from e

        result = CommandResult(
            invocation=command,
            exit_code=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
        logger.debug(
            "Exit %d from %s", result.exit_code, redact(command.display())
        )
        if check:
            result.raise_for_status()
        return result
