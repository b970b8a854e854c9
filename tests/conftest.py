"""Shared test fixtures and factories."""

import logging
from collections.abc import Callable
from pathlib import Path

import pytest

from svcman.config.models import SvcmanConfig
from svcman.config.paths import ENV_VAR, get_svcman_home
from svcman.service.base import (
    BackendHandle,
    RestartPolicy,
    ServiceLevel,
    ServiceManagerKind,
)
from svcman.service.descriptor import ServiceDescriptor
from svcman.service.runner import CommandInvocation, CommandResult, CommandRunner

# =============================================================================
# Environment Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch):
    """Keep tests away from real config files and SVCMAN_* variables."""
    monkeypatch.setenv(ENV_VAR, str(tmp_path / "svcman-home"))
    for var in (
        "SVCMAN_BACKEND",
        "SVCMAN_LEVEL",
        "SVCMAN_WINSW_BINARY",
        "SVCMAN_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    get_svcman_home.cache_clear()

    # configure_logging() replaces root handlers; put pytest's back afterwards
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    get_svcman_home.cache_clear()


# =============================================================================
# Fake Command Runners
# =============================================================================


class FakeRunner(CommandRunner):
    """CommandRunner that records invocations instead of running them.

    Responses are matched by substring against the rendered command line;
    the most recently added rule wins. Unmatched commands exit 0.
    """

    def __init__(self):
        self.calls: list[CommandInvocation] = []
        self._rules: list[tuple[str, int, str, str]] = []

    def respond(
        self, match: str, exit_code: int = 0, stdout: str = "", stderr: str = ""
    ) -> None:
        self._rules.append((match, exit_code, stdout, stderr))

    def _respond(self, command: CommandInvocation) -> tuple[int, str, str]:
        display = command.display()
        for match, exit_code, stdout, stderr in reversed(self._rules):
            if match in display:
                return exit_code, stdout, stderr
        return 0, "", ""

    def run(self, command: CommandInvocation, check: bool = True) -> CommandResult:
        self.calls.append(command)
        exit_code, stdout, stderr = self._respond(command)
        result = CommandResult(
            invocation=command, exit_code=exit_code, stdout=stdout, stderr=stderr
        )
        if check:
            result.raise_for_status()
        return result

    @property
    def argvs(self) -> list[list[str]]:
        return [c.argv for c in self.calls]

    def verbs(self) -> list[str]:
        """Command lines without the program, for compact assertions."""
        return [" ".join(c.args) for c in self.calls]


class FakeSystemctl(FakeRunner):
    """A tiny simulation of systemctl tracking active and enabled units."""

    def __init__(self):
        super().__init__()
        self.active: set[str] = set()
        self.enabled: set[str] = set()

    def _respond(self, command: CommandInvocation) -> tuple[int, str, str]:
        for match, exit_code, stdout, stderr in reversed(self._rules):
            if match in command.display():
                return exit_code, stdout, stderr

        args = [a for a in command.args if a not in ("--user", "--no-pager")]
        verb, unit = args[0], args[-1]
        if verb == "start":
            self.active.add(unit)
        elif verb == "stop":
            self.active.discard(unit)
        elif verb == "enable":
            self.enabled.add(unit)
        elif verb == "disable":
            self.enabled.discard(unit)
        elif verb == "status":
            if unit in self.active:
                return 0, f"Active: active (running)\n Main PID: 4242 ({unit})\n", ""
            return 3, "Active: inactive (dead)\n", ""
        return 0, "", ""


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def fake_systemctl() -> FakeSystemctl:
    return FakeSystemctl()


# =============================================================================
# Backend Fixtures
# =============================================================================


def make_handle(kind: ServiceManagerKind, binary: str | None = None) -> BackendHandle:
    return BackendHandle(kind=kind, binary=Path(binary) if binary else None)


@pytest.fixture
def systemd_handle() -> BackendHandle:
    return make_handle(ServiceManagerKind.SYSTEMD, "/usr/bin/systemctl")


@pytest.fixture
def config() -> SvcmanConfig:
    return SvcmanConfig()


@pytest.fixture
def native_dirs(tmp_path: Path, monkeypatch) -> Path:
    """Redirect every backend's artifact directory under tmp_path."""
    root = tmp_path / "native"
    targets: dict[str, Callable[[], Path]] = {
        "svcman.service.backends.systemd.get_systemd_user_dir": lambda: root
        / "systemd-user",
        "svcman.service.backends.systemd.get_systemd_system_dir": lambda: root
        / "systemd-system",
        "svcman.service.backends.openrc.get_openrc_dir": lambda: root / "init.d",
        "svcman.service.backends.rcd.get_rcd_dir": lambda: root / "rc.d",
        "svcman.service.backends.launchd.get_launchd_user_dir": lambda: root
        / "LaunchAgents",
        "svcman.service.backends.launchd.get_launchd_system_dir": lambda: root
        / "LaunchDaemons",
        "svcman.service.backends.winsw.get_winsw_dir": lambda: root / "winsw",
    }
    for target, func in targets.items():
        monkeypatch.setattr(target, func)
    return root


@pytest.fixture
def elevated(monkeypatch):
    """Pretend the test process has administrator privileges."""
    monkeypatch.setattr("svcman.service.manager.is_elevated", lambda: True)


@pytest.fixture
def unprivileged(monkeypatch):
    monkeypatch.setattr("svcman.service.manager.is_elevated", lambda: False)


# =============================================================================
# Descriptor Factories
# =============================================================================


def make_descriptor(
    name: str = "echoer",
    program: str = "/bin/echo",
    args: tuple[str, ...] = ("hello world",),
    **kwargs,
) -> ServiceDescriptor:
    return ServiceDescriptor(name=name, program=Path(program), args=args, **kwargs)


@pytest.fixture
def echoer() -> ServiceDescriptor:
    """The canonical short-lived user service."""
    return make_descriptor(
        install_level=ServiceLevel.USER, restart_policy=RestartPolicy.NEVER
    )


# Arguments that break naive quoting in every backend
TRICKY_ARGS: tuple[str, ...] = (
    "hello world",
    "it's",
    'say "hi"',
    "$HOME",
    "100%",
    "a;b",
    "x|y&z",
    "back\\slash",
    "`date`",
    "--flag=value with spaces",
    "",
    "*",
    "#not-a-comment",
)


# =============================================================================
# CLI Test Helpers
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner with colors disabled."""
    from typer.testing import CliRunner

    return CliRunner(env={"NO_COLOR": "1"})
