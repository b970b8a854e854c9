"""Systemd unit backend for Linux.

Uses ``systemctl`` (with ``--user`` for user-level services). Unit files
are stored in /etc/systemd/system or ~/.config/systemd/user.
"""

import logging
import re
from pathlib import Path

from svcman.config.paths import get_systemd_system_dir, get_systemd_user_dir
from svcman.service.base import (
    Artifact,
    InstallPlan,
    RestartPolicy,
    ServiceEncoder,
    ServiceLevel,
    ServiceManagerKind,
    ServiceState,
    ServiceStatus,
)
from svcman.service.descriptor import ServiceDescriptor
from svcman.service.errors import NotFound
from svcman.service.runner import CommandInvocation, CommandResult, invocation

logger = logging.getLogger(__name__)

UNIT_SUFFIX = ".service"

# Words that need double quotes inside ExecStart
_NEEDS_QUOTES = re.compile(r"[\s\"'\\;]")

_RESTART_VALUES = {
    RestartPolicy.NEVER: "no",
    RestartPolicy.ON_FAILURE: "on-failure",
    RestartPolicy.ALWAYS: "always",
}

# ref: systemctl(1) "Exit status"
_STATUS_RUNNING = 0
_STATUS_STOPPED = 3
_STATUS_NOT_FOUND = 4


def escape_specifiers(value: str) -> str:
    """Escape systemd ``%`` specifiers."""
    return value.replace("%", "%%")


def _escape_in_quotes(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )


def quote_exec_arg(arg: str) -> str:
    """Quote one word of an ExecStart= command line.

    systemd expands ``$VAR`` and ``%x`` in ExecStart, so both are doubled.
    Words with whitespace, quotes, backslashes or a bare ``;`` are wrapped in
    double quotes with C-style escapes.
    """
    escaped = escape_specifiers(arg).replace("$", "$$")
    if arg == "" or _NEEDS_QUOTES.search(arg):
        return f'"{_escape_in_quotes(escaped)}"'
    return escaped


def format_exec_start(argv: list[str]) -> str:
    """Render a full ExecStart= value."""
    return " ".join(quote_exec_arg(a) for a in argv)


def format_environment(key: str, value: str) -> str:
    """Render one Environment= assignment, quoted as a single word."""
    return f'Environment="{_escape_in_quotes(escape_specifiers(f"{key}={value}"))}"'


def unit_name(name: str) -> str:
    """Unit name for a service or dependency name."""
    if "." in name and name.rsplit(".", 1)[1] in (
        "service",
        "target",
        "socket",
        "mount",
        "timer",
        "path",
    ):
        return name
    return f"{name}{UNIT_SUFFIX}"


class SystemdBackend(ServiceEncoder):
    """Systemd service backend.

    User-level units run as the invoking user through the user manager;
    system-level units are managed by PID 1.
    """

    kind = ServiceManagerKind.SYSTEMD
    supported_levels = (ServiceLevel.USER, ServiceLevel.SYSTEM)

    @property
    def default_binary(self) -> str:
        return "systemctl"

    def artifact_path(self, name: str, level: ServiceLevel) -> Path:
        """Path to the unit file."""
        self.check_level(level)
        if level == ServiceLevel.USER:
            return get_systemd_user_dir() / f"{name}{UNIT_SUFFIX}"
        return get_systemd_system_dir() / f"{name}{UNIT_SUFFIX}"

    def _systemctl(
        self, level: ServiceLevel, *args: str, **kwargs
    ) -> CommandInvocation:
        """Build a systemctl invocation, adding --user for user services."""
        user_flag = ("--user",) if level == ServiceLevel.USER else ()
        return invocation(self.binary, *user_flag, *args, **kwargs)

    def encode(self, descriptor: ServiceDescriptor, level: ServiceLevel) -> InstallPlan:
        path = self.artifact_path(descriptor.name, level)
        content = descriptor.contents or self.render_unit(descriptor, level)

        commands = [self._systemctl(level, "daemon-reload")]
        if descriptor.autostart:
            commands.append(
                self._systemctl(level, "enable", unit_name(descriptor.name))
            )

        return InstallPlan(
            artifact=Artifact(path=path, content=content.encode()),
            commands=tuple(commands),
        )

    def render_unit(self, descriptor: ServiceDescriptor, level: ServiceLevel) -> str:
        """Generate the unit file text."""
        settings = self.config.systemd
        description = descriptor.description or descriptor.name

        lines = ["[Unit]", f"Description={escape_specifiers(description)}"]
        after = [unit_name(dep) for dep in sorted(descriptor.dependencies)]
        if descriptor.requires_network:
            after.insert(0, "network-online.target")
            lines.append("Wants=network-online.target")
        if after:
            lines.append(f"After={' '.join(after)}")
        if settings.start_limit_interval_sec is not None:
            lines.append(f"StartLimitIntervalSec={settings.start_limit_interval_sec}")
        if settings.start_limit_burst is not None:
            lines.append(f"StartLimitBurst={settings.start_limit_burst}")

        lines += ["", "[Service]", "Type=simple"]
        if descriptor.working_directory is not None:
            lines.append(
                "WorkingDirectory="
                f"{escape_specifiers(str(descriptor.working_directory))}"
            )
        for key in sorted(descriptor.environment):
            lines.append(format_environment(key, descriptor.environment[key]))
        lines.append(f"ExecStart={format_exec_start(descriptor.command)}")
        lines.append(f"Restart={_RESTART_VALUES[descriptor.restart_policy]}")
        if (
            descriptor.restart_policy != RestartPolicy.NEVER
            and settings.restart_sec is not None
        ):
            lines.append(f"RestartSec={settings.restart_sec}")

        # User units already run as the invoking user; User= breaks them
        if level == ServiceLevel.SYSTEM and descriptor.username:
            lines.append(f"User={escape_specifiers(descriptor.username)}")

        wanted_by = (
            "default.target" if level == ServiceLevel.USER else "multi-user.target"
        )
        lines += ["", "[Install]", f"WantedBy={wanted_by}"]
        return "\n".join(lines) + "\n"

    def uninstall_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        return [self._systemctl(level, "disable", unit_name(name), best_effort=True)]

    def post_uninstall_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        return [self._systemctl(level, "daemon-reload", best_effort=True)]

    def start_commands(self, name: str, level: ServiceLevel) -> list[CommandInvocation]:
        return [self._systemctl(level, "start", unit_name(name))]

    def stop_commands(self, name: str, level: ServiceLevel) -> list[CommandInvocation]:
        return [self._systemctl(level, "stop", unit_name(name))]

    def enable_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        return [self._systemctl(level, "enable", unit_name(name))]

    def disable_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        return [self._systemctl(level, "disable", unit_name(name))]

    def status_command(self, name: str, level: ServiceLevel) -> CommandInvocation:
        return self._systemctl(
            level,
            "status",
            "--no-pager",
            unit_name(name),
            expected_codes={_STATUS_RUNNING, _STATUS_STOPPED, _STATUS_NOT_FOUND},
        )

    def parse_status(self, result: CommandResult) -> ServiceStatus:
        """Map systemctl status exit codes to service states."""
        result.raise_for_status()
        if result.exit_code == _STATUS_NOT_FOUND:
            raise NotFound(f"Unit not found: {result.invocation.args[-1]}")

        pid = None
        match = re.search(r"Main PID:\s*(\d+)", result.stdout)
        if match:
            pid = int(match.group(1))

        if result.exit_code == _STATUS_RUNNING:
            return ServiceStatus(state=ServiceState.RUNNING, pid=pid)

        active = re.search(r"Active:\s*(\S+)", result.stdout)
        if active and active.group(1) in ("activating", "deactivating", "reloading"):
            return ServiceStatus(state=ServiceState.UNKNOWN, message=active.group(1))
        return ServiceStatus(state=ServiceState.STOPPED)
