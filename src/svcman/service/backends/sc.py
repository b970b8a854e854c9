"""Windows service backend using sc.exe.

Services are registered directly in the Service Control Manager; there is
no artifact file. The command line stored in ``binPath`` is built with the
Windows argument quoting rules, and the environment is written to the
service's registry key as a REG_MULTI_SZ value.
"""

import re
import subprocess
from collections.abc import Mapping

from svcman.service.base import (
    InstallPlan,
    RestartPolicy,
    ServiceEncoder,
    ServiceLevel,
    ServiceManagerKind,
    ServiceState,
    ServiceStatus,
)
from svcman.service.descriptor import ServiceDescriptor
from svcman.service.errors import NotFound, UnsupportedOperation
from svcman.service.runner import CommandInvocation, CommandResult, invocation

SERVICES_KEY = r"HKLM\SYSTEM\CurrentControlSet\Services"

# Win32 error codes returned as sc.exe exit codes
ERROR_ACCESS_DENIED = 5
ERROR_SERVICE_ALREADY_RUNNING = 1056
ERROR_SERVICE_DOES_NOT_EXIST = 1060
ERROR_SERVICE_NOT_ACTIVE = 1062

# Separators tried for REG_MULTI_SZ data, in order
_MULTI_SZ_SEPARATORS = "|~^#;"

_STATE_PATTERN = re.compile(r"STATE\s*:\s*(\d+)\s+(\w+)")
_PID_PATTERN = re.compile(r"PID\s*:\s*(\d+)")


def windows_command_line(argv: list[str]) -> str:
    """Join arguments the way the MS C runtime splits them."""
    return subprocess.list2cmdline(argv)


def multi_sz(entries: list[str]) -> tuple[str, str]:
    """Pick a separator unused by ``entries`` and join them for ``reg add``."""
    for sep in _MULTI_SZ_SEPARATORS:
        if not any(sep in entry for entry in entries):
            return sep, sep.join(entries)
    raise UnsupportedOperation(
        "Environment values use every available REG_MULTI_SZ separator"
    )


class ScBackend(ServiceEncoder):
    """sc.exe backend. Windows services are always system-level."""

    kind = ServiceManagerKind.SC
    supported_levels = (ServiceLevel.SYSTEM,)

    @property
    def default_binary(self) -> str:
        return "sc.exe"

    def artifact_path(self, name: str, level: ServiceLevel) -> None:
        self.check_level(level)
        return None

    def encode(self, descriptor: ServiceDescriptor, level: ServiceLevel) -> InstallPlan:
        self.check_level(level)
        if descriptor.working_directory is not None:
            raise UnsupportedOperation(
                "sc.exe services cannot set a working directory; use winsw instead"
            )
        if descriptor.restart_policy == RestartPolicy.ALWAYS:
            raise UnsupportedOperation(
                "sc.exe can only restart a service on failure; use 'on-failure'"
            )

        name = descriptor.name
        args = [
            "create",
            name,
            "type=",
            "own",
            "start=",
            "auto" if descriptor.autostart else "demand",
            "binPath=",
            windows_command_line(descriptor.command),
            "DisplayName=",
            descriptor.description or name,
        ]
        dependencies = sorted(descriptor.dependencies)
        if descriptor.requires_network:
            dependencies.insert(0, "Tcpip")
        if dependencies:
            args += ["depend=", "/".join(dependencies)]
        if descriptor.username:
            args += ["obj=", descriptor.username]

        commands = [invocation(self.binary, *args)]
        if descriptor.environment:
            commands.append(self._environment_command(name, descriptor.environment))
        if descriptor.restart_policy == RestartPolicy.ON_FAILURE:
            settings = self.config.sc
            commands.append(
                invocation(
                    self.binary,
                    "failure",
                    name,
                    "reset=",
                    str(settings.reset_period_sec),
                    "actions=",
                    f"restart/{settings.restart_delay_ms}",
                )
            )
        return InstallPlan(artifact=None, commands=tuple(commands))

    def _environment_command(
        self, name: str, environment: Mapping[str, str]
    ) -> CommandInvocation:
        """``reg add`` setting the service's Environment value."""
        entries = [f"{key}={environment[key]}" for key in sorted(environment)]
        sep, data = multi_sz(entries)
        return invocation(
            "reg.exe",
            "add",
            f"{SERVICES_KEY}\\{name}",
            "/v",
            "Environment",
            "/t",
            "REG_MULTI_SZ",
            "/s",
            sep,
            "/d",
            data,
            "/f",
        )

    def uninstall_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        return [invocation(self.binary, "delete", name)]

    def start_commands(self, name: str, level: ServiceLevel) -> list[CommandInvocation]:
        return [invocation(self.binary, "start", name)]

    def stop_commands(self, name: str, level: ServiceLevel) -> list[CommandInvocation]:
        return [invocation(self.binary, "stop", name)]

    def enable_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        return [invocation(self.binary, "config", name, "start=", "auto")]

    def disable_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        return [invocation(self.binary, "config", name, "start=", "demand")]

    def status_command(self, name: str, level: ServiceLevel) -> CommandInvocation:
        return invocation(
            self.binary,
            "queryex",
            name,
            expected_codes={0, ERROR_SERVICE_DOES_NOT_EXIST},
        )

    def parse_status(self, result: CommandResult) -> ServiceStatus:
        """Parse ``sc.exe queryex`` output.

        Relevant lines look like:
                STATE              : 4  RUNNING
                PID                : 1234
        """
        result.raise_for_status()
        if result.exit_code == ERROR_SERVICE_DOES_NOT_EXIST:
            raise NotFound(f"Service does not exist: {result.invocation.args[-1]}")

        match = _STATE_PATTERN.search(result.stdout)
        if not match:
            return ServiceStatus(state=ServiceState.UNKNOWN, message=result.output)

        code = int(match.group(1))
        if code == 4:
            pid_match = _PID_PATTERN.search(result.stdout)
            pid = int(pid_match.group(1)) if pid_match else None
            return ServiceStatus(state=ServiceState.RUNNING, pid=pid or None)
        if code == 1:
            return ServiceStatus(state=ServiceState.STOPPED)
        # START_PENDING, STOP_PENDING, PAUSED, ...
        return ServiceStatus(state=ServiceState.UNKNOWN, message=match.group(2))

    def is_already_running(self, result: CommandResult) -> bool:
        return result.exit_code == ERROR_SERVICE_ALREADY_RUNNING

    def is_already_stopped(self, result: CommandResult) -> bool:
        return result.exit_code == ERROR_SERVICE_NOT_ACTIVE

    def is_permission_denied(self, result: CommandResult) -> bool:
        if result.exit_code == ERROR_ACCESS_DENIED:
            return True
        return super().is_permission_denied(result)
